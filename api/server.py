import os
import argparse
import uvicorn
import logging
import sys

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Add parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.async_logger import setup_global_async_logging

from server.logging_utils import log_config_message
from server.config import ServerConfig
from server.services import PithyServices
from server.response_utils import utc_timestamp
from server.models import (
    CompressRequest, FeedbackRequest, AddRuleRequest, ConfidenceOverrideRequest,
    MarkReviewedRequest, RuleFromMissRequest
)
from server.endpoints import (
    compress_text, submit_feedback, add_rule, clear_cache, get_cache_stats, get_miss_stats,
    get_miss_analytics, mark_misses_reviewed, create_rule_from_miss, get_suggestions,
    get_confidence_stats, get_feedback_trends, override_confidence, auto_disable, get_system_stats
)


def _error_response(status_code: int, error) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "timestamp": utc_timestamp()},
    )


def create_app(services: PithyServices = None, config: ServerConfig = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Engines and stores to serve; built from ``config`` if omitted
        config: Server configuration; loaded from config/server.jsonc if omitted

    Returns:
        Configured FastAPI app
    """
    if services is None:
        config = config or ServerConfig()
        services = PithyServices(config.engine_config, server_config=config)
    config = config or services.server_config

    app = FastAPI(title="Pithy Prompt Compression Service")
    app.state.services = services
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _error_response(exc.status_code, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        messages = [f"{'.'.join(str(p) for p in err['loc'][1:])}: {err['msg']}" for err in exc.errors()]
        return _error_response(400, "; ".join(messages) or "Invalid request")

    @app.on_event("shutdown")
    async def close_services():
        await services.close()

    @app.post("/api/compress")
    async def compress_endpoint(request: CompressRequest):
        """Compress text through the three-pass pipeline."""
        return await compress_text(request, services, config)

    @app.post("/api/feedback")
    async def feedback_endpoint(request: FeedbackRequest):
        """Record user satisfaction and adjust rule confidence."""
        return await submit_feedback(request, services, config)

    @app.post("/api/admin/add-rule", status_code=201)
    async def add_rule_endpoint(request: AddRuleRequest):
        return await add_rule(request, services, config)

    @app.post("/api/admin/clear-cache")
    async def clear_cache_endpoint():
        return await clear_cache(services, config)

    @app.get("/api/admin/cache-stats")
    async def cache_stats_endpoint():
        return await get_cache_stats(services, config)

    @app.get("/api/admin/miss-stats")
    async def miss_stats_endpoint(limit: int = 50):
        return await get_miss_stats(limit, services, config)

    @app.get("/api/admin/miss-analytics")
    async def miss_analytics_endpoint(days: int = 30):
        return await get_miss_analytics(days, services, config)

    @app.post("/api/admin/mark-reviewed")
    async def mark_reviewed_endpoint(request: MarkReviewedRequest):
        return await mark_misses_reviewed(request, services, config)

    @app.post("/api/admin/rule-from-miss", status_code=201)
    async def rule_from_miss_endpoint(request: RuleFromMissRequest):
        return await create_rule_from_miss(request, services, config)

    @app.get("/api/admin/suggestions")
    async def suggestions_endpoint(limit: int = 20):
        return await get_suggestions(limit, services, config)

    @app.get("/api/admin/confidence-stats")
    async def confidence_stats_endpoint():
        return await get_confidence_stats(services, config)

    @app.get("/api/admin/feedback-trends")
    async def feedback_trends_endpoint(days: int = 30):
        return await get_feedback_trends(days, services, config)

    @app.post("/api/admin/confidence")
    async def confidence_override_endpoint(request: ConfidenceOverrideRequest):
        return await override_confidence(request, services, config)

    @app.post("/api/admin/auto-disable")
    async def auto_disable_endpoint():
        return await auto_disable(services, config)

    @app.get("/api/stats")
    async def system_stats_endpoint():
        return await get_system_stats(services, config)

    return app


def main():
    config = ServerConfig()

    parser = argparse.ArgumentParser(description="Pithy Prompt Compression Service")
    parser.add_argument("--port", type=int, default=config.port, help="Port to run the server on")
    parser.add_argument("--host", type=str, default=config.host, help="Host to run the server on")
    parser.add_argument("--mode", type=str, default=None, choices=["conservative", "default", "aggressive"],
                        help="Default confidence mode")
    args = parser.parse_args()

    config.port = args.port
    config.host = args.host
    if args.mode:
        config.engine_config.mode = args.mode

    # ──────────────────────────────────────────────────────────────────────────────
    log_config_message("──────────────────────────────────────────────────────────────────────────────")
    log_config_message("🚀 SERVER STARTUP")
    log_config_message("──────────────────────────────────────────────────────────────────────────────")
    log_config_message(f"🔌 Listen address:               http://{config.host}:{config.port}")
    log_config_message(f"🎯 Default mode:                 {config.engine_config.mode}")

    try:
        async_handler = setup_global_async_logging()
        log_config_message("──────────────────────────────────────────────────────────────────────────────")
        log_config_message("⚡ ASYNC LOGGING SETUP")
        log_config_message("──────────────────────────────────────────────────────────────────────────────")
        if async_handler:
            inner = async_handler.async_handler
            queue_info = "unlimited" if inner.log_queue.maxsize == 0 else str(inner.log_queue.maxsize)
            log_config_message("📝 Status:                       Enabled")
            log_config_message(f"📊 Queue size:                   {queue_info}")
            log_config_message(f"⚡ Batch size:                   {inner.batch_size}")
            log_config_message(f"⏱️  Worker timeout:               {inner.worker_timeout}s")
        else:
            log_config_message("📝 Status:                       Disabled")
    except Exception as e:
        log_config_message(f"⚠️  Async logging setup failed ({e}), using standard logging", "WARNING")

    app = create_app(config=config)

    root_logger = logging.getLogger()
    file_handler = next((h for h in root_logger.handlers if hasattr(h, 'baseFilename')), None)

    uvicorn_log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)-16s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            name: {"handlers": ["default"], "level": "INFO", "propagate": False}
            for name in ("uvicorn", "uvicorn.error", "uvicorn.access")
        },
    }

    if file_handler:
        uvicorn_log_config["handlers"]["file"] = {
            "formatter": "default",
            "class": "logging.FileHandler",
            "filename": file_handler.baseFilename,
            "mode": "a",
        }
        for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
            uvicorn_log_config["loggers"][logger_name]["handlers"].append("file")

    log_config_message("=" * 80)
    log_config_message("✅ Pithy initialization complete - server ready!")
    log_config_message("=" * 80)

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_config=uvicorn_log_config,
        access_log=True
    )


if __name__ == "__main__":
    main()
