"""Compression endpoint module."""
import time

from core.errors import ValidationError
from core.token_metrics import calculate_token_stats
from server.logging_utils import log_compression_metrics, log_message
from server.models import CompressRequest
from server.response_utils import success_response, to_http_exception


async def compress_text(request: CompressRequest, services, config=None):
    """
    Compress one text with the engine for the requested confidence mode.

    Returns:
        ``{success, data: result + meta, timestamp}``
    """
    if not request.text or not request.text.strip():
        raise to_http_exception(ValidationError("Text cannot be empty"), "Compression processing failed", config)

    options = request.options
    mode = options.confidenceMode if options and options.confidenceMode else services.default_mode
    use_cache = options.enableCaching is not False if options else True
    session_id = request.sessionId or services.confidence.generate_session_id()

    preview = request.text[:50] + ('...' if len(request.text) > 50 else '')
    log_message(f"[{session_id}] Compressing text: \"{preview}\"", "DEBUG", config, debug_category="compression_core")

    start_time = time.time()
    try:
        engine = services.get_engine(mode)
        result = await engine.compress(request.text, session_id, use_cache=use_cache)
    except Exception as e:
        raise to_http_exception(e, "Compression processing failed", config)

    data = result.to_dict()
    token_stats = calculate_token_stats(result.original, result.compressed)
    data["meta"] = {
        "cacheHit": result.from_cache,
        "confidenceMode": mode,
        "processingDetails": {
            "pass0Time": result.pass_results["pass0"].processing_time,
            "pass1Time": result.pass_results["pass1"].processing_time,
            "pass2Time": result.pass_results["pass2"].processing_time,
            "totalRules": len(result.rules_applied),
            "requestTime": round((time.time() - start_time) * 1000, 2),
        },
        "tokenStats": token_stats,
    }

    log_compression_metrics(data, token_stats, mode=mode, session_id=session_id, config=config)
    return success_response(data)
