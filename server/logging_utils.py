"""
Logging utilities for the Pithy server.

All functions go through Python's logging system, so they benefit from
setup_global_async_logging() when it is enabled:
- No print() fallbacks
- Early configuration messages are buffered until file logging is ready
- DEBUG messages can be filtered per category via server.jsonc
"""

import logging
from typing import Any, Dict, Optional

# Buffer for early configuration messages that occur before file logging is set up
_config_message_buffer = []


def _extract_debug_category_from_message(message: str) -> str:
    """
    Extract debug category from message content based on common tags.

    Returns the appropriate debug category name for the message content.
    """
    msg_upper = message.upper()

    if "[ERROR]" in msg_upper:
        return "error_handling"
    if "[PASS 0]" in msg_upper or "PREFIX" in msg_upper:
        return "pass_zero"
    if "[CACHE]" in msg_upper:
        return "result_cache"
    if "[MISS]" in msg_upper:
        return "miss_tracking"
    if "[FEEDBACK]" in msg_upper or "CONFIDENCE" in msg_upper:
        return "confidence"
    if "[ADMIN]" in msg_upper:
        return "admin_operations"
    if "[STORE]" in msg_upper or "SUPABASE" in msg_upper:
        return "pattern_store"
    if "COMPRESS" in msg_upper:
        return "compression_core"

    return "request_processing"


def log_message(message: str, level: str = "INFO", config=None, debug_category: str = None):
    """
    Log message through the pithy logger with debug category filtering.

    Args:
        message: The message to log
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        config: Server configuration object
        debug_category: Debug category for filtering (only applies to DEBUG level messages)
    """
    if level.upper() == "DEBUG" and config is not None:
        if not debug_category:
            debug_category = _extract_debug_category_from_message(message)
        if hasattr(config, 'is_debug_category_enabled') and not config.is_debug_category_enabled(debug_category):
            return

    logger = getattr(config, 'logger', None) or logging.getLogger('pithy')
    logger.log(getattr(logging, level.upper(), logging.INFO), message)


def log_config_message(message: str, level: str = "INFO"):
    """Log configuration message during server setup."""
    root_logger = logging.getLogger()
    has_file_handler = any(isinstance(h, logging.FileHandler) for h in root_logger.handlers)

    logger = logging.getLogger('server.config')
    log_level = getattr(logging, level.upper(), logging.INFO)
    if has_file_handler:
        logger.log(log_level, message)
    else:
        # File logging not ready yet; replay once it is
        _config_message_buffer.append((message, level))
        logger.log(log_level, f"[EARLY] {message}")


def flush_config_message_buffer() -> int:
    """Flush buffered configuration messages to the logging system."""
    flushed = len(_config_message_buffer)
    if _config_message_buffer:
        logger = logging.getLogger('server.config')
        for message, level in _config_message_buffer:
            logger.log(getattr(logging, level.upper(), logging.INFO), f"[EARLY] {message}")
        _config_message_buffer.clear()
    return flushed


def log_compression_metrics(
    result: Dict[str, Any],
    token_stats: Optional[Dict[str, Any]] = None,
    mode: str = "default",
    session_id: Optional[str] = None,
    config=None
):
    """Log compression metrics for one request in a consistent format."""
    passes = result.get("passResults", {})
    log_message(f"📊 Compression Metrics [{session_id or 'anonymous'}] (mode: {mode}):", config=config)
    log_message(f"   chars: {len(result.get('original', ''))} → {len(result.get('compressed', ''))}", config=config)
    log_message(f"   compression %: {result.get('compressionRatio', 0)}%", config=config)
    log_message(f"   rules applied: {len(result.get('rulesApplied', []))}", config=config)
    for name in ("pass0", "pass1", "pass2"):
        stats = passes.get(name)
        if stats:
            log_message(
                f"   {name}: {stats.get('rulesApplied', 0)} rules, {stats.get('processingTime', 0):.2f}ms",
                level="DEBUG", config=config, debug_category="compression_core"
            )
    if token_stats:
        log_message(
            f"   tokens: {token_stats['originalTokens']} → {token_stats['compressedTokens']} "
            f"(saved {token_stats['tokensSaved']}, {token_stats['tokenReductionPercent']}%)",
            config=config
        )
    log_message(f"   from cache: {result.get('fromCache', False)}", config=config)
    log_message(f"   🏁 Total Processing Time: {result.get('processingTime', 0):.2f}ms", config=config)


def log_startup_messages():
    """Log a clean startup banner."""
    logger = logging.getLogger('server.startup')
    logger.info("=" * 80)
    logger.info("🚀 Pithy Prompt Compression Service - Python Server Starting")
    logger.info("=" * 80)
