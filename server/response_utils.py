"""
Response helpers for the Pithy server.

Every endpoint answers with ``{success, data | error, timestamp}`` and maps
core exceptions to HTTP status codes in one place.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import HTTPException

from core.errors import (
    DuplicatePatternError, FeedbackPersistenceError, PatternLoadError,
    PatternNotFoundError, PersistenceError, ValidationError,
)
from server.logging_utils import log_message

ERROR_STATUS_CODES = (
    (ValidationError, 400),
    (PatternNotFoundError, 404),
    (DuplicatePatternError, 409),
    (PatternLoadError, 503),
    (PersistenceError, 503),
    (FeedbackPersistenceError, 500),
)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def success_response(data: Any = None, **extra) -> Dict[str, Any]:
    response = {"success": True}
    if data is not None:
        response["data"] = data
    response.update(extra)
    response["timestamp"] = utc_timestamp()
    return response


def status_code_for(error: Exception) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


def to_http_exception(error: Exception, fallback_message: str, config=None) -> HTTPException:
    """
    Translate a core exception into an HTTPException.

    Args:
        error: The exception raised by the core
        fallback_message: Detail used for unexpected errors, so internals are not leaked
        config: Server configuration passed through to log_message

    Returns:
        HTTPException carrying the mapped status code
    """
    status_code = status_code_for(error)
    if status_code == 503:
        detail = "Pattern store temporarily unavailable"
    elif status_code == 500:
        detail = fallback_message
    else:
        detail = str(error)

    level = "ERROR" if status_code >= 500 else "WARNING"
    log_message(f"🚨 [ERROR] {fallback_message}: {type(error).__name__}: {error}", level, config)
    return HTTPException(status_code=status_code, detail=detail)
