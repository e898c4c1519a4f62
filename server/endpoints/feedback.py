"""Feedback endpoint module."""

from server.logging_utils import log_message
from server.models import FeedbackRequest
from server.response_utils import success_response, to_http_exception


async def submit_feedback(request: FeedbackRequest, services, config=None):
    """Record thumbs up/down feedback and adjust the confidence of the rules involved."""
    session_id = request.sessionId or 'unknown'
    log_message(
        f"[{session_id}] [FEEDBACK] Processing {'positive' if request.satisfied else 'negative'} "
        f"feedback for {len(request.rulesApplied)} rules",
        "DEBUG", config
    )

    try:
        adjustments = await services.confidence.process_feedback(
            request.satisfied,
            request.originalText,
            request.compressedText,
            [rule.id for rule in request.rulesApplied],
            session_id=request.sessionId,
            compression_ratio=request.compressionRatio,
            processing_time=request.processingTime,
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to process feedback", config)

    avg_adjustment = sum(a.adjustment for a in adjustments) / len(adjustments) if adjustments else 0
    log_message(
        f"[{session_id}] Feedback processed: {len(adjustments)} rules affected, avg adjustment {avg_adjustment:+.3f}",
        config=config
    )

    return success_response({
        "feedbackRecorded": True,
        "confidenceAdjustments": [a.to_dict() for a in adjustments],
        "newConfidenceScores": {a.pattern_id: a.new_confidence for a in adjustments},
    })
