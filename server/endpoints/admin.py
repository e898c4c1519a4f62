"""Admin endpoint module: rule curation, caches, miss statistics and confidence management."""

from fastapi import HTTPException

from core.errors import DuplicatePatternError
from core.models import CompressionPattern, compression_ratio
from server.logging_utils import log_message
from server.models import AddRuleRequest, ConfidenceOverrideRequest, MarkReviewedRequest, RuleFromMissRequest
from server.response_utils import success_response, to_http_exception

MIN_STATS_LIMIT = 1
MAX_STATS_LIMIT = 500


async def add_rule(request: AddRuleRequest, services, config=None):
    """Create a compression rule; phrases go to Pass 1, single words to Pass 2."""
    original = request.originalText
    compressed = request.compressedForm

    try:
        if await services.store.get_pattern_by_text(original) is not None:
            raise DuplicatePatternError(f'Rule for "{original}" already exists')

        word_count = len(original.split())
        compression_type = request.compressionType or ('phrase' if word_count > 1 else 'word')
        pass_level = 1 if compression_type == 'phrase' else 2

        log_message(
            f"[ADMIN] Adding compression rule: '{original}' → '{compressed}' "
            f"({compression_type}, pass {pass_level}, confidence {request.confidenceScore})",
            config=config
        )
        pattern = await services.store.add_pattern(CompressionPattern(
            original_text=original,
            compressed_form=compressed,
            word_count=word_count,
            pass_priority=pass_level,
            confidence_score=request.confidenceScore,
            compression_type=compression_type,
            compression_ratio=compression_ratio(original, compressed),
        ))
    except Exception as e:
        raise to_http_exception(e, "Failed to create compression rule", config)

    # A miss for the same text is now covered; failing to mark it does not undo the rule
    try:
        miss = await services.store.get_miss_by_phrase(original)
        if miss is not None:
            await services.store.mark_misses_reviewed(
                [miss.id], request.notes or f"Created rule: {original} → {compressed}"
            )
    except Exception as e:
        log_message(f"⚠️ [ADMIN] Failed to update miss log for '{original}': {e}", "WARNING", config)

    return success_response({
        "ruleId": pattern.id,
        "originalText": pattern.original_text,
        "compressedForm": pattern.compressed_form,
        "confidenceScore": pattern.confidence_score,
        "compressionRatio": pattern.compression_ratio or 0,
        "passLevel": pattern.pass_priority,
    })


async def clear_cache(services, config=None):
    size_before = services.cache_size()
    services.clear_caches()
    size_after = services.cache_size()
    log_message(f"🧹 [CACHE] Cache cleared: {size_before} → {size_after} entries", config=config)
    return success_response(
        message=f"Cache cleared successfully. Removed {size_before} cached entries.",
        cacheStats={"sizeBefore": size_before, "sizeAfter": size_after},
    )


async def get_cache_stats(services, config=None):
    return success_response({
        mode: engine.get_cache_stats() for mode, engine in services.engines.items()
    })


async def get_miss_stats(limit: int, services, config=None):
    if limit < MIN_STATS_LIMIT or limit > MAX_STATS_LIMIT:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid limit parameter. Must be between {MIN_STATS_LIMIT} and {MAX_STATS_LIMIT}."
        )
    try:
        stats = await services.misses.get_miss_statistics(limit)
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve miss statistics", config)

    log_message(
        f"[ADMIN] Miss stats retrieved: {len(stats['topWords'])} words, {len(stats['topPhrases'])} phrases, "
        f"{stats['totalMisses']} total, {stats['newMissesToday']} new today",
        "DEBUG", config
    )
    stats["meta"] = {"dataFreshness": "live"}
    return success_response(stats)


async def get_miss_analytics(days: int, services, config=None):
    try:
        return success_response(await services.misses.get_miss_analytics(days))
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve miss analytics", config)


async def mark_misses_reviewed(request: MarkReviewedRequest, services, config=None):
    try:
        updated = await services.misses.mark_as_reviewed(request.missIds, request.notes)
    except Exception as e:
        raise to_http_exception(e, "Failed to mark misses as reviewed", config)
    return success_response({"updated": updated})


async def create_rule_from_miss(request: RuleFromMissRequest, services, config=None):
    try:
        pattern = await services.misses.create_rule_from_miss(
            request.missId, request.compressedForm, request.confidenceScore
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to create rule from miss", config)
    return success_response(pattern.to_dict())


async def get_suggestions(limit: int, services, config=None):
    try:
        return success_response(await services.misses.get_compression_suggestions(limit))
    except Exception as e:
        raise to_http_exception(e, "Failed to build compression suggestions", config)


async def get_confidence_stats(services, config=None):
    try:
        stats = await services.confidence.get_confidence_stats()
        stats["needsReview"] = await services.confidence.get_patterns_needing_review()
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve confidence statistics", config)
    return success_response(stats)


async def get_feedback_trends(days: int, services, config=None):
    try:
        return success_response(await services.confidence.get_feedback_trends(days))
    except Exception as e:
        raise to_http_exception(e, "Failed to retrieve feedback trends", config)


async def override_confidence(request: ConfidenceOverrideRequest, services, config=None):
    try:
        adjustment = await services.confidence.manually_adjust_confidence(
            request.patternId, request.newConfidence, request.reason
        )
    except Exception as e:
        raise to_http_exception(e, "Failed to update confidence", config)
    return success_response(adjustment.to_dict())


async def auto_disable(services, config=None):
    try:
        disabled = await services.confidence.auto_disable_low_confidence_patterns()
    except Exception as e:
        raise to_http_exception(e, "Failed to auto-disable patterns", config)
    log_message(f"🚫 [ADMIN] Auto-disabled {len(disabled)} patterns", config=config)
    return success_response({"disabledPatterns": disabled, "count": len(disabled)})


async def get_system_stats(services, config=None):
    """Pipeline timings and async logging statistics."""
    result = {}
    try:
        from core.async_logger import get_optimized_logger, get_performance_monitor
        result["asyncLogging"] = {"enabled": True, "stats": get_optimized_logger().get_stats()}
        result["performance"] = get_performance_monitor().get_stats()
    except Exception as e:
        result["asyncLogging"] = {"enabled": False, "error": f"Failed to get async logging stats: {e}"}

    result["engines"] = sorted(services.engines)
    result["defaultMode"] = services.default_mode
    result["storeBackend"] = services.engine_config.store_backend
    return success_response(result)
