"""Endpoint modules for the Pithy server."""

from .compress import compress_text
from .feedback import submit_feedback
from .admin import (
    add_rule, clear_cache, get_cache_stats, get_miss_stats, get_miss_analytics,
    mark_misses_reviewed, create_rule_from_miss, get_suggestions, get_confidence_stats, get_feedback_trends,
    override_confidence, auto_disable, get_system_stats
)

__all__ = [
    'compress_text',
    'submit_feedback',
    'add_rule', 'clear_cache', 'get_cache_stats', 'get_miss_stats', 'get_miss_analytics',
    'mark_misses_reviewed', 'create_rule_from_miss', 'get_suggestions', 'get_confidence_stats', 'get_feedback_trends',
    'override_confidence', 'auto_disable', 'get_system_stats'
]
