"""
Result cache for the compression engine.

Keeps full CompressionResults keyed by the md5 of the normalized input
(trimmed, lower-cased). Bounded with least-recently-used eviction.
"""

import hashlib
import itertools
import logging
import threading
from typing import Any, Dict, List, Optional

from .models import CompressionResult

logger = logging.getLogger(__name__)

__all__ = ["ResultCache", "cache_key_for"]


def cache_key_for(text: str) -> str:
    """Cache key: md5 hex digest of ``text.strip().lower()``."""
    return hashlib.md5(text.strip().lower().encode('utf-8')).hexdigest()


class ResultCache:
    """
    In-memory LRU cache of compression results.
    """

    def __init__(self, max_entries: int = 1000, enabled: bool = True):
        """
        Initialize the result cache.

        Args:
            max_entries: Maximum entries kept; 0 means unbounded
            enabled: When False every lookup misses and nothing is stored
        """
        self.max_entries = max_entries
        self.enabled = enabled

        self._entries: Dict[str, CompressionResult] = {}
        self._access_ticks: Dict[str, int] = {}
        self._ticks = itertools.count()
        self._cache_lock = threading.RLock()

        self.stats = {
            'hits': 0,
            'misses': 0,
            'saves': 0,
            'evictions': 0
        }

    def _evict_lru(self):
        """Remove least recently used entries beyond ``max_entries``."""
        if not self.max_entries or len(self._entries) <= self.max_entries:
            return

        sorted_items = sorted(self._access_ticks.items(), key=lambda x: x[1])
        items_to_remove = len(self._entries) - self.max_entries

        for key, _ in sorted_items[:items_to_remove]:
            self._entries.pop(key, None)
            self._access_ticks.pop(key, None)
            self.stats['evictions'] += 1

    def get(self, text: str) -> Optional[CompressionResult]:
        """
        Look up a cached result for ``text``.

        Returns:
            A copy of the cached result, or None on a miss
        """
        if not self.enabled:
            return None

        key = cache_key_for(text)
        with self._cache_lock:
            cached = self._entries.get(key)
            if cached is None:
                self.stats['misses'] += 1
                return None
            self._access_ticks[key] = next(self._ticks)
            self.stats['hits'] += 1
        logger.debug(f"Result cache hit for {text[:50]}...")
        return cached.copy()

    def set(self, text: str, result: CompressionResult):
        if not self.enabled:
            return

        key = cache_key_for(text)
        with self._cache_lock:
            self._entries[key] = result.copy(from_cache=False)
            self._access_ticks[key] = next(self._ticks)
            self.stats['saves'] += 1
            self._evict_lru()

    def clear(self) -> int:
        """Drop every entry. Returns the number of entries removed."""
        with self._cache_lock:
            removed = len(self._entries)
            self._entries.clear()
            self._access_ticks.clear()
        if removed:
            logger.info(f"🧹 Cleared {removed} cached compression results")
        return removed

    def keys(self) -> List[str]:
        """Cached keys, least recently used first."""
        with self._cache_lock:
            return [key for key, _ in sorted(self._access_ticks.items(), key=lambda x: x[1])]

    def __len__(self) -> int:
        with self._cache_lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._cache_lock:
            size = len(self._entries)
            stats = dict(self.stats)

        total_requests = stats['hits'] + stats['misses']
        hit_rate = 0.0
        if total_requests > 0:
            hit_rate = stats['hits'] / total_requests * 100

        return {
            'size': size,
            'max_entries': self.max_entries,
            'enabled': self.enabled,
            'hits': stats['hits'],
            'misses': stats['misses'],
            'saves': stats['saves'],
            'evictions': stats['evictions'],
            'hit_rate_percent': round(hit_rate, 2),
        }
