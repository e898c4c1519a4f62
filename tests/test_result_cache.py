#!/usr/bin/env python3
"""
Test the LRU result cache.
"""

import os
import sys
from concurrent.futures import ThreadPoolExecutor

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from core.models import CompressionResult
from core.result_cache import ResultCache, cache_key_for


def make_result(text, compressed):
    return CompressionResult(original=text, compressed=compressed, compression_ratio=50, processing_time=1.0)


def test_key_normalization():
    assert cache_key_for("  Thank You ") == cache_key_for("thank you")
    assert cache_key_for("thank you") != cache_key_for("thank u")
    assert len(cache_key_for("x")) == 32


def test_hit_returns_copy_flagged_from_cache():
    print("🧪 Testing cache hit...")

    cache = ResultCache()
    cache.set("Thank you", make_result("Thank you", "Thx"))

    first = cache.get("thank you ")
    first.rules_applied.append("mutated")
    second = cache.get("Thank you")

    assert second.compressed == "Thx"
    assert second.rules_applied == []
    stats = cache.get_stats()
    assert stats['hits'] == 2
    assert stats['hit_rate_percent'] == 100.0
    print("✅ Cached results are isolated copies")


def test_miss_counts():
    cache = ResultCache()
    assert cache.get("nothing here") is None
    assert cache.get_stats()['misses'] == 1


def test_lru_eviction():
    print("🧪 Testing LRU eviction...")

    cache = ResultCache(max_entries=2)
    cache.set("one", make_result("one", "1"))
    cache.set("two", make_result("two", "2"))
    cache.get("one")
    cache.set("three", make_result("three", "3"))

    assert len(cache) == 2
    assert cache.get("two") is None
    assert cache.get("one").compressed == "1"
    assert cache.get("three").compressed == "3"
    assert cache.get_stats()['evictions'] == 1
    print("✅ Least recently used entry evicted")


def test_disabled_cache():
    cache = ResultCache(enabled=False)
    cache.set("one", make_result("one", "1"))
    assert cache.get("one") is None
    assert len(cache) == 0
    assert cache.get_stats()['misses'] == 0


def test_clear():
    cache = ResultCache()
    cache.set("one", make_result("one", "1"))
    cache.set("two", make_result("two", "2"))
    assert cache.clear() == 2
    assert len(cache) == 0
    assert cache.clear() == 0


def test_concurrent_access_keeps_counters_consistent():
    print("🧪 Testing threaded cache access...")

    cache = ResultCache(max_entries=16)
    texts = [f"request number {i}" for i in range(40)]

    def worker(text):
        cache.set(text, make_result(text, text.upper()))
        hit = cache.get(text)
        return hit is None or hit.compressed == text.upper()

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(worker, texts * 5))

    stats = cache.get_stats()
    assert all(results)
    assert len(cache) == 16
    assert len(cache.keys()) == 16
    assert stats['hits'] + stats['misses'] == len(texts) * 5
    print("✅ Cache stayed bounded under concurrent use")
