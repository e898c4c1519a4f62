#!/usr/bin/env python3
"""
Test the three-pass compression engine end to end.
"""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from core.engine import CompressionEngine, build_engine
from core.engine_config import EngineConfig
from core.errors import PatternLoadError, PersistenceError, ValidationError
from core.models import CompressionPattern
from core.pattern_store import InMemoryPatternStore
from core.result_cache import cache_key_for

config = None


def setup_function():
    global config
    config = EngineConfig(config_data={"compression": {"mode": "default"}})


def make_engine(patterns=(), mode="default", store=None):
    return CompressionEngine(store or InMemoryPatternStore(patterns), mode=mode, config=config)


def seed_patterns():
    return [
        CompressionPattern("can you please", "?", pass_priority=0, confidence_score=0.95),
        CompressionPattern("machine learning", "ML", pass_priority=1, confidence_score=0.90),
        CompressionPattern("by the way", "btw", pass_priority=1, confidence_score=0.80),
        CompressionPattern("you", "u", pass_priority=2, confidence_score=0.85),
        CompressionPattern("please", "pls", pass_priority=2, confidence_score=0.90),
        CompressionPattern("because", "bc", pass_priority=2, confidence_score=0.50),
    ]


class FailingLoadStore(InMemoryPatternStore):
    async def get_patterns_by_priority(self, priority, min_confidence=0.70):
        if priority == 1:
            raise PersistenceError("connection refused")
        return await super().get_patterns_by_priority(priority, min_confidence)


class FailingWriteStore(InMemoryPatternStore):
    async def log_miss(self, word_phrase, miss_type, context=()):
        raise PersistenceError("miss_log unavailable")

    async def increment_usage(self, pattern_text):
        raise PersistenceError("rpc unavailable")


def test_explain_ml_scenario():
    """Prefix removal followed by a phrase acronym."""
    print("🧪 Testing 'explain ML?' scenario...")

    engine = make_engine(seed_patterns())
    result = asyncio.run(engine.compress("Can you please explain machine learning?"))

    assert result.compressed == "explain ML?"
    assert result.pass0_result.prefix_removed == "Can you please"
    assert [rule.pass_number for rule in result.rules_applied] == [0, 1]
    assert result.rules_applied[0].compressed_form == ""
    assert result.rules_applied[1].original_text == "machine learning"
    assert result.pass_results["pass0"].rules_applied == 1
    assert result.pass_results["pass1"].rules_applied == 1
    assert result.compression_ratio == 73
    print(f"✅ '{result.original}' → '{result.compressed}' ({result.compression_ratio}%)")


def test_ratio_example():
    result = asyncio.run(make_engine().compress("Could you help me?"))
    assert result.compressed == "help me?"
    assert result.compression_ratio == 56


def test_case_and_punctuation_preserved():
    engine = make_engine(seed_patterns())
    result = asyncio.run(engine.compress("Thanks, YOU did it. By the way, you rock!"))
    assert result.compressed == "Thanks, U did it. Btw, u rock!"


def test_interior_punctuation_loss_is_pinned():
    engine = make_engine(seed_patterns())
    result = asyncio.run(engine.compress("by the, way it works"))
    assert result.compressed == "btw it works"


def test_empty_and_blank_input():
    engine = make_engine(seed_patterns())
    for text in ("", "   \n\t"):
        result = asyncio.run(engine.compress(text))
        assert result.compressed == ""
        assert result.compression_ratio == 0
        assert result.rules_applied == []
        assert result.from_cache is False


def test_invalid_input():
    engine = make_engine()
    with pytest.raises(ValidationError):
        asyncio.run(engine.compress(None))
    with pytest.raises(ValidationError):
        asyncio.run(engine.compress("x" * (config.max_text_length + 1)))


def test_determinism_and_cache_hit():
    print("🧪 Testing cache...")

    engine = make_engine(seed_patterns())
    first = asyncio.run(engine.compress("please send it because you can"))
    second = asyncio.run(engine.compress("please send it because you can"))

    assert first.from_cache is False
    assert second.from_cache is True
    assert second.compressed == first.compressed
    assert engine.get_cache_stats()["hits"] == 1

    uncached = asyncio.run(engine.compress("please send it because you can", use_cache=False))
    assert uncached.from_cache is False
    assert uncached.compressed == first.compressed

    assert engine.clear_cache() == 1
    assert engine.get_cache_stats()["entries"] == []
    print("✅ Cache hit served identical result")


def test_bare_question_mark_after_prefix_is_pinned():
    """A prefix followed only by '?' leaves a punctuation-only token, which the tokenizer drops."""
    result = asyncio.run(make_engine().compress("Can you please ?"))
    assert result.pass0_result.processed == "?"
    assert result.pass0_result.prefix_removed == "Can you please"
    assert result.compressed == ""
    assert result.compression_ratio == 100


def test_cache_entries_list_cached_keys():
    engine = make_engine(seed_patterns())
    assert engine.get_cache_stats()["entries"] == []

    asyncio.run(engine.compress("hello world"))
    entries = engine.get_cache_stats()["entries"]
    assert isinstance(entries, list)
    assert entries == [cache_key_for("hello world")]

    asyncio.run(engine.compress("  HELLO World "))
    assert len(engine.get_cache_stats()["entries"]) == 1

    asyncio.run(engine.compress("goodbye world"))
    entries = engine.get_cache_stats()["entries"]
    assert entries == [cache_key_for("hello world"), cache_key_for("goodbye world")]
    assert engine.get_cache_stats()["size"] == 2

    engine.clear_cache()
    assert engine.get_cache_stats()["entries"] == []


def test_mode_thresholds():
    patterns = seed_patterns()
    text = "do it because you said so"

    default = asyncio.run(make_engine(patterns, mode="default").compress(text))
    aggressive = asyncio.run(make_engine(patterns, mode="aggressive").compress(text))
    conservative = asyncio.run(make_engine(patterns, mode="conservative").compress(text))

    assert default.compressed == "do it because u said so"
    assert aggressive.compressed == "do it bc u said so"
    assert conservative.compressed == "do it because u said so"


def test_invalid_mode():
    with pytest.raises(ValidationError):
        make_engine(mode="reckless")


def test_pattern_load_failure_aborts():
    engine = make_engine(store=FailingLoadStore(seed_patterns()))
    with pytest.raises(PatternLoadError) as excinfo:
        asyncio.run(engine.compress("anything at all"))
    assert excinfo.value.priority == 1


def test_miss_and_usage_failures_are_not_fatal():
    engine = make_engine(store=FailingWriteStore(seed_patterns()))
    result = asyncio.run(engine.compress("you deploy blockchain infrastructure"))
    assert result.compressed == "u deploy blockchain infrastructure"


def test_usage_counts_and_misses_are_recorded():
    store = InMemoryPatternStore(seed_patterns())
    engine = make_engine(store=store)
    asyncio.run(engine.compress("you should learn about the blockchain"))

    pattern = asyncio.run(store.get_pattern_by_text("you"))
    assert pattern.usage_count == 1

    misses = asyncio.run(store.get_top_misses())
    phrases = [miss.word_phrase for miss in misses]
    assert "blockchain" in phrases
    assert "the" not in phrases


def test_token_conservation():
    """Every input word either survives or is covered by an applied rule."""
    engine = make_engine(seed_patterns())
    text = "Please tell me by the way how you learned machine learning"
    result = asyncio.run(engine.compress(text))

    covered = set()
    for rule in result.rules_applied:
        covered.update(rule.original_text.lower().split())
    output_words = result.compressed.lower().split()

    for word in text.lower().split():
        assert word in covered or word in output_words, f"'{word}' was lost"


def test_build_engine_with_injected_store():
    store = InMemoryPatternStore(seed_patterns())
    engine = build_engine(config=config, mode="aggressive", store=store)
    assert engine.store is store
    assert engine.min_confidence == 0.40
