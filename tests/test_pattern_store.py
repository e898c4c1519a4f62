#!/usr/bin/env python3
"""
Test the in-memory pattern store and seed loading.
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from core.errors import DuplicatePatternError, PatternNotFoundError
from core.models import CompressionPattern, FeedbackEvent
from core.pattern_store import InMemoryPatternStore, clamp_confidence

SEED_FILE = os.path.join(os.path.dirname(__file__), '..', 'config', 'seed_patterns.jsonc')

store = None


def setup_function():
    global store
    store = InMemoryPatternStore([
        CompressionPattern("thank you", "thx", pass_priority=1, confidence_score=0.90, usage_count=3),
        CompressionPattern("by the way", "btw", pass_priority=1, confidence_score=0.80, usage_count=10),
        CompressionPattern("kind of", "kinda", pass_priority=1, confidence_score=0.50),
        CompressionPattern("you", "u", pass_priority=2, confidence_score=0.85),
    ])


def test_patterns_by_priority():
    print("🧪 Testing priority query...")

    phrases = asyncio.run(store.get_patterns_by_priority(1, 0.70))
    assert [p.original_text for p in phrases] == ["by the way", "thank you"]

    aggressive = asyncio.run(store.get_patterns_by_priority(1, 0.40))
    assert len(aggressive) == 3
    print(f"✅ Loaded {len(phrases)} default-mode phrases")


def test_lookup_by_text_and_id():
    pattern = asyncio.run(store.get_pattern_by_text("Thank You"))
    assert pattern.compressed_form == "thx"
    assert pattern.word_count == 2
    assert pattern.compression_type == "phrase"

    by_id = asyncio.run(store.get_pattern_by_id(pattern.id))
    assert by_id.original_text == "thank you"
    assert asyncio.run(store.get_pattern_by_id("you")).compressed_form == "u"
    assert asyncio.run(store.get_pattern_by_id("missing")) is None


def test_returned_patterns_are_copies():
    pattern = asyncio.run(store.get_pattern_by_text("you"))
    pattern.confidence_score = 0.0
    assert asyncio.run(store.get_pattern_by_text("you")).confidence_score == 0.85


def test_add_pattern_and_duplicates():
    added = asyncio.run(store.add_pattern(CompressionPattern("information", "info", confidence_score=0.777)))
    assert added.id
    assert added.confidence_score == 0.78
    assert added.pass_priority == 2

    with pytest.raises(DuplicatePatternError):
        asyncio.run(store.add_pattern(CompressionPattern("Thank you", "ty")))


def test_increment_usage():
    asyncio.run(store.increment_usage("you"))
    asyncio.run(store.increment_usage("you"))
    asyncio.run(store.increment_usage("not a pattern"))

    pattern = asyncio.run(store.get_pattern_by_text("you"))
    assert pattern.usage_count == 2
    assert pattern.last_used_at is not None


def test_confidence_updates():
    old, new = asyncio.run(store.update_confidence("you", -0.03))
    assert (old, new) == (0.85, 0.82)

    pattern = asyncio.run(store.get_pattern_by_text("you"))
    assert pattern.negative_feedback == 1

    old, new = asyncio.run(store.set_confidence("you", 7))
    assert new == 1.0

    with pytest.raises(PatternNotFoundError):
        asyncio.run(store.update_confidence("missing", 0.01))


def test_clamp_confidence():
    assert clamp_confidence(-0.5) == 0.0
    assert clamp_confidence(1.2) == 1.0
    assert clamp_confidence(0.6699999) == 0.67


def test_miss_upsert_and_review():
    first = asyncio.run(store.log_miss("blockchain", "word", ["we use blockchain"]))
    asyncio.run(store.log_miss("blockchain", "word", ["blockchain again"]))
    asyncio.run(store.log_miss("going to", "phrase", ["going to go"]))

    assert first.frequency == 2
    assert first.context_examples == ["we use blockchain", "blockchain again"]
    assert first.token_count == 1

    top = asyncio.run(store.get_top_misses(1))
    assert [m.word_phrase for m in top] == ["blockchain"]

    assert asyncio.run(store.mark_misses_reviewed([first.id, "missing"], "done")) == 1
    remaining = asyncio.run(store.get_top_misses())
    assert [m.word_phrase for m in remaining] == ["going to"]
    assert asyncio.run(store.get_miss(first.id)).review_notes == "done"
    assert asyncio.run(store.get_miss_by_phrase("going to")).miss_type == "phrase"


def test_feedback_since():
    asyncio.run(store.submit_feedback(FeedbackEvent(True, "a", "b", ("1",))))
    old = FeedbackEvent(False, "a", "b", created_at=datetime.now(timezone.utc) - timedelta(days=40))
    asyncio.run(store.submit_feedback(old))

    recent = asyncio.run(store.get_feedback_since(datetime.now(timezone.utc) - timedelta(days=30)))
    assert len(recent) == 1
    assert recent[0].id is not None
    assert recent[0].satisfied


def test_seed_file_loads():
    print("🧪 Testing seed file...")

    seeded = InMemoryPatternStore.from_seed_file(SEED_FILE)
    prefixes = asyncio.run(seeded.get_patterns_by_priority(0, 0.0))
    phrases = asyncio.run(seeded.get_patterns_by_priority(1, 0.0))
    words = asyncio.run(seeded.get_patterns_by_priority(2, 0.0))

    assert prefixes and phrases and words
    assert all(p.compression_type == "phrase" for p in phrases)
    assert asyncio.run(seeded.get_pattern_by_text("machine learning")).compressed_form == "ML"
    print(f"✅ Seeded {len(prefixes)} prefixes, {len(phrases)} phrases, {len(words)} words")
