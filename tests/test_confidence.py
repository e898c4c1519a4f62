#!/usr/bin/env python3
"""
Test feedback-driven confidence adjustment and admin overrides.
"""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from core.confidence import CONFIDENCE_THRESHOLDS, ConfidenceSystem, min_confidence_for_mode
from core.errors import FeedbackPersistenceError, PatternNotFoundError, ValidationError
from core.models import AppliedRule, CompressionPattern
from core.pattern_store import InMemoryPatternStore

store = None
system = None


class BrokenFeedbackStore(InMemoryPatternStore):
    async def submit_feedback(self, event):
        raise ConnectionError("database offline")


def setup_function():
    global store, system
    store = InMemoryPatternStore([
        CompressionPattern("thank you", "thx", pass_priority=1, confidence_score=0.70, id="p-thx"),
        CompressionPattern("you", "u", pass_priority=2, confidence_score=0.05, id="p-you"),
        CompressionPattern("because", "bc", pass_priority=2, confidence_score=0.90, id="p-bc"),
        CompressionPattern("please", "pls", pass_priority=2, confidence_score=0.50, id="p-pls"),
    ])
    system = ConfidenceSystem(store)


def confidence_of(pattern_id):
    return asyncio.run(store.get_pattern_by_id(pattern_id)).confidence_score


def feedback(satisfied, rules):
    return asyncio.run(system.process_feedback(satisfied, "original", "compressed", rules))


def test_negative_feedback_lowers_confidence():
    print("🧪 Testing negative feedback...")

    feedback(False, ["p-thx"])
    feedback(False, ["p-thx"])
    assert confidence_of("p-thx") == 0.64
    print("✅ 0.70 → 0.64 after two negative votes")


def test_positive_feedback_raises_confidence():
    adjustments = feedback(True, ["p-thx"])
    assert confidence_of("p-thx") == 0.71
    assert adjustments[0].old_confidence == 0.70
    assert adjustments[0].new_confidence == 0.71
    assert adjustments[0].adjustment == 0.01
    assert adjustments[0].reason == "Positive user feedback"


def test_confidence_clamped_at_zero():
    for _ in range(10):
        feedback(False, ["p-you"])
    assert confidence_of("p-you") == 0.0


def test_confidence_clamped_at_one():
    asyncio.run(store.set_confidence("p-bc", 1.0))
    feedback(True, ["p-bc"])
    assert confidence_of("p-bc") == 1.0


def test_applied_rules_and_duplicates():
    rule = AppliedRule("p-thx", "thank you", "thx", 1, 0.70, 0, 2)
    adjustments = feedback(False, [rule, "p-thx"])
    assert len(adjustments) == 1
    assert confidence_of("p-thx") == 0.67


def test_unknown_rule_ids_are_skipped():
    adjustments = feedback(True, ["missing", "p-bc"])
    assert [a.pattern_id for a in adjustments] == ["p-bc"]
    assert confidence_of("p-bc") == 0.91


def test_feedback_event_recorded():
    feedback(True, ["p-bc"])
    feedback(False, [])
    trends = asyncio.run(system.get_feedback_trends(7))
    assert trends["totalFeedback"] == 2
    assert trends["satisfactionRate"] == 50
    assert len(trends["dailyFeedback"]) == 7
    assert trends["dailyFeedback"][-1]["positive"] == 1
    assert trends["dailyFeedback"][-1]["negative"] == 1


def test_feedback_persistence_failure():
    broken = ConfidenceSystem(BrokenFeedbackStore([CompressionPattern("you", "u", id="p-you")]))
    with pytest.raises(FeedbackPersistenceError):
        asyncio.run(broken.process_feedback(True, "you", "u", ["p-you"]))


def test_manual_override():
    adjustment = asyncio.run(system.manually_adjust_confidence("p-pls", 0.95, "Reviewed"))
    assert adjustment.old_confidence == 0.50
    assert adjustment.new_confidence == 0.95
    assert adjustment.adjustment == 0.45
    assert adjustment.reason == "Manual adjustment: Reviewed"
    assert confidence_of("p-pls") == 0.95


def test_manual_override_validation():
    with pytest.raises(ValidationError):
        asyncio.run(system.manually_adjust_confidence("p-pls", 1.5, "too high"))
    with pytest.raises(ValidationError):
        asyncio.run(system.manually_adjust_confidence("p-pls", -0.1, "too low"))
    with pytest.raises(PatternNotFoundError):
        asyncio.run(system.manually_adjust_confidence("missing", 0.5, "nope"))


def test_auto_disable():
    print("🧪 Testing auto-disable sweep...")

    disabled = asyncio.run(system.auto_disable_low_confidence_patterns())
    assert disabled == ["p-you"]
    assert confidence_of("p-you") == 0.0
    assert confidence_of("p-pls") == 0.50
    print(f"✅ Disabled: {disabled}")


def test_confidence_stats_and_levels():
    stats = asyncio.run(system.get_confidence_stats())
    assert stats["totalPatterns"] == 4
    assert stats["activePatterns"] == 2
    assert stats["conservativePatterns"] == 1
    assert stats["aggressivePatterns"] == 1
    assert stats["disabledPatterns"] == 1
    assert stats["averageConfidence"] == 0.54

    aggressive = asyncio.run(system.get_patterns_by_confidence_level("aggressive"))
    assert [p.id for p in aggressive] == ["p-pls"]

    review = asyncio.run(system.get_patterns_needing_review())
    assert review[0]["id"] == "p-you"
    assert review[0]["recommendedAction"] == "delete"


def test_mode_thresholds():
    assert min_confidence_for_mode("conservative") == 0.85
    assert min_confidence_for_mode("default") == 0.70
    assert min_confidence_for_mode("aggressive") == 0.40
    assert CONFIDENCE_THRESHOLDS["disabled"] == 0.30
    with pytest.raises(ValidationError):
        min_confidence_for_mode("reckless")


def test_session_id_format():
    session_id = ConfidenceSystem.generate_session_id()
    assert session_id.startswith("sess_")
    assert len(session_id) == 18
