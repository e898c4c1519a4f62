"""
Confidence & Feedback Engine

Every pattern carries a confidence score in [0, 1]. The compression mode
decides the minimum score a pattern needs to be loaded for Pass 1/2, user
feedback nudges scores up or down, and an admin sweep zeroes patterns that
fell below the disable threshold.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from .errors import FeedbackPersistenceError, PatternNotFoundError, ValidationError
from .models import AppliedRule, ConfidenceAdjustment, CompressionPattern, FeedbackEvent, round_half_up
from .pattern_store import PatternStore

logger = logging.getLogger(__name__)

__all__ = [
    "ConfidenceSystem", "CONFIDENCE_THRESHOLDS", "FEEDBACK_ADJUSTMENTS",
    "CONFIDENCE_MODES", "min_confidence_for_mode",
]

CONFIDENCE_THRESHOLDS = {
    'conservative': 0.85,
    'default': 0.70,
    'aggressive': 0.40,
    'disabled': 0.30,
}

FEEDBACK_ADJUSTMENTS = {
    'satisfied': 0.01,
    'unsatisfied': -0.03,
}

CONFIDENCE_MODES = ('conservative', 'default', 'aggressive')


def min_confidence_for_mode(mode: str) -> float:
    """Minimum confidence a Pass 1/2 pattern needs under ``mode``."""
    if mode not in CONFIDENCE_MODES:
        raise ValidationError(f"Unknown confidence mode '{mode}' (expected one of {', '.join(CONFIDENCE_MODES)})")
    return CONFIDENCE_THRESHOLDS[mode]


def _rule_ids(rules_applied: Iterable[Union[AppliedRule, str]]) -> List[str]:
    ids = []
    for rule in rules_applied:
        rule_id = rule.id if isinstance(rule, AppliedRule) else str(rule)
        if rule_id not in ids:
            ids.append(rule_id)
    return ids


class ConfidenceSystem:
    """Feedback processing and confidence administration over a pattern store."""

    def __init__(self, store: PatternStore):
        self.store = store

    async def process_feedback(self, satisfied: bool, original_text: str, compressed_text: str,
                               rules_applied: Iterable[Union[AppliedRule, str]],
                               session_id: Optional[str] = None,
                               compression_ratio: Optional[float] = None,
                               processing_time: Optional[float] = None) -> List[ConfidenceAdjustment]:
        """
        Record a feedback event and adjust the confidence of every rule it names.

        Args:
            satisfied: Thumbs up (True) or down (False)
            original_text: Text that was compressed
            compressed_text: Compression output the user judged
            rules_applied: AppliedRule entries or their ids; duplicates are adjusted once
            session_id: Client session, generated when missing
            compression_ratio: Ratio reported with the result
            processing_time: Processing time in milliseconds

        Returns:
            One ConfidenceAdjustment per pattern that exists in the store

        Raises:
            FeedbackPersistenceError: The event or a confidence update could not be written
        """
        rule_ids = _rule_ids(rules_applied)
        event = FeedbackEvent(
            satisfied=satisfied,
            original_text=original_text,
            compressed_text=compressed_text,
            rules_applied=tuple(rule_ids),
            user_session=session_id or self.generate_session_id(),
            compression_ratio=compression_ratio,
            processing_time_ms=processing_time,
        )

        try:
            await self.store.submit_feedback(event)
        except Exception as e:
            logger.error(f"❌ Failed to record feedback event: {e}")
            raise FeedbackPersistenceError("Unable to process user feedback") from e

        adjustments = []
        for rule_id in rule_ids:
            adjustment = await self.update_rule_confidence(rule_id, satisfied)
            if adjustment is not None:
                adjustments.append(adjustment)

        logger.info(
            f"{'👍' if satisfied else '👎'} Processed {'positive' if satisfied else 'negative'} "
            f"feedback for {len(rule_ids)} rules ({len(adjustments)} adjusted)"
        )
        return adjustments

    async def update_rule_confidence(self, pattern_id: str, satisfied: bool) -> Optional[ConfidenceAdjustment]:
        """Apply the feedback delta to one pattern. Unknown ids are skipped."""
        delta = FEEDBACK_ADJUSTMENTS['satisfied'] if satisfied else FEEDBACK_ADJUSTMENTS['unsatisfied']
        try:
            old, new = await self.store.update_confidence(pattern_id, delta)
        except PatternNotFoundError:
            logger.warning(f"⚠️ Feedback names unknown pattern '{pattern_id}', skipping")
            return None
        except Exception as e:
            logger.error(f"❌ Failed to update confidence for '{pattern_id}': {e}")
            raise FeedbackPersistenceError(f"Unable to update confidence for pattern {pattern_id}") from e

        return ConfidenceAdjustment(
            pattern_id=pattern_id,
            old_confidence=old,
            new_confidence=new,
            adjustment=delta,
            reason='Positive user feedback' if satisfied else 'Negative user feedback',
        )

    async def manually_adjust_confidence(self, pattern_id: str, new_confidence: float,
                                         reason: str) -> ConfidenceAdjustment:
        """
        Admin override of a pattern's confidence.

        Raises:
            ValidationError: ``new_confidence`` outside [0, 1]
            PatternNotFoundError: No pattern with that id
        """
        if new_confidence < 0 or new_confidence > 1:
            raise ValidationError("Confidence score must be between 0.00 and 1.00")

        old, new = await self.store.set_confidence(pattern_id, new_confidence)
        logger.info(f"🔧 Manual confidence override for '{pattern_id}': {old:.2f} → {new:.2f} ({reason})")
        return ConfidenceAdjustment(
            pattern_id=pattern_id,
            old_confidence=old,
            new_confidence=new,
            adjustment=round(new - old, 2),
            reason=f"Manual adjustment: {reason}",
        )

    async def auto_disable_low_confidence_patterns(self) -> List[str]:
        """Force every pattern below the disable threshold to 0.00. Returns their ids."""
        patterns = await self.store.list_patterns()
        disabled = []
        for pattern in patterns:
            if pattern.confidence_score < CONFIDENCE_THRESHOLDS['disabled']:
                await self.store.set_confidence(pattern.rule_id, 0.0)
                disabled.append(pattern.rule_id)

        if disabled:
            logger.info(f"🚫 Auto-disabled {len(disabled)} low-confidence patterns")
        return disabled

    async def get_patterns_by_confidence_level(self, level: str) -> List[CompressionPattern]:
        if level == 'conservative':
            low, high = CONFIDENCE_THRESHOLDS['conservative'], 1.0
        elif level == 'default':
            low, high = CONFIDENCE_THRESHOLDS['default'], CONFIDENCE_THRESHOLDS['conservative']
        elif level == 'aggressive':
            low, high = CONFIDENCE_THRESHOLDS['aggressive'], CONFIDENCE_THRESHOLDS['default']
        elif level == 'disabled':
            low, high = 0.0, CONFIDENCE_THRESHOLDS['disabled']
        else:
            raise ValidationError(f"Unknown confidence level '{level}'")

        patterns = await self.store.list_patterns()
        if level == 'conservative':
            selected = [p for p in patterns if low <= p.confidence_score <= high]
        else:
            selected = [p for p in patterns if low <= p.confidence_score < high]
        return sorted(selected, key=lambda p: -p.confidence_score)

    async def get_confidence_stats(self) -> Dict[str, Any]:
        patterns = await self.store.list_patterns()
        scores = [p.confidence_score for p in patterns]
        total = len(scores)

        return {
            "totalPatterns": total,
            "activePatterns": sum(1 for s in scores if s >= CONFIDENCE_THRESHOLDS['default']),
            "conservativePatterns": sum(1 for s in scores if s >= CONFIDENCE_THRESHOLDS['conservative']),
            "aggressivePatterns": sum(
                1 for s in scores if CONFIDENCE_THRESHOLDS['aggressive'] <= s < CONFIDENCE_THRESHOLDS['default']
            ),
            "disabledPatterns": sum(1 for s in scores if s < CONFIDENCE_THRESHOLDS['disabled']),
            "averageConfidence": round(sum(scores) / total, 2) if total else 0,
        }

    async def get_patterns_needing_review(self, threshold: float = 0.40) -> List[Dict[str, Any]]:
        patterns = await self.store.list_patterns()
        low = sorted((p for p in patterns if p.confidence_score < threshold), key=lambda p: p.confidence_score)

        review = []
        for pattern in low:
            disabled = pattern.confidence_score < CONFIDENCE_THRESHOLDS['disabled']
            entry = pattern.to_dict()
            entry["reason"] = 'Auto-disabled due to low confidence' if disabled else 'Low confidence - needs review'
            entry["recommendedAction"] = 'delete' if disabled else 'review'
            review.append(entry)
        return review

    async def get_feedback_trends(self, days: int = 30) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        since = now - timedelta(days=days)
        feedback = await self.store.get_feedback_since(since)

        daily: Dict[str, Dict[str, int]] = {}
        for offset in range(days - 1, -1, -1):
            daily[(now - timedelta(days=offset)).date().isoformat()] = {"positive": 0, "negative": 0}

        for event in feedback:
            day = event.created_at.date().isoformat() if event.created_at else None
            if day in daily:
                daily[day]["positive" if event.satisfied else "negative"] += 1

        total = len(feedback)
        positive = sum(1 for event in feedback if event.satisfied)
        satisfaction = round_half_up(positive / total * 100) if total else 0

        return {
            "dailyFeedback": [{"date": day, **counts} for day, counts in daily.items()],
            "satisfactionRate": satisfaction,
            "totalFeedback": total,
        }

    @staticmethod
    def generate_session_id() -> str:
        return 'sess_' + uuid.uuid4().hex[:13]
