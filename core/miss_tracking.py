"""
Miss curation service used by the admin endpoints: statistics, analytics,
review flags and turning a logged miss into a compression rule.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from .errors import PatternNotFoundError
from .models import CompressionPattern, MissEntry, compression_ratio, round_half_up
from .pattern_store import PatternStore

logger = logging.getLogger(__name__)

__all__ = ["MissTrackingService", "suggest_compression"]

FREQUENCY_RANGES = [
    ('1-5', 1, 5),
    ('6-10', 6, 10),
    ('11-25', 11, 25),
    ('26-50', 26, 50),
    ('50+', 51, None),
]

# First matching suffix/fragment wins
SUGGESTION_PATTERNS = [
    (re.compile(r'tion$'), 'tn'),
    (re.compile(r'ment$'), 'mt'),
    (re.compile(r'ness$'), 'ns'),
    (re.compile(r'ing$'), 'ng'),
    (re.compile(r'ould$'), 'd'),
    (re.compile(r'ough'), 'o'),
    (re.compile(r'you'), 'u'),
    (re.compile(r'are'), 'r'),
    (re.compile(r'for'), '4'),
    (re.compile(r'to'), '2'),
]

MIN_SUGGESTION_FREQUENCY = 5


def suggest_compression(word: str) -> Optional[str]:
    """Heuristic abbreviation for a missed word or phrase, or None."""
    lower_word = word.lower()
    for pattern, replacement in SUGGESTION_PATTERNS:
        if pattern.search(lower_word):
            return pattern.sub(replacement, lower_word, count=1)

    if len(word) > 6:
        stripped = re.sub(r'[aeiou]', '', word, flags=re.IGNORECASE)
        return stripped[:max(3, int(len(word) * 0.6))]
    return None


def suggestion_confidence(miss: MissEntry) -> float:
    confidence = 0.5
    if miss.frequency > 20:
        confidence += 0.2
    elif miss.frequency > 10:
        confidence += 0.1
    if miss.miss_type == 'word':
        confidence += 0.1
    if len(miss.word_phrase) > 8:
        confidence += 0.1
    return round(min(confidence, 0.9), 2)


def _same_day(value: Optional[datetime], day: str) -> bool:
    return value is not None and value.date().isoformat() == day


class MissTrackingService:
    """Admin-facing view over the miss log."""

    def __init__(self, store: PatternStore):
        self.store = store

    async def get_miss_statistics(self, limit: int = 50) -> Dict[str, Any]:
        """
        Summary for the admin dashboard.

        Args:
            limit: Maximum entries returned per type

        Returns:
            Dictionary with top words/phrases, total frequency, misses first
            seen today and average frequency
        """
        all_misses = await self.store.get_top_misses(limit * 2)

        top_words = [m for m in all_misses if m.miss_type == 'word'][:limit]
        top_phrases = [m for m in all_misses if m.miss_type == 'phrase'][:limit]

        total_misses = sum(m.frequency for m in all_misses)
        avg_frequency = round_half_up(total_misses / len(all_misses)) if all_misses else 0

        today = datetime.now(timezone.utc).date().isoformat()
        new_today = sum(1 for m in all_misses if _same_day(m.first_seen, today))

        return {
            "topWords": [m.to_dict() for m in top_words],
            "topPhrases": [m.to_dict() for m in top_phrases],
            "totalMisses": total_misses,
            "newMissesToday": new_today,
            "avgFrequency": avg_frequency,
        }

    async def get_miss_analytics(self, days: int = 30) -> Dict[str, Any]:
        all_misses = await self.store.get_top_misses(1000)

        today = datetime.now(timezone.utc).date()
        daily = []
        for offset in range(days - 1, -1, -1):
            day = (today - timedelta(days=offset)).isoformat()
            daily.append({"date": day, "count": sum(1 for m in all_misses if _same_day(m.first_seen, day))})

        types: Dict[str, int] = {}
        for miss in all_misses:
            types[miss.miss_type] = types.get(miss.miss_type, 0) + 1

        frequency = []
        for label, low, high in FREQUENCY_RANGES:
            count = sum(1 for m in all_misses if m.frequency >= low and (high is None or m.frequency <= high))
            frequency.append({"range": label, "count": count})

        return {
            "dailyMisses": daily,
            "typeDistribution": [{"type": t, "count": c} for t, c in types.items()],
            "frequencyDistribution": frequency,
        }

    async def mark_as_reviewed(self, miss_ids: Iterable[str], notes: Optional[str] = None) -> int:
        miss_ids = list(miss_ids)
        updated = await self.store.mark_misses_reviewed(miss_ids, notes)
        logger.info(f"📝 Marked {updated} of {len(miss_ids)} misses as reviewed")
        return updated

    async def create_rule_from_miss(self, miss_id: str, compressed_form: str,
                                    confidence: float = 0.70) -> CompressionPattern:
        """
        Turn a logged miss into a compression pattern and mark it reviewed.

        Raises:
            PatternNotFoundError: No miss with that id
            DuplicatePatternError: A pattern for the phrase already exists
        """
        miss = await self.store.get_miss(miss_id)
        if miss is None:
            raise PatternNotFoundError(f"Miss entry not found: {miss_id}")

        word_count = miss.token_count or len(miss.word_phrase.split())
        pattern = await self.store.add_pattern(CompressionPattern(
            original_text=miss.word_phrase,
            compressed_form=compressed_form,
            word_count=word_count,
            pass_priority=1 if miss.miss_type == 'phrase' else 2,
            confidence_score=confidence,
            compression_type=miss.miss_type,
            compression_ratio=compression_ratio(miss.word_phrase, compressed_form),
        ))
        await self.mark_as_reviewed([miss_id], f"Created rule: {miss.word_phrase} → {compressed_form}")
        logger.info(f"✨ Created compression rule from miss: {miss.word_phrase} → {compressed_form}")
        return pattern

    async def get_compression_suggestions(self, limit: int = 20) -> List[Dict[str, Any]]:
        misses = await self.store.get_top_misses(100)
        candidates = [m for m in misses if m.frequency >= MIN_SUGGESTION_FREQUENCY and not m.admin_reviewed][:limit]

        suggestions = [
            {
                "word": miss.word_phrase,
                "frequency": miss.frequency,
                "suggestedCompression": suggest_compression(miss.word_phrase),
                "confidence": suggestion_confidence(miss),
            }
            for miss in candidates
        ]
        return sorted(suggestions, key=lambda s: -s["confidence"])
