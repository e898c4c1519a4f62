"""
Pattern store boundary.

``PatternStore`` is the contract every backend implements; the compression
engine, the confidence system and the miss curation service only talk to
this interface. ``InMemoryPatternStore`` keeps everything in process and can
be seeded from a JSONC file, which is what the tests and the default server
configuration use.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import DuplicatePatternError, PatternNotFoundError
from .models import CompressionPattern, FeedbackEvent, MissEntry

logger = logging.getLogger(__name__)

__all__ = ["PatternStore", "InMemoryPatternStore", "clamp_confidence"]


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score to [0, 1], rounded to two decimals."""
    return round(max(0.0, min(1.0, value)), 2)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PatternStore(ABC):
    """Persistence contract for patterns, misses and feedback."""

    # Patterns

    @abstractmethod
    async def get_patterns_by_priority(self, priority: int, min_confidence: float = 0.70) -> List[CompressionPattern]:
        """Patterns of one pass priority with confidence >= ``min_confidence``, most used first."""

    @abstractmethod
    async def get_pattern_by_text(self, text: str) -> Optional[CompressionPattern]:
        ...

    @abstractmethod
    async def get_pattern_by_id(self, pattern_id: str) -> Optional[CompressionPattern]:
        ...

    @abstractmethod
    async def list_patterns(self) -> List[CompressionPattern]:
        ...

    @abstractmethod
    async def add_pattern(self, pattern: CompressionPattern) -> CompressionPattern:
        """Insert a new pattern; raises DuplicatePatternError if the text exists."""

    @abstractmethod
    async def increment_usage(self, pattern_text: str) -> None:
        ...

    @abstractmethod
    async def update_confidence(self, pattern_id: str, adjustment: float) -> Tuple[float, float]:
        """Apply a clamped delta. Returns (old, new) confidence."""

    @abstractmethod
    async def set_confidence(self, pattern_id: str, confidence: float) -> Tuple[float, float]:
        """Overwrite the confidence score. Returns (old, new) confidence."""

    # Misses

    @abstractmethod
    async def log_miss(self, word_phrase: str, miss_type: str, context: Sequence[str] = ()) -> MissEntry:
        """Upsert a miss: bump frequency of an existing entry or create one with frequency 1."""

    @abstractmethod
    async def get_top_misses(self, limit: int = 50, include_reviewed: bool = False) -> List[MissEntry]:
        ...

    @abstractmethod
    async def get_miss(self, miss_id: str) -> Optional[MissEntry]:
        ...

    @abstractmethod
    async def get_miss_by_phrase(self, word_phrase: str) -> Optional[MissEntry]:
        ...

    @abstractmethod
    async def mark_misses_reviewed(self, miss_ids: Iterable[str], notes: Optional[str] = None) -> int:
        """Flag misses as reviewed. Returns the number of entries updated."""

    # Feedback

    @abstractmethod
    async def submit_feedback(self, event: FeedbackEvent) -> FeedbackEvent:
        ...

    @abstractmethod
    async def get_feedback_since(self, since: datetime) -> List[FeedbackEvent]:
        ...

    async def close(self):
        """Release backend resources."""


class InMemoryPatternStore(PatternStore):
    """Process-local store; ordering within equal usage counts is insertion order."""

    def __init__(self, patterns: Iterable[CompressionPattern] = ()):
        self._ids = itertools.count(1)
        self._patterns: Dict[str, CompressionPattern] = {}
        self._misses: Dict[str, MissEntry] = {}
        self._feedback: List[FeedbackEvent] = []
        for pattern in patterns:
            self._insert(pattern)

    @classmethod
    def from_seed_file(cls, path: str) -> "InMemoryPatternStore":
        """
        Build a store from a JSONC seed file.

        The file holds ``{"patterns": [{original_text, compressed_form, ...}]}``.
        """
        from utils.jsonc_parser import load_jsonc

        data = load_jsonc(path)
        records = data.get("patterns", []) if isinstance(data, dict) else data
        store = cls(CompressionPattern.from_record(record) for record in records)
        logger.info(f"🌱 Seeded in-memory pattern store with {len(store._patterns)} patterns from {path}")
        return store

    def _insert(self, pattern: CompressionPattern) -> CompressionPattern:
        if self._find_by_text(pattern.original_text) is not None:
            raise DuplicatePatternError(f"Pattern already exists: '{pattern.original_text}'")
        timestamp = _now().isoformat()
        stored = pattern.copy(
            id=pattern.id or str(next(self._ids)),
            confidence_score=clamp_confidence(pattern.confidence_score),
            created_at=pattern.created_at or timestamp,
            updated_at=pattern.updated_at or timestamp,
        )
        self._patterns[stored.id] = stored
        return stored

    def _find_by_text(self, text: str) -> Optional[CompressionPattern]:
        needle = text.strip().lower()
        for pattern in self._patterns.values():
            if pattern.original_text.strip().lower() == needle:
                return pattern
        return None

    def _require(self, pattern_id: str) -> CompressionPattern:
        pattern = self._patterns.get(pattern_id) or self._find_by_text(pattern_id)
        if pattern is None:
            raise PatternNotFoundError(f"Pattern not found: {pattern_id}")
        return pattern

    async def get_patterns_by_priority(self, priority: int, min_confidence: float = 0.70) -> List[CompressionPattern]:
        matches = [
            p.copy() for p in self._patterns.values()
            if p.pass_priority == priority and p.confidence_score >= min_confidence
        ]
        return sorted(matches, key=lambda p: -p.usage_count)

    async def get_pattern_by_text(self, text: str) -> Optional[CompressionPattern]:
        pattern = self._find_by_text(text)
        return pattern.copy() if pattern else None

    async def get_pattern_by_id(self, pattern_id: str) -> Optional[CompressionPattern]:
        pattern = self._patterns.get(pattern_id) or self._find_by_text(pattern_id)
        return pattern.copy() if pattern else None

    async def list_patterns(self) -> List[CompressionPattern]:
        return [p.copy() for p in self._patterns.values()]

    async def add_pattern(self, pattern: CompressionPattern) -> CompressionPattern:
        stored = self._insert(pattern)
        logger.info(f"➕ Added pattern '{stored.original_text}' → '{stored.compressed_form}' (pass {stored.pass_priority})")
        return stored.copy()

    async def increment_usage(self, pattern_text: str) -> None:
        pattern = self._find_by_text(pattern_text)
        if pattern is None:
            return
        timestamp = _now().isoformat()
        pattern.usage_count += 1
        pattern.last_used_at = timestamp
        pattern.updated_at = timestamp

    async def update_confidence(self, pattern_id: str, adjustment: float) -> Tuple[float, float]:
        pattern = self._require(pattern_id)
        old = pattern.confidence_score
        pattern.confidence_score = clamp_confidence(old + adjustment)
        if adjustment > 0:
            pattern.positive_feedback += 1
        elif adjustment < 0:
            pattern.negative_feedback += 1
        pattern.updated_at = _now().isoformat()
        return old, pattern.confidence_score

    async def set_confidence(self, pattern_id: str, confidence: float) -> Tuple[float, float]:
        pattern = self._require(pattern_id)
        old = pattern.confidence_score
        pattern.confidence_score = clamp_confidence(confidence)
        pattern.updated_at = _now().isoformat()
        return old, pattern.confidence_score

    async def log_miss(self, word_phrase: str, miss_type: str, context: Sequence[str] = ()) -> MissEntry:
        now = _now()
        existing = await self.get_miss_by_phrase(word_phrase)
        if existing is not None:
            entry = self._misses[existing.id]
            entry.frequency += 1
            entry.last_seen = now
            for example in context:
                if example not in entry.context_examples:
                    entry.context_examples.append(example)
            return entry

        entry = MissEntry(
            word_phrase=word_phrase,
            miss_type=miss_type,
            frequency=1,
            id=str(next(self._ids)),
            token_count=len(word_phrase.split()),
            context_examples=list(context),
            first_seen=now,
            last_seen=now,
        )
        self._misses[entry.id] = entry
        return entry

    async def get_top_misses(self, limit: int = 50, include_reviewed: bool = False) -> List[MissEntry]:
        misses = [m for m in self._misses.values() if include_reviewed or not m.admin_reviewed]
        return sorted(misses, key=lambda m: -m.frequency)[:limit]

    async def get_miss(self, miss_id: str) -> Optional[MissEntry]:
        return self._misses.get(miss_id)

    async def get_miss_by_phrase(self, word_phrase: str) -> Optional[MissEntry]:
        for entry in self._misses.values():
            if entry.word_phrase == word_phrase:
                return entry
        return None

    async def mark_misses_reviewed(self, miss_ids: Iterable[str], notes: Optional[str] = None) -> int:
        updated = 0
        for miss_id in miss_ids:
            entry = self._misses.get(miss_id)
            if entry is None:
                continue
            entry.admin_reviewed = True
            entry.review_notes = notes or "Reviewed by admin"
            updated += 1
        return updated

    async def submit_feedback(self, event: FeedbackEvent) -> FeedbackEvent:
        stored = FeedbackEvent(
            satisfied=event.satisfied,
            original_text=event.original_text,
            compressed_text=event.compressed_text,
            rules_applied=tuple(event.rules_applied),
            user_session=event.user_session,
            compression_ratio=event.compression_ratio,
            processing_time_ms=event.processing_time_ms,
            id=str(next(self._ids)),
            created_at=event.created_at or _now(),
        )
        self._feedback.append(stored)
        return stored

    async def get_feedback_since(self, since: datetime) -> List[FeedbackEvent]:
        return [event for event in self._feedback if event.created_at and event.created_at >= since]
