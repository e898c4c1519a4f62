"""
Domain types shared by the compression pipeline, the pattern stores and the
HTTP layer.

Field names follow Python conventions; ``to_dict`` methods produce the
camelCase wire shape consumed by API clients.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

__all__ = [
    "Token", "CompressionPattern", "MissEntry", "FeedbackEvent",
    "ConfidenceAdjustment", "AppliedRule", "PassResult", "Pass0Result",
    "CompressionResult", "round_half_up", "compression_ratio",
]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (towards +inf)."""
    return int(math.floor(value + 0.5))


def compression_ratio(original: str, compressed: str) -> int:
    """Percentage of characters removed, 0 for empty or blank input."""
    if not original or not original.strip():
        return 0
    return round_half_up((len(original) - len(compressed)) / len(original) * 100)


@dataclass
class Token:
    """A single whitespace-delimited word and its punctuation."""
    clean: str                      # lower-cased text used for matching
    original: str                   # raw token including punctuation
    leading_punctuation: str = ""
    trailing_punctuation: str = ""
    processed: bool = False
    position: int = 0
    text: str = ""                  # current display text

    def render(self) -> str:
        return f"{self.leading_punctuation}{self.text}{self.trailing_punctuation}"


@dataclass
class CompressionPattern:
    original_text: str
    compressed_form: str
    word_count: int = 0
    pass_priority: int = 2
    confidence_score: float = 0.70
    usage_count: int = 0
    id: Optional[str] = None
    compression_type: Optional[str] = None
    compression_ratio: Optional[float] = None
    positive_feedback: int = 0
    negative_feedback: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_used_at: Optional[str] = None

    def __post_init__(self):
        if not self.word_count:
            self.word_count = len(self.original_text.split())
        if self.compression_type is None:
            self.compression_type = "phrase" if self.word_count > 1 else "word"

    @property
    def rule_id(self) -> str:
        return self.id or self.original_text

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CompressionPattern":
        """Build a pattern from a database row or a seed file entry."""
        confidence = record.get("confidence_score")
        priority = record.get("pass_priority")
        return cls(
            original_text=record["original_text"],
            compressed_form=record.get("compressed_form", ""),
            word_count=int(record.get("word_count") or 0),
            pass_priority=int(priority) if priority is not None else 2,
            confidence_score=float(confidence) if confidence is not None else 0.70,
            usage_count=int(record.get("usage_count") or 0),
            id=str(record["id"]) if record.get("id") is not None else None,
            compression_type=record.get("compression_type"),
            compression_ratio=record.get("compression_ratio"),
            positive_feedback=int(record.get("positive_feedback") or 0),
            negative_feedback=int(record.get("negative_feedback") or 0),
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at"),
            last_used_at=record.get("last_used_at") or record.get("last_used_date"),
        )

    def copy(self, **changes) -> "CompressionPattern":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "originalText": self.original_text,
            "compressedForm": self.compressed_form,
            "wordCount": self.word_count,
            "passPriority": self.pass_priority,
            "confidenceScore": self.confidence_score,
            "usageCount": self.usage_count,
            "compressionType": self.compression_type,
            "compressionRatio": self.compression_ratio,
            "positiveFeedback": self.positive_feedback,
            "negativeFeedback": self.negative_feedback,
        }


@dataclass
class MissEntry:
    word_phrase: str
    miss_type: str
    frequency: int = 1
    id: Optional[str] = None
    token_count: Optional[int] = None
    context_examples: List[str] = field(default_factory=list)
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    admin_reviewed: bool = False
    review_notes: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "MissEntry":
        return cls(
            word_phrase=record["word_phrase"],
            miss_type=record.get("miss_type", "word"),
            frequency=int(record.get("frequency") or 1),
            id=str(record["id"]) if record.get("id") is not None else None,
            token_count=record.get("token_count"),
            context_examples=list(record.get("context_examples") or []),
            first_seen=_parse_timestamp(record.get("first_seen")),
            last_seen=_parse_timestamp(record.get("last_seen")),
            admin_reviewed=bool(record.get("admin_reviewed", False)),
            review_notes=record.get("review_notes"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "wordPhrase": self.word_phrase,
            "frequency": self.frequency,
            "missType": self.miss_type,
            "tokenCount": self.token_count,
            "contextExamples": list(self.context_examples),
            "firstSeen": self.first_seen.isoformat() if self.first_seen else None,
            "lastSeen": self.last_seen.isoformat() if self.last_seen else None,
            "adminReviewed": self.admin_reviewed,
            "reviewNotes": self.review_notes,
        }


@dataclass(frozen=True)
class FeedbackEvent:
    satisfied: bool
    original_text: str
    compressed_text: str
    rules_applied: tuple = ()
    user_session: Optional[str] = None
    compression_ratio: Optional[float] = None
    processing_time_ms: Optional[float] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "FeedbackEvent":
        return cls(
            satisfied=bool(record["satisfied"]),
            original_text=record.get("original_text", ""),
            compressed_text=record.get("compressed_text", ""),
            rules_applied=tuple(record.get("rules_applied") or ()),
            user_session=record.get("user_session"),
            compression_ratio=record.get("compression_ratio"),
            processing_time_ms=record.get("processing_time_ms"),
            id=str(record["id"]) if record.get("id") is not None else None,
            created_at=_parse_timestamp(record.get("created_at")),
        )

    def to_record(self) -> Dict[str, Any]:
        """Row shape expected by the ``user_feedback`` table."""
        return {
            "satisfied": self.satisfied,
            "original_text": self.original_text,
            "compressed_text": self.compressed_text,
            "rules_applied": list(self.rules_applied),
            "user_session": self.user_session,
            "compression_ratio": self.compression_ratio,
            "processing_time_ms": self.processing_time_ms,
        }


@dataclass
class ConfidenceAdjustment:
    pattern_id: str
    old_confidence: float
    new_confidence: float
    adjustment: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patternId": self.pattern_id,
            "oldConfidence": self.old_confidence,
            "newConfidence": self.new_confidence,
            "adjustment": self.adjustment,
            "reason": self.reason,
        }


@dataclass
class AppliedRule:
    id: str
    original_text: str
    compressed_form: str
    pass_number: int
    confidence: float
    start_index: int
    end_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "originalText": self.original_text,
            "compressedForm": self.compressed_form,
            "pass": self.pass_number,
            "confidence": self.confidence,
            "startIndex": self.start_index,
            "endIndex": self.end_index,
        }


@dataclass
class PassResult:
    tokens_processed: int = 0
    rules_applied: int = 0
    processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tokensProcessed": self.tokens_processed,
            "rulesApplied": self.rules_applied,
            "processingTime": self.processing_time,
        }


@dataclass
class Pass0Result:
    original: str
    processed: str
    prefix_removed: Optional[str] = None
    compression_ratio: int = 0
    question_mark_added: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original": self.original,
            "processed": self.processed,
            "prefixRemoved": self.prefix_removed,
            "compressionRatio": self.compression_ratio,
            "questionMarkAdded": self.question_mark_added,
        }


@dataclass
class CompressionResult:
    original: str
    compressed: str
    compression_ratio: int
    processing_time: float
    rules_applied: List[AppliedRule] = field(default_factory=list)
    from_cache: bool = False
    pass_results: Dict[str, PassResult] = field(default_factory=dict)
    pass0_result: Optional[Pass0Result] = None

    def copy(self, **changes) -> "CompressionResult":
        changes.setdefault("rules_applied", list(self.rules_applied))
        changes.setdefault("pass_results", dict(self.pass_results))
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original": self.original,
            "compressed": self.compressed,
            "compressionRatio": self.compression_ratio,
            "processingTime": self.processing_time,
            "rulesApplied": [rule.to_dict() for rule in self.rules_applied],
            "fromCache": self.from_cache,
            "passResults": {name: result.to_dict() for name, result in self.pass_results.items()},
            "pass0Result": self.pass0_result.to_dict() if self.pass0_result else None,
        }


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
