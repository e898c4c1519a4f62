"""
Supabase (PostgREST) pattern store.

Talks to the ``compressions``, ``miss_log`` and ``user_feedback`` tables and
the ``increment_usage_count`` / ``increment_miss_frequency`` database
functions over HTTP with aiohttp. Every transport failure and non-2xx
response surfaces as ``PersistenceError``.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import aiohttp

from .errors import DuplicatePatternError, PatternNotFoundError, PersistenceError
from .models import CompressionPattern, FeedbackEvent, MissEntry
from .pattern_store import PatternStore, clamp_confidence

logger = logging.getLogger(__name__)

__all__ = ["SupabasePatternStore"]

PATTERNS_TABLE = "compressions"
MISS_TABLE = "miss_log"
FEEDBACK_TABLE = "user_feedback"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so ``ilike`` compares literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except ValueError:
        return False


class SupabasePatternStore(PatternStore):
    """Pattern store backed by a Supabase project's REST API."""

    def __init__(self, url: str, key: str, timeout: float = 10, session: Optional[aiohttp.ClientSession] = None):
        """
        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            key: Service or anon API key
            timeout: Total seconds allowed per request
            session: Pre-built session (tests); created lazily otherwise
        """
        self.rest_url = url.rstrip('/') + "/rest/v1"
        self.headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit_per_host=30,
                ttl_dns_cache=300,
                use_dns_cache=True,
            )
            self._session = aiohttp.ClientSession(timeout=self.timeout, connector=connector, headers=self.headers)
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, path: str, params: Optional[Dict[str, str]] = None,
                       json: Any = None, prefer: Optional[str] = None) -> Any:
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer
        url = f"{self.rest_url}/{path}"
        try:
            async with self._get_session().request(method, url, params=params, json=json, headers=headers) as response:
                if response.status == 409:
                    raise DuplicatePatternError(await response.text())
                if response.status >= 400:
                    body = await response.text()
                    raise PersistenceError(f"{method} {path} failed with HTTP {response.status}: {body[:200]}")
                if response.status == 204:
                    return None
                text = await response.text()
                return await response.json(content_type=None) if text else None
        except aiohttp.ClientError as e:
            logger.error(f"🚨 Supabase request {method} {path} failed: {e}")
            raise PersistenceError(f"{method} {path} failed: {e}") from e

    async def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        rows = await self._request("GET", table, params={"select": "*", **params})
        return rows or []

    async def _rpc(self, function: str, args: Dict[str, Any]) -> Any:
        return await self._request("POST", f"rpc/{function}", json=args)

    # Patterns

    async def get_patterns_by_priority(self, priority: int, min_confidence: float = 0.70) -> List[CompressionPattern]:
        rows = await self._select(PATTERNS_TABLE, {
            "pass_priority": f"eq.{priority}",
            "confidence_score": f"gte.{min_confidence}",
            "order": "usage_count.desc",
        })
        return [CompressionPattern.from_record(row) for row in rows]

    async def get_pattern_by_text(self, text: str) -> Optional[CompressionPattern]:
        needle = text.strip()
        rows = await self._select(PATTERNS_TABLE, {"original_text": f"ilike.{_escape_like(needle)}"})
        # PostgREST still reads "*" as a wildcard, so confirm the match here
        for row in rows:
            if str(row.get("original_text", "")).strip().lower() == needle.lower():
                return CompressionPattern.from_record(row)
        return None

    async def get_pattern_by_id(self, pattern_id: str) -> Optional[CompressionPattern]:
        if not _is_uuid(pattern_id):
            return await self.get_pattern_by_text(pattern_id)
        rows = await self._select(PATTERNS_TABLE, {"id": f"eq.{pattern_id}", "limit": "1"})
        return CompressionPattern.from_record(rows[0]) if rows else None

    async def _require(self, pattern_id: str) -> CompressionPattern:
        pattern = await self.get_pattern_by_id(pattern_id)
        if pattern is None:
            raise PatternNotFoundError(f"Pattern not found: {pattern_id}")
        return pattern

    async def list_patterns(self) -> List[CompressionPattern]:
        rows = await self._select(PATTERNS_TABLE, {"order": "usage_count.desc"})
        return [CompressionPattern.from_record(row) for row in rows]

    async def add_pattern(self, pattern: CompressionPattern) -> CompressionPattern:
        if await self.get_pattern_by_text(pattern.original_text) is not None:
            raise DuplicatePatternError(f"Pattern already exists: '{pattern.original_text}'")
        record = {
            "original_text": pattern.original_text,
            "compressed_form": pattern.compressed_form,
            "word_count": pattern.word_count,
            "pass_priority": pattern.pass_priority,
            "confidence_score": clamp_confidence(pattern.confidence_score),
            "usage_count": pattern.usage_count,
            "compression_type": pattern.compression_type,
        }
        rows = await self._request("POST", PATTERNS_TABLE, json=record, prefer="return=representation")
        stored = CompressionPattern.from_record(rows[0]) if rows else pattern
        logger.info(f"➕ Added pattern '{stored.original_text}' → '{stored.compressed_form}' (pass {stored.pass_priority})")
        return stored

    async def increment_usage(self, pattern_text: str) -> None:
        await self._rpc("increment_usage_count", {"pattern_text": pattern_text})

    async def _write_confidence(self, pattern: CompressionPattern, confidence: float,
                                extra: Optional[Dict[str, Any]] = None) -> Tuple[float, float]:
        old = pattern.confidence_score
        new = clamp_confidence(confidence)
        changes = {"confidence_score": new, "updated_at": _now_iso()}
        changes.update(extra or {})
        await self._request("PATCH", PATTERNS_TABLE, params={"id": f"eq.{pattern.id}"}, json=changes)
        return old, new

    async def update_confidence(self, pattern_id: str, adjustment: float) -> Tuple[float, float]:
        pattern = await self._require(pattern_id)
        extra = {}
        if adjustment > 0:
            extra["positive_feedback"] = pattern.positive_feedback + 1
        elif adjustment < 0:
            extra["negative_feedback"] = pattern.negative_feedback + 1
        return await self._write_confidence(pattern, pattern.confidence_score + adjustment, extra)

    async def set_confidence(self, pattern_id: str, confidence: float) -> Tuple[float, float]:
        pattern = await self._require(pattern_id)
        return await self._write_confidence(pattern, confidence)

    # Misses

    async def log_miss(self, word_phrase: str, miss_type: str, context: Sequence[str] = ()) -> MissEntry:
        existing = await self.get_miss_by_phrase(word_phrase)
        if existing is not None:
            await self._rpc("increment_miss_frequency", {"miss_id": existing.id})
            existing.frequency += 1
            return existing

        now = _now_iso()
        record = {
            "word_phrase": word_phrase,
            "miss_type": miss_type,
            "frequency": 1,
            "token_count": len(word_phrase.split()),
            "context_examples": list(context),
            "first_seen": now,
            "last_seen": now,
        }
        rows = await self._request("POST", MISS_TABLE, json=record, prefer="return=representation")
        return MissEntry.from_record(rows[0] if rows else record)

    async def get_top_misses(self, limit: int = 50, include_reviewed: bool = False) -> List[MissEntry]:
        params = {"order": "frequency.desc", "limit": str(limit)}
        if not include_reviewed:
            params["admin_reviewed"] = "eq.false"
        return [MissEntry.from_record(row) for row in await self._select(MISS_TABLE, params)]

    async def get_miss(self, miss_id: str) -> Optional[MissEntry]:
        if not _is_uuid(miss_id):
            return None
        rows = await self._select(MISS_TABLE, {"id": f"eq.{miss_id}", "limit": "1"})
        return MissEntry.from_record(rows[0]) if rows else None

    async def get_miss_by_phrase(self, word_phrase: str) -> Optional[MissEntry]:
        rows = await self._select(MISS_TABLE, {"word_phrase": f"eq.{word_phrase}", "limit": "1"})
        return MissEntry.from_record(rows[0]) if rows else None

    async def mark_misses_reviewed(self, miss_ids: Iterable[str], notes: Optional[str] = None) -> int:
        ids = [miss_id for miss_id in miss_ids if _is_uuid(miss_id)]
        if not ids:
            return 0
        rows = await self._request(
            "PATCH", MISS_TABLE,
            params={"id": f"in.({','.join(ids)})"},
            json={"admin_reviewed": True, "review_notes": notes or "Reviewed by admin"},
            prefer="return=representation",
        )
        return len(rows or [])

    # Feedback

    async def submit_feedback(self, event: FeedbackEvent) -> FeedbackEvent:
        rows = await self._request("POST", FEEDBACK_TABLE, json=event.to_record(), prefer="return=representation")
        return FeedbackEvent.from_record(rows[0]) if rows else event

    async def get_feedback_since(self, since: datetime) -> List[FeedbackEvent]:
        rows = await self._select(FEEDBACK_TABLE, {"created_at": f"gte.{since.isoformat()}", "order": "created_at.asc"})
        return [FeedbackEvent.from_record(row) for row in rows]
