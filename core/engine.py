"""
Three-pass compression engine.

    text → Pass 0 (prefix removal) → tokenize → Pass 1 (phrases)
         → Pass 2 (words) → reassemble → miss discovery → usage update

Each engine instance owns its result cache and a confidence mode, and holds
an injected pattern store. Only pattern loading is fatal: miss logging and
usage increments are best-effort.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from .async_logger import get_optimized_logger, get_performance_monitor
from .confidence import min_confidence_for_mode
from .engine_config import EngineConfig
from .errors import PatternLoadError, ValidationError
from .matchers import perform_phrase_pass, perform_word_pass
from .miss_tracker import SmartMissTracker
from .models import (AppliedRule, CompressionResult, Pass0Result, PassResult,
                     Token, compression_ratio)
from .pass_zero import QuestionPrefixProcessor
from .pattern_store import InMemoryPatternStore, PatternStore
from .result_cache import ResultCache
from .rules import PhraseRule, RuleSet, WordRule
from .tokenizer import reassemble_text, tokenize

logger = logging.getLogger(__name__)

__all__ = ["CompressionEngine", "create_pattern_store", "build_engine"]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class CompressionEngine:
    """Compresses text with rules loaded from a pattern store."""

    def __init__(self, store: PatternStore, mode: Optional[str] = None,
                 config: Optional[EngineConfig] = None):
        """
        Args:
            store: Source of patterns and sink for misses/usage counts
            mode: Confidence mode (conservative, default, aggressive);
                defaults to the configured mode
            config: Engine settings; loaded from config/config.jsonc if omitted
        """
        self.config = config or EngineConfig()
        self.store = store
        self.mode = mode or self.config.mode
        self.min_confidence = min_confidence_for_mode(self.mode)

        self.cache = ResultCache(max_entries=self.config.cache_max_entries, enabled=self.config.cache_enabled)
        self.miss_tracker = SmartMissTracker(store, require_high_value_words=self.config.require_high_value_words)

        self.pipeline_logger = get_optimized_logger()
        self.performance_monitor = get_performance_monitor()

    async def compress(self, text: str, session_id: Optional[str] = None, use_cache: bool = True) -> CompressionResult:
        """
        Compress ``text`` through the three passes.

        Args:
            text: Input text
            session_id: Client session used to tag log lines
            use_cache: Whether the result cache is read and written for this call

        Returns:
            CompressionResult; ``from_cache`` is True when served from the cache

        Raises:
            ValidationError: Input is not a string or exceeds max_text_length
            PatternLoadError: Patterns could not be loaded from the store
        """
        start_time = time.perf_counter()
        self._validate(text)

        if not text.strip():
            return self._empty_result(text, start_time)

        cached = self.cache.get(text) if use_cache else None
        if cached is not None:
            self.pipeline_logger.log_phase("CACHE_HIT", f"[{session_id}] ⚡ Cache hit for {len(text)} chars", level="DEBUG")
            return cached.copy(from_cache=True, processing_time=_elapsed_ms(start_time))

        pass0_patterns, phrase_patterns, word_patterns = await self._load_patterns()

        applied_rules: List[AppliedRule] = []

        # Pass 0
        with self.performance_monitor.time_operation("pass0"):
            pass0_start = time.perf_counter()
            processor = QuestionPrefixProcessor(pass0_patterns)
            pass0_result, prefix_span = processor.process(text)
            pass0_stats = PassResult(processing_time=_elapsed_ms(pass0_start))
        if prefix_span is not None:
            rule = prefix_span.rule
            applied_rules.append(AppliedRule(
                id=rule.rule_id,
                original_text=pass0_result.prefix_removed,
                compressed_form='?' if pass0_result.question_mark_added else '',
                pass_number=0,
                confidence=rule.confidence,
                start_index=0,
                end_index=prefix_span.end,
            ))
            pass0_stats.tokens_processed = 1
            pass0_stats.rules_applied = 1
        self.pipeline_logger.log_phase(
            "PASS_0",
            f"[{session_id}] Pass 0: '{text}' → '{pass0_result.processed}' ({pass0_result.compression_ratio}% compression)",
            level="DEBUG"
        )

        tokens = tokenize(pass0_result.processed)

        # Pass 1
        with self.performance_monitor.time_operation("pass1"):
            pass1_stats = perform_phrase_pass(
                tokens, RuleSet.from_patterns(phrase_patterns, PhraseRule), applied_rules,
                max_window=self.config.max_phrase_window
            )
        self.pipeline_logger.log_phase(
            "PASS_1", f"[{session_id}] Pass 1: {pass1_stats.rules_applied} phrase rules applied", level="DEBUG"
        )

        # Pass 2
        with self.performance_monitor.time_operation("pass2"):
            pass2_stats = perform_word_pass(tokens, RuleSet.from_patterns(word_patterns, WordRule), applied_rules)
        self.pipeline_logger.log_phase(
            "PASS_2", f"[{session_id}] Pass 2: {pass2_stats.rules_applied} word rules applied", level="DEBUG"
        )

        compressed = reassemble_text(tokens)

        if self.config.miss_tracking_enabled:
            await self._track_misses(text, tokens, applied_rules)
        await self._update_usage_counts(applied_rules)

        result = CompressionResult(
            original=text,
            compressed=compressed,
            compression_ratio=compression_ratio(text, compressed),
            processing_time=_elapsed_ms(start_time),
            rules_applied=applied_rules,
            from_cache=False,
            pass_results={"pass0": pass0_stats, "pass1": pass1_stats, "pass2": pass2_stats},
            pass0_result=pass0_result,
        )
        if use_cache:
            self.cache.set(text, result)

        self.pipeline_logger.log_phase(
            "COMPRESS",
            f"[{session_id}] 🗜️ Compressed {len(text)} → {len(compressed)} chars "
            f"({result.compression_ratio}%, {len(applied_rules)} rules, mode={self.mode})"
        )
        return result

    def _validate(self, text: Any):
        if not isinstance(text, str):
            raise ValidationError("Text must be a string")
        if len(text) > self.config.max_text_length:
            raise ValidationError(f"Text too long (max {self.config.max_text_length} characters)")

    @staticmethod
    def _empty_result(text: str, start_time: float) -> CompressionResult:
        return CompressionResult(
            original=text,
            compressed="",
            compression_ratio=0,
            processing_time=_elapsed_ms(start_time),
            rules_applied=[],
            from_cache=False,
            pass_results={"pass0": PassResult(), "pass1": PassResult(), "pass2": PassResult()},
            pass0_result=Pass0Result(original=text, processed=text),
        )

    async def _load_patterns(self):
        loaded = []
        for priority, min_confidence in ((0, self.config.pass0_min_confidence),
                                         (1, self.min_confidence),
                                         (2, self.min_confidence)):
            try:
                loaded.append(await self.store.get_patterns_by_priority(priority, min_confidence))
            except Exception as e:
                logger.error(f"❌ Failed to load priority {priority} patterns: {e}")
                raise PatternLoadError(priority=priority) from e

        logger.debug(
            f"Loaded {len(loaded[0])} Pass 0 patterns, {len(loaded[1])} phrase patterns, "
            f"{len(loaded[2])} word patterns (min confidence {self.min_confidence})"
        )
        return loaded

    async def _track_misses(self, text: str, tokens: List[Token], applied_rules: List[AppliedRule]):
        try:
            result = await self.miss_tracker.track_misses(text, tokens, applied_rules)
        except Exception as e:
            logger.error(f"❌ Smart miss tracking failed: {e}")
            return
        self.pipeline_logger.log_phase(
            "MISS_TRACKING",
            f"📊 Smart miss results: {result.words_logged} words + {result.phrases_logged} phrases logged | "
            f"{result.words_skipped} words + {result.phrases_skipped} phrases skipped",
            level="DEBUG"
        )

    async def _update_usage_counts(self, applied_rules: List[AppliedRule]):
        for rule in applied_rules:
            try:
                await self.store.increment_usage(rule.original_text)
            except Exception as e:
                logger.warning(f"⚠️ Failed to update usage count for '{rule.original_text}': {e}")

    def clear_cache(self) -> int:
        return self.cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        stats = self.cache.get_stats()
        stats["entries"] = self.cache.keys()
        return stats


def create_pattern_store(config: EngineConfig) -> PatternStore:
    """Build the pattern store selected by ``pattern_store.backend``."""
    if config.store_backend == "supabase":
        from .supabase_store import SupabasePatternStore

        if not config.supabase_url or not config.supabase_key:
            raise ValidationError("Supabase backend requires SUPABASE_URL and SUPABASE_KEY")
        return SupabasePatternStore(config.supabase_url, config.supabase_key, timeout=config.store_timeout)

    try:
        return InMemoryPatternStore.from_seed_file(config.seed_file)
    except FileNotFoundError:
        logger.warning(f"⚠️ Seed file not found at {config.seed_file}, starting with an empty pattern store")
        return InMemoryPatternStore()


def build_engine(config: Optional[EngineConfig] = None, mode: Optional[str] = None,
                 store: Optional[PatternStore] = None) -> CompressionEngine:
    config = config or EngineConfig()
    return CompressionEngine(store or create_pattern_store(config), mode=mode, config=config)
