"""
Pass 0: Question prefix removal.

Removes redundant question/politeness prefixes ("Could you please ...")
from the start of the text and appends "?" so the request still reads as a
question.

The remainder keeps its capital only when it looks like a proper noun or
acronym. A bare capitalized-word check is not enough here: a request
verb such as "Explain" or "Tell" is often capitalized in the request
without naming anything, so words listed in COMMON_LOWERCASE_WORDS are
lowercased unless written entirely in capitals.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from .models import CompressionPattern, Pass0Result, compression_ratio
from .rules import MatchSpan, PrefixRule
from .tokenizer import clean_word, raw_words

__all__ = ["QuestionPrefixProcessor", "DEFAULT_QUESTION_PREFIXES", "is_likely_proper_noun"]

logger = logging.getLogger(__name__)

BUILTIN_PREFIX_ID = "pass0-prefix-removal"
BUILTIN_PREFIX_CONFIDENCE = 0.95

# (text, name, tier) - longer, more specific phrases before their substrings
DEFAULT_QUESTION_PREFIXES: List[Tuple[str, str, int]] = [
    ("can you please", "can_you_please", 1),
    ("could you please", "could_you_please", 1),
    ("would you please", "would_you_please", 1),
    ("would it be possible to", "would_it_be_possible", 1),
    ("is it possible to", "is_it_possible", 1),
    ("i would like you to", "i_would_like_you_to", 1),
    ("i need you to", "i_need_you_to", 1),
    ("can you", "can_you", 2),
    ("could you", "could_you", 2),
    ("would you", "would_you", 2),
    ("will you", "will_you", 2),
    ("please", "please", 3),
]

_PROPER_NOUN_PATTERNS = [
    re.compile(r'^[A-Z][a-z]+$'),       # React, Python
    re.compile(r'^[A-Z]{2,}$'),         # API, HTTP
    re.compile(r'^[A-Z][a-z]*[A-Z]'),   # TypeScript, GitHub
]

# Capitalized only because they open a request; never treated as proper nouns
COMMON_LOWERCASE_WORDS = frozenset({
    "a", "an", "the", "this", "that", "these", "those", "my", "me", "our", "us",
    "add", "analyze", "answer", "be", "build", "calculate", "change", "check", "clarify",
    "compare", "convert", "create", "debug", "define", "delete", "describe", "design",
    "draft", "edit", "explain", "find", "fix", "generate", "get", "give", "go", "help",
    "implement", "improve", "list", "look", "make", "mind", "move", "optimize", "outline",
    "provide", "read", "refactor", "remove", "rename", "review", "rewrite", "run", "send",
    "share", "show", "simplify", "solve", "sort", "summarize", "take", "teach", "tell",
    "test", "think", "translate", "try", "update", "use", "walk", "write",
})

_TRIM_PUNCTUATION = '"\'()[]{}.,!?:;'


def is_likely_proper_noun(text: str) -> bool:
    """
    Best-effort check whether ``text`` starts with a proper noun or acronym.

    This is a heuristic; it will misclassify some inputs.
    """
    words = text.split()
    if not words:
        return False
    first_word = words[0].strip(_TRIM_PUNCTUATION)
    if not first_word:
        return False
    if first_word.lower() in COMMON_LOWERCASE_WORDS and not first_word.isupper():
        return False
    return any(pattern.match(first_word) for pattern in _PROPER_NOUN_PATTERNS)


class QuestionPrefixProcessor:
    """Pass 0 processor holding an ordered list of prefix rules."""

    def __init__(self, patterns: Iterable[CompressionPattern] = (), include_defaults: bool = True):
        """
        Args:
            patterns: Priority-0 patterns from the pattern store
            include_defaults: Whether the built-in prefix list is used
        """
        self.question_prefixes: List[PrefixRule] = self._build_rules(patterns, include_defaults)

    @staticmethod
    def _build_rules(patterns: Iterable[CompressionPattern], include_defaults: bool) -> List[PrefixRule]:
        rules: List[PrefixRule] = []
        by_text: Dict[str, int] = {}

        if include_defaults:
            for text, name, tier in DEFAULT_QUESTION_PREFIXES:
                by_text[text] = len(rules)
                rules.append(PrefixRule(
                    original_text=text,
                    compressed_form="?",
                    rule_id=BUILTIN_PREFIX_ID,
                    confidence=BUILTIN_PREFIX_CONFIDENCE,
                    name=name,
                    tier=tier,
                ))

        for pattern in sorted(patterns, key=lambda p: -len(p.original_text.split())):
            text = ' '.join(pattern.original_text.lower().split())
            if not text:
                continue
            word_count = len(text.split())
            tier = 1 if word_count >= 3 else (2 if word_count == 2 else 3)
            rule = PrefixRule(
                original_text=text,
                compressed_form=pattern.compressed_form,
                rule_id=pattern.rule_id,
                confidence=pattern.confidence_score,
                pattern=pattern,
                name=text.replace(' ', '_'),
                tier=tier,
            )
            if text in by_text:
                existing = rules[by_text[text]]
                rule.tier = existing.tier
                rules[by_text[text]] = rule
            else:
                by_text[text] = len(rules)
                rules.append(rule)

        # Stable: declaration order is kept inside a tier
        return sorted(rules, key=lambda r: r.tier)

    def find_match(self, text: str) -> Optional[MatchSpan]:
        """Return the first prefix rule matching the start of ``text``."""
        tokens = [clean_word(word, i) for i, word in enumerate(raw_words(text))]
        for rule in self.question_prefixes:
            span = rule.try_match(tokens, 0)
            if span is not None:
                return span
        return None

    def process_text(self, text: str) -> Pass0Result:
        """Process text through Pass 0 question prefix removal."""
        return self.process(text)[0]

    def process(self, text: str) -> Tuple[Pass0Result, Optional[MatchSpan]]:
        """Like ``process_text`` but also returns the span of the prefix rule that fired."""
        if not text or not text.strip():
            return Pass0Result(original=text, processed=text), None

        original_text = text.strip()
        processed_text = original_text
        prefix_removed = None
        question_mark_added = False

        span = self.find_match(original_text)
        if span is not None:
            head = re.match(r'(?:\S+\s+){%d}' % span.size, original_text)
            prefix_removed = head.group(0).strip()
            processed_text = original_text[head.end():].strip()

            if processed_text:
                first_char = processed_text[0]
                if first_char.isupper() and not is_likely_proper_noun(processed_text):
                    processed_text = first_char.lower() + processed_text[1:]

            if not processed_text.endswith('?') and not processed_text.endswith('.'):
                processed_text += '?'
                question_mark_added = True

            logger.debug(f"Pass 0 removed prefix '{prefix_removed}' ({span.rule.name})")

        return Pass0Result(
            original=original_text,
            processed=processed_text,
            prefix_removed=prefix_removed,
            compression_ratio=compression_ratio(original_text, processed_text),
            question_mark_added=question_mark_added,
        ), span

    def matched_rule(self, text: str) -> Optional[PrefixRule]:
        span = self.find_match(text.strip()) if text else None
        return span.rule if span else None

    def has_question_prefix(self, text: str) -> bool:
        return self.matched_rule(text) is not None

    def get_matching_prefix(self, text: str) -> Optional[str]:
        """Get the prefix that would be removed, without removing it."""
        if not text or not text.strip():
            return None
        span = self.find_match(text.strip())
        if span is None:
            return None
        head = re.match(r'(?:\S+\s+){%d}' % span.size, text.strip())
        return head.group(0).strip()

    def get_pattern_stats(self) -> List[Dict[str, object]]:
        return [
            {"name": rule.name, "pattern": rule.original_text, "priority": rule.tier}
            for rule in self.question_prefixes
        ]
