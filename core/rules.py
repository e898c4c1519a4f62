"""
Compression rules.

Every rule kind (prefix, phrase, word) exposes the same
``try_match(tokens, position)`` capability returning a ``MatchSpan`` or
``None``. Phrase and word rules are indexed by their lookup key in a
``RuleSet`` so the matchers only call ``try_match`` on the one candidate
whose key equals the current window.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from .models import CompressionPattern, Token

__all__ = ["MatchSpan", "Rule", "PrefixRule", "PhraseRule", "WordRule", "RuleSet"]


class MatchSpan(NamedTuple):
    """Inclusive token range covered by a rule match."""
    start: int
    end: int
    rule: "Rule"

    @property
    def size(self) -> int:
        return self.end - self.start + 1


@dataclass
class Rule:
    original_text: str
    compressed_form: str
    rule_id: str
    confidence: float
    pattern: Optional[CompressionPattern] = None

    pass_number = -1

    @property
    def words(self) -> Tuple[str, ...]:
        return tuple(self.original_text.lower().split())

    @property
    def word_count(self) -> int:
        if self.pattern is not None and self.pattern.word_count:
            return self.pattern.word_count
        return len(self.words)

    @property
    def key(self) -> Tuple[int, str]:
        return self.word_count, ' '.join(self.words)

    def try_match(self, tokens: List[Token], position: int) -> Optional[MatchSpan]:
        raise NotImplementedError

    @classmethod
    def from_pattern(cls, pattern: CompressionPattern) -> "Rule":
        return cls(
            original_text=pattern.original_text,
            compressed_form=pattern.compressed_form,
            rule_id=pattern.rule_id,
            confidence=pattern.confidence_score,
            pattern=pattern,
        )


@dataclass
class PrefixRule(Rule):
    """
    Leading question/politeness phrase removed by Pass 0.

    Compares raw (punctuation-bearing) words, so ``"Can you, please"`` does
    not match ``can you please``. At least one word must follow the prefix.
    """
    name: str = ""
    tier: int = 3

    pass_number = 0

    def try_match(self, tokens: List[Token], position: int) -> Optional[MatchSpan]:
        words = self.words
        if position != 0 or not words or len(tokens) <= len(words):
            return None
        for offset, word in enumerate(words):
            if tokens[offset].original.lower() != word:
                return None
        return MatchSpan(0, len(words) - 1, self)


@dataclass
class PhraseRule(Rule):
    """Multi-word (or single word) substitution applied by Pass 1."""

    pass_number = 1

    def try_match(self, tokens: List[Token], position: int) -> Optional[MatchSpan]:
        size = self.word_count
        if position < 0 or position + size > len(tokens):
            return None
        window = tokens[position:position + size]
        if any(token.processed for token in window):
            return None
        phrase = ' '.join(token.clean for token in window).strip()
        if phrase != self.key[1]:
            return None
        return MatchSpan(position, position + size - 1, self)


@dataclass
class WordRule(Rule):
    """Single word substitution applied by Pass 2."""

    pass_number = 2

    @property
    def word_count(self) -> int:
        return 1

    @property
    def key(self) -> Tuple[int, str]:
        return 1, self.original_text.lower().strip()

    def try_match(self, tokens: List[Token], position: int) -> Optional[MatchSpan]:
        if position < 0 or position >= len(tokens):
            return None
        token = tokens[position]
        if token.processed or not token.clean.strip():
            return None
        if token.clean.strip() != self.key[1]:
            return None
        return MatchSpan(position, position, self)


class RuleSet:
    """Rules indexed by ``(word_count, lower-cased text)``; first rule wins."""

    def __init__(self, rules: Iterable[Rule] = ()):
        self._index: Dict[Tuple[int, str], Rule] = {}
        self._rules: List[Rule] = []
        for rule in rules:
            self.add(rule)

    @classmethod
    def from_patterns(cls, patterns: Iterable[CompressionPattern], rule_type) -> "RuleSet":
        return cls(rule_type.from_pattern(pattern) for pattern in patterns)

    def add(self, rule: Rule):
        self._rules.append(rule)
        self._index.setdefault(rule.key, rule)

    def lookup(self, word_count: int, text: str) -> Optional[Rule]:
        return self._index.get((word_count, text))

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)
