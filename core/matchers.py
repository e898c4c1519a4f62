"""
Pass 1 (phrase) and Pass 2 (word) matchers.

Both passes mutate the token list in place: a matched token gets the
case-adjusted compressed form as its display text and is marked processed
so no later pass touches it again.
"""

import re
import time
from typing import List

from .models import AppliedRule, PassResult, Token
from .rules import MatchSpan, RuleSet

__all__ = ["preserve_case", "perform_phrase_pass", "perform_word_pass", "DEFAULT_MAX_PHRASE_WINDOW"]

DEFAULT_MAX_PHRASE_WINDOW = 6

_ACRONYM_RE = re.compile(r"^[A-Z0-9]*[A-Z][A-Z0-9]*$")


def preserve_case(original: str, compressed: str) -> str:
    """
    Carry the letter case of ``original`` over to ``compressed``.

    ALL-CAPS spans give an upper-cased result, a capitalized span gives a
    capitalized result, everything else is lower-cased. Acronym forms
    ("ML", "BTW") are kept upper-case whatever the span looks like.
    """
    if not compressed:
        return compressed
    if _ACRONYM_RE.match(compressed):
        return compressed
    if not original:
        return compressed.lower()
    if original.isupper():
        return compressed.upper()
    if original[0].isupper():
        return compressed[0].upper() + compressed[1:].lower()
    return compressed.lower()


def _apply(tokens: List[Token], span: MatchSpan, applied_rules: List[AppliedRule]):
    rule = span.rule
    window = tokens[span.start:span.end + 1]
    display = ' '.join(token.text for token in window)

    window[0].text = preserve_case(display, rule.compressed_form)
    window[0].processed = True
    if len(window) > 1:
        # Interior punctuation is dropped; the span keeps its closing punctuation
        window[0].trailing_punctuation = window[-1].trailing_punctuation
    for token in window[1:]:
        token.text = ""
        token.processed = True

    applied_rules.append(AppliedRule(
        id=rule.rule_id,
        original_text=rule.original_text,
        compressed_form=rule.compressed_form,
        pass_number=rule.pass_number,
        confidence=rule.confidence,
        start_index=span.start,
        end_index=span.end,
    ))


def perform_phrase_pass(tokens: List[Token], rules: RuleSet, applied_rules: List[AppliedRule],
                        max_window: int = DEFAULT_MAX_PHRASE_WINDOW) -> PassResult:
    """
    Longest-window-first phrase substitution.

    Args:
        tokens: Tokens from the tokenizer, modified in place
        rules: Phrase rules indexed by word count and text
        applied_rules: Receives one AppliedRule per substitution
        max_window: Largest phrase length tried

    Returns:
        PassResult with tokens consumed and substitutions made
    """
    start_time = time.perf_counter()
    tokens_processed = 0
    rules_applied = 0

    if len(rules):
        for size in range(max_window, 0, -1):
            for i in range(0, len(tokens) - size + 1):
                window = tokens[i:i + size]
                if any(token.processed for token in window):
                    continue
                phrase = ' '.join(token.clean for token in window).strip()
                rule = rules.lookup(size, phrase)
                if rule is None:
                    continue
                span = rule.try_match(tokens, i)
                if span is None:
                    continue
                _apply(tokens, span, applied_rules)
                tokens_processed += span.size
                rules_applied += 1

    return PassResult(
        tokens_processed=tokens_processed,
        rules_applied=rules_applied,
        processing_time=(time.perf_counter() - start_time) * 1000,
    )


def perform_word_pass(tokens: List[Token], rules: RuleSet, applied_rules: List[AppliedRule]) -> PassResult:
    """Single-word substitution over tokens no earlier pass consumed."""
    start_time = time.perf_counter()
    tokens_processed = 0
    rules_applied = 0

    if len(rules):
        for i, token in enumerate(tokens):
            if token.processed or not token.clean.strip():
                continue
            rule = rules.lookup(1, token.clean.strip())
            if rule is None:
                continue
            span = rule.try_match(tokens, i)
            if span is None:
                continue
            _apply(tokens, span, applied_rules)
            tokens_processed += 1
            rules_applied += 1

    return PassResult(
        tokens_processed=tokens_processed,
        rules_applied=rules_applied,
        processing_time=(time.perf_counter() - start_time) * 1000,
    )
