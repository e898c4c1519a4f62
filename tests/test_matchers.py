#!/usr/bin/env python3
"""
Test Pass 1 phrase matching, Pass 2 word matching and the case rule.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from core.matchers import perform_phrase_pass, perform_word_pass, preserve_case
from core.models import CompressionPattern
from core.rules import PhraseRule, RuleSet, WordRule
from core.tokenizer import reassemble_text, tokenize


def phrase_rules(*pairs):
    return RuleSet.from_patterns(
        [CompressionPattern(original, compressed, pass_priority=1, id=f"ph{i}")
         for i, (original, compressed) in enumerate(pairs)],
        PhraseRule
    )


def word_rules(*pairs):
    return RuleSet.from_patterns(
        [CompressionPattern(original, compressed, pass_priority=2, id=f"w{i}")
         for i, (original, compressed) in enumerate(pairs)],
        WordRule
    )


def test_case_rule():
    print("🧪 Testing case preservation...")

    assert preserve_case("YOU", "u") == "U"
    assert preserve_case("You", "u") == "U"
    assert preserve_case("Please", "pls") == "Pls"
    assert preserve_case("please", "Pls") == "pls"
    assert preserve_case("machine learning", "ML") == "ML"
    assert preserve_case("By the way", "btw") == "Btw"
    assert preserve_case("BY THE WAY", "btw") == "BTW"
    print("✅ Case rule applied")


def test_longest_phrase_wins():
    tokens = tokenize("see you later today")
    applied = []
    result = perform_phrase_pass(tokens, phrase_rules(("see you", "cu"), ("see you later", "cul8r")), applied)

    assert reassemble_text(tokens) == "cul8r today"
    assert result.rules_applied == 1
    assert result.tokens_processed == 3
    assert applied[0].start_index == 0
    assert applied[0].end_index == 2
    assert applied[0].pass_number == 1


def test_processed_tokens_are_skipped_by_word_pass():
    tokens = tokenize("thank you, you know")
    applied = []
    perform_phrase_pass(tokens, phrase_rules(("thank you", "thx")), applied)
    perform_word_pass(tokens, word_rules(("you", "u")), applied)

    assert reassemble_text(tokens) == "thx, u know"
    assert [rule.pass_number for rule in applied] == [1, 2]


def test_interior_punctuation_is_lost():
    """Punctuation attached to an absorbed interior token disappears with it."""
    print("🧪 Testing interior punctuation loss...")

    tokens = tokenize("by the, way we left")
    perform_phrase_pass(tokens, phrase_rules(("by the way", "btw")), [])
    assert reassemble_text(tokens) == "btw we left"
    print("✅ Interior comma dropped")


def test_closing_punctuation_is_kept():
    tokens = tokenize("Thank you!")
    perform_phrase_pass(tokens, phrase_rules(("thank you", "thx")), [])
    assert reassemble_text(tokens) == "Thx!"


def test_word_pass_preserves_punctuation_and_case():
    tokens = tokenize('"Please," YOU said.')
    applied = []
    result = perform_word_pass(tokens, word_rules(("please", "pls"), ("you", "u")), applied)

    assert reassemble_text(tokens) == '"Pls," U said.'
    assert result.rules_applied == 2
    assert applied[1].start_index == applied[1].end_index == 1


def test_window_longer_than_max_is_ignored():
    tokens = tokenize("one two three")
    perform_phrase_pass(tokens, phrase_rules(("one two three", "123")), [], max_window=2)
    assert reassemble_text(tokens) == "one two three"


def test_first_pattern_wins_for_equal_keys():
    tokens = tokenize("because")
    applied = []
    perform_word_pass(tokens, word_rules(("because", "bc"), ("Because", "cuz")), applied)
    assert reassemble_text(tokens) == "bc"
    assert applied[0].id == "w0"


def test_empty_rule_sets():
    tokens = tokenize("nothing to do")
    assert perform_phrase_pass(tokens, RuleSet(), []).rules_applied == 0
    assert perform_word_pass(tokens, RuleSet(), []).rules_applied == 0
    assert reassemble_text(tokens) == "nothing to do"
