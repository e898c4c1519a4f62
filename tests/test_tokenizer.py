#!/usr/bin/env python3
"""
Test Tokenizer

Tests punctuation splitting, special-case preservation and reassembly.
"""

import os
import sys

# Add the parent directory to the path so we can import from core
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from core.tokenizer import clean_word, tokenize, reassemble_text, is_special_case, raw_words


def test_punctuation_split():
    """Leading and trailing punctuation runs are separated from the clean word."""
    print("🧪 Testing punctuation split...")

    token = clean_word('("Hello!")')
    assert token.leading_punctuation == '("'
    assert token.trailing_punctuation == '!")'
    assert token.text == "Hello"
    assert token.clean == "hello"
    print("✅ Punctuation split correctly")


def test_special_cases_are_verbatim():
    """Contractions, decimals, URL-like and hyphenated tokens keep their punctuation inline."""
    print("🧪 Testing special cases...")

    for word in ["don't", "John's", "3.14", "site.com", "well-known"]:
        assert is_special_case(word.lower()), f"{word} should be a special case"
        token = clean_word(word)
        assert token.text == word
        assert token.leading_punctuation == ""
        assert token.trailing_punctuation == ""
        print(f"   ✅ {word} preserved")

    assert not is_special_case("hello,")


def test_punctuation_only_tokens_are_dropped():
    print("🧪 Testing punctuation-only tokens...")

    tokens = tokenize("wait ... what ?!")
    assert [t.clean for t in tokens] == ["wait", "what"]
    assert [t.position for t in tokens] == [0, 1]
    print("✅ Empty tokens dropped and positions renumbered")


def test_reassembly_collapses_whitespace():
    print("🧪 Testing reassembly...")

    text = "  Hello,   world!  How are\tyou? "
    tokens = tokenize(text)
    assert reassemble_text(tokens) == "Hello, world! How are you?"
    print("✅ Reassembly matches input up to whitespace")


def test_reassembly_skips_absorbed_tokens():
    tokens = tokenize("by the way, hi")
    tokens[1].text = ""
    tokens[2].text = ""
    assert reassemble_text(tokens) == "by hi"


def test_raw_words_of_blank_text():
    assert raw_words("") == []
    assert raw_words("   ") == []
    assert tokenize("   ") == []


if __name__ == "__main__":
    test_punctuation_split()
    test_special_cases_are_verbatim()
    test_punctuation_only_tokens_are_dropped()
    test_reassembly_collapses_whitespace()
    test_reassembly_skips_absorbed_tokens()
    test_raw_words_of_blank_text()
    print("🎉 All tokenizer tests passed!")
