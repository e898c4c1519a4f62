"""
Tokenizer and punctuation model.

Splits text on whitespace and separates each word from its leading and
trailing punctuation so that rules can match on clean, lower-cased words
while the original punctuation and letter case survive reassembly.
"""

import re
from typing import List

from .models import Token

__all__ = ["clean_word", "tokenize", "raw_words", "reassemble_text", "is_special_case"]

LEADING_PUNCTUATION_RE = re.compile(r'^["\'(\[{]+')
TRAILING_PUNCTUATION_RE = re.compile(r'[.,!?:;"\')\]}]+$')

# Tokens matching any of these are kept verbatim (no punctuation split)
CONTRACTION_RE = re.compile(r"\b\w+'\w+\b")        # don't, it's, you're, John's
DECIMAL_RE = re.compile(r'^\d+\.\d+$')              # 3.14, 10.5
URL_LIKE_RE = re.compile(r'\w+\.\w+')               # site.com, node.js
COMPOUND_WORD_RE = re.compile(r'^\w+-\w+$')         # well-known, twenty-one

_WHITESPACE_RE = re.compile(r'\s+')


def is_special_case(word: str) -> bool:
    """Check if a raw token should be preserved as-is."""
    return bool(
        CONTRACTION_RE.search(word)
        or DECIMAL_RE.match(word)
        or URL_LIKE_RE.search(word)
        or COMPOUND_WORD_RE.match(word)
    )


def clean_word(word: str, position: int = 0) -> Token:
    """
    Split a raw token into punctuation and a clean core.

    Args:
        word: A single whitespace-free token
        position: Index of the token in its source sequence

    Returns:
        Token whose ``clean`` is empty when nothing but punctuation remains
    """
    if not word or not word.strip():
        return Token(clean="", original=word, position=position, text="")

    word = word.strip()

    if is_special_case(word.lower()):
        return Token(clean=word.lower(), original=word, position=position, text=word)

    leading_match = LEADING_PUNCTUATION_RE.match(word)
    leading = leading_match.group(0) if leading_match else ""
    rest = word[len(leading):]

    trailing_match = TRAILING_PUNCTUATION_RE.search(rest)
    trailing = trailing_match.group(0) if trailing_match else ""
    core = rest[:len(rest) - len(trailing)] if trailing else rest

    return Token(
        clean=core.lower(),
        original=word,
        leading_punctuation=leading,
        trailing_punctuation=trailing,
        position=position,
        text=core,
    )


def raw_words(text: str) -> List[str]:
    """Whitespace-separated words of the trimmed text."""
    if not text or not text.strip():
        return []
    return _WHITESPACE_RE.split(text.strip())


def tokenize(text: str) -> List[Token]:
    """Tokenize text, dropping tokens that are empty after punctuation stripping."""
    tokens = []
    for word in raw_words(text):
        token = clean_word(word)
        if not token.clean:
            continue
        token.position = len(tokens)
        tokens.append(token)
    return tokens


def reassemble_text(tokens: List[Token]) -> str:
    """
    Rebuild text from tokens in their original order.

    Tokens whose display text was absorbed by a phrase match are dropped
    together with any punctuation they carried.
    """
    return ' '.join(token.render() for token in tokens if token.text.strip())

