"""
Token accounting for compression results.

Counts use tiktoken's ``cl100k_base`` encoding; when the encoding cannot be
loaded (e.g. offline without a cached BPE file) counts are estimated at four
characters per token.
"""

import logging
from typing import Any, Dict, Optional

import tiktoken

logger = logging.getLogger(__name__)

ENCODING_NAME = "cl100k_base"
CHARS_PER_TOKEN = 4

_encoder = None
_encoder_failed = False


def get_encoder() -> Optional["tiktoken.Encoding"]:
    """Load the encoding once; None if it is unavailable."""
    global _encoder, _encoder_failed
    if _encoder is None and not _encoder_failed:
        try:
            _encoder = tiktoken.get_encoding(ENCODING_NAME)
        except Exception as e:
            _encoder_failed = True
            logger.warning(f"Tiktoken encoding failed: {e}, falling back to estimation")
    return _encoder


def count_tokens(text: str) -> int:
    encoder = get_encoder()
    if encoder is not None:
        return len(encoder.encode(text))
    return (len(text) + CHARS_PER_TOKEN - 1) // CHARS_PER_TOKEN


def calculate_token_stats(original_text: str, compressed_text: str) -> Dict[str, Any]:
    """Token savings between the original and the compressed text."""
    original_tokens = count_tokens(original_text)
    compressed_tokens = count_tokens(compressed_text)
    tokens_saved = original_tokens - compressed_tokens

    return {
        "originalTokens": original_tokens,
        "compressedTokens": compressed_tokens,
        "tokensSaved": tokens_saved,
        "tokenReductionPercent": round(tokens_saved / original_tokens * 100, 2) if original_tokens else 0,
        "method": "tiktoken" if get_encoder() is not None else "estimate",
    }
