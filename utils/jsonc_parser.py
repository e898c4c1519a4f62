"""
JSONC (JSON with comments) loader used for all configuration files.

Supports // line comments, /* block */ comments and trailing commas.
"""

import json
import re
from pathlib import Path
from typing import Any, Union

_TRAILING_COMMA = re.compile(r',(\s*[}\]])')


def strip_jsonc_comments(text: str) -> str:
    """Remove comments from JSONC text while leaving string contents untouched."""
    out = []
    i = 0
    length = len(text)
    in_string = False

    while i < length:
        char = text[i]

        if in_string:
            out.append(char)
            if char == '\\' and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if char == '"':
                in_string = False
            i += 1
            continue

        if char == '"':
            in_string = True
            out.append(char)
            i += 1
        elif text.startswith('//', i):
            newline = text.find('\n', i)
            i = length if newline == -1 else newline
        elif text.startswith('/*', i):
            end = text.find('*/', i + 2)
            i = length if end == -1 else end + 2
        else:
            out.append(char)
            i += 1

    return ''.join(out)


def parse_jsonc(text: str) -> Any:
    """Parse a JSONC document."""
    cleaned = strip_jsonc_comments(text)
    cleaned = _TRAILING_COMMA.sub(r'\1', cleaned)
    return json.loads(cleaned)


def load_jsonc(path: Union[str, Path]) -> Any:
    """Load and parse a JSONC file."""
    with open(path, 'r', encoding='utf-8') as f:
        return parse_jsonc(f.read())
