#!/usr/bin/env python3
"""
Test the JSONC configuration loader.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from utils.jsonc_parser import load_jsonc, parse_jsonc, strip_jsonc_comments

CONFIG_DIR = os.path.join(os.path.dirname(__file__), '..', 'config')


def test_comments_and_trailing_commas():
    text = """
    {
        // line comment
        "mode": "default", /* block
        comment */
        "items": [1, 2, 3,],
    }
    """
    assert parse_jsonc(text) == {"mode": "default", "items": [1, 2, 3]}


def test_comment_markers_inside_strings_are_kept():
    text = '{"url": "https://example.com/*path*/", "escaped": "say \\"//hi\\""}'
    data = parse_jsonc(text)
    assert data["url"] == "https://example.com/*path*/"
    assert data["escaped"] == 'say "//hi"'
    assert "//hi" in strip_jsonc_comments(text)


def test_shipped_config_files_parse():
    for name in ("config.jsonc", "server.jsonc", "seed_patterns.jsonc"):
        data = load_jsonc(os.path.join(CONFIG_DIR, name))
        assert isinstance(data, dict)
        print(f"✅ {name} parsed")
