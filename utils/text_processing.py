# utils/text_processing.py
"""Text normalization and lightweight lexical checks for clue text."""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")
_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+")


def normalize_whitespace(value: str) -> str:
    """Collapse runs of whitespace to single spaces and trim the ends."""
    if not isinstance(value, str):
        value = str(value)
    return _WHITESPACE_RE.sub(" ", value).strip()


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    normalized = normalize_whitespace(text)
    if not normalized:
        return 0
    return len(normalized.split(" "))


def tokenize_lower(text: str) -> list[str]:
    """Lowercase ``text`` and split it on anything that is not a-z or 0-9."""
    if not text:
        return []
    return [token for token in _TOKEN_SPLIT_RE.split(text.lower()) if token]


def dedupe_strings(values: list[str]) -> list[str]:
    """Drop empty and repeated strings, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def truncate_for_log(text: str, limit: int = 80) -> str:
    """Single-line preview of ``text`` for log messages."""
    flattened = text.replace("\n", " ")
    if len(flattened) <= limit:
        return flattened
    return flattened[:limit] + "..."
