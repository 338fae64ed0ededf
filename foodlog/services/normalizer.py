"""Dish-name normalization — the deduplication key for a user's dishes."""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")
_FILLER_WORDS = ("and", "with", "or")
# ASCII word boundaries: an accented letter next to "and" does not shield it,
# so keys stay identical to the ones already stored by the mobile app
_FILLER_PATTERNS = [
    re.compile(rf"\b{word}\b", re.IGNORECASE | re.ASCII) for word in _FILLER_WORDS
]


def normalize_dish_name(name: str) -> str:
    """
    Canonicalise a free-text dish name.

    Lowercase, trim, collapse whitespace, drop the standalone words
    "and" / "with" / "or", then collapse and trim again. Every other
    character (accents, "&", punctuation) is kept as-is.

    >>> normalize_dish_name("  Pasta AND   Meatballs ")
    'pasta meatballs'
    """
    normalized = _WHITESPACE.sub(" ", name.lower().strip())
    for pattern in _FILLER_PATTERNS:
        normalized = pattern.sub(" ", normalized).strip()
    return _WHITESPACE.sub(" ", normalized).strip()
