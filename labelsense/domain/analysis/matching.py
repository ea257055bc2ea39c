"""Approximate text matching tolerant of OCR noise.

OCR output drops and substitutes glyphs and truncates words. Keyword search
over it therefore combines three strategies:

1. exact, case-insensitive substring search;
2. per-token edit-distance similarity against the keyword;
3. partial multi-word matching, where enough of a multi-word keyword's
   significant parts occur verbatim.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Iterable

from rapidfuzz.distance import Levenshtein

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.75

# A token may be at most this many characters shorter than the keyword and
# still be compared by similarity.
TOKEN_LENGTH_SLACK = 2

# Multi-word keywords: only parts longer than this count, and this fraction
# of all parts must be present.
MIN_PART_LENGTH = 3
PARTIAL_MATCH_RATIO = 0.6

_WHITESPACE = re.compile(r"\s+")


def levenshtein_distance(a: str, b: str) -> int:
    """Return the single-character insert/delete/substitute edit distance."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """Return a case-insensitive similarity score in ``[0, 1]``.

    Defined as ``1 - distance / max(len(a), len(b))``; two empty strings are
    identical (1.0).
    """
    return Levenshtein.normalized_similarity(a.lower(), b.lower())


def _split_words(text: str) -> list[str]:
    return [w for w in _WHITESPACE.split(text) if w]


def fuzzy_search(text: str, keyword: str, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """Return True if ``keyword`` approximately occurs in ``text``.

    Args:
        text: OCR text to search.
        keyword: Vocabulary entry, possibly multi-word.
        threshold: Minimum token similarity for the edit-distance strategy.
    """
    text_lower = text.lower()
    keyword_lower = keyword.lower()

    if keyword_lower in text_lower:
        return True

    for word in _split_words(text_lower):
        if len(word) >= len(keyword_lower) - TOKEN_LENGTH_SLACK:
            score = similarity(word, keyword_lower)
            if score >= threshold:
                logger.debug(
                    "Fuzzy match: %r ~ %r (%.1f%%)", word, keyword_lower, score * 100
                )
                return True

    parts = _split_words(keyword_lower)
    matched = [p for p in parts if len(p) > MIN_PART_LENGTH and p in text_lower]
    if parts and len(matched) >= math.ceil(len(parts) * PARTIAL_MATCH_RATIO):
        logger.debug(
            "Partial match: %d/%d parts of %r", len(matched), len(parts), keyword
        )
        return True

    return False


def matching_keywords(
    text: str, keywords: Iterable[str], threshold: float = DEFAULT_THRESHOLD
) -> list[str]:
    """Return the keywords that fuzzy-match ``text``, in vocabulary order."""
    return [k for k in keywords if fuzzy_search(text, k, threshold)]


def count_matches(
    text: str, keywords: Iterable[str], threshold: float = DEFAULT_THRESHOLD
) -> int:
    """Return how many keywords fuzzy-match ``text``."""
    return len(matching_keywords(text, keywords, threshold))


def any_match(
    text: str, keywords: Iterable[str], threshold: float = DEFAULT_THRESHOLD
) -> bool:
    """Return True as soon as one keyword fuzzy-matches ``text``."""
    return any(fuzzy_search(text, k, threshold) for k in keywords)


__all__ = [
    "DEFAULT_THRESHOLD",
    "any_match",
    "count_matches",
    "fuzzy_search",
    "levenshtein_distance",
    "matching_keywords",
    "similarity",
]
