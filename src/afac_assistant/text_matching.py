"""
Text normalization and word-overlap helpers used for pattern matching and mining.
"""

from __future__ import annotations

import re
from typing import List

MAX_NORMALIZED_LENGTH = 100

# ASCII word characters only, so accented letters are dropped like punctuation.
_NON_WORD_PATTERN = re.compile(r"[^A-Za-z0-9_\s]")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_SENTENCE_BREAK_PATTERN = re.compile(r"[.!?]+")


def normalize(text: str) -> str:
    """
    Canonical form used as a pattern trigger.

    Lower-cases, drops punctuation, collapses whitespace and truncates to
    MAX_NORMALIZED_LENGTH characters.
    """
    if not text:
        return ""
    cleaned = _NON_WORD_PATTERN.sub("", text.lower())
    cleaned = _WHITESPACE_PATTERN.sub(" ", cleaned).strip()
    # truncation can leave a trailing space
    return cleaned[:MAX_NORMALIZED_LENGTH].rstrip()


def similarity(first: str, second: str) -> float:
    """
    Word overlap ratio between two normalized strings.

    Counts the words of `first` that also appear in `second` and divides by the
    longer word list. This is not Jaccard: the denominator is max(len), not the union.
    """
    if not first or not second:
        return 0.0
    first_words = first.split(" ")
    second_words = second.split(" ")
    second_set = set(second_words)
    shared = [word for word in first_words if word in second_set]
    return len(shared) / max(len(first_words), len(second_words))


def split_sentences(text: str) -> List[str]:
    """Split on runs of sentence punctuation and strip each piece."""
    if not text:
        return []
    return [piece.strip() for piece in _SENTENCE_BREAK_PATTERN.split(text) if piece.strip()]
