"""String similarity primitives used for matching and ranking.

``trigram_similarity`` follows the PostgreSQL ``pg_trgm`` definition: each
word is padded with two leading and one trailing blank, split into
three-character windows, and two strings are compared by the Jaccard index
of their trigram sets. ``text_rank`` is a plain term-frequency relevance score
that requires every query token to be present.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from functools import lru_cache

from rapidfuzz.distance import Levenshtein

_WORD = re.compile(r"[^\W_]+")


def tokenize(text: str | None) -> list[str]:
    if not text:
        return []
    return _WORD.findall(text.lower())


@lru_cache(maxsize=4096)
def trigrams(text: str) -> frozenset[str]:
    grams: set[str] = set()
    for word in tokenize(text):
        padded = f"  {word} "
        grams.update(padded[i : i + 3] for i in range(len(padded) - 2))
    return frozenset(grams)


def trigram_similarity(left: str | None, right: str | None) -> float:
    if not left or not right:
        return 0.0
    a, b = trigrams(left), trigrams(right)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def text_rank(document: str | None, query: str | None) -> float:
    """Relevance of ``document`` for ``query``; 0.0 unless every token matches."""

    terms = tokenize(query)
    if not terms:
        return 0.0
    counts = Counter(tokenize(document))
    if not counts or any(counts[term] == 0 for term in terms):
        return 0.0
    frequency = sum(counts[term] for term in set(terms))
    return frequency / (1.0 + math.log(sum(counts.values())))


def edit_distance(left: str, right: str) -> int:
    """Case-insensitive Levenshtein distance."""

    return Levenshtein.distance(left.lower(), right.lower())
