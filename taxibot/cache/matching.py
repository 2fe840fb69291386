"""Fuzzy lookup of an already-cached question for a new phrasing.

Checks run in priority order and the first hit wins:

1. exact   – the cached key normalises to the query
2. category – query and key share a topic (fines, vehicles, payment)
3. partial – they share a word longer than three characters
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal

from taxibot.nl.normalizer import normalize, tokenize

MatchKind = Literal["exact", "category", "partial"]

KEYWORD_CATEGORIES: dict[str, tuple[str, ...]] = {
    "штраф": ("штраф", "штрафы", "штрафов"),
    "машин": ("машин", "машины", "автомобил"),
    "оплат": ("оплат", "платеж", "плат"),
}

_PARTIAL_WORD_MIN_LEN = 4


@dataclass(frozen=True, slots=True)
class SimilarMatch:
    key: str
    kind: MatchKind
    category: str | None = None


def find_similar_key(normalized_query: str, cached_keys: Iterable[str]) -> SimilarMatch | None:
    """Find a cached key answering the same question as *normalized_query*."""
    keys = list(cached_keys)
    if not normalized_query or not keys:
        return None

    for key in keys:
        if normalize(key) == normalized_query:
            return SimilarMatch(key=key, kind="exact")

    for category, keywords in KEYWORD_CATEGORIES.items():
        if not any(kw in normalized_query for kw in keywords):
            continue
        for key in keys:
            lowered = key.lower()
            if any(kw in lowered for kw in keywords):
                return SimilarMatch(key=key, kind="category", category=category)

    words = [w for w in tokenize(normalized_query) if len(w) >= _PARTIAL_WORD_MIN_LEN]
    if words:
        for key in keys:
            key_words = set(tokenize(normalize(key)))
            if any(w in key_words for w in words):
                return SimilarMatch(key=key, kind="partial")

    return None
