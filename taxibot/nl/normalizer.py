"""Text canonicalisation shared by the cache keys and the intent scorer.

``normalize`` is the only way a cache key is produced, so two phrasings that
normalise to the same string are the same cached question.
"""

from __future__ import annotations

import re

# Interrogative / politeness words that carry no meaning for lookup.
FILLER_PREFIXES: tuple[str, ...] = ("как", "где", "можно", "ли", "хочу", "нужно", "мне", "надо")

_WHITESPACE = re.compile(r"\s+")
_TRAILING_PUNCT = re.compile(r"[\s?!.]+$")
_FILLER_PREFIX = re.compile(
    r"^(?:(?:" + "|".join(FILLER_PREFIXES) + r")\s+)+"
)
# Singular and plural of "fine" share one canonical (plural) form.
_FINE_TERM = re.compile(r"\bштрафы?\b")
_FINE_CANONICAL = "штрафы"


def normalize(raw: str) -> str:
    """Return the canonical lookup form of *raw*.

    Lowercases, trims, collapses whitespace, drops trailing ``?!.``, strips
    leading filler words and canonicalises the fine term. Idempotent and
    total: any string (including ``""``) is accepted.
    """
    text = raw.lower().strip()
    text = _WHITESPACE.sub(" ", text)
    text = _TRAILING_PUNCT.sub("", text)
    text = _FILLER_PREFIX.sub("", text)
    text = _FINE_TERM.sub(_FINE_CANONICAL, text)
    return text.strip()


def tokenize(text: str) -> list[str]:
    """Split on whitespace runs; order preserved, duplicates kept."""
    return text.split()
