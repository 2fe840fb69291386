"""Rule-based intent detection.

Each rule-bearing intent gets a weighted confidence from three sub-scores:

    confidence = 0.4 * keywords + 0.4 * patterns + 0.2 * context triggers

Keyword and trigger ratios are measured against the rule's list length and
clamped to 1.0, so every confidence stays in [0, 1]. When the best rule score
is below the acceptance threshold the engine falls back to the historical
examples held by :class:`taxibot.memory.example_store.ExampleStore`.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import TYPE_CHECKING, Iterable

from loguru import logger

from taxibot.errors import UnknownIntentError
from taxibot.nl.intents import (
    META_INTENTS,
    Intent,
    IntentDecision,
    IntentRule,
    IntentScore,
    load_rules,
)
from taxibot.nl.normalizer import normalize, tokenize

if TYPE_CHECKING:
    from taxibot.memory.example_store import ExampleStore, IntentExample

KEYWORD_WEIGHT = 0.4
PATTERN_WEIGHT = 0.4
CONTEXT_WEIGHT = 0.2


def _substring_ratio(tokens: list[str], needles: frozenset[str]) -> float:
    if not needles:
        return 0.0
    hits = sum(1 for token in tokens if any(n in token for n in needles))
    return min(1.0, hits / max(1, len(needles)))


def _pattern_ratio(text: str, patterns: tuple[re.Pattern[str], ...]) -> float:
    if not patterns:
        return 0.0
    hits = sum(1 for p in patterns if p.search(text))
    return hits / max(1, len(patterns))


def most_frequent_intent(examples: Iterable[IntentExample]) -> Intent | None:
    """Most common intent; ties go to the one seen first (examples arrive confidence-sorted)."""
    counts = Counter(e.intent for e in examples)
    if not counts:
        return None
    # Counter preserves insertion order, most_common is stable on ties.
    return counts.most_common(1)[0][0]


class IntentEngine:
    """Scores text against the rule table and applies the resolution policy."""

    def __init__(
        self,
        rules: dict[Intent, IntentRule] | None = None,
        confidence_threshold: float = 0.7,
    ) -> None:
        self._rules = dict(rules) if rules is not None else load_rules()
        self.confidence_threshold = confidence_threshold

    @property
    def rules(self) -> dict[Intent, IntentRule]:
        return dict(self._rules)

    # ── scoring ─────────────────────────────────────────────────────

    def score(self, text: str) -> list[IntentScore]:
        """Score every rule-bearing intent, best first.

        Ties keep ``Intent`` declaration order.
        """
        tokens = [t.lower() for t in tokenize(normalize(text))]
        raw = text.lower()
        scores: list[IntentScore] = []
        for intent in Intent:
            rule = self._rules.get(intent)
            if rule is None:
                continue
            confidence = (
                KEYWORD_WEIGHT * _substring_ratio(tokens, rule.keywords)
                + PATTERN_WEIGHT * _pattern_ratio(raw, rule.patterns)
                + CONTEXT_WEIGHT * _substring_ratio(tokens, rule.context_triggers)
            )
            scores.append(IntentScore(intent=intent, confidence=round(confidence, 6)))
        scores.sort(key=lambda s: s.confidence, reverse=True)
        return scores

    def top(self, text: str) -> IntentScore | None:
        scores = self.score(text)
        return scores[0] if scores else None

    # ── rule maintenance ────────────────────────────────────────────

    def update_rules(
        self,
        intent: Intent | str,
        keywords: Iterable[str] | None = None,
        patterns: Iterable[str | re.Pattern[str]] | None = None,
        context_triggers: Iterable[str] | None = None,
    ) -> IntentRule:
        """Union new keywords / patterns / triggers into an intent's rule."""
        try:
            resolved = Intent(intent)
        except ValueError as exc:
            raise UnknownIntentError(str(intent)) from exc
        if resolved in META_INTENTS:
            raise UnknownIntentError(resolved.value)

        current = self._rules.get(resolved, IntentRule())
        updated = current.merge(keywords, patterns, context_triggers)
        self._rules[resolved] = updated
        logger.info(
            f"Intent rules updated: {resolved.value} "
            f"(keywords={len(updated.keywords)}, patterns={len(updated.patterns)}, "
            f"triggers={len(updated.context_triggers)})"
        )
        return updated

    # ── resolution policy ───────────────────────────────────────────

    async def detect(self, text: str, examples: ExampleStore) -> IntentDecision:
        """Resolve *text* to an intent: rules first, then similar examples.

        Accepted intents are recorded as confirmed examples. Returns
        ``Intent.ERROR`` when neither source is confident.
        """
        try:
            scores = self.score(text)
            best = scores[0] if scores else None
            if best is not None and best.confidence >= self.confidence_threshold:
                await examples.learn(text, best.intent, confirmed=True)
                logger.debug(f"Intent by rules: {best.intent.value} ({best.confidence:.2f})")
                return IntentDecision(best.intent, best.confidence, "rules", tuple(scores))

            similar = await examples.similar(text)
            historical = most_frequent_intent(similar)
            if historical is not None:
                await examples.learn(text, historical, confirmed=True)
                logger.debug(f"Intent by examples: {historical.value} ({len(similar)} similar)")
                confidence = best.confidence if best and best.intent == historical else 0.0
                return IntentDecision(historical, confidence, "examples", tuple(scores))

            return IntentDecision(
                Intent.ERROR, best.confidence if best else 0.0, "unresolved", tuple(scores),
            )
        except Exception as exc:
            logger.error(f"Error detecting intent: {exc}")
            return IntentDecision(Intent.ERROR, 0.0, "unresolved")
