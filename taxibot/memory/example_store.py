"""In-memory store of confirmed (text, intent) examples.

Used by the intent engine when rule confidence is low: examples whose word
sets overlap the incoming text enough (Jaccard) vote for an intent. The store
is bounded; on overflow the lowest-confidence examples are dropped first.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime

from loguru import logger

from taxibot.nl.intents import Intent

CONFIRMED_CONFIDENCE = 1.0
UNCONFIRMED_CONFIDENCE = 0.5


@dataclass(slots=True)
class IntentExample:
    text: str
    intent: Intent
    confidence: float
    confirmed: bool
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


@dataclass(frozen=True, slots=True)
class LearningResult:
    success: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ExampleStats:
    total: int
    confirmed: int


def _word_set(text: str) -> set[str]:
    return set(text.lower().split())


def jaccard_similarity(text1: str, text2: str) -> float:
    """Jaccard index of the lowercased whitespace-token sets (0.0 for two empty texts)."""
    words1, words2 = _word_set(text1), _word_set(text2)
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


class ExampleStore:
    """Bounded, similarity-searchable collection of :class:`IntentExample`."""

    def __init__(
        self,
        max_examples: int = 1000,
        similarity_threshold: float = 0.7,
        max_similar: int = 5,
    ) -> None:
        self.max_examples = max_examples
        self.similarity_threshold = similarity_threshold
        self.max_similar = max_similar
        self._examples: list[IntentExample] = []
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._examples)

    async def learn(self, text: str, intent: Intent, confirmed: bool = True) -> LearningResult:
        """Append an example, evicting the lowest-confidence ones past capacity."""
        try:
            example = IntentExample(
                text=text,
                intent=Intent(intent),
                confidence=CONFIRMED_CONFIDENCE if confirmed else UNCONFIRMED_CONFIDENCE,
                confirmed=confirmed,
            )
            async with self._lock:
                self._examples.append(example)
                if len(self._examples) > self.max_examples:
                    # sorted() is stable: among equal confidence the older example survives
                    self._examples = sorted(
                        self._examples, key=lambda e: e.confidence, reverse=True,
                    )[: self.max_examples]
            logger.info(f"Added learning example: intent={example.intent.value} confirmed={confirmed}")
            return LearningResult(success=True)
        except Exception as exc:
            logger.error(f"Error learning from interaction: {exc}")
            return LearningResult(success=False, error=str(exc))

    async def forget(self, text: str, intent: Intent) -> int:
        """Drop every example with exactly this text and intent; return how many went."""
        async with self._lock:
            before = len(self._examples)
            self._examples = [
                e for e in self._examples if not (e.text == text and e.intent == intent)
            ]
            removed = before - len(self._examples)
        logger.info(f"Processed negative feedback: intent={Intent(intent).value} removed={removed}")
        return removed

    async def similar(self, text: str) -> list[IntentExample]:
        """Examples at or above the similarity threshold, most confident first."""
        async with self._lock:
            snapshot = list(self._examples)
        matches = [
            e for e in snapshot
            if jaccard_similarity(text, e.text) >= self.similarity_threshold
        ]
        matches.sort(key=lambda e: e.confidence, reverse=True)
        return matches[: self.max_similar]

    def examples(self) -> list[IntentExample]:
        return list(self._examples)

    def stats(self) -> ExampleStats:
        return ExampleStats(
            total=len(self._examples),
            confirmed=sum(1 for e in self._examples if e.confirmed),
        )

    def intent_counts(self, limit: int | None = None) -> list[tuple[Intent, int]]:
        """Per-intent example counts, most used first."""
        return Counter(e.intent for e in self._examples).most_common(limit)
