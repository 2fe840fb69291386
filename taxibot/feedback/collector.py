"""Interaction log with implicit and explicit (helpful / unhelpful) feedback."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Callable

from loguru import logger

from taxibot.nl.intents import Intent


@dataclass(frozen=True, slots=True)
class Interaction:
    message_id: str
    message: str
    response: str
    intent: Intent
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    was_helpful: bool | None = None


def _new_id() -> str:
    return uuid.uuid4().hex


class FeedbackCollector:
    """Keeps every answered message so users can rate it afterwards."""

    def __init__(self, id_factory: Callable[[], str] | None = None) -> None:
        self._id_factory = id_factory or _new_id
        self._interactions: dict[str, Interaction] = {}
        self._lock = asyncio.Lock()

    async def record_implicit(self, message: str, response: str, intent: Intent) -> str:
        async with self._lock:
            message_id = self._id_factory()
            while message_id in self._interactions:
                message_id = self._id_factory()
            self._interactions[message_id] = Interaction(
                message_id=message_id,
                message=message,
                response=response,
                intent=Intent(intent),
            )
        logger.debug(f"Collected implicit feedback: id={message_id} intent={Intent(intent).value}")
        return message_id

    async def record_explicit(self, interaction_id: str, was_helpful: bool) -> Interaction | None:
        """Attach a rating; unknown ids are ignored. Last rating wins."""
        async with self._lock:
            interaction = self._interactions.get(interaction_id)
            if interaction is None:
                logger.debug(f"Explicit feedback for unknown interaction {interaction_id}")
                return None
            interaction = replace(interaction, was_helpful=was_helpful)
            self._interactions[interaction_id] = interaction
        logger.info(f"Collected explicit feedback: id={interaction_id} helpful={was_helpful}")
        return interaction

    def get(self, interaction_id: str) -> Interaction | None:
        return self._interactions.get(interaction_id)

    def get_all(self) -> list[Interaction]:
        return list(self._interactions.values())

    def helpful_ratio(self) -> float | None:
        rated = [i for i in self._interactions.values() if i.was_helpful is not None]
        if not rated:
            return None
        return sum(1 for i in rated if i.was_helpful) / len(rated)
