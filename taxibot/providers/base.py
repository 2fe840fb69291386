"""Text-generation provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from taxibot.errors import GenerationError


@dataclass(frozen=True, slots=True)
class GenerationOptions:
    temperature: float = 0.3
    max_tokens: int = 150


class GenerationProvider(ABC):
    """
    Opaque ``generate(system_prompt, user_message, options) -> str`` capability.

    Implementations raise :class:`taxibot.errors.GenerationError` for every
    failure, including timeouts and empty completions.
    """

    @abstractmethod
    async def generate(
        self,
        system_prompt: str,
        user_message: str,
        options: GenerationOptions | None = None,
    ) -> str:
        ...


class StaticProvider(GenerationProvider):
    """Returns a fixed reply. Used by the CLI in offline mode."""

    def __init__(self, reply: str) -> None:
        self.reply = reply

    async def generate(
        self,
        system_prompt: str,
        user_message: str,
        options: GenerationOptions | None = None,
    ) -> str:
        if not self.reply:
            raise GenerationError("static provider has no reply configured")
        return self.reply
