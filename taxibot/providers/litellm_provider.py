"""LiteLLM-backed generation provider."""

from __future__ import annotations

import asyncio
from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from taxibot.errors import GenerationError
from taxibot.providers.base import GenerationOptions, GenerationProvider


class LiteLLMProvider(GenerationProvider):
    """
    Generation through LiteLLM, so any provider it supports (OpenAI,
    OpenRouter, Anthropic, local vLLM, ...) can answer.

    Every failure, including the request timeout, surfaces as
    :class:`GenerationError`; the raw exception text stays in the logs.
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        api_base: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.model = model
        self.api_key = api_key or None
        self.api_base = api_base or None
        self.timeout = timeout

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        # Drop unsupported parameters for providers
        litellm.drop_params = True

    async def generate(
        self,
        system_prompt: str,
        user_message: str,
        options: GenerationOptions | None = None,
    ) -> str:
        opts = options or GenerationOptions()
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "temperature": opts.temperature,
            "max_tokens": opts.max_tokens,
            "timeout": self.timeout,
        }
        # Pass credentials per call; never set them on litellm globally
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        try:
            response = await asyncio.wait_for(acompletion(**kwargs), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error(f"LLM call timed out ({self.model}) after {self.timeout}s")
            raise GenerationError(f"generation timed out after {self.timeout}s", model=self.model) from exc
        except Exception as exc:
            logger.error(f"LLM call failed ({self.model}): {exc}")
            raise GenerationError(str(exc), model=self.model) from exc

        return self._parse_response(response)

    def _parse_response(self, response: Any) -> str:
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, KeyError, TypeError) as exc:
            raise GenerationError("malformed completion response", model=self.model) from exc
        if not content or not content.strip():
            raise GenerationError("empty completion", model=self.model)
        return content
