"""Text-generation provider abstraction module."""

from taxibot.providers.base import GenerationOptions, GenerationProvider, StaticProvider
from taxibot.providers.litellm_provider import LiteLLMProvider

__all__ = ["GenerationOptions", "GenerationProvider", "StaticProvider", "LiteLLMProvider"]
