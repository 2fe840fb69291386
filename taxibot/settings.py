"""Centralised settings for taxibot, loaded from env / .env."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TaxiBotSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TAXIBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- general ---
    app_name: str = "taxibot"
    env: str = "dev"
    debug: bool = False
    log_level: str = "INFO"

    # --- generation (LiteLLM) ---
    model: str = "gpt-3.5-turbo-16k"
    api_key: str = ""
    api_base: str = ""
    generation_timeout: float = 30.0
    temperature: float = 0.3
    max_tokens: int = 150
    generated_confidence: float = 0.9

    # --- response cache ---
    cache_ttl_seconds: int = 24 * 60 * 60
    cache_check_period_seconds: int = 60 * 60

    # --- learning ---
    max_examples: int = Field(default=1000, ge=1)
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    max_similar_examples: int = 5

    # --- user-facing contacts ---
    contact_phone: str = "7 927 883-55-66"


@lru_cache
def get_settings() -> TaxiBotSettings:
    return TaxiBotSettings()
