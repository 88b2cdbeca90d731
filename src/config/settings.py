# src/config/settings.py — v3
"""Engine configuration: environment variables and an optional .env file.

Field names map to upper-case variables (LLM_PROVIDER, CACHE_BACKEND, ...).
Per-field ranges are pydantic constraints; rules spanning several fields
raise ConfigurationError so the CLI can report them separately.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, PositiveInt, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


UnitInterval = Annotated[float, Field(ge=0.0, le=1.0)]
Seconds = Annotated[float, Field(gt=0.0)]


class ConfigurationError(Exception):
    """Settings contradict each other."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Generative provider ===
    llm_provider: str = "anthropic"
    llm_model: str = "claude-sonnet-4-20250514"
    llm_vision_model: str = ""
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    llm_generation_temperature: Annotated[float, Field(ge=0.0, le=2.0)] = 0.8
    llm_analysis_temperature: UnitInterval = 0.2
    llm_max_tokens: PositiveInt = 1500
    generative_enabled: bool = True

    # === Structured providers ===
    local_table_enabled: bool = False
    usda_enabled: bool = True
    usda_api_key: str = "DEMO_KEY"
    usda_base_url: str = "https://api.nal.usda.gov/fdc/v1"
    off_enabled: bool = True
    off_base_url: str = "https://world.openfoodfacts.org"
    off_user_agent: str = "nutriresolve/0.1 (food-logging engine)"

    # === Timeouts (seconds, per attempt) ===
    structured_timeout_s: Seconds = 5.0
    generative_timeout_s: Seconds = 30.0

    # === Cache ===
    cache_backend: Literal["memory", "redis"] = "memory"
    cache_redis_url: str = ""
    cache_key_length: PositiveInt = 32
    cache_shards: PositiveInt = 16
    cache_sweep_interval_s: Seconds = 300.0
    analysis_cache_ttl_s: Seconds = 7 * 24 * 3600.0
    analysis_cache_max_entries: PositiveInt = 500
    artifact_cache_ttl_s: Seconds = 24 * 3600.0
    artifact_cache_max_entries: PositiveInt = 200
    coalesce_inflight: bool = True

    # === Similarity ===
    simhash_bits: PositiveInt = 256
    simhash_threshold: Annotated[int, Field(ge=0)] = 40

    # === Generation ===
    generation_max_attempts: PositiveInt = 3

    # === Confidence ===
    confidence_barcode: UnitInterval = 0.95
    confidence_structured: UnitInterval = 0.9
    confidence_generative: UnitInterval = 0.7
    image_confidence_factor: UnitInterval = 0.8
    voice_confidence_factor: UnitInterval = 0.9
    degraded_confidence: UnitInterval = 0.3

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"  # size ("10MB") or "hourly" / "daily" / "weekly"
    log_retention: PositiveInt = 30

    @model_validator(mode="after")
    def _cross_field_rules(self) -> Settings:
        problems = list(self._violations())
        if problems:
            raise ConfigurationError("; ".join(problems))
        return self

    def _violations(self) -> Iterator[str]:
        if self.cache_backend == "redis" and not self.cache_redis_url:
            yield "CACHE_BACKEND=redis requires CACHE_REDIS_URL"
        if self.simhash_bits % 8 or not 8 <= self.simhash_bits <= 512:
            yield "SIMHASH_BITS must be a multiple of 8 in [8, 512]"
        elif self.simhash_threshold >= self.simhash_bits:
            yield "SIMHASH_THRESHOLD must be below SIMHASH_BITS"
        if self.cache_key_length > 64:
            yield "CACHE_KEY_LENGTH cannot exceed a SHA-256 hex digest (64)"
        if self.confidence_generative > self.confidence_structured:
            yield "CONFIDENCE_GENERATIVE must not exceed CONFIDENCE_STRUCTURED"
        if not (self.generative_enabled or self.local_table_enabled
                or self.usda_enabled or self.off_enabled):
            yield "at least one provider must be enabled"


def load_settings(**overrides: object) -> Settings:
    """Settings from the environment and .env, with keyword overrides on top.

    Raises:
        ConfigurationError: Fields are individually valid but contradict each other.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
