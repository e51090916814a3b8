# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings: oracle routing,
cache thresholds, persistence backend, review escalation and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDERS (inference oracle) ===
    llm_default_provider: str = "anthropic"
    llm_default_model: str = "claude-sonnet-4-20250514"
    llm_default_temperature: float = 0.2
    llm_max_tokens: int = 2000

    # Provider API keys
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"

    # Per-component LLM assignment (highest priority), "provider:model"
    llm_transformation_engine: str = ""
    llm_path_cache: str = ""
    llm_review_escalation: str = ""

    # === Transformation path cache ===
    cache_similarity_threshold: float = 0.7
    cache_near_match_enabled: bool = True
    cache_max_near_match_candidates: int = 50
    cache_retain_percentile: float = 90.0
    cache_purge_percentile: float = 10.0
    cache_staleness_days: int = 30
    cache_prediction_limit: int = 5

    # === Persistence ===
    store_backend: Literal["memory", "json", "sqlite"] = "memory"
    store_root: Path = Path("~/.semantic_mediator/store")
    # Append every transformation event to the store as well
    store_persist_events: bool = False

    # === Engine ===
    engine_record_executions: bool = True

    # === Review escalation ===
    review_enabled: bool = True
    review_timeout_ms: int = 300_000
    review_confidence_threshold: float = 0.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("cache_similarity_threshold", "review_confidence_threshold")
    @classmethod
    def validate_unit_interval(cls, v: float) -> float:  # noqa: N805
        if not 0.0 <= v <= 1.0:
            raise ValueError("threshold must be within [0.0, 1.0]")
        return v

    @field_validator("review_timeout_ms", "cache_staleness_days")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("value must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if not 0.0 <= self.cache_purge_percentile < self.cache_retain_percentile <= 100.0:
            errors.append(
                "CACHE_PURGE_PERCENTILE must be < CACHE_RETAIN_PERCENTILE, both in [0, 100]"
            )

        if self.cache_max_near_match_candidates < 1 and self.cache_near_match_enabled:
            errors.append(
                "CACHE_NEAR_MATCH_ENABLED requires CACHE_MAX_NEAR_MATCH_CANDIDATES >= 1"
            )

        if self.cache_prediction_limit < 1:
            errors.append("CACHE_PREDICTION_LIMIT must be >= 1")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-process config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
