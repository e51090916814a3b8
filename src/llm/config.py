# src/llm/config.py — v2
"""Which provider:model each oracle-consuming component talks to.

Candidates are tried in order and the first complete one wins:
  1. component   LLM_<COMPONENT>=provider:model (e.g. LLM_PATH_CACHE=openai:gpt-4o-mini)
  2. default     LLM_DEFAULT_PROVIDER + LLM_DEFAULT_MODEL
  3. fallback    anthropic:claude-sonnet-4-20250514
"""

from __future__ import annotations

from typing import NamedTuple

from semantic_mediator.config.settings import Settings

FALLBACK = ("anthropic", "claude-sonnet-4-20250514")

ORACLE_COMPONENTS: tuple[str, ...] = (
    "transformation_engine",
    "path_cache",
    "review_escalation",
)


class LLMAssignment(NamedTuple):
    provider: str
    model: str
    source: str

    @property
    def key(self) -> str:
        return f"{self.provider}:{self.model}"


def split_assignment(value: str) -> tuple[str, str] | None:
    """'provider:model' → (provider, model); None when either part is missing."""
    provider, sep, model = (value or "").partition(":")
    provider, model = provider.strip(), model.strip()
    if not sep or not provider or not model:
        return None
    return provider, model


def resolve_llm(component: str, settings: Settings) -> LLMAssignment:
    override = split_assignment(getattr(settings, f"llm_{component}", ""))
    if override:
        return LLMAssignment(*override, "component")
    if settings.llm_default_provider and settings.llm_default_model:
        return LLMAssignment(
            settings.llm_default_provider, settings.llm_default_model, "default"
        )
    return LLMAssignment(*FALLBACK, "fallback")


def resolve_all(settings: Settings) -> dict[str, LLMAssignment]:
    return {component: resolve_llm(component, settings) for component in ORACLE_COMPONENTS}
