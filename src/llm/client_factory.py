# src/llm/client_factory.py — v3
"""Factory: provider name → configured BaseLLMClient.

Adapters are referenced by import path and only imported when requested,
so an unused provider SDK never has to be installed.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from semantic_mediator.llm.base_client import BaseLLMClient

if TYPE_CHECKING:
    from semantic_mediator.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderSpec:
    """Where an adapter lives and which setting configures it."""

    class_path: str
    setting: str | None = None  # Settings attribute to read
    argument: str | None = None  # adapter keyword that receives it


_PROVIDERS: dict[str, ProviderSpec] = {
    "anthropic": ProviderSpec(
        "semantic_mediator.llm.adapters.anthropic_adapter.AnthropicAdapter",
        "anthropic_api_key",
        "api_key",
    ),
    "openai": ProviderSpec(
        "semantic_mediator.llm.adapters.openai_adapter.OpenAIAdapter",
        "openai_api_key",
        "api_key",
    ),
    "ollama": ProviderSpec(
        "semantic_mediator.llm.adapters.ollama_adapter.OllamaAdapter",
        "ollama_base_url",
        "base_url",
    ),
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def available_providers() -> list[str]:
    return sorted(_PROVIDERS)


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    **kwargs: Any,
) -> BaseLLMClient:
    """Instantiate the adapter registered for `provider`.

    Explicit keyword arguments win over values read from settings.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    entry = _PROVIDERS.get(provider)
    if entry is None:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(available_providers())}"
        )

    module_path, class_name = entry.class_path.rsplit(".", 1)
    adapter_cls = getattr(importlib.import_module(module_path), class_name)

    if settings is not None and entry.setting and entry.argument:
        kwargs.setdefault(entry.argument, getattr(settings, entry.setting))

    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(model=model, **kwargs)


def register_provider(
    name: str,
    class_path: str,
    setting: str | None = None,
    argument: str | None = None,
) -> None:
    """Register a custom adapter (a BaseLLMClient subclass) under `name`."""
    if name in _PROVIDERS:
        logger.warning("Overwriting LLM provider registration: %s", name)
    _PROVIDERS[name] = ProviderSpec(class_path, setting, argument)
    logger.info("Registered LLM provider: %s -> %s", name, class_path)
