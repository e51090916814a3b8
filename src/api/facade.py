# src/api/facade.py — v1
"""Public API facade.

Usage:
    from semantic_mediator.api.facade import create_mediator

    mediator = create_mediator()
    await register_module(mediator, "clarifier", {"entity": "Requirement"})
    result = await mediator.translate("clarifier", "generator", data)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from semantic_mediator.config.settings import Settings
from semantic_mediator.core.models import SemanticDescriptor, TranslationOutcome
from semantic_mediator.logging.logger import setup_logging_from_settings
from semantic_mediator.mediator.context import MediatorContext
from semantic_mediator.registry.semantic_registry import load_registry_file

if TYPE_CHECKING:
    from semantic_mediator.llm.oracle import InferenceOracle
    from semantic_mediator.monitoring.base_sink import BaseEventSink
    from semantic_mediator.registry.semantic_registry import BaseSemanticRegistry
    from semantic_mediator.storage.base_document_store import BaseDocumentStore

logger = logging.getLogger(__name__)


def create_mediator(
    settings: Settings | None = None,
    *,
    oracle: InferenceOracle | None = None,
    store: BaseDocumentStore | None = None,
    registry: BaseSemanticRegistry | None = None,
    sinks: list[BaseEventSink] | None = None,
    configure_logging: bool = False,
) -> MediatorContext:
    """Build a ready-to-use mediator context.

    Args:
        settings: Global settings. Loaded from .env if None.
        oracle: Inference oracle shared by all components (tests, custom
            backends). Built per component from settings if None.
        store: Document store. Built from STORE_BACKEND if None.
        registry: Semantic registry. Empty in-memory registry if None.
        sinks: Additional monitoring sinks.
        configure_logging: Apply the logging section of settings.

    Returns:
        MediatorContext wired with orchestrator, cache, engine and review.
    """
    settings = settings or Settings()
    if configure_logging:
        setup_logging_from_settings(settings)
    return MediatorContext.build(
        settings, oracle=oracle, store=store, registry=registry, sinks=sinks
    )


async def register_module(
    mediator: MediatorContext,
    module_id: str,
    descriptor: SemanticDescriptor | dict[str, Any],
) -> str:
    """Register a data-shape descriptor for a module; return its source id."""
    if not isinstance(descriptor, SemanticDescriptor):
        descriptor = SemanticDescriptor.model_validate(descriptor)
    return await mediator.registry.register_descriptor(module_id, descriptor)


async def load_registry(mediator: MediatorContext, path: Path | str) -> list[str]:
    """Load module descriptors from a JSON file; return the known modules."""
    await load_registry_file(path, mediator.registry)
    return await mediator.registry.list_modules()


async def translate(
    mediator: MediatorContext,
    source_module: str,
    target_module: str,
    data: Any,
    context: dict[str, Any] | None = None,
) -> TranslationOutcome:
    """Translate and report how the result was obtained."""
    return await mediator.orchestrator.translate_with_outcome(
        source_module, target_module, data, context
    )
