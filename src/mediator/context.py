# src/mediator/context.py — v1
"""Explicit mediator context.

Holds every long-lived collaborator of one mediator instance: settings,
document store, semantic registry, engine (with its strategy registry),
path cache, review escalation (with its callback registry), event sinks and
the oracle call log. Build one per process, or one per test.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from semantic_mediator.cache.path_cache import TransformationPathCache
from semantic_mediator.config.settings import Settings
from semantic_mediator.engine.transformation_engine import TransformationEngine
from semantic_mediator.mediator.orchestrator import MediatorOrchestrator
from semantic_mediator.monitoring.base_sink import BaseEventSink, CompositeEventSink
from semantic_mediator.monitoring.logging_sink import LoggingEventSink
from semantic_mediator.monitoring.memory_sink import InMemoryEventSink
from semantic_mediator.monitoring.store_sink import StoreEventSink
from semantic_mediator.registry.semantic_registry import (
    BaseSemanticRegistry,
    InMemorySemanticRegistry,
)
from semantic_mediator.review.escalation import ReviewEscalation
from semantic_mediator.storage.base_document_store import BaseDocumentStore
from semantic_mediator.storage.store_factory import create_document_store
from semantic_mediator.tracking.call_logger import CallLogger

if TYPE_CHECKING:
    from semantic_mediator.llm.oracle import InferenceOracle

logger = logging.getLogger(__name__)


@dataclass
class MediatorContext:
    """All mediator state, passed by reference instead of held globally."""

    settings: Settings
    store: BaseDocumentStore
    registry: BaseSemanticRegistry
    engine: TransformationEngine
    cache: TransformationPathCache
    review: ReviewEscalation
    events: CompositeEventSink
    metrics: InMemoryEventSink
    call_logger: CallLogger
    orchestrator: MediatorOrchestrator = field(init=False)

    def __post_init__(self) -> None:
        self.cache.bind(engine=self.engine, registry=self.registry)
        self.orchestrator = MediatorOrchestrator(
            registry=self.registry,
            cache=self.cache,
            engine=self.engine,
            review=self.review,
            events=self.events,
            review_enabled=self.settings.review_enabled,
            review_timeout_ms=self.settings.review_timeout_ms,
            review_confidence_threshold=self.settings.review_confidence_threshold,
        )

    @classmethod
    def build(
        cls,
        settings: Settings | None = None,
        *,
        oracle: InferenceOracle | None = None,
        store: BaseDocumentStore | None = None,
        registry: BaseSemanticRegistry | None = None,
        sinks: list[BaseEventSink] | None = None,
    ) -> MediatorContext:
        """Wire a context from settings.

        Args:
            settings: Application settings. Loaded from .env if None.
            oracle: One oracle shared by every component. When None, one
                LLMOracle per component is built from the routing cascade.
            store: Document store. Built from STORE_BACKEND if None.
            registry: Semantic registry. Empty in-memory registry if None.
            sinks: Extra event sinks, added after the logging, in-memory
                and (with STORE_PERSIST_EVENTS) store ones.
        """
        settings = settings or Settings()
        call_logger = CallLogger()
        store = store if store is not None else create_document_store(settings)
        registry = registry if registry is not None else InMemorySemanticRegistry()

        if oracle is not None:
            oracles: dict[str, Any] = {
                "transformation_engine": oracle,
                "path_cache": oracle,
                "review_escalation": oracle,
            }
        else:
            from semantic_mediator.llm.oracle import create_oracle

            oracles = {
                component: create_oracle(component, settings, call_logger)
                for component in ("transformation_engine", "path_cache", "review_escalation")
            }

        engine = TransformationEngine(
            oracles["transformation_engine"],
            store=store,
            record_executions=settings.engine_record_executions,
        )
        cache = TransformationPathCache.from_settings(
            settings, store=store, oracle=oracles["path_cache"]
        )
        review = ReviewEscalation(store=store, oracle=oracles["review_escalation"])

        metrics = InMemoryEventSink()
        builtin: list[BaseEventSink] = [LoggingEventSink(), metrics]
        if settings.store_persist_events:
            builtin.append(StoreEventSink(store))
        events = CompositeEventSink([*builtin, *(sinks or [])])

        logger.debug("Mediator context built (store=%s)", type(store).__name__)
        return cls(
            settings=settings,
            store=store,
            registry=registry,
            engine=engine,
            cache=cache,
            review=review,
            events=events,
            metrics=metrics,
            call_logger=call_logger,
        )

    async def translate(
        self,
        source_module: str,
        target_module: str,
        data: Any,
        context: dict[str, Any] | None = None,
    ) -> Any:
        return await self.orchestrator.translate(source_module, target_module, data, context)

    async def close(self) -> None:
        """Cancel review timers and flush background writes."""
        await self.review.close()
        for sink in self.events.sinks:
            flush = getattr(sink, "flush", None)
            if flush is not None:
                await flush()
        close_store = getattr(self.store, "close", None)
        if close_store is not None:
            close_store()
