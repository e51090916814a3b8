# src/monitoring/base_sink.py — v1
"""Monitoring sink interface.

The orchestrator hands every TransformationEvent to a sink via emit(). A
sink must never block the pipeline or raise into it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from semantic_mediator.core.models import TransformationEvent

logger = logging.getLogger(__name__)


class BaseEventSink(ABC):
    """Fire-and-forget receiver of transformation events."""

    @abstractmethod
    def emit(self, event: TransformationEvent) -> None:
        """Accept an event. Must not raise."""


class CompositeEventSink(BaseEventSink):
    """Fans an event out to several sinks, isolating their failures."""

    def __init__(self, sinks: list[BaseEventSink] | None = None) -> None:
        self._sinks: list[BaseEventSink] = list(sinks or [])

    def add(self, sink: BaseEventSink) -> None:
        self._sinks.append(sink)

    @property
    def sinks(self) -> list[BaseEventSink]:
        return list(self._sinks)

    def emit(self, event: TransformationEvent) -> None:
        for sink in self._sinks:
            try:
                sink.emit(event)
            except Exception:
                logger.exception("Event sink %s failed", type(sink).__name__)
