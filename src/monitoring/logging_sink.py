# src/monitoring/logging_sink.py — v1
"""Event sink writing one structured log record per event."""

from __future__ import annotations

import logging

from semantic_mediator.core.models import TransformationEvent
from semantic_mediator.monitoring.base_sink import BaseEventSink

logger = logging.getLogger(__name__)


class LoggingEventSink(BaseEventSink):
    """Logs successes at INFO and failures at WARNING.

    The event payload goes into ``extra={"data": ...}`` so the JSON formatter
    emits it as a nested object.
    """

    def emit(self, event: TransformationEvent) -> None:
        level = logging.INFO if event.success else logging.WARNING
        logger.log(
            level,
            "%s %s->%s via %s in %dms",
            event.kind,
            event.source_module,
            event.target_module,
            event.strategy,
            event.latency_ms,
            extra={"data": event.model_dump(mode="json", exclude_none=True)},
        )
