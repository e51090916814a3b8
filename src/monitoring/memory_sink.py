# src/monitoring/memory_sink.py — v1
"""In-memory event sink with history queries and a performance summary."""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Any

import numpy as np
from pydantic import BaseModel, Field

from semantic_mediator.core.models import TransformationEvent
from semantic_mediator.monitoring.base_sink import BaseEventSink

logger = logging.getLogger(__name__)


class PairSummary(BaseModel):
    """Aggregates for one (source_module, target_module) pair."""

    source_module: str
    target_module: str
    total: int
    failures: int
    avg_latency_ms: float


class EventSummary(BaseModel):
    """Performance report over the retained events."""

    total_events: int = 0
    successes: int = 0
    failures: int = 0
    success_rate: float = 0.0
    by_kind: dict[str, int] = Field(default_factory=dict)
    latency_p50_ms: float = 0.0
    latency_p95_ms: float = 0.0
    pairs: list[PairSummary] = Field(default_factory=list)


class InMemoryEventSink(BaseEventSink):
    """Keeps the most recent events (bounded)."""

    def __init__(self, max_events: int = 10_000) -> None:
        self._events: deque[TransformationEvent] = deque(maxlen=max_events)

    def emit(self, event: TransformationEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> list[TransformationEvent]:
        return list(self._events)

    def history(
        self, filters: dict[str, Any] | None = None, limit: int | None = None
    ) -> list[TransformationEvent]:
        """Events matching all ``filters`` (field == value), newest first."""
        filters = filters or {}
        matched = [
            e
            for e in reversed(self._events)
            if all(getattr(e, key, None) == value for key, value in filters.items())
        ]
        return matched[:limit] if limit is not None else matched

    def summary(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> EventSummary:
        """Aggregate events whose timestamp lies in [start, end]."""
        events = [
            e
            for e in self._events
            if (start is None or e.timestamp >= start)
            and (end is None or e.timestamp <= end)
        ]
        if not events:
            return EventSummary()

        latencies = np.array([e.latency_ms for e in events], dtype=np.float64)
        successes = sum(1 for e in events if e.success)
        by_kind: dict[str, int] = {}
        grouped: dict[tuple[str, str], list[TransformationEvent]] = {}
        for e in events:
            by_kind[e.kind] = by_kind.get(e.kind, 0) + 1
            grouped.setdefault((e.source_module, e.target_module), []).append(e)

        pairs = [
            PairSummary(
                source_module=src,
                target_module=tgt,
                total=len(group),
                failures=sum(1 for e in group if not e.success),
                avg_latency_ms=float(np.mean([e.latency_ms for e in group])),
            )
            for (src, tgt), group in grouped.items()
        ]
        pairs.sort(key=lambda p: p.total, reverse=True)

        return EventSummary(
            total_events=len(events),
            successes=successes,
            failures=len(events) - successes,
            success_rate=successes / len(events),
            by_kind=by_kind,
            latency_p50_ms=float(np.percentile(latencies, 50)),
            latency_p95_ms=float(np.percentile(latencies, 95)),
            pairs=pairs,
        )

    def clear(self) -> None:
        self._events.clear()
