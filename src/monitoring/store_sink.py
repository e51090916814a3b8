# src/monitoring/store_sink.py — v1
"""Event sink persisting events to the document store.

emit() is synchronous, so the write is scheduled on the running event loop.
Write failures are logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging

from semantic_mediator.core.models import TransformationEvent
from semantic_mediator.monitoring.base_sink import BaseEventSink
from semantic_mediator.storage.base_document_store import BaseDocumentStore
from semantic_mediator.storage.models import RECORD_EVENT

logger = logging.getLogger(__name__)


class StoreEventSink(BaseEventSink):
    """Appends each event as a ``transformation_event`` record."""

    def __init__(self, store: BaseDocumentStore) -> None:
        self._store = store
        self._pending: set[asyncio.Task] = set()

    def emit(self, event: TransformationEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, dropping %s event", event.kind)
            return
        task = loop.create_task(self._write(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, event: TransformationEvent) -> None:
        try:
            await self._store.store(RECORD_EVENT, event.model_dump(mode="json"))
        except Exception as e:
            logger.warning("Failed to persist %s event: %s", event.kind, e)

    async def flush(self) -> None:
        """Wait for every scheduled write to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
