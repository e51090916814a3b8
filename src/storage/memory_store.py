# src/storage/memory_store.py — v1
"""In-process document store (STORE_BACKEND=memory, default for tests)."""

from __future__ import annotations

import copy
import logging
from typing import Any

from semantic_mediator.storage.base_document_store import BaseDocumentStore, apply_limit
from semantic_mediator.storage.models import StoredRecord, utcnow

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(BaseDocumentStore):
    """Dict-backed store. Content is deep-copied on the way in and out."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, StoredRecord]] = {}

    async def store(
        self, record_type: str, content: dict[str, Any], record_id: str | None = None
    ) -> str:
        record_id = record_id or self.new_id(record_type)
        bucket = self._records.setdefault(record_type, {})
        existing = bucket.get(record_id)
        record = StoredRecord(
            id=record_id,
            record_type=record_type,
            content=copy.deepcopy(content),
        )
        if existing is not None:
            record.created_at = existing.created_at
        bucket[record_id] = record
        return record_id

    async def get_by_type(
        self, record_type: str, limit: int | None = None
    ) -> list[StoredRecord]:
        records = [
            r.model_copy(deep=True) for r in self._records.get(record_type, {}).values()
        ]
        records.sort(key=lambda r: r.created_at)
        return apply_limit(records, limit)

    async def get_by_id(self, record_type: str, record_id: str) -> StoredRecord | None:
        record = self._records.get(record_type, {}).get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    async def update(
        self, record_type: str, record_id: str, patch: dict[str, Any]
    ) -> bool:
        record = self._records.get(record_type, {}).get(record_id)
        if record is None:
            return False
        record.content.update(copy.deepcopy(patch))
        record.updated_at = utcnow()
        return True

    async def delete(self, record_type: str, record_id: str) -> bool:
        bucket = self._records.get(record_type, {})
        if record_id not in bucket:
            return False
        del bucket[record_id]
        return True

    def count(self, record_type: str) -> int:
        return len(self._records.get(record_type, {}))
