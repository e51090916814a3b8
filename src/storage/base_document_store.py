# src/storage/base_document_store.py — v1
"""Abstract document store interface.

The mediation core only ever appends typed records, reads them back by
type (optionally limited) or by id, point-updates them, and deletes them.
No query language is assumed.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Any

from semantic_mediator.storage.models import StoredRecord


class BaseDocumentStore(ABC):
    """Unified interface for persistence backends.

    Implementations raise PersistenceError for backend failures.
    """

    @abstractmethod
    async def store(
        self, record_type: str, content: dict[str, Any], record_id: str | None = None
    ) -> str:
        """Insert a record (or replace the one with the same id); return its id."""

    @abstractmethod
    async def get_by_type(
        self, record_type: str, limit: int | None = None
    ) -> list[StoredRecord]:
        """Records of a type in creation order; with `limit`, only the newest `limit`."""

    @abstractmethod
    async def get_by_id(self, record_type: str, record_id: str) -> StoredRecord | None:
        """Single record lookup."""

    @abstractmethod
    async def update(
        self, record_type: str, record_id: str, patch: dict[str, Any]
    ) -> bool:
        """Shallow-merge `patch` into the record content. False if absent."""

    @abstractmethod
    async def delete(self, record_type: str, record_id: str) -> bool:
        """Remove a record. False if absent."""

    @staticmethod
    def new_id(record_type: str) -> str:
        return f"{record_type}_{uuid.uuid4().hex[:16]}"


def apply_limit(records: list[StoredRecord], limit: int | None) -> list[StoredRecord]:
    """Keep the newest `limit` records of an ascending list."""
    if limit is None or limit < 0:
        return records
    if limit == 0:
        return []
    return records[-limit:]
