# src/storage/store_factory.py — v1
"""Factory for document store instantiation."""

from __future__ import annotations

from semantic_mediator.config.settings import Settings
from semantic_mediator.storage.base_document_store import BaseDocumentStore


def create_document_store(settings: Settings | None = None) -> BaseDocumentStore:
    """Instantiate the configured persistence backend.

    Args:
        settings: Application settings. Defaults to the in-memory backend.

    Returns:
        Configured BaseDocumentStore implementation.
    """
    backend = "memory" if settings is None else settings.store_backend

    if backend == "memory":
        from semantic_mediator.storage.memory_store import InMemoryDocumentStore
        return InMemoryDocumentStore()

    if backend == "json":
        from semantic_mediator.storage.json_store import JsonDocumentStore
        return JsonDocumentStore(store_root=settings.store_root)

    if backend == "sqlite":
        from semantic_mediator.storage.sqlite_store import SqliteDocumentStore
        return SqliteDocumentStore(
            db_path=f"{settings.store_root}/semantic_mediator.db"
        )

    raise ValueError(f"Unsupported store backend: {backend!r}")
