# src/storage/json_store.py — v1
"""JSON file-based document store (STORE_BACKEND=json).

One file per record under STORE_ROOT/<record_type>/<id>.json.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from semantic_mediator.core.errors import PersistenceError
from semantic_mediator.storage.base_document_store import BaseDocumentStore, apply_limit
from semantic_mediator.storage.models import StoredRecord, utcnow

logger = logging.getLogger(__name__)


class JsonDocumentStore(BaseDocumentStore):
    """File-based document store using JSON files."""

    def __init__(self, store_root: Path | str) -> None:
        self._root = Path(store_root).expanduser()
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create store root {self._root}: {e}") from e

    async def store(
        self, record_type: str, content: dict[str, Any], record_id: str | None = None
    ) -> str:
        record_id = record_id or self.new_id(record_type)
        existing = self._read(self._record_path(record_type, record_id))
        record = StoredRecord(id=record_id, record_type=record_type, content=content)
        if existing is not None:
            record.created_at = existing.created_at
        self._write(record)
        return record_id

    async def get_by_type(
        self, record_type: str, limit: int | None = None
    ) -> list[StoredRecord]:
        directory = self._type_dir(record_type)
        if not directory.is_dir():
            return []
        records = []
        for path in directory.glob("*.json"):
            record = self._read(path)
            if record is not None:
                records.append(record)
        records.sort(key=lambda r: r.created_at)
        return apply_limit(records, limit)

    async def get_by_id(self, record_type: str, record_id: str) -> StoredRecord | None:
        return self._read(self._record_path(record_type, record_id))

    async def update(
        self, record_type: str, record_id: str, patch: dict[str, Any]
    ) -> bool:
        record = self._read(self._record_path(record_type, record_id))
        if record is None:
            return False
        record.content.update(patch)
        record.updated_at = utcnow()
        self._write(record)
        return True

    async def delete(self, record_type: str, record_id: str) -> bool:
        path = self._record_path(record_type, record_id)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise PersistenceError(f"Failed to delete {record_type}/{record_id}: {e}") from e
        return True

    def _read(self, path: Path) -> StoredRecord | None:
        if not path.exists():
            return None
        try:
            return StoredRecord(**json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Skipping unreadable record %s: %s", path, e)
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e

    def _write(self, record: StoredRecord) -> None:
        path = self._record_path(record.record_type, record.id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(
                f"Failed to write {record.record_type}/{record.id}: {e}"
            ) from e

    def _type_dir(self, record_type: str) -> Path:
        return self._root / _safe(record_type)

    def _record_path(self, record_type: str, record_id: str) -> Path:
        return self._type_dir(record_type) / f"{_safe(record_id)}.json"


def _safe(name: str) -> str:
    return name.replace("/", "_").replace("\\", "_")
