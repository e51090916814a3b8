# src/storage/sqlite_store.py — v1
"""SQLite-based document store (STORE_BACKEND=sqlite).

Uses stdlib sqlite3. Content is stored as a JSON text column.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from semantic_mediator.core.errors import PersistenceError
from semantic_mediator.storage.base_document_store import BaseDocumentStore, apply_limit
from semantic_mediator.storage.models import StoredRecord, utcnow

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    record_type TEXT NOT NULL,
    id TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    seq INTEGER NOT NULL,
    PRIMARY KEY (record_type, id)
);
CREATE INDEX IF NOT EXISTS idx_records_type_seq ON records(record_type, seq);
"""


class SqliteDocumentStore(BaseDocumentStore):
    """SQLite-backed document store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser() if str(db_path) != ":memory:" else None
        try:
            if self._db_path is not None:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path or ":memory:"))
            if self._db_path is not None:
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Cannot open store database {db_path}: {e}") from e

    async def store(
        self, record_type: str, content: dict[str, Any], record_id: str | None = None
    ) -> str:
        record_id = record_id or self.new_id(record_type)
        now = utcnow().isoformat()
        try:
            payload = json.dumps(content, default=str)
            row = self._conn.execute(
                "SELECT created_at, seq FROM records WHERE record_type = ? AND id = ?",
                (record_type, record_id),
            ).fetchone()
            if row is not None:
                self._conn.execute(
                    """UPDATE records SET content = ?, updated_at = ?
                       WHERE record_type = ? AND id = ?""",
                    (payload, now, record_type, record_id),
                )
            else:
                self._conn.execute(
                    """INSERT INTO records
                       (record_type, id, content, created_at, updated_at, seq)
                       VALUES (?, ?, ?, ?, ?,
                               (SELECT COALESCE(MAX(seq), 0) + 1 FROM records))""",
                    (record_type, record_id, payload, now, now),
                )
            self._conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to store {record_type}/{record_id}: {e}") from e
        return record_id

    async def get_by_type(
        self, record_type: str, limit: int | None = None
    ) -> list[StoredRecord]:
        try:
            rows = self._conn.execute(
                """SELECT id, content, created_at, updated_at FROM records
                   WHERE record_type = ? ORDER BY seq""",
                (record_type,),
            ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list {record_type}: {e}") from e
        records = [self._to_record(record_type, row) for row in rows]
        return apply_limit(records, limit)

    async def get_by_id(self, record_type: str, record_id: str) -> StoredRecord | None:
        try:
            row = self._conn.execute(
                """SELECT id, content, created_at, updated_at FROM records
                   WHERE record_type = ? AND id = ?""",
                (record_type, record_id),
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read {record_type}/{record_id}: {e}") from e
        return self._to_record(record_type, row) if row else None

    async def update(
        self, record_type: str, record_id: str, patch: dict[str, Any]
    ) -> bool:
        record = await self.get_by_id(record_type, record_id)
        if record is None:
            return False
        record.content.update(patch)
        try:
            self._conn.execute(
                """UPDATE records SET content = ?, updated_at = ?
                   WHERE record_type = ? AND id = ?""",
                (
                    json.dumps(record.content, default=str),
                    utcnow().isoformat(),
                    record_type,
                    record_id,
                ),
            )
            self._conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to update {record_type}/{record_id}: {e}") from e
        return True

    async def delete(self, record_type: str, record_id: str) -> bool:
        try:
            cursor = self._conn.execute(
                "DELETE FROM records WHERE record_type = ? AND id = ?",
                (record_type, record_id),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete {record_type}/{record_id}: {e}") from e
        return cursor.rowcount > 0

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _to_record(record_type: str, row: tuple) -> StoredRecord:
        return StoredRecord(
            id=row[0],
            record_type=record_type,
            content=json.loads(row[1]),
            created_at=row[2],
            updated_at=row[3],
        )
