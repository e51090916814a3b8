# src/storage/models.py — v1
"""Persistence models: the opaque typed record held by every document store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

# Record types written by the mediation core.
RECORD_PATH_CACHE = "transformation_path_cache"
RECORD_PATH_HISTORY = "transformation_history"
RECORD_REVIEW = "review_request"
RECORD_EVENT = "transformation_event"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredRecord(BaseModel):
    """A typed, schemaless document."""

    id: str
    record_type: str
    content: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
