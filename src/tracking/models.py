# src/tracking/models.py — v1
"""Tracking domain models: OracleCallRecord, OracleCallStats."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class OracleCallRecord(BaseModel):
    """Individual inference oracle call log entry."""

    call_id: str
    timestamp: datetime
    component: str
    step: str
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    latency_ms: int = 0
    status: Literal["success", "failed"]
    stop_reason: str | None = None
    error: str | None = None


class OracleCallStats(BaseModel):
    """Per-component aggregate over recorded calls."""

    component: str
    total_calls: int
    failure_count: int
    total_tokens: int
    avg_latency_ms: float
    max_latency_ms: int
