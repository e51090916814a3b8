# src/llm/models.py — v2
"""Completion: one oracle answer, normalized across providers."""

from __future__ import annotations

from pydantic import BaseModel


class Completion(BaseModel):
    """Text returned by a provider plus what it cost."""

    text: str
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    stop_reason: str | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens
