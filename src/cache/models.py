# src/cache/models.py — v1
"""Cache domain models: CacheEntry, CacheLookupResult, UsageSnapshot and
the analytics result shapes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

from semantic_mediator.core.models import SemanticDescriptor, TransformationPath


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    """A cached transformation path with its usage statistics."""

    id: str
    key: str
    source_descriptor: SemanticDescriptor
    target_descriptor: SemanticDescriptor
    path: TransformationPath
    usage_count: int = Field(default=0, ge=0)
    last_used: datetime = Field(default_factory=_utcnow)
    created_at: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def source_module(self) -> str | None:
        return self.metadata.get("source_module")

    @property
    def target_module(self) -> str | None:
        return self.metadata.get("target_module")

    @property
    def type_label(self) -> str:
        """``Source->Target`` entity label used in recommendations."""
        return f"{self.source_descriptor.entity}->{self.target_descriptor.entity}"


class CacheLookupResult(BaseModel):
    """Outcome of a cache lookup."""

    hit_level: Literal["exact", "near"] | None = None
    entry: CacheEntry | None = None
    similarity_score: float | None = None

    @property
    def hit(self) -> bool:
        return self.entry is not None


class PairUsage(BaseModel):
    """Usage aggregated over one (source_module, target_module) pair."""

    source_module: str | None
    target_module: str | None
    entry_count: int
    total_usage: int
    avg_usage: float
    last_used: datetime
    conversions: list[str] = Field(default_factory=list)


class UsageSnapshot(BaseModel):
    """Derived view over the cache population. Never persisted."""

    taken_at: datetime = Field(default_factory=_utcnow)
    total_entries: int = 0
    total_usage: int = 0
    mean_usage: float = 0.0
    unused_entries: int = 0
    usage_percentiles: dict[str, float] = Field(default_factory=dict)
    pairs: list[PairUsage] = Field(default_factory=list)


class UsagePatternAnalysis(BaseModel):
    patterns: list[PairUsage] = Field(default_factory=list)
    insights: str = ""
    error: str | None = None


class CacheOptimizationRecommendation(BaseModel):
    """Eviction/retention policy recommendation."""

    retain_types: list[str] = Field(default_factory=list)
    purge_types: list[str] = Field(default_factory=list)
    threshold_adjustments: dict[str, float] = Field(default_factory=dict)
    additional_suggestions: list[str] = Field(default_factory=list)
