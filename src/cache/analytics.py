# src/cache/analytics.py — v1
"""Usage analytics and recommendations over the path cache population.

Everything here is derived from CacheEntry usage statistics on demand:
  - snapshot(): counts, totals, usage percentiles, per-module-pair aggregates
  - recommend(): retain the top usage percentile, purge the bottom one when
    idle beyond the staleness window
  - predict(): rank entries with a module transition graph built from usage
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import networkx as nx
import numpy as np

from semantic_mediator.cache.models import (
    CacheEntry,
    CacheOptimizationRecommendation,
    PairUsage,
    UsagePatternAnalysis,
    UsageSnapshot,
)
from semantic_mediator.core.errors import MediatorError
from semantic_mediator.llm.oracle import parse_json_response
from semantic_mediator.llm.prompts import (
    CACHE_OPTIMIZATION_PROMPT,
    USAGE_INSIGHTS_PROMPT,
    to_json,
)

if TYPE_CHECKING:
    from semantic_mediator.llm.oracle import InferenceOracle

logger = logging.getLogger(__name__)

NO_USAGE_INSIGHTS = "No usage data available for analysis"

# Recency half-life used to weight usage when predicting.
_RECENCY_HALF_LIFE_DAYS = 7.0
# Weight of entries reachable one module hop away from the current module.
_NEXT_HOP_DISCOUNT = 0.5


def _recency_weight(last_used: datetime, now: datetime) -> float:
    age_days = max((now - last_used).total_seconds(), 0.0) / 86400.0
    return math.pow(0.5, age_days / _RECENCY_HALF_LIFE_DAYS)


class UsageAnalytics:
    """Stateless analytics over a list of cache entries."""

    def __init__(
        self,
        oracle: InferenceOracle | None = None,
        retain_percentile: float = 90.0,
        purge_percentile: float = 10.0,
        staleness_days: int = 30,
        prediction_limit: int = 5,
    ) -> None:
        self._oracle = oracle
        self._retain_percentile = retain_percentile
        self._purge_percentile = purge_percentile
        self._staleness = timedelta(days=staleness_days)
        self._prediction_limit = prediction_limit

    # --- Snapshot ---

    def snapshot(
        self, entries: list[CacheEntry], now: datetime | None = None
    ) -> UsageSnapshot:
        now = now or datetime.now(timezone.utc)
        if not entries:
            return UsageSnapshot(taken_at=now)

        usage = np.array([e.usage_count for e in entries], dtype=np.float64)
        percentiles = {
            f"p{int(q)}": float(np.percentile(usage, q)) for q in (10, 25, 50, 75, 90)
        }
        return UsageSnapshot(
            taken_at=now,
            total_entries=len(entries),
            total_usage=int(usage.sum()),
            mean_usage=float(usage.mean()),
            unused_entries=int((usage == 0).sum()),
            usage_percentiles=percentiles,
            pairs=self.group_by_module_pair(entries),
        )

    @staticmethod
    def group_by_module_pair(entries: list[CacheEntry]) -> list[PairUsage]:
        """Aggregate entries per (source_module, target_module), busiest first."""
        grouped: dict[tuple[str | None, str | None], list[CacheEntry]] = {}
        for entry in entries:
            grouped.setdefault((entry.source_module, entry.target_module), []).append(entry)

        pairs = []
        for (source_module, target_module), group in grouped.items():
            total = sum(e.usage_count for e in group)
            pairs.append(
                PairUsage(
                    source_module=source_module,
                    target_module=target_module,
                    entry_count=len(group),
                    total_usage=total,
                    avg_usage=total / len(group),
                    last_used=max(e.last_used for e in group),
                    conversions=sorted({e.type_label for e in group}),
                )
            )
        pairs.sort(key=lambda p: (p.total_usage, p.last_used), reverse=True)
        return pairs

    # --- Usage patterns ---

    async def analyze_usage_patterns(
        self, entries: list[CacheEntry]
    ) -> UsagePatternAnalysis:
        """Module-pair patterns plus oracle-written insights.

        Oracle failures keep the locally computed patterns and set `error`.
        """
        if not entries:
            return UsagePatternAnalysis(patterns=[], insights=NO_USAGE_INSIGHTS)

        patterns = self.group_by_module_pair(entries)
        if self._oracle is None:
            return UsagePatternAnalysis(
                patterns=patterns, insights=self._describe_locally(patterns)
            )

        prompt = USAGE_INSIGHTS_PROMPT.format(
            patterns=to_json([p.model_dump(mode="json") for p in patterns])
        )
        try:
            insights = await self._oracle.generate_content(
                prompt, temperature=0.3, max_tokens=2000
            )
        except MediatorError as e:
            logger.error("Error analyzing usage patterns: %s", e)
            return UsagePatternAnalysis(
                patterns=patterns,
                insights="Failed to analyze usage patterns due to an error",
                error=str(e),
            )
        return UsagePatternAnalysis(patterns=patterns, insights=insights.strip())

    @staticmethod
    def _describe_locally(patterns: list[PairUsage]) -> str:
        top = patterns[0]
        return (
            f"{len(patterns)} module pair(s) cached; busiest is "
            f"{top.source_module}->{top.target_module} with {top.total_usage} use(s)"
        )

    # --- Prediction ---

    def build_transition_graph(
        self, entries: list[CacheEntry], now: datetime | None = None
    ) -> nx.DiGraph:
        """Directed module graph; edge weight is recency-weighted usage."""
        now = now or datetime.now(timezone.utc)
        graph = nx.DiGraph()
        for entry in entries:
            src, tgt = entry.source_module, entry.target_module
            if not src or not tgt:
                continue
            weight = (entry.usage_count + 1) * _recency_weight(entry.last_used, now)
            if graph.has_edge(src, tgt):
                graph[src][tgt]["weight"] += weight
                graph[src][tgt]["entries"].append(entry.id)
            else:
                graph.add_edge(src, tgt, weight=weight, entries=[entry.id])
        return graph

    def predict(
        self,
        entries: list[CacheEntry],
        context: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> list[CacheEntry]:
        """Entries likely needed next.

        Context keys: ``current_module`` (module the caller is in),
        ``target_module`` (restrict to conversions into it), ``limit``.
        Without a current module, the most used recent entries are returned.
        """
        context = context or {}
        now = now or datetime.now(timezone.utc)
        limit = int(context.get("limit") or self._prediction_limit)
        current = context.get("current_module") or context.get("currentModule")
        target = context.get("target_module") or context.get("targetModule")

        def entry_score(entry: CacheEntry) -> float:
            return (entry.usage_count + 1) * _recency_weight(entry.last_used, now)

        by_id = {e.id: e for e in entries}
        scores: dict[str, float] = {}

        if current:
            graph = self.build_transition_graph(entries, now)
            if current in graph:
                for _, nxt, data in graph.out_edges(current, data=True):
                    for entry_id in data["entries"]:
                        scores[entry_id] = entry_score(by_id[entry_id])
                    # One hop further: where data usually flows after `nxt`.
                    if target is None:
                        for _, _, hop in graph.out_edges(nxt, data=True):
                            for entry_id in hop["entries"]:
                                if entry_id not in scores:
                                    scores[entry_id] = (
                                        entry_score(by_id[entry_id]) * _NEXT_HOP_DISCOUNT
                                    )
        else:
            scores = {e.id: entry_score(e) for e in entries}

        candidates = [by_id[i] for i in scores]
        if target:
            candidates = [e for e in candidates if e.target_module == target]
        candidates.sort(key=lambda e: scores[e.id], reverse=True)
        return candidates[:limit]

    # --- Recommendations ---

    async def recommend(
        self,
        entries: list[CacheEntry],
        similarity_threshold: float,
        now: datetime | None = None,
    ) -> CacheOptimizationRecommendation:
        now = now or datetime.now(timezone.utc)
        if not entries:
            return CacheOptimizationRecommendation()

        usage = np.array([e.usage_count for e in entries], dtype=np.float64)
        retain_cut = float(np.percentile(usage, self._retain_percentile))
        purge_cut = float(np.percentile(usage, self._purge_percentile))

        retain: list[str] = []
        purge: list[str] = []
        for entry in sorted(entries, key=lambda e: e.usage_count, reverse=True):
            label = entry.type_label
            if entry.usage_count > 0 and entry.usage_count >= retain_cut:
                if label not in retain:
                    retain.append(label)
            elif (
                entry.usage_count <= purge_cut
                and now - entry.last_used > self._staleness
                and label not in purge
            ):
                purge.append(label)
        # A type retained through any entry is never purged.
        purge = [label for label in purge if label not in retain]

        recommendation = CacheOptimizationRecommendation(
            retain_types=retain,
            purge_types=purge,
            threshold_adjustments={
                "retain_min_usage": retain_cut,
                "purge_max_usage": purge_cut,
                "staleness_days": float(self._staleness.days),
                "similarity_threshold": self._suggest_similarity_threshold(
                    usage, similarity_threshold
                ),
            },
        )
        recommendation.additional_suggestions = await self._oracle_suggestions(
            self.snapshot(entries, now), recommendation
        )
        return recommendation

    @staticmethod
    def _suggest_similarity_threshold(usage: np.ndarray, current: float) -> float:
        """Loosen near matching when most entries are never reused."""
        unused_ratio = float((usage == 0).mean())
        if unused_ratio > 0.5:
            return round(max(current - 0.05, 0.5), 2)
        return current

    async def _oracle_suggestions(
        self,
        snapshot: UsageSnapshot,
        recommendation: CacheOptimizationRecommendation,
    ) -> list[str]:
        if self._oracle is None:
            return []
        prompt = CACHE_OPTIMIZATION_PROMPT.format(
            stats=to_json(snapshot.model_dump(mode="json", exclude={"pairs"})),
            recommendation=to_json(recommendation.model_dump(mode="json")),
        )
        try:
            raw = parse_json_response(
                await self._oracle.generate_content(prompt, temperature=0.3, max_tokens=800)
            )
        except (MediatorError, ValueError) as e:
            logger.warning("No oracle cache suggestions: %s", e)
            return []
        if isinstance(raw, list):
            return [str(s) for s in raw if s]
        if isinstance(raw, dict) and isinstance(raw.get("suggestions"), list):
            return [str(s) for s in raw["suggestions"] if s]
        return []
