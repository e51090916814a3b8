# src/cache/path_cache.py — v1
"""Content-addressed cache of transformation paths.

Lookup policy:
  1. Exact: the SHA-256 pair key of (source, target) (see fingerprint.py).
  2. Near (when enabled): the best entry whose combined similarity
     ``(sim(source) + sim(target)) / 2`` reaches the threshold. Similarity
     is computed locally when possible (identical shape, embedding vectors)
     and by the inference oracle otherwise.

The cache never fails the pipeline: document store errors are logged and the
in-memory index keeps serving. retrieve() does not touch usage statistics;
callers report actual use through update_usage_statistics().
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from semantic_mediator.cache.analytics import UsageAnalytics
from semantic_mediator.cache.fingerprint import compute_path_key, entry_id_for_key
from semantic_mediator.cache.models import (
    CacheEntry,
    CacheLookupResult,
    CacheOptimizationRecommendation,
    UsagePatternAnalysis,
    UsageSnapshot,
)
from semantic_mediator.core.errors import MediatorError
from semantic_mediator.core.models import SemanticDescriptor, TransformationPath
from semantic_mediator.core.similarity import clamp_score, local_descriptor_similarity
from semantic_mediator.llm.prompts import SIMILARITY_PROMPT, to_json
from semantic_mediator.storage.models import RECORD_PATH_CACHE

if TYPE_CHECKING:
    from semantic_mediator.config.settings import Settings
    from semantic_mediator.engine.transformation_engine import TransformationEngine
    from semantic_mediator.llm.oracle import InferenceOracle
    from semantic_mediator.registry.semantic_registry import BaseSemanticRegistry
    from semantic_mediator.storage.base_document_store import BaseDocumentStore

logger = logging.getLogger(__name__)


class TransformationPathCache:
    """Path cache with usage statistics, preloading and analytics."""

    def __init__(
        self,
        store: BaseDocumentStore | None = None,
        oracle: InferenceOracle | None = None,
        similarity_threshold: float = 0.7,
        near_match_enabled: bool = True,
        max_near_match_candidates: int = 50,
        analytics: UsageAnalytics | None = None,
        engine: TransformationEngine | None = None,
        registry: BaseSemanticRegistry | None = None,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._similarity_threshold = similarity_threshold
        self._near_match_enabled = near_match_enabled
        self._max_candidates = max_near_match_candidates
        self._analytics = analytics or UsageAnalytics(oracle=oracle)
        self._engine = engine
        self._registry = registry

        self._entries: dict[str, CacheEntry] = {}
        self._similarity_memo: dict[tuple[str, str], float] = {}
        self._loaded = False
        self._load_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: BaseDocumentStore | None = None,
        oracle: InferenceOracle | None = None,
        **kwargs: Any,
    ) -> TransformationPathCache:
        analytics = UsageAnalytics(
            oracle=oracle,
            retain_percentile=settings.cache_retain_percentile,
            purge_percentile=settings.cache_purge_percentile,
            staleness_days=settings.cache_staleness_days,
            prediction_limit=settings.cache_prediction_limit,
        )
        return cls(
            store=store,
            oracle=oracle,
            similarity_threshold=settings.cache_similarity_threshold,
            near_match_enabled=settings.cache_near_match_enabled,
            max_near_match_candidates=settings.cache_max_near_match_candidates,
            analytics=analytics,
            **kwargs,
        )

    def bind(
        self,
        engine: TransformationEngine | None = None,
        registry: BaseSemanticRegistry | None = None,
    ) -> None:
        """Attach the collaborators needed by preload_cache_for_modules()."""
        if engine is not None:
            self._engine = engine
        if registry is not None:
            self._registry = registry

    @property
    def similarity_threshold(self) -> float:
        return self._similarity_threshold

    # --- Loading ---

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        async with self._load_lock:
            if self._loaded:
                return
            if self._store is not None:
                try:
                    records = await self._store.get_by_type(RECORD_PATH_CACHE)
                except Exception as e:
                    logger.warning("Path cache load failed, starting empty: %s", e)
                    records = []
                for record in records:
                    try:
                        entry = CacheEntry.model_validate(record.content)
                    except ValidationError as e:
                        logger.warning("Skipping malformed cache record %s: %s", record.id, e)
                        continue
                    self._entries[entry.id] = entry
                logger.debug("Loaded %d cached paths", len(self._entries))
            self._loaded = True

    async def _persist(self, entry: CacheEntry) -> None:
        if self._store is None:
            return
        try:
            await self._store.store(
                RECORD_PATH_CACHE, entry.model_dump(mode="json"), record_id=entry.id
            )
        except Exception as e:
            logger.warning("Failed to persist cache entry %s: %s", entry.id, e)

    # --- Lookup ---

    async def lookup(
        self,
        source: SemanticDescriptor,
        target: SemanticDescriptor,
        similarity_threshold: float | None = None,
    ) -> CacheLookupResult:
        """Exact address first, then the best near match above the threshold."""
        await self._ensure_loaded()
        key = compute_path_key(source, target)
        entry = self._entries.get(entry_id_for_key(key))
        if entry is not None:
            return CacheLookupResult(hit_level="exact", entry=entry, similarity_score=1.0)

        if not self._near_match_enabled or not self._entries:
            return CacheLookupResult()

        threshold = (
            self._similarity_threshold if similarity_threshold is None else similarity_threshold
        )
        candidates = sorted(
            self._entries.values(),
            key=lambda e: (e.usage_count, e.last_used),
            reverse=True,
        )[: self._max_candidates]

        best: CacheEntry | None = None
        best_score = 0.0
        for candidate in candidates:
            source_sim = await self._similarity(source, candidate.source_descriptor)
            target_sim = await self._similarity(target, candidate.target_descriptor)
            combined = (source_sim + target_sim) / 2
            if combined >= threshold and combined > best_score:
                best, best_score = candidate, combined
                if combined >= 1.0:
                    break

        if best is None:
            return CacheLookupResult()
        logger.debug("Near match %s (similarity %.2f)", best.id, best_score)
        return CacheLookupResult(hit_level="near", entry=best, similarity_score=best_score)

    async def retrieve(
        self,
        source: SemanticDescriptor,
        target: SemanticDescriptor,
        similarity_threshold: float | None = None,
    ) -> TransformationPath | None:
        """Cached path for the pair with bookkeeping fields attached, or None."""
        result = await self.lookup(source, target, similarity_threshold)
        if result.entry is None:
            return None
        return self._with_bookkeeping(result.entry)

    @staticmethod
    def _with_bookkeeping(entry: CacheEntry) -> TransformationPath:
        return entry.path.model_copy(
            update={
                "cache_id": entry.id,
                "usage_count": entry.usage_count,
                "last_used": entry.last_used,
                "created_at": entry.created_at,
            }
        )

    async def _similarity(self, a: SemanticDescriptor, b: SemanticDescriptor) -> float:
        local = local_descriptor_similarity(a, b)
        if local is not None:
            return local
        if self._oracle is None:
            return 0.0

        memo_key = tuple(sorted((a.fingerprint(), b.fingerprint())))
        cached = self._similarity_memo.get(memo_key)
        if cached is not None:
            return cached

        prompt = SIMILARITY_PROMPT.format(
            first=to_json(a.model_dump(mode="json", exclude={"vector"})),
            second=to_json(b.model_dump(mode="json", exclude={"vector"})),
        )
        try:
            response = await self._oracle.generate_content(
                prompt, temperature=0.1, max_tokens=10
            )
        except Exception as e:
            logger.error("Error calculating descriptor similarity: %s", e)
            return 0.0
        score = clamp_score(response)
        self._similarity_memo[memo_key] = score
        return score

    # --- Mutation ---

    async def store(
        self,
        source: SemanticDescriptor,
        target: SemanticDescriptor,
        path: TransformationPath,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Insert or overwrite the entry for the pair; return its stable id.

        Overwriting replaces the path and merges metadata; usage statistics
        and creation time of the pair are kept.
        """
        await self._ensure_loaded()
        key = compute_path_key(source, target)
        entry_id = entry_id_for_key(key)
        now = datetime.now(timezone.utc)
        clean_path = path.model_copy(
            update={
                "cache_id": None,
                "usage_count": None,
                "last_used": None,
                "created_at": None,
            }
        )

        existing = self._entries.get(entry_id)
        if existing is not None:
            logger.debug("Overwriting cached path %s", entry_id)
            entry = existing.model_copy(
                update={
                    "path": clean_path,
                    "source_descriptor": source,
                    "target_descriptor": target,
                    "metadata": {**existing.metadata, **(metadata or {})},
                }
            )
        else:
            entry = CacheEntry(
                id=entry_id,
                key=key,
                source_descriptor=source,
                target_descriptor=target,
                path=clean_path,
                usage_count=0,
                last_used=now,
                created_at=now,
                metadata=dict(metadata or {}),
            )

        self._entries[entry_id] = entry
        await self._persist(entry)
        logger.debug("Stored path %s for %s", entry_id, entry.type_label)
        return entry_id

    async def update_usage_statistics(
        self, entry_id: str, metadata: dict[str, Any] | None = None
    ) -> bool:
        """Count one use of an entry. False for unknown ids."""
        await self._ensure_loaded()
        entry = self._entries.get(entry_id)
        if entry is None:
            logger.debug("Cache entry %s not found", entry_id)
            return False

        entry = entry.model_copy(
            update={
                "usage_count": entry.usage_count + 1,
                "last_used": datetime.now(timezone.utc),
                "metadata": {**entry.metadata, **(metadata or {})},
            }
        )
        self._entries[entry_id] = entry

        if self._store is not None:
            try:
                updated = await self._store.update(
                    RECORD_PATH_CACHE,
                    entry_id,
                    {
                        "usage_count": entry.usage_count,
                        "last_used": entry.last_used.isoformat(),
                        "metadata": entry.metadata,
                    },
                )
                if not updated:
                    await self._persist(entry)
            except Exception as e:
                logger.warning("Failed to persist usage of %s: %s", entry_id, e)
        return True

    async def clear_cache(self, older_than: datetime | None = None) -> int:
        """Remove entries last used before `older_than` (all when None)."""
        await self._ensure_loaded()
        if older_than is not None and older_than.tzinfo is None:
            older_than = older_than.replace(tzinfo=timezone.utc)
        doomed = [
            e.id
            for e in self._entries.values()
            if older_than is None or e.last_used < older_than
        ]
        for entry_id in doomed:
            del self._entries[entry_id]
            if self._store is not None:
                try:
                    await self._store.delete(RECORD_PATH_CACHE, entry_id)
                except Exception as e:
                    logger.warning("Failed to delete cache entry %s: %s", entry_id, e)
        if older_than is None:
            self._similarity_memo.clear()
        logger.info("Cleared %d cached paths", len(doomed))
        return len(doomed)

    # --- Views ---

    async def get_entry(self, entry_id: str) -> CacheEntry | None:
        await self._ensure_loaded()
        return self._entries.get(entry_id)

    async def list_entries(self) -> list[CacheEntry]:
        await self._ensure_loaded()
        return list(self._entries.values())

    async def get_most_used_paths(self, limit: int = 10) -> list[CacheEntry]:
        entries = await self.list_entries()
        entries.sort(key=lambda e: (e.usage_count, e.last_used), reverse=True)
        return entries[:limit]

    async def get_recently_used_paths(self, limit: int = 10) -> list[CacheEntry]:
        entries = await self.list_entries()
        entries.sort(key=lambda e: e.last_used, reverse=True)
        return entries[:limit]

    # --- Analytics ---

    async def usage_snapshot(self) -> UsageSnapshot:
        return self._analytics.snapshot(await self.list_entries())

    async def analyze_usage_patterns(self) -> UsagePatternAnalysis:
        return await self._analytics.analyze_usage_patterns(await self.list_entries())

    async def predict_needed_transformations(
        self, context: dict[str, Any] | None = None
    ) -> list[CacheEntry]:
        return self._analytics.predict(await self.list_entries(), context)

    async def recommend_cache_optimizations(self) -> CacheOptimizationRecommendation:
        return await self._analytics.recommend(
            await self.list_entries(), self._similarity_threshold
        )

    # --- Preloading ---

    async def preload_cache_for_modules(self, module_ids: list[str]) -> int:
        """Derive and store paths between descriptors of the given modules.

        Every ordered pair of distinct modules is considered, for every
        descriptor each module registers. Pairs already cached (exact
        address) are skipped; derivation failures are logged and skipped.

        Returns:
            Number of entries created.
        """
        if self._engine is None or self._registry is None:
            logger.warning("Preload requested without engine/registry bound")
            return 0
        await self._ensure_loaded()

        descriptors: dict[str, list[SemanticDescriptor]] = {}
        for module_id in dict.fromkeys(module_ids):
            descriptors[module_id] = await self._registry.list_descriptors(module_id)

        created = 0
        for source_module, sources in descriptors.items():
            for target_module, targets in descriptors.items():
                if source_module == target_module:
                    continue
                for source in sources:
                    for target in targets:
                        if entry_id_for_key(compute_path_key(source, target)) in self._entries:
                            continue
                        try:
                            path = await self._engine.generate_transformation_path(
                                source,
                                target,
                                {"source_module": source_module, "target_module": target_module},
                            )
                        except MediatorError as e:
                            logger.warning(
                                "Preload skipped %s->%s (%s->%s): %s",
                                source_module,
                                target_module,
                                source.entity,
                                target.entity,
                                e,
                            )
                            continue
                        await self.store(
                            source,
                            target,
                            path,
                            {
                                "source_module": source_module,
                                "target_module": target_module,
                                "preloaded": True,
                            },
                        )
                        created += 1
        logger.info("Preloaded %d paths for modules %s", created, list(descriptors))
        return created
