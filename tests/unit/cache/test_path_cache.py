# tests/unit/cache/test_path_cache.py — v1
"""Tests for cache/path_cache.py — exact/near lookup, usage accounting, persistence, preload."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from semantic_mediator.cache.fingerprint import compute_path_key, entry_id_for_key
from semantic_mediator.cache.path_cache import TransformationPathCache
from semantic_mediator.config.settings import Settings
from semantic_mediator.core.errors import OracleError
from semantic_mediator.core.models import SemanticDescriptor, TransformationPath
from semantic_mediator.registry.semantic_registry import InMemorySemanticRegistry
from semantic_mediator.storage.models import RECORD_PATH_CACHE


@pytest.fixture
def path() -> TransformationPath:
    return TransformationPath.model_validate(
        {"mappings": [{"source": "name", "target": "fullName"}], "recommendedStrategy": "direct_mapping"}
    )


class TestFingerprint:
    def test_pair_key_is_directional(self, user_descriptor, profile_descriptor):
        forward = compute_path_key(user_descriptor, profile_descriptor)
        backward = compute_path_key(profile_descriptor, user_descriptor)
        assert forward != backward
        assert len(forward) == 64

    def test_entry_id(self):
        assert entry_id_for_key("a" * 64) == "tp_" + "a" * 32


class TestStoreAndRetrieve:
    @pytest.mark.asyncio
    async def test_round_trip(self, user_descriptor, profile_descriptor, path):
        cache = TransformationPathCache()
        entry_id = await cache.store(user_descriptor, profile_descriptor, path)
        cached = await cache.retrieve(user_descriptor, profile_descriptor)
        assert cached is not None
        assert cached.cache_id == entry_id
        assert cached.usage_count == 0
        assert cached.mappings == path.mappings

    @pytest.mark.asyncio
    async def test_miss(self, user_descriptor, profile_descriptor):
        assert await TransformationPathCache().retrieve(user_descriptor, profile_descriptor) is None

    @pytest.mark.asyncio
    async def test_retrieve_does_not_count_use(self, user_descriptor, profile_descriptor, path):
        cache = TransformationPathCache()
        entry_id = await cache.store(user_descriptor, profile_descriptor, path)
        await cache.retrieve(user_descriptor, profile_descriptor)
        assert (await cache.get_entry(entry_id)).usage_count == 0

    @pytest.mark.asyncio
    async def test_overwrite_keeps_usage(self, user_descriptor, profile_descriptor, path):
        cache = TransformationPathCache()
        entry_id = await cache.store(user_descriptor, profile_descriptor, path, {"a": 1})
        await cache.update_usage_statistics(entry_id)
        new_path = path.model_copy(update={"recommended_strategy": "default"})
        again = await cache.store(user_descriptor, profile_descriptor, new_path, {"b": 2})
        entry = await cache.get_entry(again)
        assert again == entry_id
        assert entry.usage_count == 1
        assert entry.metadata == {"a": 1, "b": 2}
        assert entry.path.recommended_strategy == "default"

    @pytest.mark.asyncio
    async def test_stored_path_has_no_bookkeeping(self, user_descriptor, profile_descriptor, path):
        cache = TransformationPathCache()
        tagged = path.model_copy(update={"cache_id": "stale", "usage_count": 9})
        entry_id = await cache.store(user_descriptor, profile_descriptor, tagged)
        entry = await cache.get_entry(entry_id)
        assert entry.path.cache_id is None
        assert entry.path.usage_count is None


class TestUsageStatistics:
    @pytest.mark.asyncio
    async def test_counts_and_persists(self, user_descriptor, profile_descriptor, path, memory_store):
        cache = TransformationPathCache(store=memory_store)
        entry_id = await cache.store(user_descriptor, profile_descriptor, path)
        before = (await cache.get_entry(entry_id)).last_used
        assert await cache.update_usage_statistics(entry_id, {"source_module": "a"}) is True
        entry = await cache.get_entry(entry_id)
        assert entry.usage_count == 1
        assert entry.last_used >= before
        record = await memory_store.get_by_id(RECORD_PATH_CACHE, entry_id)
        assert record.content["usage_count"] == 1
        assert record.content["metadata"] == {"source_module": "a"}

    @pytest.mark.asyncio
    async def test_unknown_id(self):
        assert await TransformationPathCache().update_usage_statistics("tp_nope") is False


class TestPersistence:
    @pytest.mark.asyncio
    async def test_reload_from_store(self, user_descriptor, profile_descriptor, path, memory_store):
        first = TransformationPathCache(store=memory_store)
        entry_id = await first.store(user_descriptor, profile_descriptor, path)
        await first.update_usage_statistics(entry_id)

        second = TransformationPathCache(store=memory_store)
        cached = await second.retrieve(user_descriptor, profile_descriptor)
        assert cached.cache_id == entry_id
        assert cached.usage_count == 1

    @pytest.mark.asyncio
    async def test_malformed_record_skipped(self, memory_store):
        await memory_store.store(RECORD_PATH_CACHE, {"id": "tp_bad"}, record_id="tp_bad")
        cache = TransformationPathCache(store=memory_store)
        assert await cache.list_entries() == []

    @pytest.mark.asyncio
    async def test_store_failure_does_not_fail_cache(self, user_descriptor, profile_descriptor, path, memory_store, monkeypatch):
        async def broken(*args, **kwargs):
            raise OSError("disk full")

        cache = TransformationPathCache(store=memory_store)
        monkeypatch.setattr(memory_store, "store", broken)
        entry_id = await cache.store(user_descriptor, profile_descriptor, path)
        assert (await cache.retrieve(user_descriptor, profile_descriptor)).cache_id == entry_id


class TestNearMatch:
    @pytest.mark.asyncio
    async def test_vector_near_match(self, path):
        source = SemanticDescriptor(entity="User", vector=[1.0, 0.0])
        target = SemanticDescriptor(entity="Profile", vector=[0.0, 1.0])
        cache = TransformationPathCache(similarity_threshold=0.9)
        entry_id = await cache.store(source, target, path)

        person = SemanticDescriptor(entity="Person", vector=[0.99, 0.05])
        result = await cache.lookup(person, target)
        assert result.hit_level == "near"
        assert result.entry.id == entry_id
        assert result.similarity_score >= 0.9

    @pytest.mark.asyncio
    async def test_oracle_similarity(self, scripted_oracle, user_descriptor, profile_descriptor, path):
        oracle = scripted_oracle(similarity="0.8")
        cache = TransformationPathCache(oracle=oracle, similarity_threshold=0.85)
        await cache.store(user_descriptor, profile_descriptor, path)
        person = SemanticDescriptor(entity="Person")
        # source 0.8 (oracle) + target 1.0 (identical) → 0.9
        result = await cache.lookup(person, profile_descriptor)
        assert result.hit_level == "near"
        assert result.similarity_score == pytest.approx(0.9)
        # memoized: a second lookup does not ask again
        await cache.lookup(person, profile_descriptor)
        assert oracle.generate_content.call_count == 1

    @pytest.mark.asyncio
    async def test_below_threshold(self, scripted_oracle, user_descriptor, profile_descriptor, path):
        cache = TransformationPathCache(oracle=scripted_oracle(similarity="0.1"))
        await cache.store(user_descriptor, profile_descriptor, path)
        assert not (await cache.lookup(SemanticDescriptor(entity="Invoice"), profile_descriptor)).hit

    @pytest.mark.asyncio
    async def test_oracle_failure_is_miss(self, scripted_oracle, user_descriptor, profile_descriptor, path):
        cache = TransformationPathCache(oracle=scripted_oracle(similarity=OracleError("down")))
        await cache.store(user_descriptor, profile_descriptor, path)
        assert await cache.retrieve(SemanticDescriptor(entity="Person"), profile_descriptor) is None

    @pytest.mark.asyncio
    async def test_unexpected_oracle_error_is_miss(self, scripted_oracle, user_descriptor, profile_descriptor, path):
        cache = TransformationPathCache(oracle=scripted_oracle(similarity=RuntimeError("socket closed")))
        await cache.store(user_descriptor, profile_descriptor, path)
        result = await cache.lookup(SemanticDescriptor(entity="Person"), profile_descriptor)
        assert not result.hit

    @pytest.mark.asyncio
    async def test_disabled(self, scripted_oracle, user_descriptor, profile_descriptor, path):
        oracle = scripted_oracle(similarity="1")
        cache = TransformationPathCache(oracle=oracle, near_match_enabled=False)
        await cache.store(user_descriptor, profile_descriptor, path)
        assert await cache.retrieve(SemanticDescriptor(entity="Person"), profile_descriptor) is None
        oracle.generate_content.assert_not_called()

    @pytest.mark.asyncio
    async def test_settings_threshold(self, settings):
        cache = TransformationPathCache.from_settings(
            settings.model_copy(update={"cache_similarity_threshold": 0.8})
        )
        assert cache.similarity_threshold == 0.8


class TestClearAndViews:
    @pytest.mark.asyncio
    async def test_clear_all(self, user_descriptor, profile_descriptor, path, memory_store):
        cache = TransformationPathCache(store=memory_store)
        await cache.store(user_descriptor, profile_descriptor, path)
        await cache.store(profile_descriptor, user_descriptor, path)
        assert await cache.clear_cache() == 2
        assert await cache.list_entries() == []
        assert memory_store.count(RECORD_PATH_CACHE) == 0

    @pytest.mark.asyncio
    async def test_clear_older_than(self, user_descriptor, profile_descriptor, path):
        cache = TransformationPathCache()
        old_id = await cache.store(user_descriptor, profile_descriptor, path)
        cache._entries[old_id] = cache._entries[old_id].model_copy(
            update={"last_used": datetime.now(timezone.utc) - timedelta(days=60)}
        )
        new_id = await cache.store(profile_descriptor, user_descriptor, path)
        removed = await cache.clear_cache(older_than=datetime.now(timezone.utc) - timedelta(days=30))
        assert removed == 1
        assert [e.id for e in await cache.list_entries()] == [new_id]

    @pytest.mark.asyncio
    async def test_clear_older_than_naive_datetime(self, user_descriptor, profile_descriptor, path):
        cache = TransformationPathCache()
        await cache.store(user_descriptor, profile_descriptor, path)
        await cache.store(profile_descriptor, user_descriptor, path)
        assert await cache.clear_cache(older_than=datetime.now() + timedelta(days=1)) == 2
        assert await cache.list_entries() == []

    @pytest.mark.asyncio
    async def test_most_and_recently_used(self, user_descriptor, profile_descriptor, path):
        cache = TransformationPathCache()
        a = await cache.store(user_descriptor, profile_descriptor, path)
        b = await cache.store(profile_descriptor, user_descriptor, path)
        await cache.update_usage_statistics(a)
        await cache.update_usage_statistics(a)
        await cache.update_usage_statistics(b)
        assert [e.id for e in await cache.get_most_used_paths()] == [a, b]
        assert (await cache.get_recently_used_paths(limit=1))[0].id == b


class TestPreload:
    @pytest.mark.asyncio
    async def test_preload_pairs(self, scripted_oracle, user_descriptor, profile_descriptor):
        from semantic_mediator.engine.transformation_engine import TransformationEngine

        registry = InMemorySemanticRegistry()
        await registry.register_descriptor("accounts", user_descriptor)
        await registry.register_descriptor("profiles", profile_descriptor)
        oracle = scripted_oracle(generate={"mappings": [], "recommendedStrategy": "default"})
        cache = TransformationPathCache(oracle=oracle)
        cache.bind(engine=TransformationEngine(oracle), registry=registry)

        assert await cache.preload_cache_for_modules(["accounts", "profiles"]) == 2
        entries = await cache.list_entries()
        assert all(e.metadata["preloaded"] for e in entries)
        assert {e.type_label for e in entries} == {"User->Profile", "Profile->User"}
        # already cached pairs are skipped
        assert await cache.preload_cache_for_modules(["accounts", "profiles"]) == 0

    @pytest.mark.asyncio
    async def test_preload_skips_failures(self, scripted_oracle, user_descriptor, profile_descriptor):
        from semantic_mediator.engine.transformation_engine import TransformationEngine

        registry = InMemorySemanticRegistry()
        await registry.register_descriptor("accounts", user_descriptor)
        await registry.register_descriptor("profiles", profile_descriptor)
        oracle = scripted_oracle(generate=("garbage", {"mappings": []}))
        cache = TransformationPathCache()
        cache.bind(engine=TransformationEngine(oracle), registry=registry)
        assert await cache.preload_cache_for_modules(["accounts", "profiles"]) == 1

    @pytest.mark.asyncio
    async def test_preload_unbound(self):
        assert await TransformationPathCache().preload_cache_for_modules(["a", "b"]) == 0
