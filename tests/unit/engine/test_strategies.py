# tests/unit/engine/test_strategies.py — v1
"""Tests for engine/strategies.py — built-in strategies and registry fallback."""

from __future__ import annotations

import asyncio

import pytest

from semantic_mediator.core.errors import (
    InvalidStrategyError,
    NoStrategyAvailableError,
    OperationError,
)
from semantic_mediator.core.models import TransformationPath
from semantic_mediator.engine.operations import OperationExecutor
from semantic_mediator.engine.strategies import (
    DefaultStrategy,
    DirectMappingStrategy,
    FunctionStrategy,
    LlmStrategy,
    StrategyRegistry,
)

PROFILE_PATH = {
    "mappings": [
        {"source": "name", "target": "fullName",
         "transform": {"type": "format", "params": {"format": "uppercase"}}},
        {"source": "email", "target": "contact.email"},
        {"source": "age", "target": "years",
         "transform": {"type": "convert", "params": {"targetType": "number"}}},
    ],
}


def _path(**raw) -> TransformationPath:
    return TransformationPath.model_validate(raw)


class TestDirectMappingStrategy:
    @pytest.mark.asyncio
    async def test_copies_and_ignores_transforms(self):
        path = _path(
            mappings=[
                {"source": "name", "target": "fullName",
                 "transform": {"type": "format", "params": {"format": "uppercase"}}},
                {"source": "missing", "target": "never"},
            ]
        )
        result = await DirectMappingStrategy().apply({"name": "ada"}, path)
        assert result == {"fullName": "ada"}

    @pytest.mark.asyncio
    async def test_does_not_alias_input(self):
        path = _path(mappings=[{"source": "tags", "target": "labels"}])
        data = {"tags": ["a"]}
        result = await DirectMappingStrategy().apply(data, path)
        result["labels"].append("b")
        assert data == {"tags": ["a"]}


class TestDefaultStrategy:
    @pytest.mark.asyncio
    async def test_mappings_with_transforms(self, scripted_oracle, sample_user):
        strategy = DefaultStrategy(OperationExecutor(scripted_oracle()))
        result = await strategy.apply(sample_user, _path(**PROFILE_PATH))
        assert result == {
            "fullName": "ADA LOVELACE",
            "contact": {"email": "ada@example.org"},
            "years": 36,
        }

    @pytest.mark.asyncio
    async def test_idempotent_and_input_untouched(self, scripted_oracle, sample_user):
        strategy = DefaultStrategy(OperationExecutor(scripted_oracle()))
        before = dict(sample_user)
        first = await strategy.apply(sample_user, _path(**PROFILE_PATH))
        second = await strategy.apply(sample_user, _path(**PROFILE_PATH))
        assert first == second
        assert sample_user == before

    @pytest.mark.asyncio
    async def test_named_target_under_copied_list(self, scripted_oracle):
        strategy = DefaultStrategy(OperationExecutor(scripted_oracle()))
        path = _path(
            mappings=[
                {"source": "tags", "target": "tags"},
                {"source": "primary", "target": "tags.primary"},
            ]
        )
        result = await strategy.apply({"tags": ["a", "b"], "primary": "a"}, path)
        assert result == {"tags": {"primary": "a"}}

    @pytest.mark.asyncio
    async def test_merge_filter_compute(self, scripted_oracle):
        oracle = scripted_oracle(compute="72")
        strategy = DefaultStrategy(OperationExecutor(oracle))
        path = _path(
            mappings=[{"source": "email", "target": "contact.email"},
                      {"source": "internal", "target": "tmp.internal"}],
            transformations=[
                {"type": "merge", "params": {"sources": [{"path": "contact.email", "target": "login"}]}},
                {"type": "filter", "params": {"paths": ["tmp.internal"]}},
                {"type": "compute", "params": {"target": "stats.double", "expression": "age * 2",
                                               "inputs": {"age": "age"}}},
                {"type": "enrich", "params": {}},
            ],
        )
        result = await strategy.apply({"email": "a@b.c", "internal": 1, "age": 36}, path)
        assert result == {
            "contact": {"email": "a@b.c"},
            "login": "a@b.c",
            "stats": {"double": 72},
        }

    @pytest.mark.asyncio
    async def test_compute_runs_concurrently(self, scripted_oracle):
        running = 0
        peak = 0

        async def slow_compute(prompt, **kwargs):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return "1"

        oracle = scripted_oracle()
        oracle.generate_content.side_effect = slow_compute
        strategy = DefaultStrategy(OperationExecutor(oracle))
        path = _path(
            transformations=[
                {"type": "compute", "params": {"target": f"c{i}", "expression": "1"}}
                for i in range(3)
            ]
        )
        result = await strategy.apply({}, path)
        assert result == {"c0": 1, "c1": 1, "c2": 1}
        assert peak == 3

    @pytest.mark.asyncio
    async def test_compute_raise_propagates(self, scripted_oracle):
        from semantic_mediator.core.errors import OracleError

        strategy = DefaultStrategy(OperationExecutor(scripted_oracle(compute=OracleError("down"))))
        path = _path(
            transformations=[
                {"type": "compute", "params": {"target": "t", "expression": "e"}, "onError": "raise"}
            ]
        )
        with pytest.raises(OperationError):
            await strategy.apply({}, path)


class TestLlmStrategy:
    @pytest.mark.asyncio
    async def test_parsed_json(self, scripted_oracle):
        strategy = LlmStrategy(scripted_oracle(llm_strategy='{"fullName": "Ada"}'))
        assert await strategy.apply({"name": "ada"}, _path()) == {"fullName": "Ada"}

    @pytest.mark.asyncio
    async def test_raw_text(self, scripted_oracle):
        strategy = LlmStrategy(scripted_oracle(llm_strategy="not json at all"))
        assert await strategy.apply({}, _path()) == "not json at all"


class TestFunctionStrategy:
    @pytest.mark.asyncio
    async def test_sync_and_async(self):
        sync = FunctionStrategy("sync", lambda data, path, ctx: {"n": data["n"] + 1})

        async def async_fn(data, path, ctx):
            return {"ctx": ctx}

        assert await sync.apply({"n": 1}, _path()) == {"n": 2}
        assert await FunctionStrategy("a", async_fn).apply({}, _path(), {"k": 1}) == {"ctx": {"k": 1}}

    def test_not_callable(self):
        with pytest.raises(InvalidStrategyError):
            FunctionStrategy("bad", "not a function")


class TestStrategyRegistry:
    def test_fallback_to_default(self, scripted_oracle):
        registry = StrategyRegistry()
        default = DefaultStrategy(OperationExecutor(scripted_oracle()))
        registry.register("default", default)
        assert registry.resolve(None) is default
        assert registry.resolve("does_not_exist") is default

    def test_alias(self):
        registry = StrategyRegistry()
        direct = DirectMappingStrategy()
        registry.register("direct_mapping", direct)
        assert registry.resolve("directMapping") is direct

    def test_no_default(self):
        with pytest.raises(NoStrategyAvailableError):
            StrategyRegistry().resolve("anything")

    def test_empty_name(self):
        with pytest.raises(InvalidStrategyError):
            StrategyRegistry().register("  ", DirectMappingStrategy())

    def test_overwrite_and_unregister(self):
        registry = StrategyRegistry()
        registry.register("custom", lambda d, p, c: 1)
        registry.register("custom", lambda d, p, c: 2)
        assert registry.names() == ["custom"]
        assert registry.unregister("custom") is True
        assert registry.unregister("custom") is False
