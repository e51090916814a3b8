# tests/unit/api/test_facade.py — v1
"""Tests for api/facade.py — building a mediator and driving it."""

from __future__ import annotations

import json

import pytest

from semantic_mediator.api.facade import (
    create_mediator,
    load_registry,
    register_module,
    translate,
)
from semantic_mediator.core.errors import DescriptorNotFoundError
from semantic_mediator.mediator.context import MediatorContext
from semantic_mediator.monitoring.memory_sink import InMemoryEventSink
from semantic_mediator.storage.memory_store import InMemoryDocumentStore

ADA_PATH = {"mappings": [{"source": "name", "target": "fullName"}]}
VALID = {"valid": True, "confidence": 0.9}


class TestCreateMediator:
    def test_wiring(self, settings, scripted_oracle):
        store = InMemoryDocumentStore()
        mediator = create_mediator(settings, oracle=scripted_oracle(), store=store)
        assert isinstance(mediator, MediatorContext)
        assert mediator.store is store
        assert mediator.orchestrator.inflight_count == 0

    @pytest.mark.asyncio
    async def test_extra_sinks_receive_events(self, settings, scripted_oracle):
        extra = InMemoryEventSink()
        mediator = create_mediator(
            settings, oracle=scripted_oracle(generate=ADA_PATH, validate=VALID), sinks=[extra]
        )
        await register_module(mediator, "accounts", {"entity": "User"})
        await register_module(mediator, "profiles", {"entity": "Profile"})
        await mediator.translate("accounts", "profiles", {"name": "Ada"})
        assert [e.kind for e in extra.events] == ["derived"]
        assert [e.kind for e in mediator.metrics.events] == ["derived"]
        await mediator.close()


class TestRegistration:
    @pytest.mark.asyncio
    async def test_register_dict_and_model(self, settings, scripted_oracle, user_descriptor):
        mediator = create_mediator(settings, oracle=scripted_oracle())
        first = await register_module(mediator, "accounts", user_descriptor)
        second = await register_module(mediator, "profiles", {"entity": "Profile"})
        assert first != second
        assert (await mediator.registry.get_descriptor("profiles")).entity == "Profile"

    @pytest.mark.asyncio
    async def test_load_registry(self, settings, scripted_oracle, tmp_path):
        path = tmp_path / "registry.json"
        path.write_text(
            json.dumps(
                {
                    "accounts": {"entity": "User"},
                    "profiles": [{"entity": "Profile"}, {"entity": "PublicProfile"}],
                }
            )
        )
        mediator = create_mediator(settings, oracle=scripted_oracle())
        modules = await load_registry(mediator, path)
        assert modules == ["accounts", "profiles"]
        assert len(await mediator.registry.list_descriptors("profiles")) == 2


class TestTranslate:
    @pytest.mark.asyncio
    async def test_outcome(self, settings, scripted_oracle):
        mediator = create_mediator(settings, oracle=scripted_oracle(generate=ADA_PATH, validate=VALID))
        await register_module(mediator, "accounts", {"entity": "User"})
        await register_module(mediator, "profiles", {"entity": "Profile"})

        outcome = await translate(mediator, "accounts", "profiles", {"name": "Ada"})
        assert outcome.data == {"fullName": "Ada"}
        assert outcome.kind == "derived"
        assert outcome.request_id

        again = await translate(mediator, "accounts", "profiles", {"name": "Ada"})
        assert again.kind == "cache-hit"
        assert again.cache_id == outcome.cache_id

    @pytest.mark.asyncio
    async def test_unregistered(self, settings, scripted_oracle):
        mediator = create_mediator(settings, oracle=scripted_oracle())
        with pytest.raises(DescriptorNotFoundError):
            await translate(mediator, "accounts", "profiles", {})
