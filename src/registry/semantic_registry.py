# src/registry/semantic_registry.py — v1
"""Semantic registry: resolves module identifiers to data-shape descriptors.

A module may register several descriptors (one per data source it exposes).
The first one registered is the module's primary descriptor, returned by
get_descriptor() and used by the orchestrator for translation.
"""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

from semantic_mediator.core.errors import DescriptorNotFoundError
from semantic_mediator.core.models import SemanticDescriptor

logger = logging.getLogger(__name__)


class RegisteredDescriptor(BaseModel):
    """A descriptor registered for a module."""

    source_id: str
    module_id: str
    descriptor: SemanticDescriptor
    registered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BaseSemanticRegistry(ABC):
    """Interface consumed by the orchestrator and the path cache."""

    @abstractmethod
    async def get_descriptor(self, module_id: str) -> SemanticDescriptor:
        """Primary descriptor of a module.

        Raises:
            DescriptorNotFoundError: If nothing is registered for the module.
        """

    @abstractmethod
    async def register_descriptor(
        self, module_id: str, descriptor: SemanticDescriptor
    ) -> str:
        """Register a descriptor for a module and return its source id."""

    @abstractmethod
    async def list_descriptors(self, module_id: str) -> list[SemanticDescriptor]:
        """All descriptors of a module, in registration order."""

    @abstractmethod
    async def list_modules(self) -> list[str]:
        """Module identifiers with at least one descriptor."""


class InMemorySemanticRegistry(BaseSemanticRegistry):
    """Dict-backed registry."""

    def __init__(self) -> None:
        self._entries: dict[str, list[RegisteredDescriptor]] = {}

    async def get_descriptor(self, module_id: str) -> SemanticDescriptor:
        entries = self._entries.get(module_id)
        if not entries:
            raise DescriptorNotFoundError(
                f"No semantic descriptor registered for module {module_id!r}"
            )
        return entries[0].descriptor

    async def register_descriptor(
        self, module_id: str, descriptor: SemanticDescriptor
    ) -> str:
        entries = self._entries.setdefault(module_id, [])
        for entry in entries:
            if entry.descriptor.fingerprint() == descriptor.fingerprint():
                logger.warning(
                    "Descriptor %s already registered for %s, replacing",
                    descriptor.entity,
                    module_id,
                )
                entry.descriptor = descriptor
                return entry.source_id

        source_id = f"source_{uuid.uuid4().hex[:12]}"
        entries.append(
            RegisteredDescriptor(
                source_id=source_id, module_id=module_id, descriptor=descriptor
            )
        )
        logger.debug("Registered %s for module %s (%s)", descriptor.entity, module_id, source_id)
        return source_id

    async def remove_descriptor(self, source_id: str) -> bool:
        for module_id, entries in self._entries.items():
            for i, entry in enumerate(entries):
                if entry.source_id == source_id:
                    del entries[i]
                    if not entries:
                        del self._entries[module_id]
                    return True
        return False

    async def list_descriptors(self, module_id: str) -> list[SemanticDescriptor]:
        return [e.descriptor for e in self._entries.get(module_id, [])]

    async def list_modules(self) -> list[str]:
        return list(self._entries)


async def load_registry_file(
    path: Path | str, registry: BaseSemanticRegistry | None = None
) -> BaseSemanticRegistry:
    """Populate a registry from a JSON file ``{module_id: descriptor | [descriptor, ...]}``."""
    registry = registry or InMemorySemanticRegistry()
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"Registry file {path} must contain a JSON object")
    for module_id, value in raw.items():
        descriptors = value if isinstance(value, list) else [value]
        for item in descriptors:
            await registry.register_descriptor(
                module_id, SemanticDescriptor.model_validate(item)
            )
    return registry
