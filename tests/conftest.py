# tests/conftest.py — v1
"""Shared test fixtures for all unit tests.

Provides a scripted inference oracle (AsyncMock routed by prompt kind),
sample User/Profile descriptors and an in-memory document store.
No external dependencies — no oracle call leaves the process.
"""

from __future__ import annotations

import json
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

from semantic_mediator.config.settings import Settings
from semantic_mediator.core.models import SemanticDescriptor
from semantic_mediator.logging.context import clear_context
from semantic_mediator.storage.memory_store import InMemoryDocumentStore

# Leading words of each prompt template, used to route scripted answers.
PROMPT_KINDS = {
    "generate": "Design a transformation path",
    "validate": "Check whether the transformation result",
    "optimize": "Optimize the following transformation path",
    "evaluate": "Evaluate the quality",
    "llm_strategy": "Convert the source data",
    "llm_value": "Transform the value",
    "compute": "Compute the result",
    "similarity": "Rate the semantic similarity",
    "usage": "Analyze the usage patterns",
    "cache_optimization": "Suggest improvements to the transformation cache",
    "feedback": "Analyze the feedback given by human reviewers",
}


def prompt_kind(prompt: str) -> str:
    for kind, prefix in PROMPT_KINDS.items():
        if prompt.startswith(prefix):
            return kind
    return "unknown"


USER_TO_PROFILE_PATH = {
    "mappings": [
        {"source": "name", "target": "fullName", "transform": {"type": "format", "params": {"format": "uppercase"}}},
        {"source": "email", "target": "contact.email"},
        {"source": "age", "target": "years", "transform": {"type": "convert", "params": {"targetType": "number"}}},
    ],
    "transformations": [],
    "intermediateSteps": [],
    "recommendedStrategy": "default",
}

VALID_VERDICT = {"valid": True, "issues": [], "confidence": 0.95}
INVALID_VERDICT = {
    "valid": False,
    "issues": [{"field": "years", "description": "missing", "severity": "error"}],
    "confidence": 0.4,
}


# === FIXTURES: Oracle ===


@pytest.fixture
def scripted_oracle() -> Callable[..., AsyncMock]:
    """Factory for an oracle mock answering per prompt kind.

    Values may be strings, JSON-serializable objects, exceptions (raised),
    or tuples of those (consumed in order, last one repeats).
    """

    def factory(**answers: Any) -> AsyncMock:
        queues = {k: list(v) if isinstance(v, tuple) else [v] for k, v in answers.items()}

        async def generate_content(prompt: str, **kwargs: Any) -> str:
            kind = prompt_kind(prompt)
            if kind not in queues:
                raise AssertionError(f"Unexpected {kind} prompt: {prompt[:60]!r}")
            queue = queues[kind]
            answer = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(answer, BaseException):
                raise answer
            if isinstance(answer, str):
                return answer
            return json.dumps(answer)

        oracle = AsyncMock()
        oracle.generate_content = AsyncMock(side_effect=generate_content)
        return oracle

    return factory


@pytest.fixture
def mediator_oracle(scripted_oracle) -> AsyncMock:
    """Oracle deriving the User→Profile path and approving every result."""
    return scripted_oracle(generate=USER_TO_PROFILE_PATH, validate=VALID_VERDICT)


# === FIXTURES: Descriptors ===


@pytest.fixture
def user_descriptor() -> SemanticDescriptor:
    return SemanticDescriptor.model_validate(
        {
            "entity": "User",
            "description": "Account holder",
            "attributes": {
                "name": {"type": "string"},
                "email": {"type": "string", "format": "email"},
                "age": {"type": "string"},
            },
        }
    )


@pytest.fixture
def profile_descriptor() -> SemanticDescriptor:
    return SemanticDescriptor.model_validate(
        {
            "entity": "Profile",
            "description": "Public profile",
            "attributes": {
                "fullName": {"type": "string"},
                "contact.email": {"type": "string"},
                "years": {"type": "number"},
            },
        }
    )


@pytest.fixture
def sample_user() -> dict[str, Any]:
    return {"name": "ada lovelace", "email": "ada@example.org", "age": "36"}


# === FIXTURES: Infrastructure ===


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, review_timeout_ms=0)


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()
