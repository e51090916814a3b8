# src/llm/oracle.py — v1
"""Inference oracle: the single seam between the mediation core and an LLM.

The core only ever sends a prompt string and reads back a string. Every
failure of the underlying client is re-raised as OracleError with the
provider message embedded, and every call is recorded in the CallLogger.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from semantic_mediator.core.errors import OracleError
from semantic_mediator.logging.context import get_context

if TYPE_CHECKING:
    from semantic_mediator.config.settings import Settings
    from semantic_mediator.llm.base_client import BaseLLMClient
    from semantic_mediator.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)


@runtime_checkable
class InferenceOracle(Protocol):
    """Anything that turns a prompt into text."""

    async def generate_content(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str: ...


class LLMOracle:
    """InferenceOracle backed by a BaseLLMClient."""

    def __init__(
        self,
        client: BaseLLMClient,
        component: str = "mediator",
        call_logger: CallLogger | None = None,
        default_temperature: float = 0.2,
        default_max_tokens: int = 2000,
    ) -> None:
        self._client = client
        self._component = component
        self._call_logger = call_logger
        self._default_temperature = default_temperature
        self._default_max_tokens = default_max_tokens

    @property
    def component(self) -> str:
        return self._component

    async def generate_content(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        step = get_context().step or "unspecified"
        start = time.monotonic()
        try:
            completion = await self._client.complete(
                prompt,
                max_tokens=max_tokens or self._default_max_tokens,
                temperature=(
                    self._default_temperature if temperature is None else temperature
                ),
            )
        except Exception as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            logger.warning(
                "Oracle call failed (%s/%s): %s", self._component, step, e
            )
            if self._call_logger is not None:
                self._call_logger.record_failure(
                    component=self._component,
                    step=step,
                    provider=self._client.provider_name,
                    model=self._client.model,
                    error=str(e),
                    latency_ms=latency_ms,
                )
            raise OracleError(f"Inference oracle call failed: {e}") from e

        if self._call_logger is not None:
            self._call_logger.record(self._component, step, completion)
        logger.debug(
            "Oracle call %s/%s: %d tokens in %dms (%s)",
            self._component,
            step,
            completion.total_tokens,
            completion.latency_ms,
            completion.stop_reason or "-",
        )
        return completion.text


def strip_code_fences(content: str) -> str:
    """Remove markdown ``` fences an LLM may wrap around JSON."""
    text = content.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [ln for ln in lines if not ln.strip().startswith("```")]
        text = "\n".join(lines)
    return text.strip()


def parse_json_response(content: str) -> Any:
    """Parse an oracle answer as JSON.

    Raises:
        ValueError: If the answer is not valid JSON (json.JSONDecodeError).
    """
    return json.loads(strip_code_fences(content))


def parse_lenient_response(content: str) -> Any:
    """Parse JSON when possible, otherwise return the trimmed raw text."""
    try:
        return parse_json_response(content)
    except ValueError:
        return content.strip()


def create_oracle(
    component: str,
    settings: Settings,
    call_logger: CallLogger | None = None,
) -> LLMOracle:
    """Build the oracle for a component from the routing cascade."""
    from semantic_mediator.llm.client_factory import create_llm_client
    from semantic_mediator.llm.config import resolve_llm

    assignment = resolve_llm(component, settings)
    client = create_llm_client(assignment.provider, assignment.model, settings)
    logger.info(
        "Oracle for %s: %s (%s)", component, assignment.key, assignment.source
    )
    return LLMOracle(
        client,
        component=component,
        call_logger=call_logger,
        default_temperature=settings.llm_default_temperature,
        default_max_tokens=settings.llm_max_tokens,
    )
