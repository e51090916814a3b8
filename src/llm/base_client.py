# src/llm/base_client.py — v2
"""Abstract LLM client: one prompt in, one Completion out.

Adapters only implement _request() against their SDK; timing and
normalization happen here. The mediation core never talks to a client
directly: it goes through llm/oracle.py.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import ClassVar, NamedTuple

from semantic_mediator.llm.models import Completion


class ProviderReply(NamedTuple):
    """What an adapter extracts from its SDK response."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str | None = None
    stop_reason: str | None = None


class BaseLLMClient(ABC):
    """Unified interface for all LLM providers."""

    provider: ClassVar[str] = ""

    def __init__(self, model: str) -> None:
        self.model = model

    @property
    def provider_name(self) -> str:
        return self.provider

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int = 2000,
        temperature: float = 0.2,
    ) -> Completion:
        """Send `prompt` as a single user turn."""
        start = time.monotonic()
        reply = await self._request(prompt, max_tokens=max_tokens, temperature=temperature)
        return Completion(
            text=reply.text,
            provider=self.provider,
            model=reply.model or self.model,
            input_tokens=reply.input_tokens,
            output_tokens=reply.output_tokens,
            latency_ms=int((time.monotonic() - start) * 1000),
            stop_reason=reply.stop_reason,
        )

    @abstractmethod
    async def _request(
        self, prompt: str, *, max_tokens: int, temperature: float
    ) -> ProviderReply:
        """Call the provider SDK."""
