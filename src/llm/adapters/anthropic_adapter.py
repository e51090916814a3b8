# src/llm/adapters/anthropic_adapter.py — v3
"""Anthropic Claude adapter (Messages API).

The anthropic SDK is imported and its client built on the first request.
"""

from __future__ import annotations

import logging
from typing import Any

from semantic_mediator.llm.base_client import BaseLLMClient, ProviderReply

logger = logging.getLogger(__name__)


class AnthropicAdapter(BaseLLMClient):
    provider = "anthropic"

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(model)
        self._api_key = api_key or None
        self._sdk_client: Any = None

    def _sdk(self) -> Any:
        if self._sdk_client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError("anthropic package required: pip install anthropic") from e
            self._sdk_client = anthropic.AsyncAnthropic(api_key=self._api_key)
            logger.debug("Anthropic client ready for %s", self.model)
        return self._sdk_client

    async def _request(
        self, prompt: str, *, max_tokens: int, temperature: float
    ) -> ProviderReply:
        response = await self._sdk().messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        return ProviderReply(
            text=self._extract_text(response),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            stop_reason=response.stop_reason,
        )

    @staticmethod
    def _extract_text(response: Any) -> str:
        """Concatenate the text blocks of a Messages API response."""
        return "".join(
            block.text
            for block in response.content
            if getattr(block, "type", None) == "text"
        )
