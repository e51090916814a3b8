# src/llm/adapters/openai_adapter.py — v2
"""OpenAI adapter (Chat Completions API)."""

from __future__ import annotations

from typing import Any

from semantic_mediator.llm.base_client import BaseLLMClient, ProviderReply


class OpenAIAdapter(BaseLLMClient):
    provider = "openai"

    def __init__(self, model: str = "gpt-4o", api_key: str = "", **kwargs: Any) -> None:
        super().__init__(model)
        self._api_key = api_key or None
        self._sdk_client: Any = None

    def _sdk(self) -> Any:
        if self._sdk_client is None:
            import openai

            self._sdk_client = openai.AsyncOpenAI(api_key=self._api_key)
        return self._sdk_client

    async def _request(
        self, prompt: str, *, max_tokens: int, temperature: float
    ) -> ProviderReply:
        resp = await self._sdk().chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        choice = resp.choices[0]
        usage = resp.usage
        return ProviderReply(
            text=choice.message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=resp.model,
            stop_reason=choice.finish_reason,
        )
