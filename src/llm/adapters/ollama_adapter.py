# src/llm/adapters/ollama_adapter.py — v2
"""Ollama adapter for locally served models."""

from __future__ import annotations

from typing import Any

from semantic_mediator.llm.base_client import BaseLLMClient, ProviderReply


class OllamaAdapter(BaseLLMClient):
    provider = "ollama"

    def __init__(
        self, model: str = "llama3", base_url: str = "http://localhost:11434", **kwargs: Any,
    ) -> None:
        super().__init__(model)
        self._host = base_url

    async def _request(
        self, prompt: str, *, max_tokens: int, temperature: float
    ) -> ProviderReply:
        import ollama

        resp = await ollama.AsyncClient(host=self._host).chat(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            options={"num_predict": max_tokens, "temperature": temperature},
        )
        return ProviderReply(
            text=resp["message"]["content"] or "",
            input_tokens=resp.get("prompt_eval_count") or 0,
            output_tokens=resp.get("eval_count") or 0,
            stop_reason=resp.get("done_reason"),
        )
