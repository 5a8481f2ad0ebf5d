"""OpenAI Chat Completions provider."""

from __future__ import annotations

import time

from openai import OpenAI

from ..types import LLMRequest, LLMResult, ProviderError


class OpenAIProvider:
    name = "openai"

    def __init__(self, api_key: str, client: OpenAI | None = None) -> None:
        if not api_key:
            raise ProviderError("OPENAI_API_KEY missing")
        self._client = client or OpenAI(api_key=api_key)

    def generate(self, request: LLMRequest) -> LLMResult:
        start = time.perf_counter()
        try:
            response = self._client.chat.completions.create(
                model=request.model,
                messages=[
                    {"role": "system", "content": request.system},
                    {"role": "user", "content": request.prompt},
                ],
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                timeout=request.timeout_seconds,
            )
        except Exception as exc:
            raise ProviderError(str(exc)) from exc

        latency_ms = int((time.perf_counter() - start) * 1000)
        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        text = getattr(message, "content", None) or ""
        if not text.strip():
            raise ProviderError("No content generated from OpenAI")

        # Chat Completions reports one combined count.
        usage = getattr(response, "usage", None)
        total = getattr(usage, "total_tokens", None)

        return LLMResult(
            text=text.strip(),
            provider=self.name,
            model=request.model,
            tokens_used=int(total) if total is not None else None,
            latency_ms=latency_ms,
            raw={"id": getattr(response, "id", None)},
        )
