"""Anthropic Messages API provider."""

from __future__ import annotations

import time

import requests

from ..types import LLMRequest, LLMResult, ProviderError

MESSAGES_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"


class AnthropicProvider:
    name = "anthropic"

    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise ProviderError("ANTHROPIC_API_KEY missing")
        self._api_key = api_key

    def generate(self, request: LLMRequest) -> LLMResult:
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": API_VERSION,
            "content-type": "application/json",
        }
        payload = {
            "model": request.model,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "system": request.system,
            "messages": [{"role": "user", "content": request.prompt}],
        }

        start = time.perf_counter()
        try:
            res = requests.post(MESSAGES_URL, headers=headers, json=payload, timeout=request.timeout_seconds)
            res.raise_for_status()
            data = res.json()
        except Exception as exc:
            raise ProviderError(str(exc)) from exc

        latency_ms = int((time.perf_counter() - start) * 1000)
        content = data.get("content") or []
        first = content[0] if isinstance(content, list) and content else None
        if not isinstance(first, dict) or first.get("type") != "text":
            raise ProviderError("Unexpected response type from Anthropic")

        # Input and output are reported separately.
        usage = data.get("usage") or {}
        tokens_used = None
        if "input_tokens" in usage or "output_tokens" in usage:
            tokens_used = int(usage.get("input_tokens", 0) or 0) + int(usage.get("output_tokens", 0) or 0)

        return LLMResult(
            text=str(first.get("text", "")).strip(),
            provider=self.name,
            model=request.model,
            tokens_used=tokens_used,
            latency_ms=latency_ms,
            raw={"id": data.get("id")},
        )
