"""Interface every text-generation backend implements."""

from __future__ import annotations

from typing import Callable, Protocol

from ..types import LLMRequest, LLMResult


class LLMProvider(Protocol):
    name: str

    def generate(self, request: LLMRequest) -> LLMResult:
        ...


# Builds a backend from its API key.
ProviderFactory = Callable[[str], LLMProvider]
