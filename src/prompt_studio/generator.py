"""Generates structured prompt content through one of the configured backends."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Mapping

from .config import COMPLEXITIES
from .content import STRUCTURE_TYPES, PromptContent, parse_content
from .errors import GenerationError
from .llm.clients import available_providers
from .llm.providers.base import LLMProvider
from .llm.types import LLMRequest
from .prompts import build_system_prompt, build_user_prompt
from .providers import default_model

TEMPERATURE = 0.7
MAX_OUTPUT_TOKENS = 2048


@dataclass(frozen=True)
class GenerationConfig:
    user_input: str
    structure_type: str
    complexity: str
    category: str
    type: str
    language: str
    file_context: str | None = None

    def __post_init__(self) -> None:
        if self.structure_type not in STRUCTURE_TYPES:
            raise ValueError(f"Unknown structure type: {self.structure_type}")
        if self.complexity not in COMPLEXITIES:
            raise ValueError(f"Unknown complexity: {self.complexity}")

    def to_dict(self) -> dict:
        return {
            "user_input": self.user_input,
            "structure_type": self.structure_type,
            "complexity": self.complexity,
            "category": self.category,
            "type": self.type,
            "language": self.language,
            "file_context": self.file_context,
        }


@dataclass
class GenerationResult:
    content: PromptContent
    provider: str
    model: str
    tokens_used: int | None
    generation_time: int


class PromptGenerator:
    def __init__(self, clients: Mapping[str, LLMProvider | None], timeout_seconds: int = 60) -> None:
        self.clients = dict(clients)
        self.timeout_seconds = timeout_seconds

    def available_providers(self) -> List[str]:
        return available_providers(self.clients)

    def generate(self, config: GenerationConfig, provider: str = "openai", model: str | None = None) -> GenerationResult:
        """Runs one generation. Any failure surfaces as ``GenerationError``; nothing is retried."""
        model_name = model or default_model(provider)
        start = time.perf_counter()
        try:
            client = self.clients.get(provider)
            if client is None:
                raise RuntimeError(f"Provider {provider} not available or not configured")

            result = client.generate(
                LLMRequest(
                    prompt=build_user_prompt(config),
                    system=build_system_prompt(config),
                    model=model_name,
                    temperature=TEMPERATURE,
                    max_tokens=MAX_OUTPUT_TOKENS,
                    timeout_seconds=self.timeout_seconds,
                    meta={"structure_type": config.structure_type},
                )
            )
            content = parse_content(result.text, config.structure_type)
        except Exception as exc:
            raise GenerationError(str(exc) or "Unknown error occurred", provider=provider) from exc

        return GenerationResult(
            content=content,
            provider=provider,
            model=model_name,
            tokens_used=result.tokens_used,
            generation_time=int((time.perf_counter() - start) * 1000),
        )
