"""Static metadata for the supported AI providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

PROVIDER_IDS = ("openai", "anthropic")


@dataclass(frozen=True)
class ProviderInfo:
    id: str
    name: str
    description: str
    models: List[str] = field(default_factory=list)
    max_tokens: int = 4096
    supports_streaming: bool = True


AI_PROVIDERS: Dict[str, ProviderInfo] = {
    "openai": ProviderInfo(
        id="openai",
        name="OpenAI GPT",
        description="GPT-4 and GPT-3.5 models for versatile prompt generation",
        models=["gpt-4-turbo-preview", "gpt-4", "gpt-3.5-turbo"],
    ),
    "anthropic": ProviderInfo(
        id="anthropic",
        name="Anthropic Claude",
        description="Claude-3 models optimized for complex prompt engineering",
        models=["claude-3-opus-20240229", "claude-3-sonnet-20240229", "claude-3-haiku-20240307"],
    ),
}

_DEFAULT_MODELS = {
    "openai": "gpt-4-turbo-preview",
    "anthropic": "claude-3-sonnet-20240229",
}

_DISPLAY_NAMES = {
    "gpt-4.1": "GPT-4.1",
    "gpt-4.1-mini": "GPT-4.1 Mini",
    "gpt-4.1-nano": "GPT-4.1 Nano",
    "gpt-4o": "GPT-4o",
    "gpt-4o-mini": "GPT-4o Mini",
    "o3-mini": "o3 Mini",
    "o4-mini": "o4 Mini",
    "o3": "o3",
    "o3-deep-research": "o3 Deep Research",
    "claude-3-opus-20240229": "Claude-3 Opus",
    "claude-3-sonnet-20240229": "Claude-3 Sonnet",
    "claude-3-haiku-20240307": "Claude-3 Haiku",
}


def get_provider_info(provider: str) -> ProviderInfo:
    info = AI_PROVIDERS.get(provider)
    if info is None:
        raise ValueError(f"Unknown provider: {provider}")
    return info


def default_model(provider: str) -> str:
    return _DEFAULT_MODELS.get(provider, _DEFAULT_MODELS["openai"])


def model_display_name(model: str) -> str:
    return _DISPLAY_NAMES.get(model, model)
