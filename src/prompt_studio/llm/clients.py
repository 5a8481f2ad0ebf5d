"""Provider capability map, built once at startup from validated credentials."""

from __future__ import annotations

import logging
import os
from typing import Dict, List, Mapping, Optional

from .providers.anthropic_provider import AnthropicProvider
from .providers.base import LLMProvider, ProviderFactory
from .providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

CREDENTIAL_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

PROVIDER_FACTORIES: Dict[str, ProviderFactory] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
}

CapabilityMap = Dict[str, Optional[LLMProvider]]


def load_credentials(env: Mapping[str, str] | None = None) -> Dict[str, str | None]:
    source = os.environ if env is None else env
    credentials: Dict[str, str | None] = {}
    for provider, var in CREDENTIAL_ENV.items():
        value = (source.get(var) or "").strip()
        credentials[provider] = value or None
    return credentials


def build_capability_map(
    credentials: Mapping[str, str | None],
    factories: Mapping[str, ProviderFactory] | None = None,
) -> CapabilityMap:
    """Maps every known provider id to a ready client, or None when no key is configured."""
    factories = factories or PROVIDER_FACTORIES
    capabilities: CapabilityMap = {}
    for provider, factory in factories.items():
        api_key = credentials.get(provider)
        if not api_key:
            logger.warning("%s client not available: %s not configured", provider, CREDENTIAL_ENV.get(provider, "key"))
            capabilities[provider] = None
            continue
        capabilities[provider] = factory(api_key)
    return capabilities


def available_providers(capabilities: Mapping[str, LLMProvider | None]) -> List[str]:
    return [provider for provider, client in capabilities.items() if client is not None]


def is_available(capabilities: Mapping[str, LLMProvider | None], provider: str) -> bool:
    return capabilities.get(provider) is not None
