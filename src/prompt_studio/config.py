"""Configuration loading and defaults."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

COMPLEXITIES = ("simple", "medium", "complex")

DEFAULT_SETTINGS: Dict[str, Any] = {
    "ai": {
        "provider": "openai",
        "model": "gpt-4o-mini",
        "default_complexity": "simple",
        "max_tokens": 4096,
    },
    "llm": {
        "timeout_seconds": 60,
    },
    "database": {
        "path": "data/prompt_studio.db",
    },
    "ledger": {
        "backend": "sqlite",
        "remote_url": "",
        "timeout_seconds": 15,
    },
    "logging": {
        "level": "INFO",
    },
    "plans": {
        "free": {"name": "Free", "price": 0, "credits": 0},
        "pro": {"name": "Pro", "price": 19, "credits": 1000},
        "max": {"name": "Max", "price": 49, "credits": 3000},
    },
    "features": {
        "prompt_generation": {
            "base_cost": 10,
            "multipliers": {
                "provider": {
                    "openai": 1.0,
                    "anthropic": 1.2,
                },
                "model": {
                    "gpt-4-turbo-preview": 1.5,
                    "gpt-4": 1.3,
                    "gpt-3.5-turbo": 1.0,
                    "claude-3-opus-20240229": 2.0,
                    "claude-3-sonnet-20240229": 1.2,
                    "claude-3-haiku-20240307": 0.8,
                },
                "complexity": {
                    "simple": 1.0,
                    "medium": 1.5,
                    "complex": 2.0,
                },
                "length": {
                    "short": 1.0,
                    "medium": 1.5,
                    "long": 2.0,
                },
            },
        },
    },
}


@dataclass(frozen=True)
class AIConfig:
    """Process-wide AI settings. Read-only once loaded."""

    provider: str
    model: str
    default_complexity: str = "simple"
    max_tokens: int = 4096


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(settings_path: str = "config/settings.yaml") -> Dict[str, Any]:
    """Loads settings.yaml and merges it onto defaults."""
    merged = deepcopy(DEFAULT_SETTINGS)
    config_path = Path(settings_path)
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as f:
            user_cfg = yaml.safe_load(f) or {}
        merged = _deep_merge(merged, user_cfg)
    return merged


def load_ai_config(settings: Dict[str, Any]) -> AIConfig:
    ai_cfg = settings.get("ai", {})
    complexity = str(ai_cfg.get("default_complexity", "simple"))
    if complexity not in COMPLEXITIES:
        raise ValueError(f"Invalid default complexity: {complexity}")
    return AIConfig(
        provider=str(ai_cfg.get("provider", "openai")),
        model=str(ai_cfg.get("model", "gpt-4o-mini")),
        default_complexity=complexity,
        max_tokens=int(ai_cfg.get("max_tokens", 4096)),
    )
