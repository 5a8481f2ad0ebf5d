"""Credit cost calculation for AI features."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping

from .config import AIConfig
from .errors import UnknownFeatureError
from .providers import default_model

PROMPT_GENERATION = "prompt_generation"

SHORT_PROMPT_MAX = 500
MEDIUM_PROMPT_MAX = 1500


@dataclass(frozen=True)
class LengthMultipliers:
    short: float = 1.0
    medium: float = 1.0
    long: float = 1.0


@dataclass(frozen=True)
class FeatureConfig:
    feature_type: str
    base_cost: int
    provider: Dict[str, float] = field(default_factory=dict)
    model: Dict[str, float] = field(default_factory=dict)
    complexity: Dict[str, float] = field(default_factory=dict)
    length: LengthMultipliers = field(default_factory=LengthMultipliers)


@dataclass(frozen=True)
class CostCalculation:
    base_cost: int
    multiplier: float
    total_cost: int
    breakdown: Dict[str, float]


def _float_table(raw: Mapping[str, Any] | None) -> Dict[str, float]:
    return {str(k): float(v) for k, v in (raw or {}).items()}


def load_feature_configs(settings: Dict[str, Any]) -> Dict[str, FeatureConfig]:
    features: Dict[str, FeatureConfig] = {}
    for feature_type, raw in settings.get("features", {}).items():
        multipliers = raw.get("multipliers", {})
        length = multipliers.get("length", {})
        features[feature_type] = FeatureConfig(
            feature_type=feature_type,
            base_cost=int(raw["base_cost"]),
            provider=_float_table(multipliers.get("provider")),
            model=_float_table(multipliers.get("model")),
            complexity=_float_table(multipliers.get("complexity")),
            length=LengthMultipliers(
                short=float(length.get("short", 1.0)),
                medium=float(length.get("medium", 1.0)),
                long=float(length.get("long", 1.0)),
            ),
        )
    return features


def length_multiplier(config: FeatureConfig, prompt_length: int) -> float:
    if prompt_length <= SHORT_PROMPT_MAX:
        return config.length.short
    if prompt_length <= MEDIUM_PROMPT_MAX:
        return config.length.medium
    return config.length.long


class CostCalculator:
    def __init__(self, features: Mapping[str, FeatureConfig]) -> None:
        self.features = dict(features)

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "CostCalculator":
        return cls(load_feature_configs(settings))

    def calculate_cost(
        self,
        feature_type: str,
        provider: str,
        model: str,
        complexity: str,
        prompt_length: int,
    ) -> CostCalculation:
        config = self.features.get(feature_type)
        if config is None:
            raise UnknownFeatureError(feature_type)

        # Unknown provider/model/complexity is priced at 1.0, never rejected.
        provider_mult = config.provider.get(provider, 1.0)
        model_mult = config.model.get(model, 1.0)
        complexity_mult = config.complexity.get(complexity, 1.0)
        length_mult = length_multiplier(config, prompt_length)

        # Exact product: 0.8 * 1.5 must ceil to 1.2, not 1.2000000000000002.
        total_multiplier = Decimal(1)
        for factor in (provider_mult, model_mult, complexity_mult, length_mult):
            total_multiplier *= Decimal(str(factor))
        return CostCalculation(
            base_cost=config.base_cost,
            multiplier=float(total_multiplier),
            total_cost=math.ceil(config.base_cost * total_multiplier),
            breakdown={
                "provider": provider_mult,
                "model": model_mult,
                "complexity": complexity_mult,
                "length": length_mult,
            },
        )

    def estimate(
        self,
        feature_type: str,
        ai_config: AIConfig,
        provider: str | None = None,
        complexity: str = "simple",
        prompt_length: int = 500,
    ) -> CostCalculation:
        """Prices a prospective generation with the configured model, or the provider default."""
        actual_provider = provider or ai_config.provider
        if actual_provider == ai_config.provider:
            model = ai_config.model
        else:
            model = default_model(actual_provider)
        return self.calculate_cost(feature_type, actual_provider, model, complexity, prompt_length)

    def estimate_cost(
        self,
        feature_type: str,
        ai_config: AIConfig,
        provider: str | None = None,
        complexity: str = "simple",
        prompt_length: int = 500,
    ) -> int:
        return self.estimate(feature_type, ai_config, provider, complexity, prompt_length).total_cost


def format_cost_breakdown(calculation: CostCalculation) -> str:
    breakdown = calculation.breakdown
    return "\n".join(
        [
            f"Base cost: {calculation.base_cost} credits",
            f"Provider multiplier: {breakdown['provider']}x",
            f"Model multiplier: {breakdown['model']}x",
            f"Complexity multiplier: {breakdown['complexity']}x",
            f"Length multiplier: {breakdown['length']}x",
            f"Total: {calculation.total_cost} credits",
        ]
    )
