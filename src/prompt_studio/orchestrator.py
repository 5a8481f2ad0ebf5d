"""Runs one billed generation attempt: authorize -> price -> check -> generate -> record."""

from __future__ import annotations

import logging
import sqlite3
import threading
from enum import Enum
from typing import Any, Dict, List

from .config import AIConfig
from .content import content_from_dict, content_to_dict
from .cost import PROMPT_GENERATION, CostCalculator
from .errors import GenerationCancelledError, InsufficientCreditsError, NotAuthorizedError
from .generator import GenerationConfig, GenerationResult, PromptGenerator
from .ledger import CreditLedgerGateway
from .models import create_generation, get_generation, list_generations
from .utils import json_loads

logger = logging.getLogger(__name__)


class AttemptState(str, Enum):
    AUTHORIZING = "authorizing"
    COST_COMPUTED = "cost_computed"
    CREDIT_CHECKED = "credit_checked"
    GENERATING = "generating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RECORDED = "recorded"


class GenerationOrchestrator:
    def __init__(
        self,
        ai_config: AIConfig,
        calculator: CostCalculator,
        ledger: CreditLedgerGateway,
        generator: PromptGenerator,
        feature_type: str = PROMPT_GENERATION,
    ) -> None:
        self.ai_config = ai_config
        self.calculator = calculator
        self.ledger = ledger
        self.generator = generator
        self.feature_type = feature_type

    @staticmethod
    def _enter(user_id: str | None, state: AttemptState) -> None:
        logger.debug("generation attempt user=%s state=%s", user_id, state.value)

    @staticmethod
    def _check_cancelled(cancel_event: threading.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelledError("Generation cancelled before the provider call")

    def _authorize(self, user_id: str | None) -> None:
        if not user_id:
            raise NotAuthorizedError("User not authenticated")
        info = self.ledger.get_subscription_info(user_id)
        if info is None or not info.can_use_ai:
            raise NotAuthorizedError("Active subscription required for AI features")

    def generate(
        self,
        user_id: str | None,
        config: GenerationConfig,
        cancel_event: threading.Event | None = None,
    ) -> GenerationResult:
        """Runs one attempt.

        Authorization and credit failures abort before anything is charged. Once
        the provider call starts, the attempt is recorded exactly once whether it
        succeeds or fails, and the generation error (if any) is re-raised as is.
        """
        self._enter(user_id, AttemptState.AUTHORIZING)
        self._check_cancelled(cancel_event)
        self._authorize(user_id)

        provider = self.ai_config.provider
        model = self.ai_config.model
        prompt_length = len(config.user_input)
        cost = self.calculator.calculate_cost(
            self.feature_type,
            provider,
            model,
            config.complexity,
            prompt_length,
        )
        self._enter(user_id, AttemptState.COST_COMPUTED)

        self._check_cancelled(cancel_event)
        if not self.ledger.has_sufficient_credits(user_id, cost.total_cost):
            raise InsufficientCreditsError(cost.total_cost)
        self._enter(user_id, AttemptState.CREDIT_CHECKED)

        self._check_cancelled(cancel_event)
        intent = self.ledger.open_intent(user_id, self.feature_type, provider, model, prompt_length, cost)
        self._enter(user_id, AttemptState.GENERATING)
        try:
            with intent:
                try:
                    result = self.generator.generate(config, provider, model=model)
                except Exception:
                    self._enter(user_id, AttemptState.FAILED)
                    raise
                self._enter(user_id, AttemptState.SUCCEEDED)
        finally:
            if intent.charged is not None:
                self._enter(user_id, AttemptState.RECORDED)

        logger.info(
            "Generated %s prompt for user %s via %s:%s (%s credits, %sms)",
            config.structure_type,
            user_id,
            provider,
            model,
            cost.total_cost,
            result.generation_time,
        )
        return result


def save_generation(
    conn: sqlite3.Connection,
    user_id: str,
    config: GenerationConfig,
    result: GenerationResult,
) -> Dict[str, Any]:
    return create_generation(
        conn,
        user_id=user_id,
        config=config.to_dict(),
        provider=result.provider,
        model=result.model,
        content=content_to_dict(result.content),
        tokens_used=result.tokens_used,
        generation_time_ms=result.generation_time,
    )


def list_history(conn: sqlite3.Connection, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
    history = []
    for row in list_generations(conn, user_id, limit=limit):
        config = json_loads(row["config_json"])
        history.append(
            {
                "id": row["id"],
                "created_at": row["created_at"],
                "provider": row["provider"],
                "model": row["model"],
                "tokens_used": row["tokens_used"],
                "generation_time_ms": row["generation_time_ms"],
                "config": config,
                "content": content_from_dict(json_loads(row["content_json"]), config["structure_type"]),
            }
        )
    return history


def regenerate(
    orchestrator: GenerationOrchestrator,
    conn: sqlite3.Connection,
    user_id: str,
    generation_id: int,
) -> Dict[str, Any]:
    """Re-runs a stored generation as a brand new, separately billed attempt."""
    previous = get_generation(conn, generation_id)
    if not previous or previous["user_id"] != user_id:
        return {"ok": False, "reason": "generation_not_found"}

    config = GenerationConfig(**json_loads(previous["config_json"]))
    result = orchestrator.generate(user_id, config)
    saved = save_generation(conn, user_id, config, result)
    return {"ok": True, "generation": saved, "result": result, "regenerated_from": generation_id}
