"""Credit ledger gateway: balance checks, usage recording and the billing intent.

Two backends speak the same protocol: ``SQLiteLedger`` is a local system of
record, ``RemoteLedger`` talks to the hosted credits function over HTTP. Neither
retries; transport errors reach the caller unchanged.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, Protocol

import requests

from . import models
from .cost import CostCalculation
from .errors import LedgerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionInfo:
    plan_type: str
    status: str
    credits_balance: int
    can_use_ai: bool
    current_period_end: str | None = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubscriptionInfo":
        return cls(
            plan_type=str(data.get("plan_type", "free")),
            status=str(data.get("status", "")),
            credits_balance=int(data.get("credits_balance", 0) or 0),
            can_use_ai=bool(data.get("can_use_ai", False)),
            current_period_end=data.get("current_period_end"),
        )


@dataclass(frozen=True)
class UsageRecord:
    user_id: str
    feature_type: str
    provider: str
    model: str
    prompt_length: int
    base_cost: int
    multiplier: float
    total_cost: int
    success: bool
    error_message: str | None = None


class LedgerBackend(Protocol):
    def check_credits(self, user_id: str, required_credits: int) -> bool:
        ...

    def deduct_credits(self, record: UsageRecord) -> bool:
        ...

    def get_subscription_info(self, user_id: str) -> SubscriptionInfo | None:
        ...

    def add_credits(self, user_id: str, amount: int, transaction_type: str, description: str) -> int:
        ...


class SQLiteLedger:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def check_credits(self, user_id: str, required_credits: int) -> bool:
        return models.check_user_credits(self.conn, user_id, required_credits)

    def deduct_credits(self, record: UsageRecord) -> bool:
        return models.deduct_credits(
            self.conn,
            user_id=record.user_id,
            feature_type=record.feature_type,
            provider=record.provider,
            model=record.model,
            prompt_length=record.prompt_length,
            base_cost=record.base_cost,
            multiplier=record.multiplier,
            total_cost=record.total_cost,
            success=record.success,
            error_message=record.error_message,
        )

    def get_subscription_info(self, user_id: str) -> SubscriptionInfo | None:
        info = models.get_subscription_info(self.conn, user_id)
        return SubscriptionInfo.from_dict(info) if info else None

    def add_credits(self, user_id: str, amount: int, transaction_type: str = "earned", description: str = "Credits added") -> int:
        return models.add_credits(self.conn, user_id, amount, transaction_type, description)


class RemoteLedger:
    """Client for the hosted ``manage-credits`` function.

    The user is identified by the bearer token; ``user_id`` arguments are only
    used for logging.
    """

    def __init__(self, url: str, access_token: str, timeout_seconds: int = 15) -> None:
        if not url:
            raise ValueError("Remote ledger URL is not configured")
        if not access_token:
            raise ValueError("LEDGER_ACCESS_TOKEN missing")
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def _call(self, action: str, **params: Any) -> Dict[str, Any]:
        res = requests.post(
            self.url,
            json={"action": action, **params},
            headers=self._headers,
            timeout=self.timeout_seconds,
        )
        if res.status_code >= 400:
            try:
                body = res.json()
            except ValueError:
                body = None
            detail = body.get("error") if isinstance(body, dict) else None
            if detail:
                raise LedgerError(f"{action} failed: {detail}")
        res.raise_for_status()
        return res.json()

    def check_credits(self, user_id: str, required_credits: int) -> bool:
        data = self._call("check_credits", required_credits=required_credits)
        return bool(data.get("has_sufficient_credits"))

    def deduct_credits(self, record: UsageRecord) -> bool:
        data = self._call(
            "deduct_credits",
            feature_type=record.feature_type,
            provider=record.provider,
            model=record.model,
            prompt_length=record.prompt_length,
            base_cost=record.base_cost,
            multiplier=record.multiplier,
            total_cost=record.total_cost,
            success=record.success,
            error_message=record.error_message,
        )
        return bool(data.get("success"))

    def get_subscription_info(self, user_id: str) -> SubscriptionInfo | None:
        data = self._call("get_subscription_info")
        subscription = data.get("subscription")
        return SubscriptionInfo.from_dict(subscription) if subscription else None

    def add_credits(self, user_id: str, amount: int, transaction_type: str = "earned", description: str = "Credits added") -> int:
        data = self._call("add_credits", amount=amount, transaction_type=transaction_type, description=description)
        return int(data.get("new_balance", 0))


class CreditLedgerGateway:
    def __init__(self, backend: LedgerBackend) -> None:
        self.backend = backend

    def has_sufficient_credits(self, user_id: str, required_credits: int) -> bool:
        return self.backend.check_credits(user_id, required_credits)

    def record_usage(
        self,
        user_id: str,
        feature_type: str,
        provider: str,
        model: str,
        prompt_length: int,
        base_cost: int,
        multiplier: float,
        total_cost: int,
        success: bool,
        error_message: str | None = None,
    ) -> bool:
        """Writes the audit entry and debits the balance. Returns whether the debit applied."""
        return self.backend.deduct_credits(
            UsageRecord(
                user_id=user_id,
                feature_type=feature_type,
                provider=provider,
                model=model,
                prompt_length=prompt_length,
                base_cost=base_cost,
                multiplier=multiplier,
                total_cost=total_cost,
                success=success,
                error_message=error_message,
            )
        )

    def get_subscription_info(self, user_id: str) -> SubscriptionInfo | None:
        return self.backend.get_subscription_info(user_id)

    def add_credits(self, user_id: str, amount: int, transaction_type: str = "earned", description: str = "Credits added") -> int:
        return self.backend.add_credits(user_id, amount, transaction_type, description)

    def open_intent(
        self,
        user_id: str,
        feature_type: str,
        provider: str,
        model: str,
        prompt_length: int,
        cost: CostCalculation,
    ) -> "BillingIntent":
        return BillingIntent(self, user_id, feature_type, provider, model, prompt_length, cost)


class BillingIntent:
    """Charges one attempt exactly once, whichever way the guarded block exits.

    Leaving the ``with`` block normally records a successful attempt; leaving it
    with an exception records a failed one carrying the exception message. The
    exception itself is never suppressed, and a failure of the record call is
    logged without replacing the block's outcome.
    """

    def __init__(
        self,
        gateway: CreditLedgerGateway,
        user_id: str,
        feature_type: str,
        provider: str,
        model: str,
        prompt_length: int,
        cost: CostCalculation,
    ) -> None:
        self.gateway = gateway
        self.user_id = user_id
        self.feature_type = feature_type
        self.provider = provider
        self.model = model
        self.prompt_length = prompt_length
        self.cost = cost
        self.resolved = False
        self.charged: bool | None = None

    def __enter__(self) -> "BillingIntent":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self.resolved:
            return False
        self.resolved = True
        success = exc is None
        error_message = None
        if exc is not None:
            error_message = getattr(exc, "message", None) or str(exc) or exc_type.__name__
        try:
            self.charged = self.gateway.record_usage(
                user_id=self.user_id,
                feature_type=self.feature_type,
                provider=self.provider,
                model=self.model,
                prompt_length=self.prompt_length,
                base_cost=self.cost.base_cost,
                multiplier=self.cost.multiplier,
                total_cost=self.cost.total_cost,
                success=success,
                error_message=error_message,
            )
        except Exception:
            logger.exception("Failed to record usage for user %s", self.user_id)
            return False
        if not self.charged:
            logger.warning(
                "Usage recorded but %s credits were not debited for user %s (balance changed since check)",
                self.cost.total_cost,
                self.user_id,
            )
        return False
