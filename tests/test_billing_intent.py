import logging

import pytest

from prompt_studio.cost import CostCalculation
from prompt_studio.errors import GenerationError, LedgerError
from prompt_studio.ledger import CreditLedgerGateway, RemoteLedger, SQLiteLedger, SubscriptionInfo
from prompt_studio.models import apply_migrations, get_connection, initialize_user_subscription

COST = CostCalculation(base_cost=10, multiplier=1.5, total_cost=15, breakdown={})


class RecordingBackend:
    def __init__(self, fail_record=False, charge=True):
        self.fail_record = fail_record
        self.charge = charge
        self.records = []

    def check_credits(self, user_id, required_credits):
        return True

    def deduct_credits(self, record):
        self.records.append(record)
        if self.fail_record:
            raise RuntimeError("ledger offline")
        return self.charge

    def get_subscription_info(self, user_id):
        return None

    def add_credits(self, user_id, amount, transaction_type="earned", description=""):
        return amount


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError(f"HTTP {self.status_code}")

    def json(self):
        return self._payload


def _intent(backend):
    gateway = CreditLedgerGateway(backend)
    return gateway.open_intent("u1", "prompt_generation", "openai", "gpt-4o-mini", 120, COST)


def test_clean_exit_records_one_successful_charge():
    backend = RecordingBackend()
    intent = _intent(backend)

    with intent:
        pass

    assert intent.charged is True
    assert len(backend.records) == 1
    record = backend.records[0]
    assert record.success is True
    assert record.error_message is None
    assert record.total_cost == 15
    assert record.multiplier == 1.5
    assert record.prompt_length == 120


def test_failure_is_recorded_and_still_raised():
    backend = RecordingBackend()

    with pytest.raises(GenerationError):
        with _intent(backend):
            raise GenerationError("model overloaded", provider="openai")

    assert len(backend.records) == 1
    assert backend.records[0].success is False
    assert backend.records[0].error_message == "model overloaded"
    assert backend.records[0].total_cost == 15


def test_intent_resolves_only_once():
    backend = RecordingBackend()
    intent = _intent(backend)

    with intent:
        pass
    intent.__exit__(None, None, None)

    assert len(backend.records) == 1


def test_record_failure_does_not_replace_the_outcome(caplog):
    backend = RecordingBackend(fail_record=True)

    with caplog.at_level(logging.ERROR):
        with _intent(backend):
            pass
        with pytest.raises(GenerationError):
            with _intent(backend):
                raise GenerationError("bad output", provider="openai")

    assert len(backend.records) == 2
    assert "Failed to record usage" in caplog.text


def test_refused_debit_is_logged(caplog):
    backend = RecordingBackend(charge=False)

    with caplog.at_level(logging.WARNING):
        with _intent(backend) as intent:
            pass

    assert intent.charged is False
    assert "not debited" in caplog.text


def test_sqlite_ledger_exposes_subscription_info(tmp_path):
    db_path = str(tmp_path / "app.db")
    apply_migrations(db_path)

    with get_connection(db_path) as conn:
        initialize_user_subscription(conn, "u1", "pro")
        gateway = CreditLedgerGateway(SQLiteLedger(conn))

        info = gateway.get_subscription_info("u1")
        assert isinstance(info, SubscriptionInfo)
        assert info.can_use_ai is True
        assert gateway.has_sufficient_credits("u1", 1000) is True
        assert gateway.has_sufficient_credits("u1", 1001) is False
        assert gateway.get_subscription_info("nobody") is None


def test_remote_ledger_requires_token():
    with pytest.raises(ValueError):
        RemoteLedger("https://example.test/functions/v1/manage-credits", access_token="")


def test_remote_ledger_posts_actions_with_bearer_token(monkeypatch):
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json, "headers": headers})
        if json["action"] == "check_credits":
            return FakeResponse({"has_sufficient_credits": True, "current_balance": 50})
        return FakeResponse({"success": True})

    monkeypatch.setattr("prompt_studio.ledger.requests.post", fake_post)
    gateway = CreditLedgerGateway(RemoteLedger("https://example.test/credits", access_token="jwt-token"))

    assert gateway.has_sufficient_credits("u1", 15) is True
    charged = gateway.record_usage("u1", "prompt_generation", "openai", "gpt-4", 10, 10, 1.3, 13, success=False, error_message="boom")

    assert charged is True
    assert calls[0]["json"] == {"action": "check_credits", "required_credits": 15}
    assert calls[0]["headers"]["Authorization"] == "Bearer jwt-token"
    assert calls[1]["json"]["action"] == "deduct_credits"
    assert calls[1]["json"]["success"] is False
    assert calls[1]["json"]["error_message"] == "boom"


def test_remote_ledger_surfaces_error_body(monkeypatch):
    monkeypatch.setattr(
        "prompt_studio.ledger.requests.post",
        lambda *args, **kwargs: FakeResponse({"error": "Unauthorized"}, status_code=401),
    )
    ledger = RemoteLedger("https://example.test/credits", access_token="jwt-token")

    with pytest.raises(LedgerError, match="Unauthorized"):
        ledger.get_subscription_info("u1")


def test_remote_ledger_non_object_error_body_keeps_http_error(monkeypatch):
    monkeypatch.setattr(
        "prompt_studio.ledger.requests.post",
        lambda *args, **kwargs: FakeResponse(["upstream", "failure"], status_code=502),
    )
    ledger = RemoteLedger("https://example.test/credits", access_token="jwt-token")

    with pytest.raises(RuntimeError, match="HTTP 502"):
        ledger.check_credits("u1", 10)


def test_gateway_adds_credits_through_backend(tmp_path):
    db_path = str(tmp_path / "app.db")
    apply_migrations(db_path)

    with get_connection(db_path) as conn:
        initialize_user_subscription(conn, "u1", "pro")
        gateway = CreditLedgerGateway(SQLiteLedger(conn))

        assert gateway.add_credits("u1", 50, "bonus", "Welcome bonus") == 1050
        assert gateway.get_subscription_info("u1").credits_balance == 1050
