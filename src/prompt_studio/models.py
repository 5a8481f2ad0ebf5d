"""SQLite schema, migrations, and data access for subscriptions, credits and usage."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Mapping

from .utils import json_dumps, json_loads, utc_days_ago_iso, utc_now_iso

AI_PLANS = {"pro", "max"}
AI_STATUSES = {"active", "trialing"}

DEFAULT_PLAN_CREDITS = {"free": 0, "pro": 1000, "max": 3000}

MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version INTEGER PRIMARY KEY,
            applied_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS user_subscriptions (
            user_id TEXT PRIMARY KEY,
            plan_type TEXT NOT NULL DEFAULT 'free',
            status TEXT NOT NULL DEFAULT 'active',
            current_period_start TEXT,
            current_period_end TEXT,
            cancel_at_period_end INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS user_credits (
            user_id TEXT PRIMARY KEY,
            balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
            total_earned INTEGER NOT NULL DEFAULT 0,
            total_spent INTEGER NOT NULL DEFAULT 0,
            last_refill_date TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS ai_usage_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            feature_type TEXT NOT NULL,
            provider TEXT NOT NULL,
            model TEXT NOT NULL,
            prompt_length INTEGER NOT NULL DEFAULT 0,
            base_cost INTEGER NOT NULL,
            multiplier REAL NOT NULL,
            total_cost INTEGER NOT NULL,
            prompt_id TEXT,
            success INTEGER NOT NULL,
            error_message TEXT,
            metadata_json TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS credit_transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            transaction_type TEXT NOT NULL,
            amount INTEGER NOT NULL,
            balance_after INTEGER NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            metadata_json TEXT NOT NULL DEFAULT '{}',
            ai_usage_log_id INTEGER,
            created_at TEXT NOT NULL,
            FOREIGN KEY(ai_usage_log_id) REFERENCES ai_usage_logs(id) ON DELETE SET NULL
        );

        CREATE INDEX IF NOT EXISTS idx_usage_user_created ON ai_usage_logs(user_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_credit_tx_user_created ON credit_transactions(user_id, created_at);
        """,
    ),
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS generations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            config_json TEXT NOT NULL,
            provider TEXT NOT NULL,
            model TEXT NOT NULL,
            content_json TEXT NOT NULL,
            tokens_used INTEGER,
            generation_time_ms INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_generations_user_id ON generations(user_id, id DESC);
        """,
    ),
]


def get_connection(db_path: str) -> sqlite3.Connection:
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def apply_migrations(db_path: str) -> None:
    with get_connection(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL
            )
            """
        )
        applied = {
            row["version"]
            for row in conn.execute("SELECT version FROM schema_migrations").fetchall()
        }
        for version, sql in MIGRATIONS:
            if version in applied:
                continue
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                (version, utc_now_iso()),
            )
        conn.commit()


def _row_to_dict(row: sqlite3.Row | None) -> Dict[str, Any] | None:
    if row is None:
        return None
    return dict(row)


def _ensure_credit_row(conn: sqlite3.Connection, user_id: str) -> None:
    now = utc_now_iso()
    conn.execute(
        """
        INSERT INTO user_credits(user_id, balance, total_earned, total_spent, created_at, updated_at)
        VALUES (?, 0, 0, 0, ?, ?)
        ON CONFLICT(user_id) DO NOTHING
        """,
        (user_id, now, now),
    )


def _insert_credit_transaction(
    conn: sqlite3.Connection,
    user_id: str,
    transaction_type: str,
    amount: int,
    description: str,
    metadata: Dict[str, Any] | None = None,
    ai_usage_log_id: int | None = None,
) -> None:
    row = conn.execute("SELECT balance FROM user_credits WHERE user_id = ?", (user_id,)).fetchone()
    conn.execute(
        """
        INSERT INTO credit_transactions(
            user_id, transaction_type, amount, balance_after, description, metadata_json, ai_usage_log_id, created_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            user_id,
            transaction_type,
            amount,
            int(row["balance"]) if row else 0,
            description,
            json_dumps(metadata),
            ai_usage_log_id,
            utc_now_iso(),
        ),
    )


def get_subscription(conn: sqlite3.Connection, user_id: str) -> Dict[str, Any] | None:
    row = conn.execute("SELECT * FROM user_subscriptions WHERE user_id = ?", (user_id,)).fetchone()
    return _row_to_dict(row)


def get_credits(conn: sqlite3.Connection, user_id: str) -> Dict[str, Any] | None:
    row = conn.execute("SELECT * FROM user_credits WHERE user_id = ?", (user_id,)).fetchone()
    return _row_to_dict(row)


def add_credits(
    conn: sqlite3.Connection,
    user_id: str,
    amount: int,
    transaction_type: str = "earned",
    description: str = "Credits added",
) -> int:
    """Adds credits and returns the new balance."""
    if amount <= 0:
        raise ValueError("amount must be positive")
    with conn:
        _ensure_credit_row(conn, user_id)
        conn.execute(
            """
            UPDATE user_credits
            SET balance = balance + ?, total_earned = total_earned + ?, last_refill_date = ?, updated_at = ?
            WHERE user_id = ?
            """,
            (amount, amount, utc_now_iso(), utc_now_iso(), user_id),
        )
        _insert_credit_transaction(conn, user_id, transaction_type, amount, description)
    return int(get_credits(conn, user_id)["balance"])


def initialize_user_subscription(
    conn: sqlite3.Connection,
    user_id: str,
    plan_type: str = "free",
    plan_credits: Mapping[str, int] | None = None,
) -> Dict[str, Any]:
    """Creates subscription and credit rows for a new user. Existing users are left untouched."""
    existing = get_subscription(conn, user_id)
    if existing:
        return existing

    now = utc_now_iso()
    with conn:
        conn.execute(
            """
            INSERT INTO user_subscriptions(user_id, plan_type, status, current_period_start, created_at, updated_at)
            VALUES (?, ?, 'active', ?, ?, ?)
            """,
            (user_id, plan_type, now, now, now),
        )
        _ensure_credit_row(conn, user_id)

    credits = int((plan_credits or DEFAULT_PLAN_CREDITS).get(plan_type, 0))
    if credits > 0:
        add_credits(conn, user_id, credits, "earned", f"{plan_type} plan credits")
    return get_subscription(conn, user_id) or {}


def update_subscription(
    conn: sqlite3.Connection,
    user_id: str,
    plan_type: str,
    status: str = "active",
    current_period_end: str | None = None,
) -> Dict[str, Any] | None:
    with conn:
        conn.execute(
            """
            UPDATE user_subscriptions
            SET plan_type = ?, status = ?, current_period_end = ?, updated_at = ?
            WHERE user_id = ?
            """,
            (plan_type, status, current_period_end, utc_now_iso(), user_id),
        )
    return get_subscription(conn, user_id)


def change_plan(
    conn: sqlite3.Connection,
    user_id: str,
    plan_type: str,
    plan_credits: Mapping[str, int] | None = None,
) -> int:
    """Moves a user to ``plan_type``. Returns the credits granted, 0 when the plan is unchanged."""
    initialize_user_subscription(conn, user_id, "free", plan_credits)
    current = get_subscription(conn, user_id)
    if current and current["plan_type"] == plan_type:
        return 0
    update_subscription(conn, user_id, plan_type)
    granted = int((plan_credits or DEFAULT_PLAN_CREDITS).get(plan_type, 0))
    if granted > 0:
        add_credits(conn, user_id, granted, "earned", f"{plan_type} plan credits")
    return granted


def get_subscription_info(conn: sqlite3.Connection, user_id: str) -> Dict[str, Any] | None:
    row = conn.execute(
        """
        SELECT s.plan_type, s.status, s.current_period_end, COALESCE(c.balance, 0) AS credits_balance
        FROM user_subscriptions s
        LEFT JOIN user_credits c ON c.user_id = s.user_id
        WHERE s.user_id = ?
        """,
        (user_id,),
    ).fetchone()
    if row is None:
        return None
    info = dict(row)
    info["can_use_ai"] = info["plan_type"] in AI_PLANS and info["status"] in AI_STATUSES
    return info


def check_user_credits(conn: sqlite3.Connection, user_id: str, required_credits: int) -> bool:
    row = conn.execute("SELECT balance FROM user_credits WHERE user_id = ?", (user_id,)).fetchone()
    if row is None:
        return False
    return int(row["balance"]) >= required_credits


def deduct_credits(
    conn: sqlite3.Connection,
    user_id: str,
    feature_type: str,
    provider: str,
    model: str,
    prompt_length: int,
    base_cost: int,
    multiplier: float,
    total_cost: int,
    success: bool = True,
    error_message: str | None = None,
    prompt_id: str | None = None,
) -> bool:
    """Writes the usage log and debits the balance in one transaction.

    The debit is a conditional decrement: it only applies while the balance
    covers ``total_cost``. The usage row is written either way and records
    whether the charge went through.
    """
    now = utc_now_iso()
    with conn:
        cur = conn.execute(
            """
            UPDATE user_credits
            SET balance = balance - ?, total_spent = total_spent + ?, updated_at = ?
            WHERE user_id = ? AND balance >= ?
            """,
            (total_cost, total_cost, now, user_id, total_cost),
        )
        charged = cur.rowcount == 1
        log_cur = conn.execute(
            """
            INSERT INTO ai_usage_logs(
                user_id, feature_type, provider, model, prompt_length, base_cost, multiplier,
                total_cost, prompt_id, success, error_message, metadata_json, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                feature_type,
                provider,
                model,
                prompt_length,
                base_cost,
                multiplier,
                total_cost,
                prompt_id,
                1 if success else 0,
                error_message,
                json_dumps({"charged": charged}),
                now,
            ),
        )
        if charged:
            _insert_credit_transaction(
                conn,
                user_id,
                "spent",
                -total_cost,
                f"AI {feature_type} ({provider}:{model})",
                metadata={"success": success},
                ai_usage_log_id=log_cur.lastrowid,
            )
    return charged


def list_credit_transactions(
    conn: sqlite3.Connection,
    user_id: str,
    limit: int = 50,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    rows = conn.execute(
        """
        SELECT * FROM credit_transactions
        WHERE user_id = ?
        ORDER BY id DESC
        LIMIT ? OFFSET ?
        """,
        (user_id, limit, offset),
    ).fetchall()
    return [dict(r) for r in rows]


def list_usage_logs(conn: sqlite3.Connection, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT * FROM ai_usage_logs WHERE user_id = ? ORDER BY id DESC LIMIT ?",
        (user_id, limit),
    ).fetchall()
    result = []
    for row in rows:
        item = dict(row)
        item["success"] = bool(item["success"])
        item["metadata"] = json_loads(item.pop("metadata_json"))
        result.append(item)
    return result


def get_usage_stats(conn: sqlite3.Connection, user_id: str, days: int = 30) -> Dict[str, Any]:
    rows = conn.execute(
        """
        SELECT feature_type, provider, model, total_cost, created_at
        FROM ai_usage_logs
        WHERE user_id = ? AND created_at >= ?
        ORDER BY id DESC
        """,
        (user_id, utc_days_ago_iso(days)),
    ).fetchall()
    usage_logs = [dict(r) for r in rows]
    usage_by_feature: Dict[str, int] = {}
    for log in usage_logs:
        usage_by_feature[log["feature_type"]] = usage_by_feature.get(log["feature_type"], 0) + log["total_cost"]
    return {
        "usage_logs": usage_logs,
        "summary": {
            "total_cost": sum(log["total_cost"] for log in usage_logs),
            "usage_by_feature": usage_by_feature,
            "period_days": days,
        },
    }


def create_generation(
    conn: sqlite3.Connection,
    user_id: str,
    config: Dict[str, Any],
    provider: str,
    model: str,
    content: Dict[str, Any],
    tokens_used: int | None,
    generation_time_ms: int,
) -> Dict[str, Any]:
    cur = conn.execute(
        """
        INSERT INTO generations(user_id, config_json, provider, model, content_json, tokens_used, generation_time_ms, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            user_id,
            json_dumps(config),
            provider,
            model,
            json_dumps(content),
            tokens_used,
            generation_time_ms,
            utc_now_iso(),
        ),
    )
    conn.commit()
    row = conn.execute("SELECT * FROM generations WHERE id = ?", (cur.lastrowid,)).fetchone()
    return dict(row)


def get_generation(conn: sqlite3.Connection, generation_id: int) -> Dict[str, Any] | None:
    row = conn.execute("SELECT * FROM generations WHERE id = ?", (generation_id,)).fetchone()
    return _row_to_dict(row)


def list_generations(conn: sqlite3.Connection, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT * FROM generations WHERE user_id = ? ORDER BY id DESC LIMIT ?",
        (user_id, limit),
    ).fetchall()
    return [dict(r) for r in rows]
