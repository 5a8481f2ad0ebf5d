"""Entrypoint: generate prompts and manage credits from the command line."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from prompt_studio.config import COMPLEXITIES, load_ai_config, load_settings
from prompt_studio.content import STRUCTURE_TYPES
from prompt_studio.cost import PROMPT_GENERATION, CostCalculator, format_cost_breakdown
from prompt_studio.errors import GenerationError, InsufficientCreditsError, NotAuthorizedError
from prompt_studio.export import EXPORT_FORMATS, render_content
from prompt_studio.generator import GenerationConfig, PromptGenerator
from prompt_studio.ledger import CreditLedgerGateway, RemoteLedger, SQLiteLedger
from prompt_studio.llm.clients import build_capability_map, load_credentials
from prompt_studio.models import (
    DEFAULT_PLAN_CREDITS,
    apply_migrations,
    change_plan,
    get_connection,
    get_generation,
    get_usage_stats,
    initialize_user_subscription,
    list_credit_transactions,
)
from prompt_studio.orchestrator import GenerationOrchestrator, list_history, regenerate, save_generation
from prompt_studio.providers import AI_PROVIDERS, model_display_name


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AI prompt generation with credit metering")
    parser.add_argument("--settings", default="config/settings.yaml", help="Path to settings.yaml")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("init-db", help="Apply SQLite migrations only")

    init_user = subparsers.add_parser("init-user", help="Create subscription and credit rows for a user")
    init_user.add_argument("user_id")
    init_user.add_argument("--plan", default="free", choices=sorted(DEFAULT_PLAN_CREDITS))

    set_plan = subparsers.add_parser("set-plan", help="Change a user's plan and grant its monthly credits")
    set_plan.add_argument("user_id")
    set_plan.add_argument("plan", choices=sorted(DEFAULT_PLAN_CREDITS))

    credits = subparsers.add_parser("add-credits", help="Grant credits to a user")
    credits.add_argument("user_id")
    credits.add_argument("amount", type=int)
    credits.add_argument("--type", dest="transaction_type", default="bonus", choices=["earned", "bonus", "refund"])

    balance = subparsers.add_parser("balance", help="Show subscription and credit balance")
    balance.add_argument("user_id")

    subparsers.add_parser("providers", help="List providers and whether they are configured")

    estimate = subparsers.add_parser("estimate", help="Estimate the credit cost of a generation")
    estimate.add_argument("--provider")
    estimate.add_argument("--complexity", default=None, choices=COMPLEXITIES)
    estimate.add_argument("--length", type=int, default=500)

    generate = subparsers.add_parser("generate", help="Generate a structured prompt (billed)")
    generate.add_argument("user_id")
    generate.add_argument("text")
    generate.add_argument("--structure", default="standard", choices=STRUCTURE_TYPES)
    generate.add_argument("--complexity", default=None, choices=COMPLEXITIES)
    generate.add_argument("--category", default="ai")
    generate.add_argument("--type", dest="prompt_type", default="assistant")
    generate.add_argument("--language", default="English")
    generate.add_argument("--file-context", help="Path to a text file added as context")
    generate.add_argument("--format", default="markdown", choices=sorted(EXPORT_FORMATS))

    regen = subparsers.add_parser("regenerate", help="Re-run a stored generation (billed again)")
    regen.add_argument("user_id")
    regen.add_argument("generation_id", type=int)
    regen.add_argument("--format", default="markdown", choices=sorted(EXPORT_FORMATS))

    history = subparsers.add_parser("history", help="List past generations")
    history.add_argument("user_id")
    history.add_argument("--limit", type=int, default=20)

    usage = subparsers.add_parser("usage", help="Show AI usage and credit transactions")
    usage.add_argument("user_id")
    usage.add_argument("--days", type=int, default=30)
    return parser


def _build_ledger(config, conn) -> CreditLedgerGateway:
    ledger_cfg = config["ledger"]
    if ledger_cfg.get("backend") == "remote":
        backend = RemoteLedger(
            url=str(ledger_cfg.get("remote_url", "")),
            access_token=os.getenv("LEDGER_ACCESS_TOKEN", ""),
            timeout_seconds=int(ledger_cfg.get("timeout_seconds", 15)),
        )
    else:
        backend = SQLiteLedger(conn)
    return CreditLedgerGateway(backend)


def _build_orchestrator(config, conn) -> GenerationOrchestrator:
    capabilities = build_capability_map(load_credentials())
    generator = PromptGenerator(capabilities, timeout_seconds=int(config["llm"].get("timeout_seconds", 60)))
    return GenerationOrchestrator(
        ai_config=load_ai_config(config),
        calculator=CostCalculator.from_settings(config),
        ledger=_build_ledger(config, conn),
        generator=generator,
    )


def _plan_credits(config) -> dict:
    return {name: int(plan.get("credits", 0)) for name, plan in config.get("plans", {}).items()}


def _run_generation(call, fmt: str) -> int:
    try:
        outcome = call()
    except NotAuthorizedError as exc:
        print(f"Not authorized: {exc}")
        return 2
    except InsufficientCreditsError as exc:
        print(f"Insufficient credits: {exc.required} required")
        return 3
    except GenerationError as exc:
        print(f"Generation failed ({exc.provider}, {exc.code}): {exc.message}")
        return 4
    result, generation = outcome
    print(f"Generation #{generation['id']} via {result.provider}:{model_display_name(result.model)}")
    print(f"Tokens: {result.tokens_used if result.tokens_used is not None else '?'} | Time: {result.generation_time}ms")
    print()
    print(render_content(result.content, fmt))
    return 0


def main() -> int:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args()
    command = args.command or "providers"

    config = load_settings(args.settings)
    logging.basicConfig(
        level=str(config["logging"].get("level", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    db_path = config["database"]["path"]
    apply_migrations(db_path)

    if command == "init-db":
        print(f"Database initialized at {db_path}")
        return 0

    if command == "providers":
        capabilities = build_capability_map(load_credentials())
        ai_config = load_ai_config(config)
        print(f"Active: {ai_config.provider}:{model_display_name(ai_config.model)}")
        for provider_id, info in AI_PROVIDERS.items():
            status = "configured" if capabilities.get(provider_id) else "missing key"
            print(f"- {provider_id} ({info.name}): {status}; models={', '.join(info.models)}")
        return 0

    if command == "estimate":
        ai_config = load_ai_config(config)
        calculation = CostCalculator.from_settings(config).estimate(
            PROMPT_GENERATION,
            ai_config,
            provider=args.provider,
            complexity=args.complexity or ai_config.default_complexity,
            prompt_length=args.length,
        )
        print(format_cost_breakdown(calculation))
        return 0

    with get_connection(db_path) as conn:
        if command == "init-user":
            sub = initialize_user_subscription(conn, args.user_id, args.plan, _plan_credits(config))
            print(f"User {args.user_id}: plan={sub['plan_type']} status={sub['status']}")
            return 0

        if command == "set-plan":
            granted = change_plan(conn, args.user_id, args.plan, _plan_credits(config))
            print(f"User {args.user_id}: plan={args.plan} (+{granted} credits)")
            return 0

        if command == "add-credits":
            new_balance = _build_ledger(config, conn).add_credits(
                args.user_id, args.amount, args.transaction_type, "Credits added from CLI"
            )
            print(f"New balance: {new_balance}")
            return 0

        if command == "balance":
            info = _build_ledger(config, conn).get_subscription_info(args.user_id)
            if info is None:
                print(f"No subscription for {args.user_id}. Run init-user first.")
                return 1
            print(
                f"plan={info.plan_type} status={info.status} credits={info.credits_balance} "
                f"can_use_ai={info.can_use_ai}"
            )
            return 0

        if command == "history":
            for item in list_history(conn, args.user_id, limit=args.limit):
                cfg = item["config"]
                print(
                    f"#{item['id']} {item['created_at']} {cfg['structure_type']}/{cfg['complexity']} "
                    f"{item['provider']}:{item['model']} \"{cfg['user_input'][:60]}\""
                )
            return 0

        if command == "usage":
            stats = get_usage_stats(conn, args.user_id, days=args.days)
            print(json.dumps(stats["summary"], indent=2))
            for tx in list_credit_transactions(conn, args.user_id, limit=10):
                print(f"- {tx['created_at']} {tx['transaction_type']} {tx['amount']} -> {tx['balance_after']}")
            return 0

        orchestrator = _build_orchestrator(config, conn)

        if command == "generate":
            file_context = None
            if args.file_context:
                file_context = Path(args.file_context).read_text(encoding="utf-8")
            gen_config = GenerationConfig(
                user_input=args.text,
                structure_type=args.structure,
                complexity=args.complexity or orchestrator.ai_config.default_complexity,
                category=args.category,
                type=args.prompt_type,
                language=args.language,
                file_context=file_context,
            )

            def _call():
                result = orchestrator.generate(args.user_id, gen_config)
                return result, save_generation(conn, args.user_id, gen_config, result)

            return _run_generation(_call, args.format)

        if command == "regenerate":
            previous = get_generation(conn, args.generation_id)
            if not previous or previous["user_id"] != args.user_id:
                print(f"Generation #{args.generation_id} not found")
                return 1

            def _call():
                outcome = regenerate(orchestrator, conn, args.user_id, args.generation_id)
                return outcome["result"], outcome["generation"]

            return _run_generation(_call, args.format)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
