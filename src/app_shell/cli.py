import argparse
import logging
import sys
from pathlib import Path

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.repos import (
    SQLiteCourseCatalog,
    SQLitePaymentLedger,
    SQLiteUserProfileRepo,
)
from src.api.auth_utils import issue_user_token
from src.api.deps import Settings, build_payment_orchestrator
from src.app_shell.config import validate_ops_rules
from src.app_shell.seed import seed_demo_data
from src.components.payments import PaymentOrchestrator
from src.core.ports.db import ProfileNotFound
from src.rules.loader import load_rules
from src.rules.models import Rules

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cli")


def get_rules(settings: Settings) -> Rules:
    if not settings.rules_path.exists():
        logger.error("Rules file %s not found.", settings.rules_path)
        sys.exit(1)

    rules = load_rules(settings.rules_path)
    validate_ops_rules(rules, settings.base_dir)
    return rules


def get_orchestrator(settings: Settings) -> PaymentOrchestrator:
    return build_payment_orchestrator(settings, get_rules(settings))


def handle_migrate(settings: Settings, args: argparse.Namespace) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    applied = SQLiteMigrator(settings.db_path, str(settings.migrations_dir)).run_migrations()
    print(f"Applied {len(applied)} migrations to {settings.db_path}.")


def handle_seed(settings: Settings, args: argparse.Namespace) -> None:
    handle_migrate(settings, args)
    count = seed_demo_data(
        SQLiteCourseCatalog(settings.db_path), SQLiteUserProfileRepo(settings.db_path)
    )
    print(f"Seeded {count} courses.")


def handle_expire(settings: Settings, args: argparse.Namespace) -> None:
    report = get_orchestrator(settings).expire_stale()
    print(
        f"Expired {len(report.expired)}, completed {len(report.completed)}, "
        f"unapplied {len(report.unapplied)}."
    )
    for txn in report.unapplied:
        print(f"  needs support: {txn}")


def handle_reconcile(settings: Settings, args: argparse.Namespace) -> None:
    report = get_orchestrator(settings).reconcile(batch_size=args.batch_size)
    print(
        f"Checked {report.checked}, repaired {len(report.repaired)}, "
        f"still failing {len(report.failed)}."
    )
    for txn in report.failed:
        print(f"  still failing: {txn}")
    if report.failed:
        sys.exit(2)


def handle_set_role(settings: Settings, args: argparse.Namespace) -> None:
    try:
        profile = SQLiteUserProfileRepo(settings.db_path).set_role(args.user_id, args.role)
    except ProfileNotFound:
        logger.error("User %s has no profile.", args.user_id)
        sys.exit(1)
    print(f"User {profile.id} is now '{profile.role}'.")


def handle_payments(settings: Settings, args: argparse.Namespace) -> None:
    ledger = SQLitePaymentLedger(settings.db_path)
    records = ledger.list_by_status(args.status, limit=args.limit)
    for r in records:
        print(
            f"{r.created_at:%Y-%m-%d %H:%M} {r.transaction_id} {r.status:<9} "
            f"{r.provider:<12} {r.user_id} {r.item_kind}:{r.item_id} {r.amount} {r.currency}"
        )
    print(f"{len(records)} records.")


def handle_token(settings: Settings, args: argparse.Namespace) -> None:
    print(issue_user_token(args.user_id))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Lumora LMS CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("migrate", help="Apply database migrations")
    subparsers.add_parser("seed", help="Migrate and load the demo catalog")
    subparsers.add_parser("expire_intents", help="Fail purchase intents past their deadline")

    reconcile_parser = subparsers.add_parser(
        "reconcile", help="Re-apply completed payments missing their entitlement"
    )
    reconcile_parser.add_argument("--batch-size", type=int, default=1000)

    role_parser = subparsers.add_parser("set-role", help="Operator role assignment")
    role_parser.add_argument("user_id")
    role_parser.add_argument("role", choices=["student", "teacher", "admin"])

    payments_parser = subparsers.add_parser("payments", help="List ledger records")
    payments_parser.add_argument("--status", choices=["pending", "completed", "failed"])
    payments_parser.add_argument("--limit", type=int, default=50)

    token_parser = subparsers.add_parser("token", help="Issue a dev access token")
    token_parser.add_argument("user_id")

    args = parser.parse_args(argv)
    settings = Settings()

    handlers = {
        "migrate": handle_migrate,
        "seed": handle_seed,
        "expire_intents": handle_expire,
        "reconcile": handle_reconcile,
        "set-role": handle_set_role,
        "payments": handle_payments,
        "token": handle_token,
    }
    handlers[args.command](settings, args)


if __name__ == "__main__":
    main()
