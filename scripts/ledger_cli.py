#!/usr/bin/env python3
"""
Operator CLI for the NDIS budget ledger.

Usage:
    python scripts/ledger_cli.py init-db
    python scripts/ledger_cli.py backfill [--tenant UUID]
    python scripts/ledger_cli.py balance --tenant UUID --client UUID --category SIL
    python scripts/ledger_cli.py verify --tenant UUID

Every command prints one JSON document to stdout.  Configuration comes from
ndis_config (``--config`` or the default set; DATABASE_URL overrides the
database url).

Exit codes: 0 success, 1 the command completed but found problems
(backfill errors, balance drift, broken audit chain), 2 a ledger error.
"""

import argparse
import json
import sys
from pathlib import Path
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from ndis_batch import run_backfill
from ndis_config import get_active_config
from ndis_config.bridges import build_ledger_policy, init_engine_from_config
from ndis_kernel.db.engine import create_tables, get_session_factory, session_scope
from ndis_kernel.db.immutability import register_immutability_listeners
from ndis_kernel.exceptions import AuditChainBrokenError, LedgerError
from ndis_kernel.selectors.budget_selector import BudgetSelector
from ndis_kernel.services.auditor_service import AuditorService
from ndis_kernel.services.ledger_service import LedgerService


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="NDIS budget ledger operations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and install immutability triggers")

    backfill = sub.add_parser("backfill", help="Charge completed shifts with no transaction")
    backfill.add_argument("--tenant", type=UUID, default=None, help="Limit to one tenant")

    balance = sub.add_parser("balance", help="Remaining balance of a participant category")
    balance.add_argument("--tenant", type=UUID, required=True)
    balance.add_argument("--client", type=UUID, required=True)
    balance.add_argument("--category", required=True, help="CommunityAccess, SIL or CapacityBuilding")

    verify = sub.add_parser("verify", help="Recompute balances and validate the audit chain")
    verify.add_argument("--tenant", type=UUID, required=True)

    return parser.parse_args(argv)


def _emit(document: dict) -> None:
    print(json.dumps(document, indent=2, sort_keys=True, default=str))


def cmd_init_db(args, policy) -> int:
    create_tables(install_triggers=True)
    _emit({"command": "init-db", "status": "ok"})
    return 0


def cmd_backfill(args, policy) -> int:
    report = run_backfill(
        tenant_id=args.tenant,
        session_factory=get_session_factory(),
        policy=policy,
    )
    _emit({"command": "backfill", **report.to_dict()})
    return 1 if report.errors else 0


def cmd_balance(args, policy) -> int:
    with session_scope() as session:
        remaining = LedgerService(session).get_remaining_balance(
            args.client, args.tenant, args.category
        )
    _emit(
        {
            "command": "balance",
            "tenant_id": str(args.tenant),
            "client_id": str(args.client),
            "category": args.category,
            "remaining": str(remaining),
        }
    )
    return 0


def cmd_verify(args, policy) -> int:
    budgets = []
    chain = {"valid": True}
    with session_scope() as session:
        ledger = LedgerService(session)
        for budget_id in BudgetSelector(session).list_budget_ids(args.tenant):
            result = ledger.verify_budget(budget_id, args.tenant)
            budgets.append(
                {
                    "budget_id": str(budget_id),
                    "consistent": result.is_consistent,
                    "drift": [
                        {
                            "category": d.category.value,
                            "expected_remaining": str(d.expected_remaining),
                            "stored_remaining": str(d.stored_remaining),
                        }
                        for d in result.drift
                    ],
                }
            )
        try:
            AuditorService(session).validate_chain(args.tenant)
        except AuditChainBrokenError as exc:
            chain = {"valid": False, "seq": exc.seq, "error": str(exc)}

    ok = chain["valid"] and all(b["consistent"] for b in budgets)
    _emit(
        {
            "command": "verify",
            "tenant_id": str(args.tenant),
            "budgets": budgets,
            "audit_chain": chain,
            "ok": ok,
        }
    )
    return 0 if ok else 1


COMMANDS = {
    "init-db": cmd_init_db,
    "backfill": cmd_backfill,
    "balance": cmd_balance,
    "verify": cmd_verify,
}


def main(argv=None) -> int:
    args = _parse_args(argv)
    config = get_active_config(args.config)
    init_engine_from_config(config)
    register_immutability_listeners()
    policy = build_ledger_policy(config)

    try:
        return COMMANDS[args.command](args, policy)
    except LedgerError as exc:
        _emit({"command": args.command, "error": exc.code, "message": str(exc)})
        return 2


if __name__ == "__main__":
    sys.exit(main())
