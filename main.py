import argparse
import os
import sys
from dataclasses import dataclass

import structlog

# Ensure project root is on sys.path when run directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from database.db_manager import DatabaseManager
from database.account_dao import AccountDAO
from database.budget_dao import BudgetDAO
from database.category_dao import CategoryDAO
from database.ledger_dao import LedgerDAO
from database.transaction_dao import TransactionDAO

from services.account_service import AccountService
from services.budget_service import BudgetService
from services.category_service import CategoryService
from services.reconciliation_service import ReconciliationService
from services.transaction_service import TransactionService

from engine.errors import LedgerError
from engine.milliunits import to_milliunits
from utils.app_config import get_db_folder, get_log_level, set_db_folder
from utils.constants import ACCOUNT_TYPES, APP_NAME
from utils.currency import format_currency
from utils.date_helpers import current_month_str, friendly_month
from utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


@dataclass
class Services:
    db: DatabaseManager
    budgets: BudgetService
    categories: CategoryService
    accounts: AccountService
    transactions: TransactionService
    reconciliation: ReconciliationService


def build_services(db: DatabaseManager) -> Services:
    """Composition root: DAOs -> services."""
    # ── DAOs ─────────────────────────────────────────────────────────────────
    account_dao = AccountDAO()
    budget_dao = BudgetDAO()
    category_dao = CategoryDAO()
    ledger_dao = LedgerDAO()
    tx_dao = TransactionDAO()

    # ── Services ─────────────────────────────────────────────────────────────
    budget_svc = BudgetService(db, budget_dao, category_dao, ledger_dao, tx_dao, account_dao)
    category_svc = CategoryService(db, category_dao)
    account_svc = AccountService(db, account_dao, tx_dao, category_dao, category_svc, budget_svc)
    tx_svc = TransactionService(db, tx_dao, account_dao, category_dao, budget_svc, account_svc)
    recon_svc = ReconciliationService(db, account_dao, tx_dao, account_svc)
    return Services(db, budget_svc, category_svc, account_svc, tx_svc, recon_svc)


# ── Commands ──────────────────────────────────────────────────────────────────

def _cmd_create_budget(svc: Services, args) -> int:
    budget = svc.budgets.create_budget(args.name, args.currency)
    print(f"Created budget {budget.id}: {budget.name}")
    return 0


def _cmd_create_account(svc: Services, args) -> int:
    account = svc.accounts.create_account(
        args.budget, args.name, args.type, to_milliunits(args.balance), args.date
    )
    print(f"Created {account.type_label} account {account.id}: {account.name} "
          f"({format_currency(account.balance, _symbol(svc))})")
    return 0


def _cmd_show_month(svc: Services, args) -> int:
    symbol = _symbol(svc)
    month = args.month or current_month_str()
    rta = svc.budgets.get_ready_to_assign(args.budget, month)
    print(f"{friendly_month(month)}  Ready to Assign: {format_currency(rta, symbol)}")
    group = None
    for row in svc.budgets.get_budget_for_month(args.budget, month):
        if row.group_name != group:
            group = row.group_name
            print(f"\n{group}")
        flag = f"  [{row.overspending}]" if row.overspending else ""
        print(f"  {row.category_id:>4} {row.category_name:<28}"
              f"{format_currency(row.assigned, symbol):>14}"
              f"{format_currency(row.activity, symbol):>14}"
              f"{format_currency(row.available, symbol):>14}{flag}")
    return 0


def _cmd_rta(svc: Services, args) -> int:
    symbol = _symbol(svc)
    month = args.month or current_month_str()
    b = svc.budgets.get_ready_to_assign_breakdown(args.budget, month)
    print(f"Left over from last month:   {format_currency(b.left_over_from_previous_month, symbol)}")
    print(f"Inflow this month:           {format_currency(b.inflow_this_month, symbol)}")
    print(f"Assigned this month:         {format_currency(-b.assigned_this_month, symbol)}")
    print(f"Overspent last month:        {format_currency(-b.cash_overspending_previous_month, symbol)}")
    print(f"Ready to Assign:             {format_currency(b.ready_to_assign, symbol)}")
    if b.assigned_in_future:
        print(f"(Assigned in future months:  {format_currency(b.assigned_in_future, symbol)})")
    return 0


def _cmd_assign(svc: Services, args) -> int:
    svc.budgets.update_budget_assignment(
        args.budget, args.category, args.month, to_milliunits(args.amount)
    )
    return 0


def _cmd_move(svc: Services, args) -> int:
    svc.budgets.move_money(
        args.budget, args.source, args.target, args.month, to_milliunits(args.amount)
    )
    return 0


def _cmd_refresh(svc: Services, args) -> int:
    svc.budgets.refresh_all_budget_activity(args.budget, args.month or current_month_str())
    return 0


def _cmd_reconcile(svc: Services, args) -> int:
    symbol = _symbol(svc)
    result = svc.reconciliation.reconcile_account_atomic(
        args.budget, args.account, to_milliunits(args.bank_balance)
    )
    if result.matched:
        print(f"Reconciled {result.reconciled_count} transaction(s).")
        return 0
    print(f"Balances differ by {format_currency(result.difference, symbol)}; nothing changed.")
    return 1


def _cmd_set_currency(svc: Services, args) -> int:
    svc.db.set_setting("currency_symbol", args.symbol)
    return 0


def _cmd_set_db_folder(svc: Services | None, args) -> int:
    set_db_folder(args.path or None)
    return 0


def _symbol(svc: Services) -> str:
    return svc.db.get_setting("currency_symbol", "$")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="zbbudget", description=f"{APP_NAME} ledger")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create-budget", help="Create a budget")
    p.add_argument("name")
    p.add_argument("--currency", default="$")
    p.set_defaults(func=_cmd_create_budget)

    p = sub.add_parser("create-account", help="Create an account")
    p.add_argument("budget", type=int)
    p.add_argument("name")
    p.add_argument("--type", choices=ACCOUNT_TYPES, default="checking")
    p.add_argument("--balance", default="0", help="Starting balance, e.g. 1250.00")
    p.add_argument("--date", help="Starting balance date (YYYY-MM-DD)")
    p.set_defaults(func=_cmd_create_account)

    p = sub.add_parser("show", help="Show the budget for a month")
    p.add_argument("budget", type=int)
    p.add_argument("month", nargs="?")
    p.set_defaults(func=_cmd_show_month)

    p = sub.add_parser("rta", help="Ready to Assign breakdown")
    p.add_argument("budget", type=int)
    p.add_argument("month", nargs="?")
    p.set_defaults(func=_cmd_rta)

    p = sub.add_parser("assign", help="Set a category's assigned amount")
    p.add_argument("budget", type=int)
    p.add_argument("category", type=int)
    p.add_argument("month")
    p.add_argument("amount")
    p.set_defaults(func=_cmd_assign)

    p = sub.add_parser("move", help="Move money between categories")
    p.add_argument("budget", type=int)
    p.add_argument("source", type=int)
    p.add_argument("target", type=int)
    p.add_argument("month")
    p.add_argument("amount")
    p.set_defaults(func=_cmd_move)

    p = sub.add_parser("refresh", help="Recompute activity for a month")
    p.add_argument("budget", type=int)
    p.add_argument("month", nargs="?")
    p.set_defaults(func=_cmd_refresh)

    p = sub.add_parser("reconcile", help="Reconcile an account against a bank balance")
    p.add_argument("budget", type=int)
    p.add_argument("account", type=int)
    p.add_argument("bank_balance")
    p.set_defaults(func=_cmd_reconcile)

    p = sub.add_parser("set-currency", help="Set the currency symbol used for display")
    p.add_argument("symbol")
    p.set_defaults(func=_cmd_set_currency)

    p = sub.add_parser("set-db-folder", help="Store the database folder in the config file")
    p.add_argument("path", nargs="?", default="")
    p.set_defaults(func=_cmd_set_db_folder, needs_db=False)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(get_log_level(), json=args.json_logs)

    if not getattr(args, "needs_db", True):
        return args.func(None, args)

    # ── Bootstrap: read DB folder from pre-DB config ──────────────────────────
    db = DatabaseManager.open(db_folder=get_db_folder())
    try:
        return args.func(build_services(db), args)
    except LedgerError as e:
        log.warning("command_failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 2
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
