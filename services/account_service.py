import sqlite3

import structlog

from database.account_dao import AccountDAO
from database.category_dao import CategoryDAO
from database.db_manager import DatabaseManager
from database.transaction_dao import TransactionDAO
from engine import milliunits as mu
from engine.errors import DomainError, NotFoundError
from models.account import Account
from services.budget_service import BudgetService
from services.category_service import CategoryService
from utils.constants import ACCOUNT_TYPES, STARTING_BALANCE_PAYEE
from utils.date_helpers import month_of, parse_date, today_str

log = structlog.get_logger(__name__)


class AccountService:
    def __init__(
        self,
        db: DatabaseManager,
        account_dao: AccountDAO,
        tx_dao: TransactionDAO,
        category_dao: CategoryDAO,
        category_service: CategoryService,
        budget_service: BudgetService,
    ):
        self._db = db
        self._dao = account_dao
        self._tx_dao = tx_dao
        self._category_dao = category_dao
        self._categories = category_service
        self._budget = budget_service

    def get_all(self, budget_id: int) -> list[Account]:
        return self._dao.get_all(self._db.get_connection(), budget_id)

    def get_account(self, budget_id: int, account_id: int) -> Account:
        account = self._dao.get_in_budget(self._db.get_connection(), budget_id, account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    def create_account(
        self,
        budget_id: int,
        name: str,
        type_: str = "checking",
        starting_balance: int = 0,
        date: str | None = None,
        note: str = "",
    ) -> Account:
        """Create an account, its starting-balance transaction and, for cards, the payment category."""
        name = (name or "").strip()
        if not name:
            raise DomainError("Account name cannot be empty.")
        self._validate_type(type_)
        starting_balance = mu.milliunit(starting_balance)
        date = date or today_str()
        if parse_date(date) is None:
            raise DomainError("Invalid date format. Use YYYY-MM-DD.")

        with self._db.transaction() as conn:
            if any(a.name == name for a in self._dao.get_all(conn, budget_id)):
                raise DomainError(f"An account named '{name}' already exists.")
            account = self._dao.create(conn, budget_id, name, type_, note.strip())
            if account.is_credit:
                self._categories.ensure_card_payment_category(conn, budget_id, account)
            if starting_balance != 0:
                category_id = None
                if account.is_on_budget:
                    income = self._category_dao.get_income_category(conn, budget_id)
                    if income is None:
                        raise NotFoundError("Income category for budget", budget_id)
                    category_id = income.id
                self._tx_dao.create(
                    conn,
                    account_id=account.id,
                    date=date,
                    payee=STARTING_BALANCE_PAYEE,
                    category_id=category_id,
                    outflow=max(0, -starting_balance),
                    inflow=max(0, starting_balance),
                    cleared="Cleared",
                )
                self._budget.recompute_derived(conn, budget_id, [month_of(date)])
            account = self.refresh_balances(conn, account.id)
        log.info(
            "account_created",
            budget_id=budget_id, account_id=account.id, type=type_,
            starting_balance=starting_balance,
        )
        return account

    def close_account(self, budget_id: int, account_id: int) -> Account:
        with self._db.transaction() as conn:
            account = self._dao.get_in_budget(conn, budget_id, account_id)
            if account is None:
                raise NotFoundError("Account", account_id)
            if account.balance != 0:
                raise DomainError("Only accounts with a zero balance can be closed.")
            self._dao.set_closed(conn, account_id, True)
            return self._dao.get_by_id(conn, account_id)

    def refresh_balances(self, conn: sqlite3.Connection, account_id: int) -> Account:
        """Recompute balance, cleared and uncleared from the account's transactions."""
        totals = self._tx_dao.get_account_totals(conn, account_id)
        balance = mu.milliunit(totals["balance"])
        cleared = mu.milliunit(totals["cleared"])
        self._dao.update_balances(conn, account_id, balance, cleared, mu.sub(balance, cleared))
        return self._dao.get_by_id(conn, account_id)

    # ── Helpers ──────────────────────────────────────────────────────────────

    @staticmethod
    def _validate_type(type_: str):
        if type_ not in ACCOUNT_TYPES:
            raise DomainError(
                f"Invalid account type '{type_}'. "
                f"Must be one of: {', '.join(ACCOUNT_TYPES)}."
            )
