import sqlite3
from typing import Iterable, Optional

import structlog

from database.account_dao import AccountDAO
from database.budget_dao import BudgetDAO
from database.category_dao import CategoryDAO
from database.db_manager import DatabaseManager
from database.ledger_dao import LedgerDAO
from database.transaction_dao import TransactionDAO
from engine import milliunits as mu
from engine.carryover import carryover, compute_available, propagate
from engine.cc_payment import card_payment_activity
from engine.errors import DomainError, NotFoundError
from engine.overspending import OverspendingType, cash_overspending, classify
from engine.rta import compute_breakdown, compute_rta
from models.budget import Budget, BudgetRow, RTABreakdown
from models.category import Category
from models.ledger_entry import LedgerEntry
from utils.constants import INCOME_CATEGORY_NAME, INCOME_GROUP_NAME, MAX_ASSIGNED_VALUE
from utils.date_helpers import next_month, prev_month, require_month

log = structlog.get_logger(__name__)


def _month(month: str) -> str:
    try:
        return require_month(month)
    except ValueError as e:
        raise DomainError(str(e)) from None


class BudgetService:
    """Assignment, move money, derived-state refresh and Ready to Assign.

    Every write runs inside ``DatabaseManager.transaction()``. Methods that take
    ``conn`` run inside the caller's unit of work instead of opening one.
    """

    def __init__(
        self,
        db: DatabaseManager,
        budget_dao: BudgetDAO,
        category_dao: CategoryDAO,
        ledger_dao: LedgerDAO,
        tx_dao: TransactionDAO,
        account_dao: AccountDAO,
    ):
        self._db = db
        self._budget_dao = budget_dao
        self._category_dao = category_dao
        self._ledger = ledger_dao
        self._tx_dao = tx_dao
        self._account_dao = account_dao

    # ── Budgets ───────────────────────────────────────────────────────────────

    def create_budget(self, name: str, currency_symbol: str = "$") -> Budget:
        """Create a budget with its income group and Ready to Assign category."""
        name = name.strip()
        if not name:
            raise DomainError("Budget name is required.")
        with self._db.transaction() as conn:
            budget = self._budget_dao.create(conn, name, currency_symbol)
            group = self._category_dao.create_group(
                conn, budget.id, INCOME_GROUP_NAME, is_income=True
            )
            self._category_dao.create(conn, group.id, INCOME_CATEGORY_NAME)
        log.info("budget_created", budget_id=budget.id, name=name)
        return budget

    def get_budget(self, budget_id: int) -> Budget:
        budget = self._budget_dao.get_by_id(self._db.get_connection(), budget_id)
        if budget is None:
            raise NotFoundError("Budget", budget_id)
        return budget

    # ── Assignment ────────────────────────────────────────────────────────────

    def update_budget_assignment(self, budget_id: int, category_id: int, month: str,
                                 assigned: int) -> Optional[LedgerEntry]:
        """Set the assigned amount for (category, month) and carry the change forward.

        Card-payment funding for the month is refreshed in the same unit of work.
        """
        month = _month(month)
        assigned = mu.milliunit(assigned)
        if abs(assigned) > MAX_ASSIGNED_VALUE:
            raise DomainError(
                f"Assigned value {assigned} exceeds the maximum of {MAX_ASSIGNED_VALUE}."
            )
        with self._db.transaction() as conn:
            category = self._require_budget_category(conn, budget_id, category_id)
            existing = self._ledger.get(conn, category_id, month)
            delta = mu.sub(assigned, existing.assigned if existing else 0)
            self._shift_assigned(conn, budget_id, category, month, delta)
            self._refresh_month(conn, budget_id, month)
            entry = self._ledger.get(conn, category_id, month)
        log.info(
            "assignment_updated",
            budget_id=budget_id, category_id=category_id, month=month,
            assigned=assigned, delta=delta,
        )
        return entry

    def move_money(self, budget_id: int, source_category_id: int,
                   target_category_id: int, month: str, amount: int):
        """Zero-sum transfer of assigned money between two categories.

        The source may go negative. Both categories' later months shift with it.
        """
        month = _month(month)
        amount = mu.milliunit(amount)
        if amount <= 0:
            raise DomainError("Amount to move must be positive.")
        if amount > MAX_ASSIGNED_VALUE:
            raise DomainError(
                f"Amount {amount} exceeds the maximum of {MAX_ASSIGNED_VALUE}."
            )
        if source_category_id == target_category_id:
            raise DomainError("Source and target categories must differ.")

        with self._db.transaction() as conn:
            source = self._require_budget_category(conn, budget_id, source_category_id)
            target = self._require_budget_category(conn, budget_id, target_category_id)
            self._shift_assigned(conn, budget_id, source, month, mu.neg(amount))
            self._shift_assigned(conn, budget_id, target, month, amount)
            self._refresh_month(conn, budget_id, month)
        log.info(
            "money_moved",
            budget_id=budget_id, source_category_id=source_category_id,
            target_category_id=target_category_id, month=month, amount=amount,
        )

    def _require_budget_category(self, conn: sqlite3.Connection, budget_id: int,
                                 category_id: int) -> Category:
        category = self._category_dao.get_by_id(conn, category_id)
        if category is None or category.budget_id != budget_id:
            raise NotFoundError("Category", category_id)
        if category.is_income:
            raise DomainError(f"Cannot assign money to income category {category.name!r}.")
        return category

    def _shift_assigned(self, conn: sqlite3.Connection, budget_id: int,
                        category: Category, month: str, delta: int) -> Optional[LedgerEntry]:
        """Add delta to assigned and available of one row, then cascade it forward."""
        is_card = category.is_credit_card_payment
        entry = self._ledger.get(conn, category.id, month)
        if entry is None:
            # an absent row starts from the carried-in balance
            entry = LedgerEntry(
                category_id=category.id,
                month=month,
                available=carryover(self._prior_available(conn, category.id, month), is_card),
                budget_id=budget_id,
            )
        old_available = entry.available
        entry.assigned = mu.add(entry.assigned, delta)
        entry.available = mu.add(entry.available, delta)
        entry.budget_id = budget_id
        stored = self._ledger.save(conn, entry)
        self._cascade(conn, category, month, old_available, entry.available)
        return stored

    # ── Carry-forward helpers ─────────────────────────────────────────────────

    def _prior_available(self, conn: sqlite3.Connection, category_id: int, month: str) -> int:
        previous = self._ledger.get_previous(conn, category_id, month)
        return previous.available if previous else mu.ZERO

    def _available_in(self, conn: sqlite3.Connection, category: Category, month: str) -> int:
        """Stored available, or the carried-in balance when the month has no row."""
        entry = self._ledger.get(conn, category.id, month)
        if entry is not None:
            return entry.available
        return carryover(self._prior_available(conn, category.id, month),
                         category.is_credit_card_payment)

    def _cascade(self, conn: sqlite3.Connection, category: Category, month: str,
                 old_available: int, new_available: int):
        if old_available == new_available:
            return
        later = self._ledger.list_month_range(conn, category.id, next_month(month))
        for entry in propagate(later, old_available, new_available,
                               category.is_credit_card_payment):
            self._ledger.save(conn, entry)

    # ── Derived state ─────────────────────────────────────────────────────────

    def refresh_all_budget_activity(self, budget_id: int, month: str):
        """Recompute activity and available of every category for a month. Idempotent."""
        month = _month(month)
        with self._db.transaction() as conn:
            if self._budget_dao.get_by_id(conn, budget_id) is None:
                raise NotFoundError("Budget", budget_id)
            self._refresh_month(conn, budget_id, month)
        log.info("budget_activity_refreshed", budget_id=budget_id, month=month)

    def recompute_derived(self, conn: sqlite3.Connection, budget_id: int,
                          months: Iterable[str]):
        """Refresh each affected month once, oldest first, in the caller's unit of work."""
        for month in sorted(set(months)):
            self._refresh_month(conn, budget_id, month)

    def _refresh_month(self, conn: sqlite3.Connection, budget_id: int, month: str):
        activity = self._tx_dao.get_activity_by_category(conn, budget_id, month)
        categories = self._category_dao.get_all(conn, budget_id, include_income=False)

        # card-payment funding reads the spending categories' refreshed balances
        for category in categories:
            if not category.is_credit_card_payment:
                self._set_activity(conn, budget_id, category, month,
                                   activity.get(category.id, 0))

        for account in self._account_dao.get_credit_accounts(conn, budget_id):
            card_category = self._category_dao.get_by_linked_account(conn, account.id)
            if card_category is None:
                continue
            spending = []
            for category_id, net in self._tx_dao.get_card_spending(
                conn, account.id, month, card_category.id
            ):
                spent_from = self._category_dao.get_by_id(conn, category_id)
                spending.append((net, self._available_in(conn, spent_from, month)))
            payments = self._tx_dao.sum_card_payments(conn, account.id, month)
            self._set_activity(conn, budget_id, card_category, month,
                               card_payment_activity(spending, payments))

    def _set_activity(self, conn: sqlite3.Connection, budget_id: int,
                      category: Category, month: str, activity: int):
        is_card = category.is_credit_card_payment
        entry = self._ledger.get(conn, category.id, month)
        prior = self._prior_available(conn, category.id, month)
        assigned = entry.assigned if entry else mu.ZERO
        old_available = entry.available if entry else carryover(prior, is_card)
        new_available = compute_available(prior, assigned, activity, is_card)
        if entry is None and activity == 0 and new_available == old_available:
            return
        if entry is not None and entry.activity == activity and entry.available == new_available:
            return
        self._ledger.upsert(conn, budget_id, category.id, month,
                            assigned, activity, new_available)
        self._cascade(conn, category, month, old_available, new_available)

    # ── Ready to Assign ───────────────────────────────────────────────────────

    def get_ready_to_assign(self, budget_id: int, month: str) -> int:
        month = _month(month)
        conn = self._db.get_connection()
        income = self._tx_dao.sum_income(conn, budget_id, to_month=month)
        assigned = self._ledger.sum_assigned(conn, budget_id, to_month=month)
        overspent = cash_overspending(
            self._ledger.list_negative_available(conn, budget_id, to_month=prev_month(month))
        )
        return compute_rta(income, assigned, overspent)

    def get_ready_to_assign_breakdown(self, budget_id: int, month: str) -> RTABreakdown:
        month = _month(month)
        previous = prev_month(month)
        conn = self._db.get_connection()
        return compute_breakdown(
            income_before=self._tx_dao.sum_income(conn, budget_id, to_month=previous),
            inflow_this_month=self._tx_dao.sum_income(conn, budget_id, month, month),
            assigned_before=self._ledger.sum_assigned(conn, budget_id, to_month=previous),
            assigned_this_month=self._ledger.sum_assigned(conn, budget_id, month, month),
            overspending_before_previous=cash_overspending(
                self._ledger.list_negative_available(
                    conn, budget_id, to_month=prev_month(previous)
                )
            ),
            overspending_previous_month=cash_overspending(
                self._ledger.list_negative_available(conn, budget_id, previous, previous)
            ),
            assigned_in_future=self._ledger.sum_assigned(
                conn, budget_id, from_month=next_month(month)
            ),
        )

    # ── Read views ────────────────────────────────────────────────────────────

    def get_overspending_types(self, budget_id: int, month: str) -> dict[int, OverspendingType]:
        """category_id -> overspending type, for overspent categories only."""
        month = _month(month)
        conn = self._db.get_connection()
        cash = self._tx_dao.get_cash_spending(conn, budget_id, month)
        result = {}
        for category in self._category_dao.get_all(conn, budget_id, include_income=False):
            kind = classify(self._available_in(conn, category, month),
                            cash.get(category.id, 0), category.linked_account_id)
            if kind is not None:
                result[category.id] = kind
        return result

    def get_budget_for_month(self, budget_id: int, month: str) -> list[BudgetRow]:
        """One row per non-income category; months without a stored row show the carry-in."""
        month = _month(month)
        conn = self._db.get_connection()
        groups = {g.id: g for g in self._category_dao.get_groups(conn, budget_id)}
        cash = self._tx_dao.get_cash_spending(conn, budget_id, month)
        rows = []
        for category in self._category_dao.get_all(conn, budget_id, include_income=False):
            entry = self._ledger.get(conn, category.id, month)
            available = self._available_in(conn, category, month)
            kind = classify(available, cash.get(category.id, 0), category.linked_account_id)
            rows.append(BudgetRow(
                category_id=category.id,
                category_name=category.name,
                category_group_id=category.category_group_id,
                group_name=category.group_name,
                month=month,
                assigned=entry.assigned if entry else 0,
                activity=entry.activity if entry else 0,
                available=available,
                group_hidden=groups[category.category_group_id].hidden,
                linked_account_id=category.linked_account_id,
                overspending=kind.value if kind else None,
            ))
        return rows
