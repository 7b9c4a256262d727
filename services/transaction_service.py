import sqlite3
from dataclasses import replace
from typing import Iterable, Optional

import structlog

from database.account_dao import AccountDAO
from database.category_dao import CategoryDAO
from database.db_manager import DatabaseManager
from database.transaction_dao import TransactionDAO
from engine import milliunits as mu
from engine.errors import DomainError, LockedTransactionError, NotFoundError
from models.account import Account
from models.transaction import Transaction, Transfer
from services.account_service import AccountService
from services.budget_service import BudgetService
from utils.constants import CLEARED_STATES, TRANSFER_PAYEE_PREFIX
from utils.date_helpers import month_of, parse_date

log = structlog.get_logger(__name__)

_EDITABLE_FIELDS = (
    "account_id", "date", "payee", "category_id", "memo",
    "outflow", "inflow", "cleared", "flag",
)


class TransactionService:
    """Compound transaction writes.

    Each operation runs in one unit of work and in two phases: ``_apply_*``
    writes the transaction rows, then ``_recompute`` refreshes the ledger
    months and account balances the write touched.
    """

    def __init__(
        self,
        db: DatabaseManager,
        tx_dao: TransactionDAO,
        account_dao: AccountDAO,
        category_dao: CategoryDAO,
        budget_service: BudgetService,
        account_service: AccountService,
    ):
        self._db = db
        self._dao = tx_dao
        self._account_dao = account_dao
        self._category_dao = category_dao
        self._budget = budget_service
        self._accounts = account_service

    def get_for_account(self, budget_id: int, account_id: int,
                        month: str | None = None) -> list[Transaction]:
        conn = self._db.get_connection()
        self._require_account(conn, budget_id, account_id)
        return self._dao.get_by_account(conn, account_id, month)

    def get_transaction(self, budget_id: int, transaction_id: int) -> Transaction:
        return self._require_transaction(self._db.get_connection(), budget_id, transaction_id)

    # ── Create / update / delete ──────────────────────────────────────────────

    def create_transaction_atomic(
        self,
        budget_id: int,
        account_id: int,
        date: str,
        payee: str = "",
        category_id: int | None = None,
        memo: str = "",
        outflow: int = 0,
        inflow: int = 0,
        cleared: str = "Uncleared",
        flag: str | None = None,
    ) -> Transaction:
        outflow, inflow = self._validate(date, outflow, inflow, cleared)
        with self._db.transaction() as conn:
            account = self._require_account(conn, budget_id, account_id)
            self._check_category(conn, budget_id, account, category_id)
            tx_id = self._dao.create(
                conn, account_id, date, payee.strip(), category_id, memo.strip(),
                outflow, inflow, cleared, flag,
            )
            self._recompute(conn, budget_id, [account_id], [month_of(date)])
            tx = self._dao.get_by_id(conn, tx_id)
        log.info(
            "transaction_created",
            budget_id=budget_id, transaction_id=tx.id, account_id=account_id,
            category_id=category_id, outflow=outflow, inflow=inflow,
        )
        return tx

    def update_transaction_atomic(self, budget_id: int, transaction_id: int,
                                  **changes) -> Transaction:
        """Apply field changes. Moving the date across months refreshes both months."""
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise DomainError(f"Unknown transaction fields: {', '.join(sorted(unknown))}.")
        with self._db.transaction() as conn:
            old = self._require_transaction(conn, budget_id, transaction_id)
            if old.is_reconciled:
                raise LockedTransactionError(transaction_id)
            new = replace(old, **changes)
            new.outflow, new.inflow = self._validate(new.date, new.outflow, new.inflow, new.cleared)
            account = self._require_account(conn, budget_id, new.account_id)
            self._check_category(conn, budget_id, account, new.category_id)

            accounts = [old.account_id, new.account_id]
            months = [old.month, new.month]
            if old.is_transfer:
                accounts.append(self._apply_transfer_update(conn, old, new))
            self._dao.update(conn, new)
            self._recompute(conn, budget_id, accounts, months)
            tx = self._dao.get_by_id(conn, transaction_id)
        log.info(
            "transaction_updated",
            budget_id=budget_id, transaction_id=transaction_id,
            fields=sorted(changes), months=sorted(set(months)),
        )
        return tx

    def delete_transaction_atomic(self, budget_id: int, transaction_id: int) -> Transaction:
        """Delete a transaction and return it. Deleting a transfer leg deletes both legs."""
        with self._db.transaction() as conn:
            tx = self._require_transaction(conn, budget_id, transaction_id)
            if tx.is_transfer:
                transfer = self._dao.get_transfer(conn, tx.transfer_id)
                self._apply_transfer_delete(conn, budget_id, transfer)
            else:
                if tx.is_reconciled:
                    raise LockedTransactionError(transaction_id)
                self._dao.delete(conn, transaction_id)
                self._recompute(conn, budget_id, [tx.account_id], [tx.month])
        log.info(
            "transaction_deleted",
            budget_id=budget_id, transaction_id=transaction_id,
            transfer_id=tx.transfer_id,
        )
        return tx

    def toggle_cleared_atomic(self, budget_id: int, transaction_id: int,
                              account_id: int) -> Transaction:
        """Uncleared <-> Cleared. Reconciled transactions are locked."""
        with self._db.transaction() as conn:
            tx = self._require_transaction(conn, budget_id, transaction_id)
            if tx.account_id != account_id:
                raise NotFoundError("Transaction", transaction_id)
            if tx.is_reconciled:
                raise LockedTransactionError(transaction_id)
            cleared = "Uncleared" if tx.cleared == "Cleared" else "Cleared"
            self._dao.set_cleared(conn, transaction_id, cleared)
            self._accounts.refresh_balances(conn, account_id)
            tx = self._dao.get_by_id(conn, transaction_id)
        log.info(
            "transaction_cleared_toggled",
            budget_id=budget_id, transaction_id=transaction_id, cleared=cleared,
        )
        return tx

    # ── Transfers ─────────────────────────────────────────────────────────────

    def create_transfer(
        self,
        budget_id: int,
        from_account_id: int,
        to_account_id: int,
        amount: int,
        date: str,
        memo: str = "",
        cleared: str = "Uncleared",
    ) -> Transfer:
        """Create both legs of a transfer. Transfers carry no category."""
        amount = mu.milliunit(amount)
        if amount <= 0:
            raise DomainError("Transfer amount must be positive.")
        if from_account_id == to_account_id:
            raise DomainError("Cannot transfer to the same account.")
        self._validate(date, amount, 0, cleared)
        with self._db.transaction() as conn:
            source = self._require_account(conn, budget_id, from_account_id)
            target = self._require_account(conn, budget_id, to_account_id)
            out_id = self._dao.create(
                conn, source.id, date, TRANSFER_PAYEE_PREFIX + target.name,
                memo=memo.strip(), outflow=amount, cleared=cleared,
            )
            in_id = self._dao.create(
                conn, target.id, date, TRANSFER_PAYEE_PREFIX + source.name,
                memo=memo.strip(), inflow=amount, cleared=cleared,
            )
            transfer = self._dao.create_transfer(conn, out_id, in_id)
            self._recompute(conn, budget_id, [source.id, target.id], [month_of(date)])
        log.info(
            "transfer_created",
            budget_id=budget_id, transfer_id=transfer.id,
            from_account_id=from_account_id, to_account_id=to_account_id, amount=amount,
        )
        return transfer

    def delete_transfer(self, budget_id: int, transfer_id: int):
        with self._db.transaction() as conn:
            transfer = self._dao.get_transfer(conn, transfer_id)
            if transfer is None or self._account_dao.get_in_budget(
                conn, budget_id, transfer.from_account_id
            ) is None:
                raise NotFoundError("Transfer", transfer_id)
            self._apply_transfer_delete(conn, budget_id, transfer)
        log.info("transfer_deleted", budget_id=budget_id, transfer_id=transfer_id)

    def _apply_transfer_delete(self, conn: sqlite3.Connection, budget_id: int,
                               transfer: Transfer):
        legs = [self._dao.get_by_id(conn, transfer.from_transaction_id),
                self._dao.get_by_id(conn, transfer.to_transaction_id)]
        for leg in legs:
            if leg.is_reconciled:
                raise LockedTransactionError(leg.id)
        self._dao.delete_transfer(conn, transfer)
        self._recompute(conn, budget_id,
                        [leg.account_id for leg in legs], [leg.month for leg in legs])

    def _apply_transfer_update(self, conn: sqlite3.Connection, old: Transaction,
                               new: Transaction) -> int:
        """Mirror date and amount onto the paired leg. Returns the paired leg's account id."""
        if new.account_id != old.account_id or new.category_id is not None:
            raise DomainError("Transfer legs cannot change account or take a category.")
        transfer = self._dao.get_transfer(conn, old.transfer_id)
        other_id = (transfer.to_transaction_id
                    if transfer.from_transaction_id == old.id
                    else transfer.from_transaction_id)
        other = self._dao.get_by_id(conn, other_id)
        if other.is_reconciled:
            raise LockedTransactionError(other.id)
        self._dao.update(conn, replace(other, date=new.date,
                                       outflow=new.inflow, inflow=new.outflow))
        return other.account_id

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _recompute(self, conn: sqlite3.Connection, budget_id: int,
                   account_ids: Iterable[int], months: Iterable[str]):
        self._budget.recompute_derived(conn, budget_id, months)
        for account_id in sorted(set(account_ids)):
            self._accounts.refresh_balances(conn, account_id)

    def _require_account(self, conn: sqlite3.Connection, budget_id: int,
                         account_id: int) -> Account:
        account = self._account_dao.get_in_budget(conn, budget_id, account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    def _require_transaction(self, conn: sqlite3.Connection, budget_id: int,
                             transaction_id: int) -> Transaction:
        tx = self._dao.get_in_budget(conn, budget_id, transaction_id)
        if tx is None:
            raise NotFoundError("Transaction", transaction_id)
        return tx

    def _check_category(self, conn: sqlite3.Connection, budget_id: int,
                        account: Account, category_id: Optional[int]):
        if category_id is None:
            return
        if not account.is_on_budget:
            raise DomainError("Transactions on tracking accounts cannot have a category.")
        category = self._category_dao.get_by_id(conn, category_id)
        if category is None or category.budget_id != budget_id:
            raise NotFoundError("Category", category_id)

    @staticmethod
    def _validate(date: str, outflow, inflow, cleared: str) -> tuple[int, int]:
        if not parse_date(date):
            raise DomainError("Invalid date format. Use YYYY-MM-DD.")
        if cleared not in CLEARED_STATES:
            raise DomainError(f"Invalid cleared state: {cleared}")
        if cleared == "Reconciled":
            raise DomainError("Transactions become Reconciled only through reconciliation.")
        outflow, inflow = mu.milliunit(outflow), mu.milliunit(inflow)
        if outflow < 0 or inflow < 0:
            raise DomainError("Outflow and inflow must not be negative.")
        if outflow and inflow:
            raise DomainError("A transaction has either an outflow or an inflow, not both.")
        return outflow, inflow
