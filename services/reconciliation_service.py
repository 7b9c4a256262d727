"""Bank reconciliation.

The user enters the balance on their statement; if it agrees with the
account's cleared balance to within a cent, every Cleared transaction on the
account becomes Reconciled and can no longer change. A mismatch is an
ordinary result, not an error.
"""
import structlog

from database.account_dao import AccountDAO
from database.db_manager import DatabaseManager
from database.transaction_dao import TransactionDAO
from engine import milliunits as mu
from engine.errors import DomainError, NotFoundError
from models.reconciliation import (
    ReconciliationInfo,
    ReconciliationMatch,
    ReconciliationMismatch,
    ReconciliationState,
)
from services.account_service import AccountService
from utils.constants import RECONCILIATION_TOLERANCE

log = structlog.get_logger(__name__)


class ReconciliationService:
    def __init__(
        self,
        db: DatabaseManager,
        account_dao: AccountDAO,
        tx_dao: TransactionDAO,
        account_service: AccountService,
    ):
        self._db = db
        self._account_dao = account_dao
        self._tx_dao = tx_dao
        self._accounts = account_service

    def get_reconciliation_info(self, budget_id: int, account_id: int) -> ReconciliationInfo:
        conn = self._db.get_connection()
        if self._account_dao.get_in_budget(conn, budget_id, account_id) is None:
            raise NotFoundError("Account", account_id)
        totals = self._tx_dao.get_account_totals(conn, account_id)
        return ReconciliationInfo(
            cleared_balance=totals["cleared"],
            reconciled_balance=totals["reconciled"],
            pending_cleared_balance=totals["pending_cleared"],
            pending_cleared_count=totals["pending_cleared_count"],
        )

    def reconcile_account_atomic(self, budget_id: int, account_id: int, bank_balance: int):
        """Lock the account's Cleared transactions if bank_balance matches the cleared balance.

        Returns ReconciliationMatch(reconciled_count) or, with nothing changed,
        ReconciliationMismatch(difference) where difference = bank - cleared.
        """
        bank_balance = mu.milliunit(bank_balance)
        with self._db.transaction() as conn:
            if self._account_dao.get_in_budget(conn, budget_id, account_id) is None:
                raise NotFoundError("Account", account_id)
            cleared = mu.milliunit(self._tx_dao.get_account_totals(conn, account_id)["cleared"])
            difference = mu.sub(bank_balance, cleared)
            if mu.abs_(difference) > RECONCILIATION_TOLERANCE:
                result = ReconciliationMismatch(difference=difference)
            else:
                count = self._tx_dao.reconcile_cleared(conn, account_id)
                self._accounts.refresh_balances(conn, account_id)
                result = ReconciliationMatch(reconciled_count=count)

        if result.matched:
            log.info("account_reconciled", budget_id=budget_id, account_id=account_id,
                     reconciled_count=result.reconciled_count)
        else:
            log.info("reconciliation_mismatch", budget_id=budget_id, account_id=account_id,
                     bank_balance=bank_balance, cleared_balance=cleared,
                     difference=result.difference)
        return result


class ReconciliationSession:
    """One pass of the reconcile dialog for an account.

    AWAITING_INPUT -> verify() -> VERIFIED_MATCH | VERIFIED_MISMATCH
    VERIFIED_MISMATCH -> verify() again with a corrected balance
    VERIFIED_MATCH -> finish() -> RECONCILED
    """

    def __init__(self, service: ReconciliationService, budget_id: int, account_id: int):
        self._service = service
        self.budget_id = budget_id
        self.account_id = account_id
        self.state = ReconciliationState.AWAITING_INPUT
        self.bank_balance: int | None = None
        self.difference: int | None = None
        self.reconciled_count: int | None = None

    def verify(self, bank_balance: int) -> ReconciliationState:
        """Compare bank_balance with the cleared balance without changing anything."""
        if self.state is ReconciliationState.RECONCILED:
            raise DomainError("Reconciliation already finished.")
        info = self._service.get_reconciliation_info(self.budget_id, self.account_id)
        self.bank_balance = mu.milliunit(bank_balance)
        self.difference = mu.sub(self.bank_balance, info.cleared_balance)
        if mu.abs_(self.difference) > RECONCILIATION_TOLERANCE:
            self.state = ReconciliationState.VERIFIED_MISMATCH
        else:
            self.state = ReconciliationState.VERIFIED_MATCH
        return self.state

    def finish(self) -> int:
        """Lock the cleared transactions. Returns the number reconciled."""
        if self.state is not ReconciliationState.VERIFIED_MATCH:
            raise DomainError(
                f"Cannot finish reconciliation from state {self.state.value}."
            )
        result = self._service.reconcile_account_atomic(
            self.budget_id, self.account_id, self.bank_balance
        )
        if not result.matched:
            # cleared balance changed since verify()
            self.difference = result.difference
            self.state = ReconciliationState.VERIFIED_MISMATCH
            raise DomainError("Cleared balance changed since verification; verify again.")
        self.reconciled_count = result.reconciled_count
        self.state = ReconciliationState.RECONCILED
        return result.reconciled_count
