import pytest

from engine.errors import DomainError, NotFoundError
from models.reconciliation import (
    ReconciliationMatch,
    ReconciliationMismatch,
    ReconciliationState,
)
from services.reconciliation_service import ReconciliationSession


@pytest.fixture
def statement(svc, budget):
    """Checking with 500.00 cleared (two deposits) and one uncleared 50.00 payment."""
    checking = svc.accounts.create_account(budget.id, "Checking", "checking")
    income = svc.categories.get_income_category(budget.id)
    for amount, day in ((300_000, "2024-03-01"), (200_000, "2024-03-15")):
        svc.transactions.create_transaction_atomic(
            budget.id, checking.id, day, "Employer", income.id, inflow=amount, cleared="Cleared"
        )
    svc.transactions.create_transaction_atomic(
        budget.id, checking.id, "2024-03-20", "Landlord", outflow=50_000
    )
    return checking


def _states(svc, budget, account):
    return sorted(t.cleared for t in svc.transactions.get_for_account(budget.id, account.id))


def test_reconciliation_info(svc, budget, statement):
    info = svc.reconciliation.get_reconciliation_info(budget.id, statement.id)
    assert info.cleared_balance == 500_000
    assert info.pending_cleared_balance == 500_000
    assert info.pending_cleared_count == 2
    assert info.reconciled_balance == 0


def test_matching_balance_locks_cleared_transactions(svc, budget, statement):
    result = svc.reconciliation.reconcile_account_atomic(budget.id, statement.id, 500_000)

    assert result == ReconciliationMatch(reconciled_count=2)
    assert _states(svc, budget, statement) == ["Reconciled", "Reconciled", "Uncleared"]
    info = svc.reconciliation.get_reconciliation_info(budget.id, statement.id)
    assert (info.pending_cleared_count, info.reconciled_balance) == (0, 500_000)
    # reconciled money is still cleared money
    assert svc.accounts.get_account(budget.id, statement.id).cleared_balance == 500_000


def test_mismatch_changes_nothing(svc, budget, statement):
    result = svc.reconciliation.reconcile_account_atomic(budget.id, statement.id, 510_000)

    assert result == ReconciliationMismatch(difference=10_000)
    assert not result.matched
    assert _states(svc, budget, statement) == ["Cleared", "Cleared", "Uncleared"]


@pytest.mark.parametrize("bank, matched", [
    (500_010, True), (499_990, True), (500_011, False), (499_989, False),
])
def test_one_cent_tolerance(svc, budget, statement, bank, matched):
    result = svc.reconciliation.reconcile_account_atomic(budget.id, statement.id, bank)
    assert result.matched is matched


def test_unknown_account(svc, budget):
    with pytest.raises(NotFoundError):
        svc.reconciliation.reconcile_account_atomic(budget.id, 404, 0)


class TestSession:
    def test_retry_after_mismatch_then_finish(self, svc, budget, statement):
        session = ReconciliationSession(svc.reconciliation, budget.id, statement.id)
        assert session.state is ReconciliationState.AWAITING_INPUT

        assert session.verify(510_000) is ReconciliationState.VERIFIED_MISMATCH
        assert session.difference == 10_000
        with pytest.raises(DomainError):
            session.finish()

        assert session.verify(500_000) is ReconciliationState.VERIFIED_MATCH
        assert session.finish() == 2
        assert session.state is ReconciliationState.RECONCILED
        with pytest.raises(DomainError):
            session.verify(500_000)

    def test_finish_requires_verification(self, svc, budget, statement):
        session = ReconciliationSession(svc.reconciliation, budget.id, statement.id)
        with pytest.raises(DomainError):
            session.finish()

    def test_balance_changing_after_verify_is_caught(self, svc, budget, statement):
        session = ReconciliationSession(svc.reconciliation, budget.id, statement.id)
        session.verify(500_000)
        landlord = next(t for t in svc.transactions.get_for_account(budget.id, statement.id)
                        if t.cleared == "Uncleared")
        svc.transactions.toggle_cleared_atomic(budget.id, landlord.id, statement.id)

        with pytest.raises(DomainError):
            session.finish()
        assert session.state is ReconciliationState.VERIFIED_MISMATCH
        assert _states(svc, budget, statement) == ["Cleared", "Cleared", "Cleared"]
