import pytest

from engine.errors import DomainError, FinancialSafetyError, NotFoundError
from utils.constants import MAX_ASSIGNED_VALUE

MARCH = "2024-03"
APRIL = "2024-04"


@pytest.fixture
def funded(svc, budget, cats):
    """Groceries assigned 1000, rent assigned 500 in March."""
    groceries, rent, fun = cats
    svc.budgets.update_budget_assignment(budget.id, groceries.id, MARCH, 1000)
    svc.budgets.update_budget_assignment(budget.id, rent.id, MARCH, 500)
    return groceries, rent, fun


class TestMoveMoney:
    def test_assigned_total_is_conserved(self, svc, budget, funded, ledger):
        groceries, rent, _ = funded
        svc.budgets.move_money(budget.id, groceries.id, rent.id, MARCH, 300)

        src, dst = ledger(groceries.id, MARCH), ledger(rent.id, MARCH)
        assert src.assigned == 700
        assert dst.assigned == 800
        assert src.assigned + dst.assigned == 1500
        assert (src.available, dst.available) == (700, 800)

    def test_drained_source_row_is_deleted(self, svc, budget, funded, ledger):
        groceries, rent, _ = funded
        svc.budgets.move_money(budget.id, groceries.id, rent.id, MARCH, 1000)

        assert ledger(groceries.id, MARCH) is None
        assert ledger(rent.id, MARCH).assigned == 1500

    def test_target_without_a_row_gets_one(self, svc, budget, funded, ledger):
        groceries, _, fun = funded
        assert ledger(fun.id, MARCH) is None
        svc.budgets.move_money(budget.id, groceries.id, fun.id, MARCH, 200)

        entry = ledger(fun.id, MARCH)
        assert (entry.assigned, entry.activity, entry.available) == (200, 0, 200)

    def test_moving_more_than_available_is_allowed(self, svc, budget, funded, ledger):
        groceries, rent, _ = funded
        svc.budgets.move_money(budget.id, groceries.id, rent.id, MARCH, 1500)

        assert ledger(groceries.id, MARCH).assigned == -500
        assert ledger(groceries.id, MARCH).available == -500
        assert ledger(rent.id, MARCH).assigned == 2000

    def test_later_months_shift_by_the_moved_amount(self, svc, budget, funded, ledger):
        groceries, rent, _ = funded
        svc.budgets.update_budget_assignment(budget.id, groceries.id, APRIL, 200)
        svc.budgets.update_budget_assignment(budget.id, rent.id, APRIL, 100)
        assert ledger(groceries.id, APRIL).available == 1200
        assert ledger(rent.id, APRIL).available == 600

        svc.budgets.move_money(budget.id, groceries.id, rent.id, MARCH, 300)

        assert ledger(groceries.id, APRIL).available == 900
        assert ledger(rent.id, APRIL).available == 900
        # assigned in later months is untouched
        assert ledger(groceries.id, APRIL).assigned == 200

    def test_cascade_skips_over_months_without_rows(self, svc, budget, funded, ledger):
        groceries, rent, _ = funded
        svc.budgets.update_budget_assignment(budget.id, groceries.id, "2024-06", 50)
        assert ledger(groceries.id, "2024-06").available == 1050

        svc.budgets.move_money(budget.id, groceries.id, rent.id, MARCH, 300)

        assert ledger(groceries.id, APRIL) is None
        assert ledger(groceries.id, "2024-06").available == 750

    def test_move_into_a_month_without_rows_starts_from_the_carry(
        self, svc, budget, funded, ledger
    ):
        groceries, rent, _ = funded
        svc.budgets.move_money(budget.id, groceries.id, rent.id, APRIL, 400)

        src = ledger(groceries.id, APRIL)
        assert (src.assigned, src.available) == (-400, 600)
        dst = ledger(rent.id, APRIL)
        assert (dst.assigned, dst.available) == (400, 900)


class TestMoveMoneyValidation:
    @pytest.mark.parametrize("amount", [0, -100])
    def test_amount_must_be_positive(self, svc, budget, funded, amount):
        groceries, rent, _ = funded
        with pytest.raises(DomainError):
            svc.budgets.move_money(budget.id, groceries.id, rent.id, MARCH, amount)

    def test_amount_above_the_assignment_limit_is_rejected(self, svc, budget, funded):
        groceries, rent, _ = funded
        with pytest.raises(DomainError):
            svc.budgets.move_money(budget.id, groceries.id, rent.id, MARCH,
                                   MAX_ASSIGNED_VALUE + 1)

    def test_non_finite_amount_is_a_financial_safety_error(self, svc, budget, funded):
        groceries, rent, _ = funded
        with pytest.raises(FinancialSafetyError):
            svc.budgets.move_money(budget.id, groceries.id, rent.id, MARCH, float("nan"))

    def test_source_and_target_must_differ(self, svc, budget, funded):
        groceries, _, _ = funded
        with pytest.raises(DomainError):
            svc.budgets.move_money(budget.id, groceries.id, groceries.id, MARCH, 100)

    def test_unknown_category(self, svc, budget, funded):
        groceries, _, _ = funded
        with pytest.raises(NotFoundError):
            svc.budgets.move_money(budget.id, groceries.id, 9999, MARCH, 100)

    def test_category_from_another_budget(self, svc, budget, funded):
        groceries, _, _ = funded
        other = svc.budgets.create_budget("Other")
        group = svc.categories.create_group(other.id, "Bills")
        foreign = svc.categories.create_category(other.id, group.id, "Power")
        with pytest.raises(NotFoundError):
            svc.budgets.move_money(budget.id, groceries.id, foreign.id, MARCH, 100)

    def test_income_category_cannot_take_part(self, svc, budget, funded):
        groceries, _, _ = funded
        income = svc.categories.get_income_category(budget.id)
        with pytest.raises(DomainError):
            svc.budgets.move_money(budget.id, income.id, groceries.id, MARCH, 100)

    def test_invalid_month(self, svc, budget, funded):
        groceries, rent, _ = funded
        with pytest.raises(DomainError):
            svc.budgets.move_money(budget.id, groceries.id, rent.id, "2024-13", 100)

    def test_failure_part_way_leaves_no_changes(self, svc, budget, funded, ledger, monkeypatch):
        groceries, rent, _ = funded
        svc.budgets.update_budget_assignment(budget.id, groceries.id, APRIL, 200)
        original = svc.budgets._cascade
        calls = []

        def failing_cascade(*args):
            calls.append(args)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            return original(*args)

        monkeypatch.setattr(svc.budgets, "_cascade", failing_cascade)
        with pytest.raises(RuntimeError):
            svc.budgets.move_money(budget.id, groceries.id, rent.id, MARCH, 300)

        assert ledger(groceries.id, MARCH).assigned == 1000
        assert ledger(groceries.id, APRIL).available == 1200
        assert ledger(rent.id, MARCH).assigned == 500
