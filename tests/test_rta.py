import pytest

from engine.rta import compute_breakdown, compute_rta

FEB = "2024-02"
MARCH = "2024-03"
APRIL = "2024-04"
MAY = "2024-05"


@pytest.fixture
def paid(svc, budget, cats):
    """5000.00 opening balance on 2024-03-01; groceries assigned 1000.00 in March."""
    account = svc.accounts.create_account(
        budget.id, "Checking", "checking", 5_000_000, date="2024-03-01"
    )
    svc.budgets.update_budget_assignment(budget.id, cats[0].id, MARCH, 1_000_000)
    return account


def test_rta_formula():
    assert compute_rta(5000, 1200, 300) == 3500


def test_breakdown_components_sum_to_total():
    b = compute_breakdown(
        income_before=5000, inflow_this_month=2000,
        assigned_before=1000, assigned_this_month=500,
        overspending_before_previous=100, overspending_previous_month=300,
        assigned_in_future=50,
    )
    assert b.left_over_from_previous_month == 3900
    assert b.ready_to_assign == 3900 + 2000 - 500 - 300
    assert b.assigned_in_future == 50


class TestReadyToAssign:
    def test_income_minus_assigned(self, svc, budget, paid):
        assert svc.budgets.get_ready_to_assign(budget.id, MARCH) == 4_000_000

    def test_months_before_any_income(self, svc, budget, paid):
        assert svc.budgets.get_ready_to_assign(budget.id, FEB) == 0

    def test_income_carries_into_later_months(self, svc, budget, paid):
        assert svc.budgets.get_ready_to_assign(budget.id, MAY) == 4_000_000

    def test_cash_overspending_is_charged_the_following_month(self, svc, budget, cats, paid):
        svc.transactions.create_transaction_atomic(
            budget.id, paid.id, "2024-03-15", "Dentist", cats[1].id, outflow=300_000
        )
        assert svc.budgets.get_ready_to_assign(budget.id, MARCH) == 4_000_000
        assert svc.budgets.get_ready_to_assign(budget.id, APRIL) == 3_700_000

    def test_card_overspending_is_not_charged(self, svc, budget, cats, paid, credit):
        svc.transactions.create_transaction_atomic(
            budget.id, credit.id, "2024-03-15", "Dentist", cats[1].id, outflow=50_000
        )
        assert svc.budgets.get_ready_to_assign(budget.id, APRIL) == 4_000_000

    def test_mixed_overspending_charges_only_the_cash_part(self, svc, budget, cats, paid, credit):
        rent = cats[1]
        svc.transactions.create_transaction_atomic(
            budget.id, paid.id, "2024-03-15", "Landlord", rent.id, outflow=30_000
        )
        svc.transactions.create_transaction_atomic(
            budget.id, credit.id, "2024-03-16", "Landlord", rent.id, outflow=50_000
        )
        assert svc.budgets.get_ready_to_assign(budget.id, APRIL) == 3_970_000
        b = svc.budgets.get_ready_to_assign_breakdown(budget.id, APRIL)
        assert b.cash_overspending_previous_month == 30_000

    def test_covering_overspending_in_the_same_month_keeps_rta(self, svc, budget, cats, paid):
        groceries, rent, _ = cats
        svc.transactions.create_transaction_atomic(
            budget.id, paid.id, "2024-03-15", "Dentist", rent.id, outflow=300_000
        )
        svc.budgets.move_money(budget.id, groceries.id, rent.id, MARCH, 300_000)
        assert svc.budgets.get_ready_to_assign(budget.id, APRIL) == 4_000_000

    def test_future_dated_income_is_ignored(self, svc, budget, paid):
        income = svc.categories.get_income_category(budget.id)
        svc.transactions.create_transaction_atomic(
            budget.id, paid.id, "2099-01-10", "Bonus", income.id, inflow=750_000
        )
        assert svc.budgets.get_ready_to_assign(budget.id, "2099-01") == 4_000_000

    def test_tracking_accounts_are_off_budget(self, svc, budget, paid):
        svc.accounts.create_account(budget.id, "Brokerage", "tracking", 9_000_000,
                                    date="2024-03-02")
        assert svc.budgets.get_ready_to_assign(budget.id, MARCH) == 4_000_000

    def test_breakdown_matches_total(self, svc, budget, cats, paid):
        groceries, rent, fun = cats
        income = svc.categories.get_income_category(budget.id)
        svc.transactions.create_transaction_atomic(
            budget.id, paid.id, "2024-03-15", "Dentist", rent.id, outflow=300_000
        )
        svc.transactions.create_transaction_atomic(
            budget.id, paid.id, "2024-04-01", "Payroll", income.id, inflow=2_000_000
        )
        svc.budgets.update_budget_assignment(budget.id, groceries.id, APRIL, 500_000)
        svc.budgets.update_budget_assignment(budget.id, fun.id, MAY, 100_000)

        b = svc.budgets.get_ready_to_assign_breakdown(budget.id, APRIL)
        assert b.left_over_from_previous_month == 4_000_000
        assert b.inflow_this_month == 2_000_000
        assert b.assigned_this_month == 500_000
        assert b.cash_overspending_previous_month == 300_000
        assert b.assigned_in_future == 100_000
        assert b.ready_to_assign == 5_200_000
        assert b.ready_to_assign == svc.budgets.get_ready_to_assign(budget.id, APRIL)
        assert (b.left_over_from_previous_month + b.inflow_this_month
                - b.assigned_this_month - b.cash_overspending_previous_month) == b.ready_to_assign
