import pytest

MARCH = "2024-03"


def _card_category(svc, budget, credit):
    return next(c for c in svc.categories.get_all(budget.id) if c.linked_account_id == credit.id)


def _row(svc, budget, category_id, month=MARCH):
    return next(r for r in svc.budgets.get_budget_for_month(budget.id, month)
                if r.category_id == category_id)


@pytest.fixture
def card_spend(svc, budget, credit):
    def _spend(category, amount, date="2024-03-10", refund=False):
        kw = {"inflow": amount} if refund else {"outflow": amount}
        return svc.transactions.create_transaction_atomic(
            budget.id, credit.id, date, "Shop", category.id, **kw
        )
    return _spend


def test_credit_account_gets_a_payment_category(svc, budget, credit):
    category = _card_category(svc, budget, credit)
    assert category.name == "Visa"
    assert category.group_name == "Credit Card Payments"
    assert category.is_credit_card_payment


def test_funded_spending_moves_into_the_payment_category(svc, budget, cats, credit, card_spend):
    groceries = cats[0]
    svc.budgets.update_budget_assignment(budget.id, groceries.id, MARCH, 100_000)
    card_spend(groceries, 40_000)

    assert _row(svc, budget, groceries.id).available == 60_000
    card = _row(svc, budget, _card_category(svc, budget, credit).id)
    assert (card.activity, card.available) == (40_000, 40_000)
    assert svc.accounts.get_account(budget.id, credit.id).balance == -40_000


def test_only_the_funded_part_moves(svc, budget, cats, credit, card_spend):
    groceries = cats[0]
    svc.budgets.update_budget_assignment(budget.id, groceries.id, MARCH, 30_000)
    card_spend(groceries, 50_000)

    assert _row(svc, budget, groceries.id).available == -20_000
    assert _row(svc, budget, _card_category(svc, budget, credit).id).available == 30_000


def test_refund_moves_money_back(svc, budget, cats, credit, card_spend):
    groceries = cats[0]
    svc.budgets.update_budget_assignment(budget.id, groceries.id, MARCH, 100_000)
    card_spend(groceries, 40_000)
    card_spend(groceries, 10_000, date="2024-03-12", refund=True)

    assert _row(svc, budget, _card_category(svc, budget, credit).id).available == 30_000


def test_payment_reduces_the_payment_category(svc, budget, cats, checking, credit, card_spend):
    groceries = cats[0]
    svc.budgets.update_budget_assignment(budget.id, groceries.id, MARCH, 100_000)
    card_spend(groceries, 40_000)
    svc.transactions.create_transfer(budget.id, checking.id, credit.id, 40_000, "2024-03-20")

    card = _row(svc, budget, _card_category(svc, budget, credit).id)
    assert (card.activity, card.available) == (0, 0)
    assert svc.accounts.get_account(budget.id, credit.id).balance == 0


def test_deleting_card_spending_restores_the_payment_category(
    svc, budget, cats, credit, card_spend
):
    groceries = cats[0]
    svc.budgets.update_budget_assignment(budget.id, groceries.id, MARCH, 100_000)
    tx = card_spend(groceries, 40_000)
    svc.transactions.delete_transaction_atomic(budget.id, tx.id)

    assert _row(svc, budget, _card_category(svc, budget, credit).id).available == 0
    assert _row(svc, budget, groceries.id).available == 100_000


def test_assigning_after_card_spending_funds_the_payment(svc, budget, cats, credit, card_spend):
    groceries = cats[0]
    card_spend(groceries, 50_000)
    assert _row(svc, budget, _card_category(svc, budget, credit).id).available == 0

    svc.budgets.update_budget_assignment(budget.id, groceries.id, MARCH, 50_000)

    card = _row(svc, budget, _card_category(svc, budget, credit).id)
    assert (card.activity, card.available) == (50_000, 50_000)
    assert _row(svc, budget, groceries.id).available == 0


def test_moving_money_after_card_spending_funds_the_payment(
    svc, budget, cats, credit, card_spend
):
    groceries, rent, _ = cats
    svc.budgets.update_budget_assignment(budget.id, rent.id, MARCH, 50_000)
    card_spend(groceries, 50_000)

    svc.budgets.move_money(budget.id, rent.id, groceries.id, MARCH, 20_000)

    assert _row(svc, budget, groceries.id).available == -30_000
    assert _row(svc, budget, _card_category(svc, budget, credit).id).available == 20_000
