"""Card-payment category activity.

Spending on a credit card from a category that had money moves that money
into the card's payment category; a payment to the card moves it out again.
"""
from typing import Iterable

from engine import milliunits as mu


def funded_amount(net_spending: int, current_available: int) -> int:
    """Portion of a category's card spending that was covered by its budget.

    ``net_spending`` is outflow - inflow on the card for the month;
    ``current_available`` already includes that spending. A net refund
    counts in full and moves money back to the category.
    """
    net = mu.milliunit(net_spending)
    if net <= 0:
        return net
    available_before = mu.add(current_available, net)
    return mu.min_(mu.max_(mu.ZERO, available_before), net)


def total_funded_spending(spending: Iterable[tuple[int, int]]) -> int:
    """Sum of funded_amount over (net_spending, current_available) pairs."""
    return mu.sum_(funded_amount(net, available) for net, available in spending)


def card_payment_activity(spending: Iterable[tuple[int, int]], payments: int) -> int:
    return mu.sub(total_funded_spending(spending), payments)
