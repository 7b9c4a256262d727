"""Month-to-month carry of a category's available balance.

An ordinary category that ends a month overspent starts the next month at
zero; the shortfall is charged to Ready to Assign instead (see engine.rta).
A card-payment category carries its negative balance forward as debt.
"""
from dataclasses import replace
from typing import Iterable

from engine import milliunits as mu
from models.ledger_entry import LedgerEntry


def carryover(prior_available: int, is_card_payment: bool = False) -> int:
    """Amount of last month's available that starts the next month."""
    prior = mu.milliunit(prior_available)
    if is_card_payment or prior >= 0:
        return prior
    return mu.ZERO


def compute_available(prior_available: int, assigned: int, activity: int,
                      is_card_payment: bool = False) -> int:
    """available = carryover(prior) + assigned + activity.

    ``prior_available`` is the latest stored available before the month, or 0
    when the category has no earlier history.
    """
    return mu.sum_((carryover(prior_available, is_card_payment), assigned, activity))


def propagate(rows: Iterable[LedgerEntry], old_prior: int, new_prior: int,
              is_card_payment: bool = False) -> list[LedgerEntry]:
    """Walk later rows forward after the row before them changed.

    ``rows`` are the stored rows after the changed month, ascending. Each row's
    available moves by the change in its carry-in; the walk stops at the first
    row whose carry-in is unchanged. Returns the rows that changed, with their
    new available.
    """
    shift = mu.sub(carryover(new_prior, is_card_payment),
                   carryover(old_prior, is_card_payment))
    changed = []
    for row in rows:
        if shift == 0:
            break
        new_available = mu.add(row.available, shift)
        shift = mu.sub(carryover(new_available, is_card_payment),
                       carryover(row.available, is_card_payment))
        changed.append(replace(row, available=new_available))
    return changed
