"""Cash vs. credit overspending: a read-side label, never stored.

A regular category's shortfall is split by where the money was spent. The
part covered by spending from cash accounts is cash overspending and comes
out of Ready to Assign the next month. The rest was charged to a card and
stays as card debt.
"""
from enum import Enum
from typing import Iterable, Optional

from engine import milliunits as mu


class OverspendingType(str, Enum):
    CASH = "cash"       # shortfall that must be re-covered from Ready to Assign
    CREDIT = "credit"   # card debt, not charged to Ready to Assign


def cash_part(available: int, cash_spending: int) -> int:
    """min(|available|, cash_spending) for an overspent regular category, else 0."""
    available = mu.milliunit(available)
    if available >= 0:
        return mu.ZERO
    return mu.min_(mu.abs_(available), mu.max_(mu.ZERO, mu.milliunit(cash_spending)))


def classify(available: int, cash_spending: int = 0,
             linked_account_id: Optional[int] = None) -> Optional[OverspendingType]:
    """Mixed shortfalls classify as CASH."""
    if mu.milliunit(available) >= 0:
        return None
    if linked_account_id is not None:
        return OverspendingType.CREDIT
    if cash_part(available, cash_spending) > 0:
        return OverspendingType.CASH
    return OverspendingType.CREDIT


def cash_overspending(entries: Iterable[tuple[int, Optional[int], int]]) -> int:
    """Total cash overspending over (available, linked_account_id, cash_spending) triples."""
    return mu.sum_(
        cash_part(available, cash_spending)
        for available, linked, cash_spending in entries
        if linked is None
    )
