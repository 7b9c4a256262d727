from dataclasses import dataclass
from typing import Optional


@dataclass
class Budget:
    id: int
    name: str
    currency_symbol: str = "$"
    created_at: str = ""


@dataclass
class BudgetRow:
    """A category's view of one month, whether or not a ledger row is stored."""
    category_id: int
    category_name: str
    category_group_id: int
    group_name: str
    month: str
    assigned: int = 0
    activity: int = 0
    available: int = 0
    group_hidden: bool = False
    linked_account_id: Optional[int] = None
    overspending: Optional[str] = None   # 'cash' | 'credit' | None


@dataclass
class RTABreakdown:
    ready_to_assign: int
    left_over_from_previous_month: int
    inflow_this_month: int
    assigned_this_month: int
    cash_overspending_previous_month: int
    assigned_in_future: int = 0
