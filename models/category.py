from dataclasses import dataclass
from typing import Optional


@dataclass
class CategoryGroup:
    id: int
    budget_id: int
    name: str
    sort_order: int = 0
    hidden: bool = False
    is_income: bool = False


@dataclass
class Category:
    id: int
    category_group_id: int
    name: str
    sort_order: int = 0
    hidden: bool = False
    linked_account_id: Optional[int] = None
    group_name: str = ""
    is_income: bool = False
    budget_id: int = 0

    @property
    def is_credit_card_payment(self) -> bool:
        return self.linked_account_id is not None
