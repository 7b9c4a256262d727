from dataclasses import dataclass
from typing import Optional


@dataclass
class LedgerEntry:
    """One (category, month) row of the budget: all amounts in milliunits."""
    category_id: int
    month: str          # 'YYYY-MM'
    assigned: int = 0
    activity: int = 0
    available: int = 0
    budget_id: int = 0
    id: Optional[int] = None

    @property
    def is_ghost(self) -> bool:
        return self.assigned == 0 and self.activity == 0 and self.available == 0
