from dataclasses import dataclass
from utils.constants import ACCOUNT_TYPE_LABELS, CREDIT_ACCOUNT_TYPES, OFF_BUDGET_ACCOUNT_TYPES


@dataclass
class Account:
    id: int
    budget_id: int
    name: str
    type: str = "checking"
    balance: int = 0            # milliunits
    cleared_balance: int = 0
    uncleared_balance: int = 0
    note: str = ""
    closed: bool = False
    created_at: str = ""

    @property
    def is_credit(self) -> bool:
        return self.type in CREDIT_ACCOUNT_TYPES

    @property
    def is_on_budget(self) -> bool:
        return self.type not in OFF_BUDGET_ACCOUNT_TYPES

    @property
    def type_label(self) -> str:
        return ACCOUNT_TYPE_LABELS.get(self.type, self.type)
