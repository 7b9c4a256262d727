from dataclasses import dataclass
from typing import Optional
from utils.date_helpers import month_of


@dataclass
class Transaction:
    id: int
    account_id: int
    date: str               # 'YYYY-MM-DD'
    payee: str = ""
    category_id: Optional[int] = None
    memo: str = ""
    outflow: int = 0        # milliunits, >= 0
    inflow: int = 0         # milliunits, >= 0
    cleared: str = "Uncleared"   # 'Uncleared' | 'Cleared' | 'Reconciled'
    flag: Optional[str] = None
    transfer_id: Optional[int] = None
    account_name: str = ""
    category_name: str = ""
    created_at: str = ""
    updated_at: str = ""

    @property
    def amount(self) -> int:
        """Signed amount: inflow positive, outflow negative."""
        return self.inflow - self.outflow

    @property
    def month(self) -> str:
        return month_of(self.date)

    @property
    def is_reconciled(self) -> bool:
        return self.cleared == "Reconciled"

    @property
    def is_transfer(self) -> bool:
        return self.transfer_id is not None


@dataclass
class Transfer:
    id: int
    from_transaction_id: int
    to_transaction_id: int
    from_account_id: int = 0
    to_account_id: int = 0
