"""Error kinds raised by the ledger engine.

Callers map these to responses: FinancialSafetyError and DomainError are bad
input, NotFoundError is a missing row, LockedTransactionError means the row
is reconciled and can no longer change.
"""


class LedgerError(Exception):
    """Base class for every error the engine raises."""


class FinancialSafetyError(LedgerError, ValueError):
    """A monetary value is non-finite, non-numeric or outside the safe range."""


class DomainError(LedgerError, ValueError):
    """An operation would violate a ledger invariant."""


class NotFoundError(DomainError):
    def __init__(self, kind: str, ident):
        super().__init__(f"{kind} {ident} not found.")
        self.kind = kind
        self.ident = ident


class LockedTransactionError(DomainError):
    def __init__(self, transaction_id: int):
        super().__init__(
            f"Transaction {transaction_id} is reconciled and cannot be changed."
        )
        self.transaction_id = transaction_id
