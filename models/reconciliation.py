from dataclasses import dataclass
from enum import Enum


class ReconciliationState(str, Enum):
    AWAITING_INPUT = "awaiting_input"
    VERIFIED_MATCH = "verified_match"
    VERIFIED_MISMATCH = "verified_mismatch"
    RECONCILED = "reconciled"


@dataclass
class ReconciliationInfo:
    cleared_balance: int            # Cleared + Reconciled, milliunits
    reconciled_balance: int
    pending_cleared_balance: int    # Cleared only
    pending_cleared_count: int


@dataclass(frozen=True)
class ReconciliationMatch:
    reconciled_count: int
    matched = True


@dataclass(frozen=True)
class ReconciliationMismatch:
    difference: int     # bank balance - cleared balance, milliunits
    matched = False
