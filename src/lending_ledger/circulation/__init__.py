"""
The borrowing/return consistency engine.

Components, leaves first:
- InventoryLedger: atomic reserve/release of copy counters
- EligibilityChecker: borrowing policy for one member
- LoanStateMachine: loan lifecycle and its ledger effects
- FineCalculator: late-return penalties
- CirculationService: atomic borrow/return/loss/delete entry points
"""

from .eligibility import EligibilityChecker
from .errors import (
    AlreadyReturnedError,
    CirculationError,
    ConcurrencyConflictError,
    IneligibilityReason,
    InvariantViolationError,
    ItemHasActiveLoansError,
    ItemNotFoundError,
    LoanCapExceededError,
    LoanNotFoundError,
    LockTimeoutError,
    MemberIneligibleError,
    MemberNotFoundError,
    NegativeAvailabilityError,
    OutOfStockError,
    OverReleaseError,
    PolicyRejection,
)
from .fines import FineCalculator, days_late
from .ledger import InventoryLedger
from .locks import RowLockManager
from .orchestrator import (
    CirculationService,
    get_circulation_service,
    reset_circulation_service,
    retry_on_conflict,
)
from .state_machine import LoanStateMachine

__all__ = [
    "AlreadyReturnedError",
    "CirculationError",
    "CirculationService",
    "ConcurrencyConflictError",
    "EligibilityChecker",
    "FineCalculator",
    "IneligibilityReason",
    "InvariantViolationError",
    "InventoryLedger",
    "ItemHasActiveLoansError",
    "ItemNotFoundError",
    "LoanCapExceededError",
    "LoanNotFoundError",
    "LoanStateMachine",
    "LockTimeoutError",
    "MemberIneligibleError",
    "MemberNotFoundError",
    "NegativeAvailabilityError",
    "OutOfStockError",
    "OverReleaseError",
    "PolicyRejection",
    "RowLockManager",
    "days_late",
    "get_circulation_service",
    "reset_circulation_service",
    "retry_on_conflict",
]
