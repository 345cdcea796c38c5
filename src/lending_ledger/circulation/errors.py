"""
Error taxonomy for the circulation engine.

Four families, each handled differently by callers:

- ``PolicyRejection``: an expected "no" (ineligible member, no copies,
  already returned, item still on loan). Nothing was mutated; retrying will
  not help.
- ``NotFoundError`` subclasses: an unknown loan, item or member.
- ``ConcurrencyConflictError``: a lock timed out or the database refused a
  write under contention. Nothing was mutated; the whole operation may be
  retried.
- ``InvariantViolationError``: the ledger caught a bookkeeping defect.
  Logged at CRITICAL and raised; never corrected in place.
"""

import enum

from ..database.repository import NotFoundError, RepositoryException


class IneligibilityReason(str, enum.Enum):
    """Why a member may not borrow, in evaluation priority order."""

    MEMBER_NOT_FOUND = "member_not_found"
    MEMBERSHIP_INACTIVE = "membership_inactive"
    HAS_OVERDUE_LOANS = "has_overdue_loans"
    LOAN_CAP_REACHED = "loan_cap_reached"


class CirculationError(RepositoryException):
    """Base class for circulation engine failures."""

    retryable = False


# === Policy rejections ===


class PolicyRejection(CirculationError):
    """A request refused by lending policy."""


class MemberIneligibleError(PolicyRejection):
    """The member fails an eligibility check."""

    def __init__(self, member_id: int, reason: IneligibilityReason, message: str | None = None):
        self.member_id = member_id
        self.reason = reason
        super().__init__(message or f"Member {member_id} is not eligible to borrow: {reason.value}")


class LoanCapExceededError(MemberIneligibleError):
    """The member already holds the maximum number of unresolved loans."""

    def __init__(self, member_id: int, limit: int):
        self.limit = limit
        super().__init__(
            member_id,
            IneligibilityReason.LOAN_CAP_REACHED,
            f"Member {member_id} has reached the maximum loan limit of {limit}",
        )


class OutOfStockError(PolicyRejection):
    """No copy of the item is available."""

    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__(f"Item {item_id} is not available for loan")


class AlreadyReturnedError(PolicyRejection):
    """The loan is already resolved."""

    def __init__(self, loan_id: int, status: str):
        self.loan_id = loan_id
        self.status = status
        super().__init__(f"Loan {loan_id} is already resolved (status: {status})")


class ItemHasActiveLoansError(PolicyRejection):
    """The item cannot be deleted while copies are out."""

    def __init__(self, item_id: int, active_loans: int):
        self.item_id = item_id
        self.active_loans = active_loans
        super().__init__(f"Cannot delete item {item_id} with {active_loans} active loan(s)")


# === Not found ===


class ItemNotFoundError(NotFoundError):
    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found")


class MemberNotFoundError(NotFoundError):
    def __init__(self, member_id: int):
        self.member_id = member_id
        self.reason = IneligibilityReason.MEMBER_NOT_FOUND
        super().__init__(f"Member {member_id} not found")


class LoanNotFoundError(NotFoundError):
    def __init__(self, loan_id: int):
        self.loan_id = loan_id
        super().__init__(f"Loan {loan_id} not found")


# === Concurrency ===


class ConcurrencyConflictError(CirculationError):
    """Transient contention; the operation left no trace and may be retried."""

    retryable = True


class LockTimeoutError(ConcurrencyConflictError):
    """A row lock could not be acquired within the configured wait."""

    def __init__(self, key: tuple[str, int], timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:.2f}s waiting for lock on {key[0]} {key[1]}")


# === Invariant violations ===


class InvariantViolationError(CirculationError):
    """The ledger detected a bookkeeping defect."""


class OverReleaseError(InvariantViolationError):
    """A release would push available copies above total copies."""

    def __init__(self, item_id: int, available: int, total: int):
        self.item_id = item_id
        self.available = available
        self.total = total
        super().__init__(
            f"Over-release on item {item_id}: {available} of {total} copies already available"
        )


class NegativeAvailabilityError(InvariantViolationError):
    """A counter change would leave the ledger below zero."""

    def __init__(self, item_id: int, detail: str):
        self.item_id = item_id
        super().__init__(f"Negative availability on item {item_id}: {detail}")
