"""
Loan and fine models for the Lending Ledger.

These are the records the circulation engine emits for its collaborators:
- Loan: one borrowed copy, from borrow to return or loss
- Fine: the penalty for a late return, settled by external billing
- ReturnOutcome: what a return did (final status, fine issued)
- CheckedOutLoan: a row of the "checked out" / "overdue" reporting views
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, computed_field


class LoanStatus(str, Enum):
    """Status of a loan.

    ``OVERDUE`` is terminal: the loan was returned after its due date. A loan
    that is still out past its due date remains ``ON_LOAN``; see
    ``Loan.is_past_due``.
    """

    ON_LOAN = "on_loan"
    RETURNED = "returned"
    OVERDUE = "overdue"
    LOST = "lost"

    @property
    def is_terminal(self) -> bool:
        return self is not LoanStatus.ON_LOAN


class FineStatus(str, Enum):
    """Status of a fine."""

    OUTSTANDING = "outstanding"
    PAID = "paid"
    WAIVED = "waived"


class Loan(BaseModel):
    """One borrowed copy of an item."""

    id: int = Field(..., description="Loan identifier", ge=1)

    item_id: int | None = Field(
        ...,
        description="Borrowed item; None once the catalog has deleted the item",
    )

    member_id: int = Field(..., description="Borrowing member", ge=1)

    loan_date: date = Field(..., description="Date the copy left the shelf")

    due_date: date = Field(..., description="Date the copy is due back")

    return_date: date | None = Field(
        None,
        description="Date the loan was resolved (returned or declared lost)",
    )

    status: LoanStatus = Field(default=LoanStatus.ON_LOAN)

    @property
    def is_resolved(self) -> bool:
        return self.return_date is not None

    def is_past_due(self, today: date) -> bool:
        """Unresolved and past its due date as of ``today``."""
        return not self.is_resolved and self.due_date < today

    def days_overdue(self, today: date) -> int:
        if not self.is_past_due(today):
            return 0
        return (today - self.due_date).days


class Fine(BaseModel):
    """A late-return penalty attached to one loan."""

    id: int = Field(..., ge=1)
    loan_id: int = Field(..., ge=1)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    issue_date: date
    payment_date: date | None = None
    status: FineStatus = Field(default=FineStatus.OUTSTANDING)


class ReturnOutcome(BaseModel):
    """Result of returning a loan."""

    loan_id: int
    status: LoanStatus
    return_date: date
    days_late: int = Field(default=0, ge=0)
    fine_id: int | None = None
    fine_amount: Decimal | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def fine_issued(self) -> bool:
        return self.fine_id is not None


class CheckedOutLoan(BaseModel):
    """A row of the checked-out report: an unresolved loan as of a date."""

    loan_id: int
    item_id: int | None
    title: str | None
    isbn: str | None
    member_id: int
    member_name: str
    loan_date: date
    due_date: date
    days_remaining: int
    days_overdue: int = Field(default=0, ge=0)
