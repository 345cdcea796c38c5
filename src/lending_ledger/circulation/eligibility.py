"""
Eligibility Checker: may this member borrow right now?

Checks run in a fixed priority order and the first failure is the answer:

1. The member exists and their membership is active.
2. The member has no unresolved loan past its due date.
3. The member holds fewer unresolved loans than the policy cap.

The checker reads inside the caller's unit of work. The member row is
selected FOR UPDATE, and the orchestrator holds the member's row lock, so two
borrows for one member cannot both pass the cap check.
"""

import logging
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..config import LendingPolicy
from ..database.schema import Loan as LoanDB
from ..database.schema import Member as MemberDB
from ..database.schema import MembershipStatusEnum
from .errors import (
    IneligibilityReason,
    LoanCapExceededError,
    MemberIneligibleError,
    MemberNotFoundError,
)

logger = logging.getLogger(__name__)


class EligibilityChecker:
    """Applies the borrowing policy to one member."""

    def __init__(self, session: Session, policy: LendingPolicy):
        self.session = session
        self.policy = policy

    def overdue_count(self, member_id: int, current_date: date) -> int:
        """Unresolved loans whose due date has passed."""
        return (
            self.session.execute(
                select(func.count())
                .select_from(LoanDB)
                .where(
                    LoanDB.member_id == member_id,
                    LoanDB.return_date.is_(None),
                    LoanDB.due_date < current_date,
                )
            ).scalar()
            or 0
        )

    def unresolved_count(self, member_id: int) -> int:
        """Loans with no return date recorded."""
        return (
            self.session.execute(
                select(func.count())
                .select_from(LoanDB)
                .where(LoanDB.member_id == member_id, LoanDB.return_date.is_(None))
            ).scalar()
            or 0
        )

    def evaluate(self, member_id: int, current_date: date) -> IneligibilityReason | None:
        """Return the first failing reason, or None when the member may borrow."""
        status = self.session.execute(
            select(MemberDB.membership_status).where(MemberDB.id == member_id).with_for_update()
        ).scalar_one_or_none()

        if status is None:
            return IneligibilityReason.MEMBER_NOT_FOUND
        if status != MembershipStatusEnum.ACTIVE:
            return IneligibilityReason.MEMBERSHIP_INACTIVE
        if self.overdue_count(member_id, current_date) > 0:
            return IneligibilityReason.HAS_OVERDUE_LOANS
        if self.unresolved_count(member_id) >= self.policy.max_active_loans:
            return IneligibilityReason.LOAN_CAP_REACHED
        return None

    def check(self, member_id: int, current_date: date) -> None:
        """
        Raise unless the member may borrow.

        Raises:
            MemberNotFoundError: Unknown member
            LoanCapExceededError: Member is at the loan cap
            MemberIneligibleError: Inactive membership or overdue loans
        """
        reason = self.evaluate(member_id, current_date)
        if reason is None:
            return

        logger.info("Member %s ineligible to borrow: %s", member_id, reason.value)
        if reason is IneligibilityReason.MEMBER_NOT_FOUND:
            raise MemberNotFoundError(member_id)
        if reason is IneligibilityReason.LOAN_CAP_REACHED:
            raise LoanCapExceededError(member_id, self.policy.max_active_loans)
        if reason is IneligibilityReason.MEMBERSHIP_INACTIVE:
            raise MemberIneligibleError(
                member_id, reason, f"Member {member_id} does not have an active membership"
            )
        raise MemberIneligibleError(
            member_id, reason, f"Member {member_id} has overdue loans and cannot borrow more"
        )
