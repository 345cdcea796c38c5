"""
Fine Calculator: the penalty for a late return.

    amount = max(0, days_late) * daily_fine_rate

where ``days_late`` is the whole-day gap between due date and return date.
A fine is issued only when ``days_late > 0`` and is born ``outstanding``
with ``issue_date`` equal to the return date. Settling it (paid/waived) is
external billing's job.
"""

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from ..config import LendingPolicy
from ..database.schema import Fine as FineDB
from ..database.schema import FineStatusEnum

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def days_late(due_date: date, return_date: date) -> int:
    """Whole days between due date and return date, never negative."""
    return max(0, (return_date - due_date).days)


class FineCalculator:
    """Derives and records late-return fines."""

    def __init__(self, policy: LendingPolicy, session: Session | None = None):
        self.policy = policy
        self.session = session

    def calculate(self, due_date: date, return_date: date) -> Decimal:
        """Fine owed for returning on ``return_date`` an item due on ``due_date``."""
        amount = days_late(due_date, return_date) * self.policy.daily_fine_rate
        return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)

    def issue(self, loan_id: int, due_date: date, return_date: date) -> FineDB | None:
        """
        Record an outstanding fine for a late return.

        Returns:
            The new fine row, or None when the return was not late
        """
        if self.session is None:
            raise RuntimeError("FineCalculator.issue requires a session")

        late = days_late(due_date, return_date)
        if late <= 0:
            return None

        fine = FineDB(
            loan_id=loan_id,
            amount=self.calculate(due_date, return_date),
            issue_date=return_date,
            status=FineStatusEnum.OUTSTANDING,
        )
        self.session.add(fine)
        self.session.flush()
        logger.info(
            "Issued fine %s of %s on loan %s (%d days late)", fine.id, fine.amount, loan_id, late
        )
        return fine
