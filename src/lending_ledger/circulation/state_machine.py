"""
Loan State Machine: the lifecycle of one loan.

    on_loan ──return on/before due──▶ returned
       │   ──return after due──────▶ overdue
       └───declared lost───────────▶ lost

Every state other than ``on_loan`` is terminal. Transitions are explicit
method calls made by the orchestrator, and each one carries its ledger
effect with it:

- ``open``      reserves a slot, then inserts the loan
- ``close``     resolves the loan, releases the slot, and issues a fine when late
- ``mark_lost`` resolves the loan, then writes the copy off or releases it,
  as the configured ``LostItemPolicy`` says

Resolution is guarded by ``return_date IS NULL`` in the UPDATE itself, so a
loan resolves at most once even if two callers race past the lock.
"""

import logging
from datetime import date, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..config import LendingPolicy, LostItemPolicy
from ..database.schema import Fine as FineDB
from ..database.schema import Loan as LoanDB
from ..database.schema import LoanStatusEnum
from .errors import AlreadyReturnedError, InvariantViolationError, LoanNotFoundError
from .fines import FineCalculator
from .ledger import InventoryLedger

logger = logging.getLogger(__name__)

TRANSITIONS: dict[LoanStatusEnum, frozenset[LoanStatusEnum]] = {
    LoanStatusEnum.ON_LOAN: frozenset(
        {LoanStatusEnum.RETURNED, LoanStatusEnum.OVERDUE, LoanStatusEnum.LOST}
    ),
    LoanStatusEnum.RETURNED: frozenset(),
    LoanStatusEnum.OVERDUE: frozenset(),
    LoanStatusEnum.LOST: frozenset(),
}


def can_transition(current: LoanStatusEnum, target: LoanStatusEnum) -> bool:
    return target in TRANSITIONS[current]


def return_status(due_date: date, return_date: date) -> LoanStatusEnum:
    """Terminal status for a return on ``return_date``."""
    if return_date <= due_date:
        return LoanStatusEnum.RETURNED
    return LoanStatusEnum.OVERDUE


class LoanStateMachine:
    """Creates loans and drives them to a terminal state."""

    def __init__(
        self,
        session: Session,
        policy: LendingPolicy,
        ledger: InventoryLedger | None = None,
        fines: FineCalculator | None = None,
    ):
        self.session = session
        self.policy = policy
        self.ledger = ledger or InventoryLedger(session)
        self.fines = fines or FineCalculator(policy, session)

    def load(self, loan_id: int) -> LoanDB:
        """Fetch a loan, locking its row where the database supports it."""
        loan = self.session.execute(
            select(LoanDB).where(LoanDB.id == loan_id).with_for_update()
        ).scalar_one_or_none()
        if loan is None:
            raise LoanNotFoundError(loan_id)
        return loan

    def open(self, item_id: int, member_id: int, loan_date: date) -> LoanDB:
        """Reserve a copy and create an ``on_loan`` loan for it."""
        self.ledger.reserve(item_id)

        loan = LoanDB(
            item_id=item_id,
            member_id=member_id,
            loan_date=loan_date,
            due_date=loan_date + timedelta(days=self.policy.loan_period_days),
            status=LoanStatusEnum.ON_LOAN,
        )
        self.session.add(loan)
        self.session.flush()
        logger.info(
            "Opened loan %s: item %s to member %s, due %s",
            loan.id,
            item_id,
            member_id,
            loan.due_date,
        )
        return loan

    def _resolve(self, loan: LoanDB, target: LoanStatusEnum, resolved_on: date) -> None:
        if loan.return_date is not None or not can_transition(loan.status, target):
            raise AlreadyReturnedError(loan.id, loan.status.value)
        if resolved_on < loan.loan_date:
            raise ValueError(
                f"Loan {loan.id} cannot be resolved on {resolved_on}, before its loan date"
            )

        result = self.session.execute(
            update(LoanDB)
            .where(LoanDB.id == loan.id, LoanDB.return_date.is_(None))
            .values(return_date=resolved_on, status=target)
        )
        if result.rowcount != 1:
            raise AlreadyReturnedError(loan.id, loan.status.value)

        if loan.item_id is None:
            error = InvariantViolationError(f"Unresolved loan {loan.id} has no item")
            logger.critical("Ledger invariant violated: %s", error)
            raise error

    def close(self, loan_id: int, return_date: date) -> tuple[LoanDB, FineDB | None]:
        """
        Return a loan.

        Returns:
            The resolved loan and the fine issued for it, if any

        Raises:
            LoanNotFoundError: Unknown loan
            AlreadyReturnedError: The loan is already resolved
        """
        loan = self.load(loan_id)
        target = return_status(loan.due_date, return_date)
        self._resolve(loan, target, return_date)
        self.ledger.release(loan.item_id)

        fine = None
        if target is LoanStatusEnum.OVERDUE:
            fine = self.fines.issue(loan.id, loan.due_date, return_date)

        logger.info("Closed loan %s as %s", loan.id, target.value)
        return loan, fine

    def mark_lost(self, loan_id: int, declared_on: date) -> LoanDB:
        """
        Declare a loan's copy lost.

        ``declared_on`` is recorded as the loan's resolution date.
        """
        loan = self.load(loan_id)
        self._resolve(loan, LoanStatusEnum.LOST, declared_on)

        if self.policy.lost_item_policy is LostItemPolicy.WRITE_OFF:
            self.ledger.write_off(loan.item_id)
        else:
            self.ledger.release(loan.item_id)

        logger.info(
            "Loan %s declared lost (%s)", loan.id, self.policy.lost_item_policy.value
        )
        return loan
