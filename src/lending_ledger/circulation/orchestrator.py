"""
Borrow/Return Orchestrator: the engine's entry points.

Each public method is one unit of work:

1. take the row locks for everything it touches (bounded wait)
2. open one database transaction
3. run the components in order (eligibility, ledger, loan state, fines)
4. commit, or roll back everything on any failure

Lock scopes:
- ``borrow``        member + item
- ``return_loan``   loan + its item
- ``declare_lost``  loan + its item
- ``delete_item``   item
- ``add_copies``    item

Borrows of different items by different members share no row lock. On
SQLite their transactions still queue on the database write lock.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import date
from typing import TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..config import LendingPolicy, LostItemPolicy, get_config
from ..database.loan_repository import loan_to_model
from ..database.schema import Item as ItemDB
from ..database.schema import Loan as LoanDB
from ..database.session import DatabaseManager, get_db_manager
from ..models.item import Item
from ..models.loan import Loan, LoanStatus, ReturnOutcome
from .eligibility import EligibilityChecker
from .errors import (
    ConcurrencyConflictError,
    ItemHasActiveLoansError,
    ItemNotFoundError,
    LoanNotFoundError,
)
from .fines import days_late
from .ledger import InventoryLedger
from .locks import ITEM, LOAN, MEMBER, LockKey, RowLockManager
from .state_machine import LoanStateMachine

logger = logging.getLogger(__name__)

T = TypeVar("T")

CopyReleasedHook = Callable[[int], None]


class CirculationService:
    """
    Runs borrow, return, loss and item deletion as atomic units of work.

    Args:
        db_manager: Source of sessions; defaults to the global manager
        policy: Lending policy; defaults to the configured policy
        locks: Row lock manager; share one per process
        on_copy_released: Called with the item id after a committed unit of
            work puts a copy back on the shelf. This is where reservation
            promotion would hook in.
    """

    def __init__(
        self,
        db_manager: DatabaseManager | None = None,
        policy: LendingPolicy | None = None,
        locks: RowLockManager | None = None,
        on_copy_released: CopyReleasedHook | None = None,
    ):
        self.db = db_manager or get_db_manager()
        self.policy = policy or get_config().lending_policy
        self.locks = locks or RowLockManager(self.policy.lock_timeout_seconds)
        self.on_copy_released = on_copy_released

    @contextmanager
    def _unit_of_work(
        self, operation: str, immediate: bool = True
    ) -> Generator[Session, None, None]:
        try:
            with self.db.session_scope(immediate=immediate) as session:
                yield session
        except OperationalError as e:
            logger.warning("%s conflicted with concurrent work: %s", operation, e.orig)
            raise ConcurrencyConflictError(
                f"{operation} conflicted with concurrent work, retry the request"
            ) from e

    def _copy_released(self, item_id: int) -> None:
        if self.on_copy_released is None:
            return
        try:
            self.on_copy_released(item_id)
        except Exception:
            # Release is already committed
            logger.exception("copy-released hook failed for item %s", item_id)

    def _loan_item(self, loan_id: int) -> int | None:
        """Item a loan refers to, read before its locks are taken."""
        # Stable while the loan is unresolved: delete_item refuses items with
        # unresolved loans, so ON DELETE SET NULL only reaches resolved ones
        with self._unit_of_work("lookup", immediate=False) as session:
            found = session.execute(
                select(LoanDB.id, LoanDB.item_id).where(LoanDB.id == loan_id)
            ).one_or_none()
        if found is None:
            raise LoanNotFoundError(loan_id)
        return found.item_id

    def _loan_keys(self, loan_id: int) -> list[LockKey]:
        keys: list[LockKey] = [(LOAN, loan_id)]
        item_id = self._loan_item(loan_id)
        if item_id is not None:
            keys.append((ITEM, item_id))
        return keys

    def borrow(self, item_id: int, member_id: int, current_date: date) -> int:
        """
        Lend one copy of an item to a member.

        Returns:
            The new loan's id

        Raises:
            MemberNotFoundError / ItemNotFoundError: Unknown member or item
            MemberIneligibleError / LoanCapExceededError: Policy refusal
            OutOfStockError: No copy available
            ConcurrencyConflictError: Lock timeout or database contention
        """
        with self.locks.hold((MEMBER, member_id), (ITEM, item_id)):
            with self._unit_of_work("borrow") as session:
                EligibilityChecker(session, self.policy).check(member_id, current_date)
                loan = LoanStateMachine(session, self.policy).open(
                    item_id, member_id, current_date
                )
                loan_id = loan.id
        return loan_id

    def return_loan(self, loan_id: int, current_date: date) -> ReturnOutcome:
        """
        Return a loan, releasing its copy and fining a late return.

        Raises:
            LoanNotFoundError: Unknown loan
            AlreadyReturnedError: The loan is already resolved
            ConcurrencyConflictError: Lock timeout or database contention
            OverReleaseError: The ledger would exceed total copies (a defect)
        """
        with self.locks.hold(*self._loan_keys(loan_id)):
            with self._unit_of_work("return") as session:
                loan, fine = LoanStateMachine(session, self.policy).close(loan_id, current_date)
                outcome = ReturnOutcome(
                    loan_id=loan.id,
                    status=LoanStatus(loan.status.value),
                    return_date=current_date,
                    days_late=days_late(loan.due_date, current_date),
                    fine_id=fine.id if fine else None,
                    fine_amount=fine.amount if fine else None,
                )
                item_id = loan.item_id

        self._copy_released(item_id)
        return outcome

    def declare_lost(self, loan_id: int, current_date: date) -> Loan:
        """
        Resolve an outstanding loan as lost.

        The ledger effect follows ``policy.lost_item_policy``.
        """
        with self.locks.hold(*self._loan_keys(loan_id)):
            with self._unit_of_work("declare lost") as session:
                loan = LoanStateMachine(session, self.policy).mark_lost(loan_id, current_date)
                result = loan_to_model(loan)

        if self.policy.lost_item_policy is LostItemPolicy.RELEASE:
            self._copy_released(result.item_id)
        return result

    def delete_item(self, item_id: int) -> None:
        """
        Remove an item from the catalog.

        Loan history survives with its item reference cleared.

        Raises:
            ItemNotFoundError: Unknown item
            ItemHasActiveLoansError: A loan on the item is unresolved
        """
        with self.locks.hold((ITEM, item_id)):
            with self._unit_of_work("delete item") as session:
                item = session.execute(
                    select(ItemDB).where(ItemDB.id == item_id).with_for_update()
                ).scalar_one_or_none()
                if item is None:
                    raise ItemNotFoundError(item_id)

                active = (
                    session.execute(
                        select(func.count())
                        .select_from(LoanDB)
                        .where(LoanDB.item_id == item_id, LoanDB.return_date.is_(None))
                    ).scalar()
                    or 0
                )
                if active:
                    logger.info("Refusing to delete item %s: %d active loans", item_id, active)
                    raise ItemHasActiveLoansError(item_id, active)

                session.delete(item)
        logger.info("Deleted item %s", item_id)

    def add_copies(self, item_id: int, count: int) -> Item:
        """Add newly acquired copies of an item."""
        with self.locks.hold((ITEM, item_id)):
            with self._unit_of_work("add copies") as session:
                ledger = InventoryLedger(session)
                ledger.add_copies(item_id, count)
                item = ledger.availability(item_id)

        self._copy_released(item_id)
        return item

    def availability(self, item_id: int) -> Item:
        """Current committed copy counts for an item."""
        with self._unit_of_work("availability", immediate=False) as session:
            return InventoryLedger(session).availability(item_id)


def retry_on_conflict(operation: Callable[[], T], attempts: int) -> T:
    """
    Run ``operation``, retrying it after a ``ConcurrencyConflictError``.

    Safe because a conflicted unit of work leaves nothing behind. The last
    conflict is re-raised once ``attempts`` runs have failed.
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except ConcurrencyConflictError:
            if attempt == attempts:
                raise
            logger.warning("Concurrency conflict, retrying (attempt %d of %d)", attempt, attempts)
    raise ValueError("attempts must be at least 1")


_service: CirculationService | None = None


def get_circulation_service() -> CirculationService:
    """Process-wide service sharing one lock manager."""
    global _service  # noqa: PLW0603

    if _service is None:
        _service = CirculationService()
    return _service


def reset_circulation_service() -> None:
    global _service  # noqa: PLW0603
    _service = None
