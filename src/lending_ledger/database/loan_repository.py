"""
Loan and fine repositories for the Lending Ledger.

These serve the engine's outputs to collaborators:

1. **Loans** by item, member or status
2. **Checked out**: every unresolved loan with days remaining / overdue
3. **Overdue**: the checked-out rows whose due date has passed
4. **Fines** by status or member, and settlement by external billing

"Overdue" here is always derived from ``due_date < today`` on an
unresolved loan; it is never read from the stored status.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ..models.loan import CheckedOutLoan, Fine, FineStatus, Loan, LoanStatus
from .repository import (
    BaseRepository,
    NotFoundError,
    PaginatedResponse,
    PaginationParams,
    RepositoryException,
)
from .schema import Fine as FineDB
from .schema import FineStatusEnum, LoanStatusEnum
from .schema import Item as ItemDB
from .schema import Loan as LoanDB
from .schema import Member as MemberDB


def loan_to_model(loan: LoanDB) -> Loan:
    """Convert loan DB object to Pydantic model."""
    return Loan(
        id=loan.id,
        item_id=loan.item_id,
        member_id=loan.member_id,
        loan_date=loan.loan_date,
        due_date=loan.due_date,
        return_date=loan.return_date,
        status=LoanStatus(loan.status.value),
    )


def fine_to_model(fine: FineDB) -> Fine:
    """Convert fine DB object to Pydantic model."""
    return Fine(
        id=fine.id,
        loan_id=fine.loan_id,
        amount=fine.amount,
        issue_date=fine.issue_date,
        payment_date=fine.payment_date,
        status=FineStatus(fine.status.value),
    )


class LoanRepository(BaseRepository[LoanDB, Loan]):
    """Queries over loan history and the checked-out/overdue reports."""

    @property
    def model_class(self) -> type[LoanDB]:
        return LoanDB

    @property
    def response_schema(self) -> type[Loan]:
        return Loan

    def _to_response_model(self, db_obj: LoanDB) -> Loan:
        return loan_to_model(db_obj)

    def list_loans(
        self,
        item_id: int | None = None,
        member_id: int | None = None,
        status: LoanStatus | None = None,
        unresolved_only: bool = False,
        pagination: PaginationParams | None = None,
    ) -> list[Loan] | PaginatedResponse[Loan]:
        """
        Loans filtered by item, member and/or status, newest first.

        Args:
            item_id: Filter by item
            member_id: Filter by member
            status: Filter by stored status
            unresolved_only: Only loans with no return date
            pagination: Pagination parameters
        """
        query = select(LoanDB)

        if item_id is not None:
            query = query.where(LoanDB.item_id == item_id)
        if member_id is not None:
            query = query.where(LoanDB.member_id == member_id)
        if status is not None:
            query = query.where(LoanDB.status == LoanStatusEnum(status.value))
        if unresolved_only:
            query = query.where(LoanDB.return_date.is_(None))

        query = query.order_by(LoanDB.loan_date.desc(), LoanDB.id.desc())

        if pagination:
            return self._paginate(query, pagination)

        results = self.session.execute(query).scalars().all()
        return [self._to_response_model(loan) for loan in results]

    def count_unresolved(self, member_id: int | None = None, item_id: int | None = None) -> int:
        query = select(func.count()).select_from(LoanDB).where(LoanDB.return_date.is_(None))
        if member_id is not None:
            query = query.where(LoanDB.member_id == member_id)
        if item_id is not None:
            query = query.where(LoanDB.item_id == item_id)
        return self.session.execute(query).scalar() or 0

    def checked_out(self, today: date) -> list[CheckedOutLoan]:
        """Every unresolved loan, soonest due first."""
        rows = self.session.execute(
            select(LoanDB, ItemDB, MemberDB)
            .outerjoin(ItemDB, LoanDB.item_id == ItemDB.id)
            .join(MemberDB, LoanDB.member_id == MemberDB.id)
            .where(LoanDB.return_date.is_(None))
            .order_by(LoanDB.due_date, LoanDB.id)
        ).all()

        return [
            CheckedOutLoan(
                loan_id=loan.id,
                item_id=loan.item_id,
                title=item.title if item else None,
                isbn=item.isbn if item else None,
                member_id=member.id,
                member_name=member.full_name,
                loan_date=loan.loan_date,
                due_date=loan.due_date,
                days_remaining=(loan.due_date - today).days,
                days_overdue=max(0, (today - loan.due_date).days),
            )
            for loan, item, member in rows
        ]

    def overdue(self, today: date) -> list[CheckedOutLoan]:
        """Unresolved loans past their due date as of ``today``."""
        return [row for row in self.checked_out(today) if row.days_overdue > 0]


class FineRepository(BaseRepository[FineDB, Fine]):
    """Fine lookups plus the billing collaborator's settlement entry point."""

    @property
    def model_class(self) -> type[FineDB]:
        return FineDB

    @property
    def response_schema(self) -> type[Fine]:
        return Fine

    def _to_response_model(self, db_obj: FineDB) -> Fine:
        return fine_to_model(db_obj)

    def get_for_loan(self, loan_id: int) -> Fine | None:
        fine = self.session.execute(
            select(FineDB).where(FineDB.loan_id == loan_id)
        ).scalar_one_or_none()
        return self._to_response_model(fine) if fine else None

    def list_fines(
        self, status: FineStatus | None = None, member_id: int | None = None
    ) -> list[Fine]:
        query = select(FineDB).order_by(FineDB.issue_date, FineDB.id)
        if status is not None:
            query = query.where(FineDB.status == FineStatusEnum(status.value))
        if member_id is not None:
            query = query.join(LoanDB, FineDB.loan_id == LoanDB.id).where(
                LoanDB.member_id == member_id
            )
        results = self.session.execute(query).scalars().all()
        return [self._to_response_model(fine) for fine in results]

    def outstanding_total(self, member_id: int) -> Decimal:
        """Sum of a member's unpaid, unwaived fines."""
        total = self.session.execute(
            select(func.coalesce(func.sum(FineDB.amount), 0))
            .join(LoanDB, FineDB.loan_id == LoanDB.id)
            .where(
                LoanDB.member_id == member_id,
                FineDB.status == FineStatusEnum.OUTSTANDING,
            )
        ).scalar()
        return Decimal(str(total)).quantize(Decimal("0.01"))

    def settle(self, fine_id: int, status: FineStatus, payment_date: date | None = None) -> Fine:
        """
        Mark an outstanding fine paid or waived.

        Raises:
            NotFoundError: Unknown fine
            RepositoryException: The fine is already settled or the request is invalid
        """
        if status is FineStatus.OUTSTANDING:
            raise RepositoryException("A fine can only be settled as paid or waived")
        if status is FineStatus.PAID and payment_date is None:
            raise RepositoryException("Paying a fine requires a payment date")

        fine = self.session.get(FineDB, fine_id)
        if fine is None:
            raise NotFoundError(f"Fine {fine_id} not found")
        if fine.status != FineStatusEnum.OUTSTANDING:
            raise RepositoryException(f"Fine {fine_id} is already {fine.status.value}")

        fine.status = FineStatusEnum(status.value)
        fine.payment_date = payment_date if status is FineStatus.PAID else None

        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryException(f"Settling fine {fine_id} failed: {e!s}") from e

        self.session.refresh(fine)
        return self._to_response_model(fine)
