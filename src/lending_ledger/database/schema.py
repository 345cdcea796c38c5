"""
SQLAlchemy database schema for the Lending Ledger.

Members and item catalog data belong to external collaborators; this schema
stores just enough of them for the circulation engine to work. Loans and
fines are owned here. The two copy counters on ``items`` are written only
by the Inventory Ledger (``circulation.ledger``).
"""

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class MembershipStatusEnum(str, enum.Enum):
    """Database enum for membership status."""

    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


class LoanStatusEnum(str, enum.Enum):
    """Database enum for loan status.

    Only ON_LOAN is non-terminal. OVERDUE means "returned late"; a loan that
    is still out past its due date stays ON_LOAN.
    """

    ON_LOAN = "on_loan"
    RETURNED = "returned"
    OVERDUE = "overdue"
    LOST = "lost"


class FineStatusEnum(str, enum.Enum):
    """Database enum for fine status."""

    OUTSTANDING = "outstanding"
    PAID = "paid"
    WAIVED = "waived"


class Member(Base):
    """Members table - read-only to the circulation engine."""

    __tablename__ = "members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(100), nullable=False, unique=True)
    membership_date = Column(Date, nullable=False)
    membership_status = Column(
        Enum(MembershipStatusEnum, values_callable=_enum_values),
        nullable=False,
        default=MembershipStatusEnum.ACTIVE,
    )

    loans = relationship("Loan", back_populates="member")

    __table_args__ = (Index("idx_members_name", "last_name", "first_name"),)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Item(Base):
    """
    Items table - one row per catalog title held in copies.

    ``available_copies`` always equals ``total_copies`` minus the number of
    loans on this item still ON_LOAN.
    """

    __tablename__ = "items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    isbn = Column(String(20), nullable=False, unique=True)
    title = Column(String(200), nullable=False)
    location = Column(String(50), nullable=True)
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)

    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    loans = relationship("Loan", back_populates="item")

    __table_args__ = (
        Index("idx_items_title", "title"),
        Index("idx_items_availability", "available_copies"),
        CheckConstraint("total_copies >= 0", name="check_total_copies_non_negative"),
        CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        CheckConstraint(
            "available_copies <= total_copies", name="check_available_not_exceed_total"
        ),
    )


class Loan(Base):
    """
    Loans table - the lifecycle of one borrowed copy.

    Created by the orchestrator on a successful borrow and mutated only by the
    loan state machine. ``item_id`` is nulled if the catalog later deletes the
    item, so loan history outlives the catalog row.
    """

    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(Integer, ForeignKey("items.id", ondelete="SET NULL"), nullable=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False)
    loan_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=True)
    status = Column(
        Enum(LoanStatusEnum, values_callable=_enum_values),
        nullable=False,
        default=LoanStatusEnum.ON_LOAN,
    )

    # Audit
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    item = relationship("Item", back_populates="loans")
    member = relationship("Member", back_populates="loans")
    fine = relationship("Fine", back_populates="loan", uselist=False)

    __table_args__ = (
        Index("idx_loans_dates", "loan_date", "due_date", "return_date"),
        Index("idx_loans_status", "status"),
        Index("idx_loans_member", "member_id"),
        Index("idx_loans_item", "item_id"),
        CheckConstraint("due_date >= loan_date", name="check_due_after_loan"),
    )

    @property
    def is_resolved(self) -> bool:
        return self.return_date is not None


class Fine(Base):
    """Fines table - at most one fine per loan."""

    __tablename__ = "fines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, unique=True)
    amount = Column(Numeric(10, 2, asdecimal=True), nullable=False)
    issue_date = Column(Date, nullable=False)
    payment_date = Column(Date, nullable=True)
    status = Column(
        Enum(FineStatusEnum, values_callable=_enum_values),
        nullable=False,
        default=FineStatusEnum.OUTSTANDING,
    )

    loan = relationship("Loan", back_populates="fine")

    __table_args__ = (
        Index("idx_fines_status", "status"),
        CheckConstraint("amount >= 0", name="check_fine_amount_non_negative"),
    )
