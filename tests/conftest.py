"""Test configuration and fixtures for the Lending Ledger.

Every test gets its own file-backed SQLite database under ``tmp_path``.
A file (rather than ``:memory:``) lets concurrency tests give each thread
its own connection, the same way the server does.
"""

import os
from collections.abc import Callable, Generator
from datetime import date
from pathlib import Path

import pytest

from lending_ledger.circulation import (
    CirculationService,
    RowLockManager,
    reset_circulation_service,
)
from lending_ledger.config import LendingPolicy, LostItemPolicy, reset_config
from lending_ledger.database.schema import Item as ItemDB
from lending_ledger.database.schema import Loan as LoanDB
from lending_ledger.database.schema import LoanStatusEnum
from lending_ledger.database.schema import Member as MemberDB
from lending_ledger.database.schema import MembershipStatusEnum
from lending_ledger.database.session import DatabaseManager, reset_db_manager
from lending_ledger.observability import ObservabilityConfig, initialize_observability

# The worked example used throughout: borrowed 2025-01-10, due 2025-01-24.
LOAN_DATE = date(2025, 1, 10)
DUE_DATE = date(2025, 1, 24)


# === Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path for each test."""
    return tmp_path / "test_ledger.db"


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    """Provide a SQLAlchemy database URL for testing."""
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def db_manager(test_database_url: str) -> Generator[DatabaseManager, None, None]:
    """A database manager with the schema created."""
    manager = DatabaseManager(test_database_url, busy_timeout=5.0)
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def session(db_manager: DatabaseManager):
    """A bare session for component-level tests. Nothing is committed implicitly."""
    session = db_manager.create_session()
    yield session
    session.rollback()
    session.close()


# === Policy & Service Fixtures ===


@pytest.fixture
def policy() -> LendingPolicy:
    """The standard policy: 14-day loans, 5 loans at once, 0.50 per day late."""
    return LendingPolicy(lock_timeout_seconds=5.0)


@pytest.fixture
def release_policy() -> LendingPolicy:
    """Lost copies are replaced rather than written off."""
    return LendingPolicy(lost_item_policy=LostItemPolicy.RELEASE)


@pytest.fixture
def service(db_manager: DatabaseManager, policy: LendingPolicy) -> CirculationService:
    return CirculationService(db_manager, policy, RowLockManager(policy.lock_timeout_seconds))


# === Test Data Factories ===


@pytest.fixture
def make_member(db_manager: DatabaseManager) -> Callable[..., int]:
    """Factory committing a member and returning its id."""
    counter = {"n": 0}

    def _make(status: MembershipStatusEnum = MembershipStatusEnum.ACTIVE) -> int:
        counter["n"] += 1
        n = counter["n"]
        with db_manager.session_scope() as session:
            member = MemberDB(
                first_name="Test",
                last_name=f"Member{n}",
                email=f"member{n}@example.com",
                membership_date=date(2024, 1, 1),
                membership_status=status,
            )
            session.add(member)
            session.flush()
            return member.id

    return _make


@pytest.fixture
def make_item(db_manager: DatabaseManager) -> Callable[..., int]:
    """Factory committing an item with ``copies`` copies, all on the shelf."""
    counter = {"n": 0}

    def _make(copies: int = 1, available: int | None = None, title: str | None = None) -> int:
        counter["n"] += 1
        n = counter["n"]
        with db_manager.session_scope() as session:
            item = ItemDB(
                isbn=f"978000000{n:04d}",
                title=title or f"Test Item {n}",
                location="A1",
                total_copies=copies,
                available_copies=copies if available is None else available,
            )
            session.add(item)
            session.flush()
            return item.id

    return _make


@pytest.fixture
def make_loan(db_manager: DatabaseManager) -> Callable[..., int]:
    """
    Factory inserting a loan row directly, bypassing the engine.

    Used to arrange history (old or overdue loans) without going through
    ``borrow``. The item's counters are not touched.
    """

    def _make(
        item_id: int,
        member_id: int,
        loan_date: date = LOAN_DATE,
        due_date: date = DUE_DATE,
        return_date: date | None = None,
        status: LoanStatusEnum = LoanStatusEnum.ON_LOAN,
    ) -> int:
        with db_manager.session_scope() as session:
            loan = LoanDB(
                item_id=item_id,
                member_id=member_id,
                loan_date=loan_date,
                due_date=due_date,
                return_date=return_date,
                status=status,
            )
            session.add(loan)
            session.flush()
            return loan.id

    return _make


@pytest.fixture
def counts(db_manager: DatabaseManager) -> Callable[[int], tuple[int, int]]:
    """Committed (total_copies, available_copies) for an item."""

    def _counts(item_id: int) -> tuple[int, int]:
        with db_manager.session_scope() as session:
            item = session.get(ItemDB, item_id)
            return item.total_copies, item.available_copies

    return _counts


# === Environment Fixtures ===


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Provide a clean environment without LENDING_LEDGER_* variables."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("LENDING_LEDGER_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


# === Observability ===


@pytest.fixture(scope="session", autouse=True)
def local_observability():
    """Configure logfire to keep spans in-process."""
    initialize_observability(
        ObservabilityConfig(enabled=True, send_to_logfire=False, console_output=False)
    )


# === Cleanup Fixtures ===


@pytest.fixture(autouse=True)
def cleanup_after_test():
    """Reset process-wide singletons so tests don't interfere with each other."""
    yield

    reset_circulation_service()
    reset_db_manager()
    reset_config()
