"""
Database package for the Lending Ledger.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- Read repositories for items, members, loans and fines
"""

from .item_repository import ItemRepository
from .loan_repository import FineRepository, LoanRepository, fine_to_model, loan_to_model
from .member_repository import MemberRepository
from .repository import (
    BaseRepository,
    NotFoundError,
    PaginatedResponse,
    PaginationParams,
    RepositoryException,
)
from .schema import (
    Base,
    Fine,
    FineStatusEnum,
    Item,
    Loan,
    LoanStatusEnum,
    Member,
    MembershipStatusEnum,
)
from .session import (
    DatabaseManager,
    get_db_manager,
    reset_db_manager,
    session_scope,
)

__all__ = [
    "Base",
    "BaseRepository",
    "DatabaseManager",
    "Fine",
    "FineRepository",
    "FineStatusEnum",
    "Item",
    "ItemRepository",
    "Loan",
    "LoanRepository",
    "LoanStatusEnum",
    "Member",
    "MemberRepository",
    "MembershipStatusEnum",
    "NotFoundError",
    "PaginatedResponse",
    "PaginationParams",
    "RepositoryException",
    "fine_to_model",
    "get_db_manager",
    "loan_to_model",
    "reset_db_manager",
    "session_scope",
]
