"""
Lending Ledger models.

Pydantic models for the records the ledger exposes:
- Item: catalog items and their copy counters
- Member: borrowers (read-only here)
- Loan / Fine: circulation records owned by the engine
"""

from .item import Item
from .loan import CheckedOutLoan, Fine, FineStatus, Loan, LoanStatus, ReturnOutcome
from .member import Member, MembershipStatus

__all__ = [
    "CheckedOutLoan",
    "Fine",
    "FineStatus",
    "Item",
    "Loan",
    "LoanStatus",
    "Member",
    "MembershipStatus",
    "ReturnOutcome",
]
