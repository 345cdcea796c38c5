"""
Member model for the Lending Ledger.

Members are registered and maintained by the member-management
collaborator. The circulation engine only reads their status.
"""

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field


class MembershipStatus(str, Enum):
    """Enumeration of possible membership statuses."""

    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


class Member(BaseModel):
    """A library member who may borrow items."""

    id: int = Field(..., description="Member identifier", ge=1)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., description="Contact email", examples=["john.o@gmail.com"])
    membership_date: date = Field(..., description="Date the member joined")
    membership_status: MembershipStatus = Field(
        default=MembershipStatus.ACTIVE,
        description="Only active members may borrow",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        return self.membership_status == MembershipStatus.ACTIVE
