"""
Member repository for the Lending Ledger.

Members are owned by the member-management collaborator; this repository
only reads them.
"""

from sqlalchemy import select

from ..models.member import Member, MembershipStatus
from .repository import BaseRepository
from .schema import Member as MemberDB
from .schema import MembershipStatusEnum


class MemberRepository(BaseRepository[MemberDB, Member]):
    """Read-only repository for members."""

    @property
    def model_class(self) -> type[MemberDB]:
        return MemberDB

    @property
    def response_schema(self) -> type[Member]:
        return Member

    def _to_response_model(self, db_obj: MemberDB) -> Member:
        return Member(
            id=db_obj.id,
            first_name=db_obj.first_name,
            last_name=db_obj.last_name,
            email=db_obj.email,
            membership_date=db_obj.membership_date,
            membership_status=MembershipStatus(db_obj.membership_status.value),
        )

    def get_by_email(self, email: str) -> Member | None:
        member = self.session.execute(
            select(MemberDB).where(MemberDB.email == email)
        ).scalar_one_or_none()
        return self._to_response_model(member) if member else None

    def by_status(self, status: MembershipStatus) -> list[Member]:
        results = (
            self.session.execute(
                select(MemberDB)
                .where(MemberDB.membership_status == MembershipStatusEnum(status.value))
                .order_by(MemberDB.last_name, MemberDB.first_name)
            )
            .scalars()
            .all()
        )
        return [self._to_response_model(member) for member in results]
