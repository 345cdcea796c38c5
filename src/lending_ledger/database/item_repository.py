"""
Item repository for the Lending Ledger.

Read access to catalog items and their copy counters, including the
"items currently available" report. Counter writes live in
``circulation.ledger``.
"""

from sqlalchemy import select

from ..models.item import Item
from .repository import BaseRepository
from .schema import Item as ItemDB


class ItemRepository(BaseRepository[ItemDB, Item]):
    """Repository for catalog items."""

    @property
    def model_class(self) -> type[ItemDB]:
        return ItemDB

    @property
    def response_schema(self) -> type[Item]:
        return Item

    def get_by_isbn(self, isbn: str) -> Item | None:
        item = self.session.execute(select(ItemDB).where(ItemDB.isbn == isbn)).scalar_one_or_none()
        return self._to_response_model(item) if item else None

    def available(self) -> list[Item]:
        """Items with at least one copy on the shelf, by title."""
        results = (
            self.session.execute(
                select(ItemDB).where(ItemDB.available_copies > 0).order_by(ItemDB.title)
            )
            .scalars()
            .all()
        )
        return [self._to_response_model(item) for item in results]
