"""
Inventory Ledger: the only writer of an item's copy counters.

Every counter change is a single conditional UPDATE whose WHERE clause
restates the invariant it must preserve:

- reserve:    available_copies > 0
- release:    available_copies < total_copies
- write_off:  total_copies > available_copies  (a copy is out to be lost)

A zero row count means the guard refused the change. For ``reserve`` that is
an ordinary out-of-stock rejection. For ``release`` and ``write_off`` it means
the books no longer balance, which is a defect: it is logged at CRITICAL and
raised, never clamped.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..database.schema import Item as ItemDB
from ..models.item import Item
from .errors import (
    ItemNotFoundError,
    NegativeAvailabilityError,
    OutOfStockError,
    OverReleaseError,
)

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Atomic reserve/release over ``items.available_copies``."""

    def __init__(self, session: Session):
        self.session = session

    def _counters(self, item_id: int) -> tuple[int, int]:
        """Read (total, available) for an item, locking its row where supported."""
        row = self.session.execute(
            select(ItemDB.total_copies, ItemDB.available_copies)
            .where(ItemDB.id == item_id)
            .with_for_update()
        ).one_or_none()
        if row is None:
            raise ItemNotFoundError(item_id)
        return row.total_copies, row.available_copies

    def availability(self, item_id: int) -> Item:
        """Current committed counters for an item."""
        item = self.session.execute(select(ItemDB).where(ItemDB.id == item_id)).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(item_id)
        return Item.model_validate(item)

    def reserve(self, item_id: int) -> None:
        """
        Take one copy off the shelf.

        Raises:
            ItemNotFoundError: If the item does not exist
            OutOfStockError: If no copy is available
        """
        self._counters(item_id)
        result = self.session.execute(
            update(ItemDB)
            .where(ItemDB.id == item_id, ItemDB.available_copies > 0)
            .values(available_copies=ItemDB.available_copies - 1)
        )
        if result.rowcount != 1:
            logger.info("Reserve refused for item %s: no copies available", item_id)
            raise OutOfStockError(item_id)
        logger.debug("Reserved one copy of item %s", item_id)

    def release(self, item_id: int) -> None:
        """
        Put one copy back on the shelf.

        Raises:
            ItemNotFoundError: If the item does not exist
            OverReleaseError: If every copy is already on the shelf
        """
        total, available = self._counters(item_id)
        result = self.session.execute(
            update(ItemDB)
            .where(ItemDB.id == item_id, ItemDB.available_copies < ItemDB.total_copies)
            .values(available_copies=ItemDB.available_copies + 1)
        )
        if result.rowcount != 1:
            error = OverReleaseError(item_id, available, total)
            logger.critical("Ledger invariant violated: %s", error)
            raise error
        logger.debug("Released one copy of item %s", item_id)

    def write_off(self, item_id: int) -> None:
        """
        Remove one copy that is out on loan from the collection.

        The copy was already counted as unavailable, so only ``total_copies``
        changes.

        Raises:
            ItemNotFoundError: If the item does not exist
            NegativeAvailabilityError: If no copy of the item is out
        """
        total, available = self._counters(item_id)
        result = self.session.execute(
            update(ItemDB)
            .where(ItemDB.id == item_id, ItemDB.total_copies > ItemDB.available_copies)
            .values(total_copies=ItemDB.total_copies - 1)
        )
        if result.rowcount != 1:
            error = NegativeAvailabilityError(
                item_id, f"write-off with no copy on loan ({available} of {total} available)"
            )
            logger.critical("Ledger invariant violated: %s", error)
            raise error
        logger.info("Wrote off one copy of item %s", item_id)

    def add_copies(self, item_id: int, count: int) -> None:
        """Add newly acquired copies straight to the shelf."""
        if count < 1:
            raise ValueError("Copy count must be positive")
        self._counters(item_id)
        self.session.execute(
            update(ItemDB)
            .where(ItemDB.id == item_id)
            .values(
                total_copies=ItemDB.total_copies + count,
                available_copies=ItemDB.available_copies + count,
            )
        )
        logger.info("Added %d copies to item %s", count, item_id)
