"""Circulation Reports - read-only views of the ledger

Resources:
- ledger://loans/checked-out - Every unresolved loan, with days remaining
- ledger://loans/overdue - Unresolved loans past their due date
- ledger://items/available - Items with at least one copy on the shelf
- ledger://members/{member_id}/fines - A member's fines and outstanding total

Reports are computed against today's date when they are read.
"""

import logging
from datetime import date
from typing import Any

from fastmcp.exceptions import ResourceError

from ..database.item_repository import ItemRepository
from ..database.loan_repository import FineRepository, LoanRepository
from ..database.member_repository import MemberRepository
from ..database.session import get_db_manager

logger = logging.getLogger(__name__)


async def checked_out_handler() -> dict[str, Any]:
    """Returns every loan still out, soonest due first."""
    today = date.today()
    try:
        with get_db_manager().session_scope() as session:
            loans = LoanRepository(session).checked_out(today)
    except Exception as e:
        logger.exception("Error in loans/checked-out resource")
        raise ResourceError(f"Failed to retrieve checked-out loans: {e!s}") from e

    return {
        "as_of": today.isoformat(),
        "total": len(loans),
        "loans": [loan.model_dump(mode="json") for loan in loans],
    }


async def overdue_handler() -> dict[str, Any]:
    """Returns unresolved loans whose due date has passed."""
    today = date.today()
    try:
        with get_db_manager().session_scope() as session:
            loans = LoanRepository(session).overdue(today)
    except Exception as e:
        logger.exception("Error in loans/overdue resource")
        raise ResourceError(f"Failed to retrieve overdue loans: {e!s}") from e

    return {
        "as_of": today.isoformat(),
        "total": len(loans),
        "loans": [loan.model_dump(mode="json") for loan in loans],
    }


async def available_items_handler() -> dict[str, Any]:
    try:
        with get_db_manager().session_scope() as session:
            items = ItemRepository(session).available()
    except Exception as e:
        logger.exception("Error in items/available resource")
        raise ResourceError(f"Failed to retrieve available items: {e!s}") from e

    return {"total": len(items), "items": [item.model_dump(mode="json") for item in items]}


async def member_fines_handler(member_id: str) -> dict[str, Any]:
    """Returns a member's fines, oldest first, with the unpaid total."""
    try:
        member_key = int(member_id)
    except ValueError as e:
        raise ResourceError(f"Invalid member id: {member_id}") from e

    logger.debug("MCP Resource Request - members/%s/fines", member_key)
    try:
        with get_db_manager().session_scope() as session:
            if not MemberRepository(session).exists(member_key):
                raise ResourceError(f"Member not found: {member_key}")
            repo = FineRepository(session)
            fines = repo.list_fines(member_id=member_key)
            outstanding = repo.outstanding_total(member_key)
    except ResourceError:
        raise
    except Exception as e:
        logger.exception("Error in members/{member_id}/fines resource")
        raise ResourceError(f"Failed to retrieve fines: {e!s}") from e

    return {
        "member_id": member_key,
        "outstanding_total": str(outstanding),
        "fines": [fine.model_dump(mode="json") for fine in fines],
    }


report_resources: list[dict[str, Any]] = [
    {
        "uri": "ledger://loans/checked-out",
        "name": "Checked-Out Loans",
        "description": "Every unresolved loan with its due date and days remaining",
        "mime_type": "application/json",
        "handler": checked_out_handler,
    },
    {
        "uri": "ledger://loans/overdue",
        "name": "Overdue Loans",
        "description": "Unresolved loans past their due date, with days overdue",
        "mime_type": "application/json",
        "handler": overdue_handler,
    },
    {
        "uri": "ledger://items/available",
        "name": "Available Items",
        "description": "Items with at least one copy on the shelf",
        "mime_type": "application/json",
        "handler": available_items_handler,
    },
    {
        "uri": "ledger://members/{member_id}/fines",
        "name": "Member Fines",
        "description": "A member's fines and the total they still owe",
        "mime_type": "application/json",
        "handler": member_fines_handler,
    },
]
