"""
Circulation tools for the Lending Ledger MCP server.

Each tool wraps one orchestrator operation:
1. borrow_item: lend a copy of an item to a member
2. return_loan: close a loan, fining late returns
3. declare_lost: resolve a loan whose copy will not come back
4. delete_item: remove an item that has no outstanding loans

The orchestrator is synchronous and may wait on row locks, so it runs on a
worker thread. A concurrency conflict is retried a configured number of
times; every other failure is reported to the client as an ``isError``
result rather than raised into the protocol layer.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import date, timedelta
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError

from ..circulation import (
    ConcurrencyConflictError,
    InvariantViolationError,
    PolicyRejection,
    get_circulation_service,
    retry_on_conflict,
)
from ..config import get_config
from ..database.repository import NotFoundError
from ..observability import trace_tool

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _error(text: str, **data: Any) -> dict[str, Any]:
    response: dict[str, Any] = {
        "isError": True,
        "content": [{"type": "text", "text": text}],
    }
    if data:
        response["data"] = data
    return response


def _success(text: str, **data: Any) -> dict[str, Any]:
    return {
        "content": [{"type": "text", "text": text}],
        "data": data,
    }


async def _run(tool: str, operation: Callable[[], T]) -> T | dict[str, Any]:
    """
    Run an orchestrator call off the event loop and map failures to results.

    Returns the operation's value, or an error response dict.
    """
    attempts = get_config().conflict_retry_attempts
    try:
        return await asyncio.to_thread(retry_on_conflict, operation, attempts)
    except NotFoundError as e:
        logger.info("%s failed - not found: %s", tool, e)
        return _error(str(e), error="not_found")
    except PolicyRejection as e:
        logger.info("%s refused: %s", tool, e)
        return _error(str(e), error="rejected", reason=type(e).__name__)
    except ConcurrencyConflictError as e:
        logger.warning("%s gave up after %d conflicts: %s", tool, attempts, e)
        return _error(f"{e} (gave up after {attempts} attempts)", error="conflict")
    except InvariantViolationError as e:
        logger.critical("%s hit a ledger invariant violation: %s", tool, e)
        return _error(f"Internal consistency error: {e}", error="invariant_violation")
    except ValueError as e:
        logger.info("%s failed - invalid request: %s", tool, e)
        return _error(str(e), error="invalid_request")


def _invalid(tool: str, e: ValidationError) -> dict[str, Any]:
    logger.warning("Invalid %s parameters: %s", tool, e)
    return _error(f"Invalid {tool} parameters: {e}", error="invalid_request")


# =============================================================================
# BORROW
# =============================================================================


class BorrowItemInput(BaseModel):
    """Input schema for the borrow_item tool."""

    item_id: int = Field(..., description="Catalog id of the item to borrow", ge=1)
    member_id: int = Field(..., description="Id of the borrowing member", ge=1)
    current_date: date = Field(
        default_factory=date.today,
        description="Date of the loan; defaults to today",
        examples=["2025-01-10"],
    )


@trace_tool("borrow_item")
async def borrow_item_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the borrow_item tool.

    Args:
        arguments: Raw arguments from the MCP tools/call request

    Returns:
        The new loan, or error information
    """
    try:
        params = BorrowItemInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid("borrow_item", e)

    service = get_circulation_service()
    loan_id = await _run(
        "borrow_item",
        lambda: service.borrow(params.item_id, params.member_id, params.current_date),
    )
    if isinstance(loan_id, dict):
        return loan_id

    due = params.current_date + timedelta(days=service.policy.loan_period_days)
    return _success(
        f"Item {params.item_id} lent to member {params.member_id} as loan {loan_id}. "
        f"Due date: {due.strftime('%B %d, %Y')}",
        loan={
            "id": loan_id,
            "item_id": params.item_id,
            "member_id": params.member_id,
            "loan_date": params.current_date.isoformat(),
            "due_date": due.isoformat(),
            "status": "on_loan",
        },
    )


# =============================================================================
# RETURN
# =============================================================================


class ReturnLoanInput(BaseModel):
    """Input schema for the return_loan tool."""

    loan_id: int = Field(..., description="Id of the loan being returned", ge=1)
    current_date: date = Field(
        default_factory=date.today,
        description="Date of the return; defaults to today",
        examples=["2025-01-30"],
    )


@trace_tool("return_loan")
async def return_loan_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the return_loan tool.

    A return after the due date closes the loan as ``overdue`` and issues
    an outstanding fine, reported in the response.
    """
    try:
        params = ReturnLoanInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid("return_loan", e)

    service = get_circulation_service()
    outcome = await _run(
        "return_loan", lambda: service.return_loan(params.loan_id, params.current_date)
    )
    if isinstance(outcome, dict):
        return outcome

    message = f"Loan {outcome.loan_id} returned on {outcome.return_date.isoformat()}"
    if outcome.fine_issued:
        message += (
            f", {outcome.days_late} days late. "
            f"Fine of ${outcome.fine_amount:.2f} issued (fine {outcome.fine_id})"
        )
    else:
        message += " on time"

    return _success(message, outcome=outcome.model_dump(mode="json"))


# =============================================================================
# LOST
# =============================================================================


class DeclareLostInput(BaseModel):
    """Input schema for the declare_lost tool."""

    loan_id: int = Field(..., description="Id of the loan whose copy is lost", ge=1)
    current_date: date = Field(
        default_factory=date.today,
        description="Date the loss is declared; recorded as the loan's resolution date",
    )


@trace_tool("declare_lost")
async def declare_lost_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the declare_lost tool."""
    try:
        params = DeclareLostInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid("declare_lost", e)

    service = get_circulation_service()
    loan = await _run(
        "declare_lost", lambda: service.declare_lost(params.loan_id, params.current_date)
    )
    if isinstance(loan, dict):
        return loan

    return _success(
        f"Loan {loan.id} declared lost on {params.current_date.isoformat()} "
        f"({service.policy.lost_item_policy.value.replace('_', ' ')})",
        loan=loan.model_dump(mode="json"),
    )


# =============================================================================
# DELETE ITEM
# =============================================================================


class DeleteItemInput(BaseModel):
    """Input schema for the delete_item tool."""

    item_id: int = Field(..., description="Catalog id of the item to delete", ge=1)


@trace_tool("delete_item")
async def delete_item_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the delete_item tool.

    Refused while any loan on the item is unresolved. Resolved loans keep
    their history with the item reference cleared.
    """
    try:
        params = DeleteItemInput.model_validate(arguments)
    except ValidationError as e:
        return _invalid("delete_item", e)

    service = get_circulation_service()
    result = await _run("delete_item", lambda: service.delete_item(params.item_id))
    if isinstance(result, dict):
        return result

    return _success(f"Item {params.item_id} deleted", item_id=params.item_id)


# =============================================================================
# TOOL DEFINITIONS
# =============================================================================

borrow_item = {
    "name": "borrow_item",
    "description": (
        "Lend one copy of a catalog item to a member. Refused when the member is "
        "inactive, has overdue loans or is at the loan cap, or when no copy is available."
    ),
    "inputSchema": BorrowItemInput.model_json_schema(),
    "handler": borrow_item_handler,
}

return_loan = {
    "name": "return_loan",
    "description": (
        "Return a loan and put its copy back on the shelf. Late returns are closed as "
        "overdue and fined per day late."
    ),
    "inputSchema": ReturnLoanInput.model_json_schema(),
    "handler": return_loan_handler,
}

declare_lost = {
    "name": "declare_lost",
    "description": (
        "Declare the copy on an outstanding loan lost. The copy is written off the "
        "collection or released, depending on the configured lost-item policy."
    ),
    "inputSchema": DeclareLostInput.model_json_schema(),
    "handler": declare_lost_handler,
}

delete_item = {
    "name": "delete_item",
    "description": "Remove an item from the catalog. Refused while loans on it are outstanding.",
    "inputSchema": DeleteItemInput.model_json_schema(),
    "handler": delete_item_handler,
}
