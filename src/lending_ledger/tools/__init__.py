"""
MCP tools for the Lending Ledger server.

Tools are the only write path exposed to clients. Each is a dictionary
with a name, description, JSON input schema and async handler, collected
in ``all_tools`` for server registration.
"""

from .circulation import borrow_item, declare_lost, delete_item, return_loan

all_tools = [
    borrow_item,
    return_loan,
    declare_lost,
    delete_item,
]

__all__ = [
    "all_tools",
    "borrow_item",
    "declare_lost",
    "delete_item",
    "return_loan",
]
