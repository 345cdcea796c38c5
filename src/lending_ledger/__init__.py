"""
Lending Ledger.

A library circulation engine that keeps item availability, loan state and
fines consistent under concurrent borrowing and returning.

Key Components:
- circulation: the consistency engine (ledger, eligibility, loan state
  machine, fines, orchestrator)
- database: SQLAlchemy schema, session management and read repositories
- models: Pydantic models for data validation and serialization
- config: Settings and the lending policy
- tools: MCP tools wrapping the orchestrator
"""

__version__ = "0.1.0"

from . import database

__all__ = [
    "__version__",
    "database",
]
