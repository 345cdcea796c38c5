"""
MCP resources for the Lending Ledger server.

Resources are the read side: circulation reports served from committed
state. Writes go through the tools.
"""

from .reports import report_resources

all_resources = report_resources

__all__ = ["all_resources", "report_resources"]
