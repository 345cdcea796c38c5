"""Fixtures for MCP tool tests."""

import pytest


@pytest.fixture
def tool_service(service, monkeypatch):
    """Point the tool handlers at the test database's circulation service."""
    monkeypatch.setattr(
        "lending_ledger.tools.circulation.get_circulation_service", lambda: service
    )
    return service
