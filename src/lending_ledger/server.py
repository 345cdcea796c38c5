"""Lending Ledger MCP Server.

Exposes the circulation engine to MCP clients over stdio. Resources serve
the read-only circulation reports; the registered tools are the only write
path, and each one is a single atomic unit of work in the orchestrator.

Run with ``python -m lending_ledger.server`` or the ``lending-ledger``
console script.
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from .config import get_config
from .database import get_db_manager
from .observability import initialize_observability
from .resources import all_resources
from .tools import all_tools

# Use stderr to keep stdout clean for stdio transport
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)

config = get_config()

mcp = FastMCP(
    name=config.server_name,
    version=config.server_version,
    instructions=(
        "Lending Ledger - a library circulation engine. Use the tools to borrow "
        "items, return loans, declare copies lost and remove items from the catalog. "
        "Every operation is atomic: it either takes full effect or none."
    ),
)

for tool in all_tools:
    logger.debug("Registering tool: %s", tool["name"])
    mcp.tool(
        name=tool["name"],
        description=tool["description"],
    )(tool["handler"])

logger.info("Registered %d tools", len(all_tools))

# FastMCP treats a URI with {placeholders} as a template
for resource in all_resources:
    logger.debug("Registering resource: %s", resource["uri"])
    mcp.resource(
        resource["uri"],
        name=resource["name"],
        description=resource["description"],
        mime_type=resource["mime_type"],
    )(resource["handler"])

logger.info("Registered %d resources", len(all_resources))


def run_stdio_server() -> None:
    """Prepare the database and serve MCP over stdio."""
    logger.info("Starting %s v%s on stdio transport", config.server_name, config.server_version)

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled")
    else:
        logging.getLogger().setLevel(config.log_level)
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    initialize_observability()

    db = get_db_manager()
    db.init_database()
    if not db.verify_connection():
        logger.error("Database unavailable, refusing to start")
        sys.exit(1)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        logger.info("MCP Server ready and waiting for connections...")
        mcp.run(transport="stdio")
    finally:
        db.close()
        logger.info("Shutdown complete")


def main() -> None:
    """Main entry point for the MCP server."""
    logger.info("=" * 60)
    logger.info("Lending Ledger MCP Server")
    logger.info("Version: %s", config.server_version)
    logger.info("Debug Mode: %s", config.debug)
    logger.info(
        "Policy: %d-day loans, cap %d, fine %s/day, lost items %s",
        config.loan_period_days,
        config.max_active_loans,
        config.daily_fine_rate,
        config.lost_item_policy.value,
    )
    logger.info("=" * 60)

    try:
        run_stdio_server()
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Fatal error in MCP server")
        sys.exit(1)


if __name__ == "__main__":
    main()
