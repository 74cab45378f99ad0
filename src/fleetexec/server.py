"""
fleetexec MCP server - main entry point.

Exposes target resolution, fleet command runs and the fleet management
check as MCP tools over stdio.
"""

import logging
import sys

from mcp.server.fastmcp import FastMCP

from . import __version__
from .config import load_config
from .logging_utils import configure_logging

logger = logging.getLogger("fleetexec")

mcp = FastMCP("fleetexec")


def create_server() -> FastMCP:
    """Register all tools and return the MCP server."""
    # Tool modules register themselves via @mcp.tool() when imported
    logger.info("Registering fleet tools...")
    from . import tools  # noqa: F401

    return mcp


def main() -> None:
    """Main entry point."""
    try:
        config = load_config()
    except (ValueError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    configure_logging(config.log_level)
    logger.info(f"Starting fleetexec MCP server v{__version__} ({config.region})")

    server = create_server()
    try:
        server.run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("Server shutting down...")
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
