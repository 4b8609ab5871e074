"""Main entry point for the MIXCRAFT judge MCP server."""

import atexit
import logging
import signal
import sys

from .config import LOG_LEVEL
from .tools import mcp, sc_client


def _cleanup():
    """Clean up resources on exit."""
    sc_client.disconnect()


def _signal_handler(signum, frame):
    """Handle termination signals gracefully."""
    _cleanup()
    sys.exit(0)


def main():
    """Main entry point."""
    # stdout carries the MCP stdio transport
    logging.basicConfig(
        stream=sys.stderr,
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    atexit.register(_cleanup)
    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
