# =============================================================================
# main.py  —  Entry Point for the Philips Hue MCP Server
# =============================================================================
#
# HOW TO RUN:
#   uv run python main.py                 # or the installed `hue-mcp` script
#   uv run python main.py --port 3200 --log-level debug
#
# WHAT HAPPENS:
#   1. Loads .env into the environment (HUE_BRIDGE_IP, HUE_USERNAME, ...)
#   2. Reads Settings once (core/config.py); CLI flags override host/port/level
#   3. Creates the HueClient if a bridge address and username are set
#   4. Builds the FastMCP tool server (tools/mcp_server.py)
#   5. Wraps it in the Starlette app (transport/http_app.py) and serves it
#      with uvicorn on http://HOST:PORT/mcp
#
# FIRST RUN:
#   Without HUE_BRIDGE_IP / HUE_USERNAME the server still starts.  Bridge
#   tools answer "Not configured" and the agent can run discover_bridges and
#   create_auth_token to obtain the values.
# =============================================================================

import argparse
import logging
import sys

from dotenv import load_dotenv

# Load environment variables from .env file BEFORE reading Settings.
load_dotenv()

import uvicorn

from core.config import ConfigError, load_settings
from core.hue_client import HueClient
from tools.mcp_server import build_server, configure_logging
from transport.http_app import MCP_PATH, create_app

logger = logging.getLogger(__name__)

LOG_LEVELS = ["debug", "info", "warning", "error", "critical"]


def parse_args(argv=None, *, host: str, port: int, log_level: str) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Philips Hue MCP Server (streamable HTTP)")
    parser.add_argument("--host", type=str, default=host, help="Host to bind the server to")
    parser.add_argument("--port", type=int, default=port, help="Port to run the server on")
    parser.add_argument(
        "--log-level",
        type=str.lower,
        default=log_level.lower(),
        choices=LOG_LEVELS,
        help="Logging level",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Start the server.  Returns a process exit code."""
    try:
        settings = load_settings()
    except ConfigError as err:
        print(f"Configuration error: {err}", file=sys.stderr)
        return 2

    args = parse_args(argv, host=settings.host, port=settings.port, log_level=settings.log_level)
    configure_logging(args.log_level)

    client = HueClient.from_settings(settings) if settings.is_configured else None
    if client is None:
        logger.warning(
            "Bridge not configured (missing %s); only setup tools will work",
            ", ".join(settings.missing),
        )
    else:
        logger.info("Using Hue bridge at %s", settings.bridge_ip)

    server = build_server(settings, client)
    app = create_app(server, settings, client=client)

    logger.info("Philips Hue MCP server listening on http://%s:%d%s", args.host, args.port, MCP_PATH)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)
    return 0


# =============================================================================
# Script entry point
# =============================================================================
if __name__ == "__main__":
    sys.exit(main())
