# =============================================================================
# transport/__init__.py
# =============================================================================
# Streamable HTTP transport for the FastMCP server.
#
#   sessions.py   SessionManager: session id -> transport table
#   http_app.py   Starlette app with the /mcp endpoint and /healthz
#
# Each client handshake opens one session with its own protocol handler;
# every later request carries the mcp-session-id header and is forwarded
# to that session unchanged.
# =============================================================================
