# =============================================================================
# transport/http_app.py  —  Starlette app serving the MCP endpoint
# =============================================================================
#
# ROUTES:
#   POST   /mcp      client -> server messages (an "initialize" request with
#                    no mcp-session-id header opens a new session)
#   GET    /mcp      server -> client SSE stream for an open session
#   DELETE /mcp      close a session
#   GET    /healthz  liveness probe
#
# Requests for a missing or unknown session get HTTP 400 with a JSON-RPC
# error body (code -32000).  An unexpected failure before a response was
# sent becomes HTTP 500 with code -32603.  Neither takes the process down.
# =============================================================================

import contextlib
import json
import logging
from typing import Any, AsyncIterator, Optional

from fastmcp import FastMCP
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.types import Message, Receive, Scope, Send

from core.config import Settings
from core.hue_client import HueClient
from transport.sessions import SessionManager

logger = logging.getLogger(__name__)

MCP_PATH = "/mcp"

BAD_REQUEST = -32000
INTERNAL_ERROR = -32603


def _rpc_error(code: int, message: str, status_code: int, id_: Any = None) -> JSONResponse:
    return JSONResponse(
        {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": id_},
        status_code=status_code,
    )


def is_initialize_request(body: bytes) -> bool:
    """True if ``body`` is a JSON-RPC initialize request (or a batch holding one)."""
    try:
        payload = json.loads(body)
    except ValueError:
        return False
    messages = payload if isinstance(payload, list) else [payload]
    return any(
        isinstance(message, dict) and message.get("method") == "initialize" and "id" in message
        for message in messages
    )


def _replay(body: bytes, receive: Receive) -> Receive:
    """A receive callable that yields the already-read body once, then defers."""
    sent = False

    async def wrapped() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return wrapped


class _StatusWatcher:
    """Forwards ASGI messages and remembers the response status."""

    def __init__(self, send: Send) -> None:
        self._send = send
        self.status: Optional[int] = None

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status = message["status"]
        await self._send(message)


class McpEndpoint:
    """ASGI handler routing /mcp requests to their session's transport."""

    def __init__(self, sessions: SessionManager) -> None:
        self.sessions = sessions

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        watcher = _StatusWatcher(send)
        try:
            await self._dispatch(scope, receive, watcher)
        except Exception:
            logger.exception("Unhandled error on %s %s", scope.get("method"), MCP_PATH)
            if watcher.status is None:
                await _rpc_error(INTERNAL_ERROR, "Internal server error", 500)(scope, receive, send)

    async def _dispatch(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)

        body = b""
        if request.method == "POST":
            body = await request.body()
            receive = _replay(body, receive)

        transport = self.sessions.get(session_id)
        if transport is not None:
            await transport.handle_request(scope, receive, send)
            if transport.is_terminated:
                self.sessions.remove(session_id)
            return

        if session_id is None and request.method == "POST" and is_initialize_request(body):
            await self._open_session(scope, receive, send)
            return

        logger.warning(
            "Rejected %s %s: %s session id %s",
            request.method,
            MCP_PATH,
            "unknown" if session_id else "missing",
            (session_id or "")[:64],
        )
        await _rpc_error(BAD_REQUEST, "Bad Request: No valid session ID provided", 400)(scope, receive, send)

    async def _open_session(self, scope: Scope, receive: Receive, send: Send) -> None:
        transport = await self.sessions.create()
        watcher = _StatusWatcher(send)
        established = False
        try:
            await transport.handle_request(scope, receive, watcher)
            established = watcher.status is not None and watcher.status < 400
        finally:
            if not established:
                await self.sessions.close(transport.mcp_session_id)


def create_app(
    server: FastMCP,
    settings: Settings,
    *,
    client: Optional[HueClient] = None,
    json_response: bool = False,
) -> Starlette:
    """Build the ASGI app for ``server``.

    Args:
        server: The FastMCP server with the tool catalogue registered.
        settings: Runtime configuration, reported by /healthz.
        client: Bridge client to close on shutdown, if any.
        json_response: Answer POSTs with plain JSON instead of SSE.
    """
    sessions = SessionManager(server, json_response=json_response)

    async def healthz(request: Request) -> JSONResponse:
        return JSONResponse(
            {"status": "ok", "configured": settings.is_configured, "sessions": len(sessions)}
        )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        try:
            async with sessions.run():
                yield
        finally:
            if client is not None:
                await client.aclose()

    app = Starlette(
        routes=[
            Route(MCP_PATH, endpoint=McpEndpoint(sessions), methods=["GET", "POST", "DELETE"]),
            Route("/healthz", endpoint=healthz, methods=["GET"]),
        ],
        lifespan=lifespan,
    )
    app.state.sessions = sessions
    return app
