# =============================================================================
# transport/sessions.py  —  Session table for the streamable HTTP endpoint
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Owns the mapping  session id -> StreamableHTTPServerTransport.  Every
#   client handshake gets its own transport and its own MCP server loop,
#   started in the manager's task group.  The loop runs until the client
#   sends DELETE, the transport is terminated, or the manager shuts down;
#   the entry is dropped from the table when the loop exits.
#
# LIFECYCLE:
#   manager = SessionManager(server)
#   async with manager.run():           # app lifespan
#       transport = await manager.create()
#       manager.get(transport.mcp_session_id)
#       manager.remove(...)
# =============================================================================

import contextlib
import logging
from typing import Any, AsyncIterator, Optional
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup, TaskStatus
from fastmcp import FastMCP
from mcp.server.runner import serve_loop
from mcp.server.streamable_http import StreamableHTTPServerTransport

logger = logging.getLogger(__name__)


class SessionManager:
    """Explicit owner of the session-to-transport table.

    Args:
        server: The FastMCP server whose protocol handler serves each session.
        json_response: Answer POSTs with a single JSON body instead of an
            SSE stream.
    """

    def __init__(self, server: FastMCP, *, json_response: bool = False) -> None:
        self._server = server._mcp_server
        self.json_response = json_response
        self._sessions: dict[str, StreamableHTTPServerTransport] = {}
        self._task_group: Optional[TaskGroup] = None
        self._lifespan_state: Any = None

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    @property
    def running(self) -> bool:
        return self._task_group is not None

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator["SessionManager"]:
        """Run the task group that hosts every session's server loop."""
        if self._task_group is not None:
            raise RuntimeError("SessionManager is already running")
        async with self._server.lifespan(self._server) as state, anyio.create_task_group() as tg:
            self._lifespan_state = state
            self._task_group = tg
            logger.info("Session manager started")
            try:
                yield self
            finally:
                for transport in list(self._sessions.values()):
                    with anyio.CancelScope(shield=True):
                        await transport.terminate()
                tg.cancel_scope.cancel()
                self._task_group = None
                self._lifespan_state = None
                self._sessions.clear()
                logger.info("Session manager stopped")

    async def create(self) -> StreamableHTTPServerTransport:
        """Register a new session and start its server loop.

        Returns:
            The session's transport; its ``mcp_session_id`` is the new id.
        """
        if self._task_group is None:
            raise RuntimeError("SessionManager is not running; use 'async with manager.run()'")

        session_id = uuid4().hex
        transport = StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=self.json_response,
        )

        async def run_server(*, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
            async with transport.connect() as (read_stream, write_stream):
                task_status.started()
                try:
                    await serve_loop(
                        self._server,
                        read_stream,
                        write_stream,
                        lifespan_state=self._lifespan_state,
                        session_id=session_id,
                    )
                except Exception:
                    logger.exception("Session %s crashed", session_id)
                finally:
                    self.remove(session_id)

        self._sessions[session_id] = transport
        try:
            await self._task_group.start(run_server)
        except BaseException:
            self._sessions.pop(session_id, None)
            raise
        logger.info("Created session %s (%d active)", session_id, len(self._sessions))
        return transport

    def get(self, session_id: Optional[str]) -> Optional[StreamableHTTPServerTransport]:
        """The transport for ``session_id``, or None if it is unknown."""
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[StreamableHTTPServerTransport]:
        """Drop a session from the table; unknown ids are ignored."""
        transport = self._sessions.pop(session_id, None)
        if transport is not None:
            logger.info("Removed session %s (%d active)", session_id, len(self._sessions))
        return transport

    async def close(self, session_id: str) -> None:
        """Remove a session and terminate its transport."""
        transport = self.remove(session_id)
        if transport is not None and not transport.is_terminated:
            with anyio.CancelScope(shield=True):
                await transport.terminate()
