"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

Per-session Streamable HTTP transport binding.

Wraps the MCP SDK's StreamableHTTPServerTransport for one session and runs the
session's FastMCP server on the transport streams in a background task.
"""

import asyncio
import logging
from typing import Callable, Optional, Tuple

from fastmcp import FastMCP
from mcp.server.streamable_http import StreamableHTTPServerTransport
from starlette.types import Receive, Scope, Send

logger = logging.getLogger(__name__)


class StreamableSessionTransport:
    """Binds one FastMCP server to one Streamable HTTP transport."""

    def __init__(
        self,
        session_id: str,
        server: FastMCP,
        on_close: Optional[Callable[[], None]] = None,
        json_response: bool = False,
    ):
        self.session_id = session_id
        self.server = server
        self._on_close = on_close
        self._transport = StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=json_response,
        )
        self._ready = asyncio.Event()
        self._runner: Optional[asyncio.Task] = None
        self._closed = False

    async def start(self) -> None:
        """Start the server runner and wait until its streams are connected."""
        self._runner = asyncio.create_task(self._run(), name=f"mcp-session-{self.session_id}")
        self._runner.add_done_callback(self._runner_done)

        ready = asyncio.create_task(self._ready.wait())
        done, _ = await asyncio.wait({ready, self._runner}, return_when=asyncio.FIRST_COMPLETED)
        if ready not in done:
            ready.cancel()
            error = self._runner.exception() if not self._runner.cancelled() else None
            raise RuntimeError(f"MCP server for session {self.session_id} exited during startup: {error}")

    async def _run(self) -> None:
        low_level = self.server._mcp_server
        async with self._transport.connect() as (read_stream, write_stream):
            self._ready.set()
            await low_level.run(
                read_stream,
                write_stream,
                low_level.create_initialization_options(),
                stateless=False,
            )

    def _runner_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "MCP server for session %s crashed",
                self.session_id,
                exc_info=task.exception(),
            )
        else:
            logger.debug("MCP server for session %s stopped", self.session_id)

        self._closed = True
        if self._on_close is not None:
            try:
                self._on_close()
            except Exception:
                logger.exception("Close callback failed for session %s", self.session_id)

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self._transport.handle_request(scope, receive, send)

    async def close(self) -> None:
        """Terminate the transport and stop the server. Safe to call twice."""
        if self._closed and (self._runner is None or self._runner.done()):
            return
        self._closed = True

        try:
            await self._transport.terminate()
        finally:
            runner = self._runner
            if runner is not None and not runner.done():
                runner.cancel()
                try:
                    await runner
                except asyncio.CancelledError:
                    pass
                except Exception:
                    logger.exception("MCP server for session %s failed while stopping", self.session_id)


def streamable_session_factory(
    server_factory: Callable[[], FastMCP],
    json_response: bool = False,
):
    """
    Build a session factory for SessionRegistry.

    Args:
        server_factory: Callable returning a fresh, fully registered FastMCP server
        json_response: Answer POSTs with plain JSON instead of an SSE stream

    Returns:
        Async callable (session_id, on_close) -> (server, transport)
    """
    async def create(session_id: str, on_close: Callable[[], None]) -> Tuple[FastMCP, StreamableSessionTransport]:
        server = server_factory()
        transport = StreamableSessionTransport(session_id, server, on_close, json_response)
        try:
            await transport.start()
        except BaseException:
            await transport.close()
            raise
        return server, transport

    return create
