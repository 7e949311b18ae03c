"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

Starlette application serving the MCP endpoint, the legacy SSE channel and
the diagnostic endpoints.
"""

import contextlib
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from sse_starlette.sse import EventSourceResponse
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .cache import CacheManager
from .config import Settings
from .error_handler import INVALID_REQUEST, PARSE_ERROR, jsonrpc_error
from .router import MCP_SESSION_ID_HEADER, RequestRouter, StreamableHTTPEndpoint
from .server import SERVER_NAME, SERVER_VERSION, build_server
from .session import SessionFactory, SessionRegistry
from .sse import SSEConnectionManager
from .streamable import streamable_session_factory
from .types import SSEMessage, SSEMessageType
from .utils import SiYuanClient

logger = logging.getLogger(__name__)


class Services:
    """Process-wide services shared by every request, with an explicit lifecycle."""

    def __init__(
        self,
        settings: Settings,
        session_factory: Optional[SessionFactory] = None,
        client: Optional[Any] = None,
    ):
        self.settings = settings
        self.cache = CacheManager(settings.cache_config())
        self.client = client or SiYuanClient(settings.api_url, settings.api_token, settings.request_timeout)

        if session_factory is None:
            session_factory = streamable_session_factory(
                lambda: build_server(self.cache, self.client),
                json_response=settings.json_response,
            )
        self.registry = SessionRegistry(
            session_factory,
            inactivity_timeout=settings.session_timeout,
            sweep_interval=settings.session_sweep_interval,
        )
        self.sse = SSEConnectionManager(
            ping_interval=settings.sse_ping_interval,
            auth_token=settings.auth_token,
            server_info={"name": SERVER_NAME, "version": SERVER_VERSION},
        )
        self.sse.on_message(SSEMessageType.REQUEST, self._handle_sse_request)
        self.started_at = time.time()

    def initialize(self) -> None:
        self.started_at = time.time()
        self.cache.initialize()
        self.registry.initialize()
        logger.info("SiYuan MCP services started")

    async def destroy(self) -> None:
        self.sse.close_all()
        await self.registry.destroy()
        await self.cache.destroy()
        if hasattr(self.client, "close"):
            self.client.close()
        logger.info("SiYuan MCP services stopped")

    def uptime(self) -> float:
        return time.time() - self.started_at

    async def _handle_sse_request(self, connection_id: str, message: SSEMessage) -> Any:
        data = message.data if isinstance(message.data, dict) else {}
        method = data.get("method")
        if method == "ping":
            return {"pong": True}
        if method == "cache/stats":
            return self.cache.statistics().to_dict()
        if method == "sessions/list":
            return {"count": len(self.registry), "sessions": self.registry.list_sessions()}
        raise ValueError(f"Unknown method: {method}")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[SessionFactory] = None,
    client: Optional[Any] = None,
) -> Starlette:
    """
    Build the HTTP application.

    Args:
        settings: Server settings, read from the environment when omitted
        session_factory: Override for the per-session server/transport factory
        client: Override for the SiYuan API client
    """
    settings = settings or Settings.from_env()
    services = Services(settings, session_factory, client)
    router = RequestRouter(services.registry)

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({
            "status": "healthy",
            "activeSessions": len(services.registry),
            "sseConnections": len(services.sse),
            "uptime": services.uptime(),
            "timestamp": _now_iso(),
        })

    async def sessions(request: Request) -> JSONResponse:
        return JSONResponse({
            "count": len(services.registry),
            "sessions": services.registry.list_sessions(),
        })

    async def stats(request: Request) -> JSONResponse:
        return JSONResponse({
            "cache": services.cache.statistics().to_dict(),
            "activeSessions": len(services.registry),
            "sseConnections": len(services.sse),
            "uptime": services.uptime(),
            "timestamp": _now_iso(),
        })

    async def sse_stream(request: Request) -> EventSourceResponse:
        client_address = request.client.host if request.client else "unknown"
        connection_id = services.sse.open(client_address)
        return EventSourceResponse(
            services.sse.stream(connection_id),
            headers={"X-Connection-Id": connection_id},
        )

    async def sse_message(request: Request) -> JSONResponse:
        connection_id = request.query_params.get("connection_id")
        if not connection_id or not services.sse.is_alive(connection_id):
            return JSONResponse(
                jsonrpc_error(INVALID_REQUEST, "Invalid or missing connection ID"),
                status_code=400,
            )

        try:
            payload = await request.json()
        except (ValueError, UnicodeDecodeError) as e:
            return JSONResponse(jsonrpc_error(PARSE_ERROR, f"Parse error: {e}"), status_code=400)

        try:
            await services.sse.process_incoming_message(connection_id, payload)
        except ValueError as e:
            return JSONResponse(jsonrpc_error(INVALID_REQUEST, str(e)), status_code=400)
        return JSONResponse({"status": "accepted"}, status_code=202)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        services.initialize()
        try:
            yield
        finally:
            await services.destroy()

    app = Starlette(
        debug=settings.debug,
        routes=[
            Route("/mcp", endpoint=StreamableHTTPEndpoint(router), methods=["GET", "POST", "DELETE"]),
            Route("/health", endpoint=health, methods=["GET"]),
            Route("/sessions", endpoint=sessions, methods=["GET"]),
            Route("/stats", endpoint=stats, methods=["GET"]),
            Route("/sse", endpoint=sse_stream, methods=["GET"]),
            Route("/sse/messages", endpoint=sse_message, methods=["POST"]),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=settings.allowed_origins,
                allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
                allow_headers=["*"],
                expose_headers=[MCP_SESSION_ID_HEADER],
            ),
        ],
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.router = router
    return app
