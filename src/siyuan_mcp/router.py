"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

Request routing for the /mcp endpoint.

The router attaches each inbound request to its session, creates a session
for initialization requests that carry no session id, and turns every failure
into a structured JSON-RPC error response.
"""

import json
import logging
from typing import Any, List, Optional

from mcp.types import JSONRPCRequest
from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.types import Message, Receive, Scope, Send

from .error_handler import (
    INTERNAL_ERROR,
    PARSE_ERROR,
    BadRequestError,
    SessionError,
    SessionNotFoundError,
    jsonrpc_error,
)
from .session import Session, SessionRegistry

logger = logging.getLogger(__name__)

MCP_SESSION_ID_HEADER = "mcp-session-id"
INVALID_SESSION_MESSAGE = "Invalid or missing session ID"


def is_initialize_request(payload: Any) -> bool:
    """True if the payload, or any element of a batch, is a JSON-RPC initialize request."""
    if isinstance(payload, list):
        return any(is_initialize_request(item) for item in payload)
    if not isinstance(payload, dict):
        return False
    try:
        request = JSONRPCRequest.model_validate(payload)
    except ValidationError:
        return False
    return request.method == "initialize"


def _request_id(payload: Any) -> Any:
    if isinstance(payload, dict):
        return payload.get("id")
    return None


class RequestRouter:
    """Resolves sessions and forwards requests to their transports."""

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    async def resolve_session(self, session_id: Optional[str], payload: Any) -> Session:
        """
        Find the session for a request, creating one for initialization requests.

        Raises:
            SessionNotFoundError: If the session id is unknown or expired
            BadRequestError: If there is no session id and the payload is not an initialize request
            SessionCreationError: If a new session could not be built
        """
        if session_id:
            session = self.registry.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            return session

        if is_initialize_request(payload):
            return await self.registry.create_session()

        raise BadRequestError()

    async def route_request(
        self,
        session_id: Optional[str],
        payload: Any,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> Session:
        session = await self.resolve_session(session_id, payload)
        # Held until the response is fully written, streamed responses included
        async with session.lock:
            self.registry.touch(session.id)
            await session.transport.handle_request(scope, receive, send)
        return session

    async def route_notification_channel(
        self,
        session_id: Optional[str],
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        """Attach a long-lived GET stream to an existing session."""
        if not session_id:
            raise BadRequestError(INVALID_SESSION_MESSAGE)
        session = self.registry.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        self.registry.touch(session.id)
        await session.transport.handle_request(scope, receive, send)

    async def terminate_session(self, session_id: Optional[str]) -> None:
        if not session_id:
            raise BadRequestError(INVALID_SESSION_MESSAGE)
        await self.registry.terminate_session(session_id)


class StreamableHTTPEndpoint:
    """ASGI endpoint serving POST, GET and DELETE on /mcp."""

    def __init__(self, router: RequestRouter):
        self.router = router

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        method = request.method

        if method == "POST":
            await self._handle_post(request, session_id, scope, send)
        elif method == "GET":
            await self._handle_get(session_id, scope, receive, send)
        elif method == "DELETE":
            await self._handle_delete(session_id, scope, receive, send)
        else:
            response = PlainTextResponse("Method Not Allowed", status_code=405)
            await response(scope, receive, send)

    async def _handle_post(self, request: Request, session_id: Optional[str], scope: Scope, send: Send) -> None:
        body = await request.body()

        async def replay() -> Message:
            return {"type": "http.request", "body": body, "more_body": False}

        try:
            payload = json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            response = JSONResponse(jsonrpc_error(PARSE_ERROR, f"Parse error: {e}"), status_code=400)
            await response(scope, replay, send)
            return

        started: List[bool] = [False]

        async def tracking_send(message: Message) -> None:
            if message["type"] == "http.response.start":
                started[0] = True
            await send(message)

        try:
            session = await self.router.route_request(session_id, payload, scope, replay, tracking_send)
            logger.debug("POST /mcp handled by session %s", session.id)
        except SessionError as e:
            logger.warning("Rejected MCP request: %s", e.message)
            if not started[0]:
                response = JSONResponse(
                    jsonrpc_error(e.rpc_code, e.message),
                    status_code=e.status_code,
                )
                await response(scope, replay, send)
        except Exception:
            logger.exception("Error handling MCP request")
            if not started[0]:
                response = JSONResponse(
                    jsonrpc_error(INTERNAL_ERROR, "Internal server error", _request_id(payload)),
                    status_code=500,
                )
                await response(scope, replay, send)

    async def _handle_get(self, session_id: Optional[str], scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await self.router.route_notification_channel(session_id, scope, receive, send)
        except (BadRequestError, SessionNotFoundError):
            response = PlainTextResponse(INVALID_SESSION_MESSAGE, status_code=400)
            await response(scope, receive, send)

    async def _handle_delete(self, session_id: Optional[str], scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await self.router.terminate_session(session_id)
        except (BadRequestError, SessionNotFoundError):
            response = PlainTextResponse(INVALID_SESSION_MESSAGE, status_code=400)
        except Exception:
            logger.exception("Error terminating session %s", session_id)
            response = PlainTextResponse("Error terminating session", status_code=500)
        else:
            response = PlainTextResponse("Session terminated successfully", status_code=200)
        await response(scope, receive, send)
