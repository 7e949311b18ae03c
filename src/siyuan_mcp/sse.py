"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

Legacy Server-Sent Events channel.

Clients open a push stream with GET /sse and post messages back with
POST /sse/messages. Connections start unauthenticated and must send an
"auth" request before any other request is processed.
"""

import asyncio
import json
import logging
import secrets
import time
import uuid
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from .error_handler import AUTHENTICATION_REQUIRED, INTERNAL_ERROR
from .types import SSEConnection, SSEMessage, SSEMessageType

logger = logging.getLogger(__name__)

DEFAULT_PING_INTERVAL = 30.0
DEFAULT_QUEUE_SIZE = 100

MessageHandler = Callable[[str, SSEMessage], Awaitable[Any]]

# Sentinel that ends a connection's event stream
_CLOSE = None


class SSEConnectionManager:
    """Tracks live SSE connections, their keep-alive pings and authentication."""

    def __init__(
        self,
        ping_interval: float = DEFAULT_PING_INTERVAL,
        auth_token: Optional[str] = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        server_info: Optional[Dict[str, Any]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ping_interval = ping_interval
        self.auth_token = auth_token
        self.queue_size = queue_size
        self.server_info = server_info or {"name": "siyuan_mcp"}
        self._clock = clock
        self._connections: Dict[str, SSEConnection] = {}
        self._queues: Dict[str, asyncio.Queue] = {}
        self._ping_tasks: Dict[str, asyncio.Task] = {}
        self._handlers: Dict[SSEMessageType, MessageHandler] = {}

    def open(self, client_address: str = "unknown") -> str:
        """Register a connection, queue the greeting and start keep-alive pings."""
        connection_id = uuid.uuid4().hex
        now = self._clock()
        self._connections[connection_id] = SSEConnection(
            id=connection_id,
            client_address=client_address,
            connected_at=now,
            last_activity=now,
        )
        self._queues[connection_id] = asyncio.Queue(maxsize=self.queue_size)

        self.send(connection_id, SSEMessage(
            type=SSEMessageType.NOTIFICATION,
            data={
                "method": "connection_established",
                "params": {"connectionId": connection_id, "serverInfo": self.server_info},
            },
        ))
        self._ping_tasks[connection_id] = asyncio.create_task(
            self._ping_loop(connection_id), name=f"sse-ping-{connection_id}"
        )

        logger.info("SSE connection %s opened from %s", connection_id, client_address)
        return connection_id

    async def _ping_loop(self, connection_id: str) -> None:
        while connection_id in self._connections:
            await asyncio.sleep(self.ping_interval)
            self.send(connection_id, SSEMessage(
                type=SSEMessageType.NOTIFICATION,
                data={"method": "ping", "params": {"timestamp": int(self._clock() * 1000)}},
            ))

    async def stream(self, connection_id: str) -> AsyncIterator[Dict[str, str]]:
        """Yield events for EventSourceResponse until the connection closes."""
        queue = self._queues.get(connection_id)
        if queue is None:
            return
        try:
            while connection_id in self._connections:
                message = await queue.get()
                if message is _CLOSE:
                    break
                yield {"data": json.dumps(message.to_dict(), default=str)}
        finally:
            self.close(connection_id)

    def is_alive(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def get_connection(self, connection_id: str) -> Optional[SSEConnection]:
        return self._connections.get(connection_id)

    def send(self, connection_id: str, message: SSEMessage) -> bool:
        """Queue a message; a full queue closes the connection."""
        queue = self._queues.get(connection_id)
        if queue is None or connection_id not in self._connections:
            return False
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("SSE connection %s is not keeping up; closing", connection_id)
            self.close(connection_id)
            return False
        return True

    def broadcast(self, message: SSEMessage) -> int:
        delivered = 0
        for connection_id in list(self._connections):
            if self.send(connection_id, message):
                delivered += 1
        return delivered

    def close(self, connection_id: str) -> None:
        """Stop pings, end the stream and forget the connection. Idempotent."""
        connection = self._connections.pop(connection_id, None)
        task = self._ping_tasks.pop(connection_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

        queue = self._queues.pop(connection_id, None)
        if queue is not None:
            try:
                queue.put_nowait(_CLOSE)
            except asyncio.QueueFull:
                pass

        if connection is not None:
            logger.info("SSE connection %s closed", connection_id)

    def close_all(self) -> None:
        for connection_id in list(self._connections):
            self.close(connection_id)

    def on_message(self, message_type: SSEMessageType, handler: MessageHandler) -> None:
        self._handlers[message_type] = handler

    async def process_incoming_message(self, connection_id: str, payload: Dict[str, Any]) -> bool:
        """
        Handle a message posted by a client.

        Returns:
            False if the connection is unknown, True otherwise

        Raises:
            ValueError: If the payload is not a valid SSE message
        """
        connection = self._connections.get(connection_id)
        if connection is None:
            return False

        message = SSEMessage.from_dict(payload)
        connection.last_activity = self._clock()
        data = message.data if isinstance(message.data, dict) else {}

        if message.type == SSEMessageType.REQUEST and data.get("method") == "auth":
            self._authenticate(connection, message, data.get("params") or {})
            return True

        if message.type == SSEMessageType.REQUEST and not connection.authenticated:
            self.send(connection_id, self._error(message, AUTHENTICATION_REQUIRED, "Authentication required"))
            return True

        handler = self._handlers.get(message.type)
        if handler is None:
            logger.debug("No handler for SSE %s message on %s", message.type.value, connection_id)
            return True

        try:
            result = await handler(connection_id, message)
        except Exception:
            logger.exception("SSE handler failed for message %s", message.id)
            self.send(connection_id, self._error(message, INTERNAL_ERROR, "Internal error"))
            return True

        if message.type == SSEMessageType.REQUEST:
            self.send(connection_id, SSEMessage(
                type=SSEMessageType.RESPONSE,
                data={"result": result},
                correlation_id=message.id,
            ))
        return True

    def _authenticate(self, connection: SSEConnection, message: SSEMessage, params: Dict[str, Any]) -> None:
        if self.auth_token and not secrets.compare_digest(str(params.get("token", "")), self.auth_token):
            logger.warning("SSE connection %s failed authentication", connection.id)
            self.send(connection.id, self._error(message, AUTHENTICATION_REQUIRED, "Invalid authentication token"))
            return

        connection.authenticated = True
        connection.session_token = secrets.token_urlsafe(32)
        logger.info("SSE connection %s authenticated", connection.id)
        self.send(connection.id, SSEMessage(
            type=SSEMessageType.RESPONSE,
            data={"result": {"authenticated": True, "sessionToken": connection.session_token}},
            correlation_id=message.id,
        ))

    @staticmethod
    def _error(message: SSEMessage, code: int, text: str) -> SSEMessage:
        return SSEMessage(
            type=SSEMessageType.ERROR,
            data={"error": {"code": code, "message": text}},
            correlation_id=message.id,
        )

    def list_connections(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": connection.id,
                "clientAddress": connection.client_address,
                "connectedAt": connection.connected_at,
                "lastActivity": connection.last_activity,
                "authenticated": connection.authenticated,
            }
            for connection in self._connections.values()
        ]

    def __len__(self) -> int:
        return len(self._connections)
