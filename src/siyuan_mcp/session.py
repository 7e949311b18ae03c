"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

Session registry for the Streamable HTTP transport.

Each MCP client gets its own server instance and transport, keyed by a
server-generated session id. Sessions end on explicit termination, when their
transport closes, or when the inactivity sweep finds them idle for too long.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from .error_handler import SessionCreationError, SessionNotFoundError
from .types import SessionState

logger = logging.getLogger(__name__)

DEFAULT_INACTIVITY_TIMEOUT = 30 * 60.0
DEFAULT_SWEEP_INTERVAL = 5 * 60.0

OnClose = Callable[[], None]
SessionFactory = Callable[[str, OnClose], Awaitable[Tuple[Any, Any]]]


@dataclass
class Session:
    """A live MCP session: one server bound to one transport."""
    id: str
    server: Any
    transport: Any
    created_at: float
    last_activity: float
    state: SessionState = SessionState.INITIALIZING
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def touch(self, now: float) -> None:
        self.last_activity = now

    def to_dict(self, now: float) -> Dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "lastActivity": self.last_activity,
            "age": now - self.created_at,
        }


class SessionRegistry:
    """
    Owns every live session.

    The session factory is an async callable taking the new session id and a
    close callback and returning a (server, transport) pair. The transport
    must provide an async close(). Registry mutations contain no awaits, so a
    session is either fully registered or not visible at all.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        inactivity_timeout: float = DEFAULT_INACTIVITY_TIMEOUT,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        self._session_factory = session_factory
        self.inactivity_timeout = inactivity_timeout
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._pending: Set[str] = set()
        self._sweep_task: Optional[asyncio.Task] = None

    def initialize(self) -> None:
        """Start the inactivity sweep. Requires a running event loop."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="session-sweep")
        logger.info(
            "Session registry initialized (timeout=%ss, sweep_interval=%ss)",
            self.inactivity_timeout,
            self.sweep_interval,
        )

    async def destroy(self) -> None:
        """Stop the sweep and terminate every session."""
        task, self._sweep_task = self._sweep_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        for session_id in list(self._sessions):
            try:
                await self.terminate_session(session_id)
            except SessionNotFoundError:
                continue
            except Exception:
                logger.exception("Error terminating session %s during shutdown", session_id)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.sweep_inactive()
            except Exception:
                logger.exception("Session sweep failed")

    def _new_session_id(self) -> str:
        while True:
            session_id = uuid.uuid4().hex
            if session_id not in self._sessions and session_id not in self._pending:
                self._pending.add(session_id)
                return session_id

    async def create_session(self) -> Session:
        """
        Create and register a new session.

        Raises:
            SessionCreationError: If the server or transport could not be built
        """
        session_id = self._new_session_id()
        logger.debug("Session %s initializing", session_id)

        try:
            server, transport = await self._session_factory(session_id, lambda: self._discard(session_id))
        except Exception as e:
            logger.exception("Failed to create session %s", session_id)
            raise SessionCreationError(str(e)) from e
        finally:
            self._pending.discard(session_id)

        now = self._clock()
        session = Session(
            id=session_id,
            server=server,
            transport=transport,
            created_at=now,
            last_activity=now,
            state=SessionState.ACTIVE,
        )
        self._sessions[session_id] = session
        logger.info("Session %s created (%d active)", session_id, len(self._sessions))
        return session

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def touch(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.touch(self._clock())

    async def terminate_session(self, session_id: str) -> None:
        """
        Remove a session and close its transport.

        Raises:
            SessionNotFoundError: If no such session is registered
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)

        session.state = SessionState.TERMINATED
        logger.info("Session %s terminated (%d active)", session_id, len(self._sessions))
        await session.transport.close()

    def _discard(self, session_id: str) -> None:
        """Close callback from the transport side."""
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.state = SessionState.TERMINATED
            logger.info("Session %s closed by transport", session_id)

    async def sweep_inactive(self) -> List[str]:
        """Terminate sessions idle longer than the inactivity timeout."""
        now = self._clock()
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if now - session.last_activity > self.inactivity_timeout
        ]

        terminated = []
        for session_id in expired:
            try:
                await self.terminate_session(session_id)
                terminated.append(session_id)
                logger.info("Session %s expired after inactivity", session_id)
            except SessionNotFoundError:
                continue
            except Exception:
                logger.exception("Error cleaning up inactive session %s", session_id)

        return terminated

    def list_sessions(self) -> List[Dict[str, Any]]:
        now = self._clock()
        return [session.to_dict(now) for session in self._sessions.values()]

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
