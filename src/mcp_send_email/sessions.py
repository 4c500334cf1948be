"""In-memory registry of SSE sessions.

A session binds an opaque identifier to the writer feeding one client's MCP
server loop. The registry is only touched from the event loop thread, so the
insert on stream-open and the delete on stream-close never interleave with a
lookup; a closed session disappears from the registry before any later lookup
can observe it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

from anyio.streams.memory import MemoryObjectSendStream
from mcp.shared.message import SessionMessage

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    OPENING = "opening"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(eq=False)
class Session:
    """Server-side record of one open event stream."""

    id: str
    writer: MemoryObjectSendStream[SessionMessage | Exception] | None = field(default=None, repr=False)
    state: SessionState = SessionState.OPENING

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN


class SessionRegistry:
    """Maps session ids to their open sessions."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create(self) -> Session:
        """Issue a fresh session id; the session stays ``opening`` until :meth:`open`."""
        session_id = uuid4().hex
        while session_id in self._sessions:
            session_id = uuid4().hex
        return Session(id=session_id)

    def open(self, session: Session, writer: MemoryObjectSendStream[SessionMessage | Exception]) -> Session:
        """Register ``session`` with its writer, making it reachable by id."""
        if session.state is not SessionState.OPENING:
            raise RuntimeError(f"Session {session.id} cannot be opened from state {session.state.value}")
        if session.id in self._sessions:
            raise RuntimeError(f"Session id already registered: {session.id}")

        session.writer = writer
        session.state = SessionState.OPEN
        self._sessions[session.id] = session
        logger.debug(f"Registered session {session.id}")
        return session

    def get(self, session_id: str) -> Session | None:
        """Return the open session with this id, or None."""
        session = self._sessions.get(session_id)
        if session is None or not session.is_open:
            return None
        return session

    def close(self, session_id: str) -> Session | None:
        """Deregister a session and close its writer. Closing twice is a no-op."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None

        session.state = SessionState.CLOSED
        if session.writer is not None:
            session.writer.close()
        logger.debug(f"Deregistered session {session_id}")
        return session

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)
