"""Session bookkeeping for the streamable HTTP transport.

Each MCP session id maps to exactly one live transport.  The store is the
only source of truth for whether a session is alive: a session is ACTIVE
while its id is present and CLOSED once removed.  Entries are only ever
inserted or deleted, never modified in place, so a single asyncio event
loop needs no locking around them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Protocol

from starlette.types import Receive, Scope, Send

logger = logging.getLogger(__name__)


class SessionTransport(Protocol):
    """The part of ``StreamableHTTPServerTransport`` the HTTP adapter relies on."""

    @property
    def is_terminated(self) -> bool: ...

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None: ...

    async def terminate(self) -> None: ...


class SessionStore:
    """In-process mapping from session id to its transport."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionTransport] = {}

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._sessions))

    def get(self, session_id: str | None) -> SessionTransport | None:
        """Return the live transport for *session_id*, or None."""
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def add(self, session_id: str, transport: SessionTransport) -> None:
        """Register a new session.

        Raises ValueError if *session_id* is already live, since two
        transports for one session would let requests race.
        """
        if session_id in self._sessions:
            raise ValueError(f"Session {session_id} is already registered")
        self._sessions[session_id] = transport
        logger.info("Session initialized: %s", session_id)

    def remove(self, session_id: str) -> SessionTransport | None:
        """Forget *session_id*; removing an unknown or closed session is a no-op."""
        transport = self._sessions.pop(session_id, None)
        if transport is not None:
            logger.info("Session closed: %s", session_id)
        return transport

    async def close_all(self) -> None:
        """Terminate every live session.

        Best effort: a transport that fails to close is logged and the
        remaining sessions are still closed.
        """
        for session_id in list(self._sessions):
            transport = self.remove(session_id)
            if transport is None:
                continue
            logger.debug("Closing transport for session %s", session_id)
            try:
                await transport.terminate()
            except Exception:
                logger.exception("Error closing transport for session %s", session_id)
