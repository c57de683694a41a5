"""
Connection registry: identifier -> session.

At most one session per identifier. Registering an identifier that is
already bound to a different connection supersedes the old connection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterator

from shared.config.logging import get_logger, mask_user_id
from signal_gateway.components.core.constants import CloseCode
from signal_gateway.core.session.models import ClientSession, Registration
from signal_gateway.core.session.waiting_pool import WaitingPool

if TYPE_CHECKING:
    from signal_gateway.components.connection.handles import ConnectionHandle

logger = get_logger(__name__)


class ConnectionRegistry:
    """
    Authoritative map of registered clients.

    Not thread-safe on its own; callers hold the store lock.
    """

    def __init__(self, pool: WaitingPool) -> None:
        self._sessions: dict[str, ClientSession] = {}
        self._pool = pool

    def register(self, user_id: str, handle: "ConnectionHandle") -> Registration:
        """
        Bind ``user_id`` to ``handle``.

        Re-registering with the same handle keeps the existing session.
        With a different handle, the previous handle is closed with
        SUPERSEDED, the identifier leaves the waiting pool, and a fresh
        Idle session replaces the old one. Partner cleanup for the old
        session is the caller's job and must happen first.
        """
        existing = self._sessions.get(user_id)
        if existing is not None and existing.handle is handle:
            existing.touch()
            return Registration(session=existing, superseded=None, created=False)

        if existing is not None:
            self._pool.dequeue(user_id)
            existing.handle.close(CloseCode.SUPERSEDED, "superseded")
            logger.info(
                "Superseded previous connection",
                user_id=mask_user_id(user_id),
                old_handle=existing.handle.handle_id,
                new_handle=handle.handle_id,
            )

        session = ClientSession(id=user_id, handle=handle)
        self._sessions[user_id] = session
        handle.user_id = user_id
        return Registration(session=session, superseded=existing, created=True)

    def lookup(self, user_id: str | None) -> ClientSession | None:
        if user_id is None:
            return None
        return self._sessions.get(user_id)

    def unregister(self, user_id: str) -> ClientSession | None:
        """Remove a session and its pool entry. Idempotent."""
        self._pool.dequeue(user_id)
        return self._sessions.pop(user_id, None)

    def count(self) -> int:
        return len(self._sessions)

    __len__ = count

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._sessions

    def sessions(self) -> list[ClientSession]:
        """Snapshot of all sessions."""
        return list(self._sessions.values())

    def __iter__(self) -> Iterator[ClientSession]:
        return iter(self.sessions())

    def clear(self) -> None:
        self._sessions.clear()
