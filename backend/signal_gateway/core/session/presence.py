"""
Presence broadcast: tell every registered client how many users are online.
"""

from __future__ import annotations

from typing import Any

from shared.config.logging import get_logger
from signal_gateway.components.core.constants import OutboundType
from signal_gateway.core.session.store import SessionStore

logger = get_logger(__name__)


class PresenceBroadcaster:
    """Sends ``user-count`` to all sessions. Caller holds the store lock."""

    def __init__(self, store: SessionStore) -> None:
        self._store = store

    def message(self) -> dict[str, Any]:
        users, waiting = self._store.counts()
        return {
            "type": OutboundType.USER_COUNT.value,
            "count": users,
            "waiting": waiting,
        }

    def broadcast(self) -> int:
        """
        Send the current counts to every session.

        Returns:
            Number of sessions the message was queued for. Failed sends are
            left to the liveness monitor.
        """
        message = self.message()
        delivered = 0
        for session in self._store.registry.sessions():
            if session.handle.send(message):
                delivered += 1
        if delivered < message["count"]:
            logger.debug(
                "Presence broadcast partially delivered",
                delivered=delivered,
                registered=message["count"],
            )
        return delivered
