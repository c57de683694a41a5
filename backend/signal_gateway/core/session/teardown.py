"""
Session teardown.

Two flavours share the same first steps:

- release: the client leaves its pair or the pool but stays registered
  (explicit ``disconnect``, re-match, supersede).
- remove: release, then unregister and broadcast the new counts
  (transport closed, liveness eviction, identity switch).

Neither raises; removing an unknown identifier is a no-op.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shared.config.logging import audit_session_event, get_logger, mask_user_id
from signal_gateway.components.core.constants import OutboundType
from signal_gateway.components.metrics.collector import MetricsCollector
from signal_gateway.core.session.models import ClientSession
from signal_gateway.core.session.presence import PresenceBroadcaster
from signal_gateway.core.session.store import SessionStore

if TYPE_CHECKING:
    from signal_gateway.components.connection.handles import ConnectionHandle

logger = get_logger(__name__)

PARTNER_DISCONNECTED_TEXT = "Your chat partner disconnected"


class SessionTeardown:
    """Undo pairing and pool membership. Caller holds the store lock."""

    def __init__(
        self,
        store: SessionStore,
        presence: PresenceBroadcaster,
        metrics: MetricsCollector,
    ) -> None:
        self._store = store
        self._presence = presence
        self._metrics = metrics

    def release(self, user_id: str, reason: str = "left") -> bool:
        """
        Dissolve the client's pair and leave the pool, keeping it registered.

        Returns:
            False if the identifier is not registered.
        """
        session = self._store.registry.lookup(user_id)
        if session is None:
            return False
        self._release_session(session, reason)
        return True

    def remove(
        self,
        user_id: str,
        reason: str,
        handle: "ConnectionHandle | None" = None,
    ) -> bool:
        """
        Fully tear down a session.

        Args:
            user_id: Identifier to remove.
            reason: Logged with the audit event.
            handle: When given, only remove the session if it is still bound
                to this handle. A superseded connection closing late must not
                remove its replacement.

        Returns:
            True if a session was removed.
        """
        registry = self._store.registry
        session = registry.lookup(user_id)
        if session is None:
            return False
        if handle is not None and session.handle is not handle:
            logger.debug(
                "Ignoring close of a stale connection",
                user_id=mask_user_id(user_id),
                handle_id=handle.handle_id,
            )
            return False

        self._release_session(session, reason)
        registry.unregister(user_id)
        self._metrics.increment_removed()
        audit_session_event(
            "EVICTED" if reason.startswith("liveness") else "DISCONNECTED",
            user_id=user_id,
            transport=session.handle.transport,
            reason=reason,
        )
        self._presence.broadcast()
        return True

    def _release_session(self, session: ClientSession, reason: str) -> None:
        partner_id = session.partner_id
        if partner_id is not None:
            partner = self._store.registry.lookup(partner_id)
            if partner is not None and partner.partner_id == session.id:
                partner.reset()
                partner.handle.send({
                    "type": OutboundType.PARTNER_DISCONNECTED.value,
                    "message": PARTNER_DISCONNECTED_TEXT,
                })
                self._metrics.increment_partner_notifications()
            logger.info(
                "Pair dissolved",
                user_id=mask_user_id(session.id),
                partner_id=mask_user_id(partner_id),
                reason=reason,
            )

        session.reset()
        self._store.pool.dequeue(session.id)
