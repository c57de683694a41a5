"""
Signal relay: forward negotiation messages between paired peers.
"""

from __future__ import annotations

from typing import Any

from shared.config.logging import get_logger, mask_user_id
from signal_gateway.components.core.errors import DeliveryFailure, TargetNotFound
from signal_gateway.components.metrics.collector import MetricsCollector
from signal_gateway.core.session.store import SessionStore

logger = get_logger(__name__)


class SignalRelay:
    """
    Forwards ``offer``, ``answer`` and ``ice-candidate`` payloads.

    The payload is passed through unchanged apart from the ``from`` field,
    which always carries the sender's identifier. Pairing is not checked:
    any registered client may address any other.
    """

    def __init__(self, store: SessionStore, metrics: MetricsCollector) -> None:
        self._store = store
        self._metrics = metrics

    def relay(self, from_id: str, to_id: str, message: dict[str, Any]) -> dict[str, Any]:
        """
        Deliver ``message`` to ``to_id``.

        Returns:
            The forwarded message.

        Raises:
            TargetNotFound: No registered session with an open connection.
            DeliveryFailure: The target's connection refused the message.
        """
        target = self._store.registry.lookup(to_id)
        if target is None or not target.is_open:
            self._metrics.increment_relay_target_not_found()
            raise TargetNotFound(to_id)

        forwarded = {**message, "from": from_id}
        if not target.handle.send(forwarded):
            self._metrics.increment_relay_delivery_failed()
            raise DeliveryFailure(to_id)

        self._metrics.increment_relay_forwarded()
        logger.debug(
            "Relayed negotiation message",
            type=message.get("type"),
            from_id=mask_user_id(from_id),
            to_id=mask_user_id(to_id),
        )
        return forwarded
