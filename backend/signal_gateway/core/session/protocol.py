"""
Session protocol handler.

Parses inbound messages, dispatches them by ``type`` and turns
``SignalingError`` into an ``error`` reply to the sender. The handler is
the only place protocol errors are caught.

States per session:

    Unregistered -> Idle <-> Waiting -> Matched -> Idle ...

Any state may go straight to Unregistered through full teardown.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Callable

from shared.config.logging import audit_session_event, get_logger, mask_user_id
from signal_gateway.components.core.constants import InboundType, OutboundType
from signal_gateway.components.core.errors import (
    MalformedMessage,
    MissingRequiredField,
    SignalingError,
    TargetNotFound,
    UnknownMessageType,
)
from signal_gateway.components.metrics.collector import MetricsCollector
from signal_gateway.core.session.matchmaker import Matchmaker
from signal_gateway.core.session.models import Matched
from signal_gateway.core.session.presence import PresenceBroadcaster
from signal_gateway.core.session.relay import SignalRelay
from signal_gateway.core.session.store import SessionStore
from signal_gateway.core.session.teardown import SessionTeardown

if TYPE_CHECKING:
    from signal_gateway.components.connection.handles import ConnectionHandle

logger = get_logger(__name__)

JOINED_TEXT = "Successfully connected to server"
WAITING_TEXT = "Waiting for someone to chat with..."

Reply = dict[str, Any] | None
Handler = Callable[["ConnectionHandle", dict[str, Any]], Reply]


def parse_message(raw: str | bytes) -> dict[str, Any]:
    """
    Decode one inbound frame.

    Raises:
        MalformedMessage: Not JSON, or JSON that is not an object.
    """
    try:
        message = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedMessage(error=type(e).__name__) from e
    if not isinstance(message, dict):
        raise MalformedMessage(error="not_an_object")
    return message


def _require_str(message: dict[str, Any], field: str) -> str:
    value = message.get(field)
    if not isinstance(value, str) or not value:
        raise MissingRequiredField(field)
    return value


class SessionProtocolHandler:
    """
    Dispatches protocol messages. Caller holds the store lock.

    Every handler returns the direct reply sent to the requesting
    connection (or None when there is none), so HTTP transports can use it
    as a response body.
    """

    def __init__(
        self,
        store: SessionStore,
        matchmaker: Matchmaker,
        relay: SignalRelay,
        teardown: SessionTeardown,
        presence: PresenceBroadcaster,
        metrics: MetricsCollector,
    ) -> None:
        self._store = store
        self._matchmaker = matchmaker
        self._relay = relay
        self._teardown = teardown
        self._presence = presence
        self._metrics = metrics
        self._handlers: dict[str, Handler] = {
            InboundType.JOIN.value: self._on_join,
            InboundType.FIND_MATCH.value: self._on_find_match,
            InboundType.OFFER.value: self._on_relay,
            InboundType.ANSWER.value: self._on_relay,
            InboundType.ICE_CANDIDATE.value: self._on_relay,
            InboundType.DISCONNECT.value: self._on_disconnect,
        }

    # =========================================================================
    # Entry points
    # =========================================================================

    def handle_raw(self, handle: "ConnectionHandle", raw: str | bytes) -> Reply:
        """Parse and dispatch one inbound frame."""
        self.touch(handle)
        try:
            message = parse_message(raw)
        except SignalingError as e:
            return self._reply_error(handle, e)
        return self._dispatch(handle, message)

    def dispatch(self, handle: "ConnectionHandle", message: dict[str, Any]) -> Reply:
        """Dispatch an already decoded message."""
        self.touch(handle)
        return self._dispatch(handle, message)

    def _dispatch(self, handle: "ConnectionHandle", message: dict[str, Any]) -> Reply:
        try:
            msg_type = message.get("type")
            handler = self._handlers.get(msg_type) if isinstance(msg_type, str) else None
            if handler is None:
                raise UnknownMessageType(msg_type)
            return handler(handle, message)
        except SignalingError as e:
            return self._reply_error(handle, e)

    def touch(self, handle: "ConnectionHandle") -> bool:
        """Refresh lastSeenAt for the session bound to ``handle``."""
        session = self._store.registry.lookup(handle.user_id)
        if session is None or session.handle is not handle:
            return False
        session.touch()
        return True

    # =========================================================================
    # Handlers
    # =========================================================================

    def _on_join(self, handle: "ConnectionHandle", message: dict[str, Any]) -> Reply:
        user_id = _require_str(message, "userId")
        return self.join(handle, user_id)

    def join(self, handle: "ConnectionHandle", user_id: str) -> dict[str, Any]:
        """Register ``user_id`` on ``handle`` and reply ``joined``."""
        registry = self._store.registry

        previous_id = handle.user_id
        if previous_id is not None and previous_id != user_id:
            previous = registry.lookup(previous_id)
            if previous is not None and previous.handle is handle:
                self._teardown.remove(previous_id, reason="rebound", handle=handle)

        existing = registry.lookup(user_id)
        if existing is not None and existing.handle is not handle:
            self._teardown.release(user_id, reason="superseded")

        registration = registry.register(user_id, handle)
        reply = {
            "type": OutboundType.JOINED.value,
            "userId": user_id,
            "message": JOINED_TEXT,
        }
        handle.send(reply)

        if registration.created:
            self._metrics.increment_joins()
            if registration.superseded is not None:
                self._metrics.increment_superseded()
                audit_session_event(
                    "SUPERSEDED",
                    user_id=user_id,
                    transport=handle.transport,
                    old_transport=registration.superseded.handle.transport,
                )
            audit_session_event("JOIN", user_id=user_id, transport=handle.transport)
            self._presence.broadcast()
        return reply

    def _on_find_match(self, handle: "ConnectionHandle", message: dict[str, Any]) -> Reply:
        user_id = self._resolve_user(handle, message)
        outcome = self._matchmaker.request_match(user_id)
        if isinstance(outcome, Matched):
            # The matchmaker already notified both sides
            return {
                "type": OutboundType.MATCHED.value,
                "partnerId": outcome.partner_id,
                "isInitiator": outcome.is_initiator,
            }
        reply = {"type": OutboundType.WAITING.value, "message": WAITING_TEXT}
        handle.send(reply)
        return reply

    def _on_relay(self, handle: "ConnectionHandle", message: dict[str, Any]) -> Reply:
        to_id = _require_str(message, "to")
        from_id = self._resolve_user(handle, message)
        self._relay.relay(from_id, to_id, message)
        return None

    def _on_disconnect(self, handle: "ConnectionHandle", message: dict[str, Any]) -> Reply:
        user_id = self._resolve_user(handle, message)
        if self._teardown.release(user_id, reason="left"):
            audit_session_event("LEFT", user_id=user_id, transport=handle.transport)
        return None

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve_user(self, handle: "ConnectionHandle", message: dict[str, Any]) -> str:
        """
        Identifier bound by join, else the message's userId.

        Raises:
            TargetNotFound: The connection's identifier now belongs to
                another connection, or was removed.
        """
        if handle.user_id:
            session = self._store.registry.lookup(handle.user_id)
            if session is None or session.handle is not handle:
                raise TargetNotFound(handle.user_id, reason="connection is no longer registered")
            return handle.user_id
        return _require_str(message, "userId")

    def _reply_error(self, handle: "ConnectionHandle", error: SignalingError) -> dict[str, Any]:
        reply = error.to_message()
        self._metrics.record_error(error.code)
        logger.info(
            "Protocol error",
            code=error.code,
            reason=error.reason,
            user_id=mask_user_id(handle.user_id),
            transport=handle.transport,
        )
        handle.send(reply)
        return reply
