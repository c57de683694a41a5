"""
WebSocket Endpoint Mixins.

Each mixin handles a single concern for WebSocket endpoints.

Mixins:
    MessageValidationMixin: Frame size and rate limit checks
    OriginValidationMixin: Origin header validation
    HeartbeatMixin: ping/pong frames and activity tracking
    ConnectionLifecycleMixin: Lifecycle logging

Usage:
    class MyEndpoint(MessageValidationMixin, OriginValidationMixin, WebSocketEndpointBase):
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from fastapi import WebSocket

from shared.config.logging import get_logger
from signal_gateway.components.connection.heartbeat import HeartbeatKind, classify_heartbeat
from signal_gateway.components.core.constants import CloseCode, OutboundType, validate_origin

if TYPE_CHECKING:
    from signal_gateway.components.connection.handles import WebSocketHandle
    from signal_gateway.components.core.context import ConnectionContext
    from signal_gateway.session_manager import SessionManager

logger = get_logger(__name__)


# =============================================================================
# Protocols for mixin dependencies
# =============================================================================


class HasWebSocket(Protocol):
    """Protocol for classes with websocket attribute."""

    websocket: WebSocket
    endpoint_name: str
    context: "ConnectionContext | None"


class HasManager(Protocol):
    """Protocol for classes with manager and handle attributes."""

    manager: "SessionManager"
    handle: "WebSocketHandle"


# =============================================================================
# MessageValidationMixin
# =============================================================================


class MessageValidationMixin:
    """
    Mixin for frame validation (size and rate limiting).

    Requires:
        - self.websocket, self.endpoint_name, self.context
        - self.manager, self.handle
    """

    async def validate_message_size(self: "HasWebSocket & HasManager", data: str | bytes) -> bool:
        """
        Validate frame size against the configured limit.

        Returns:
            True if valid, False if too large (connection closed).
        """
        max_size = self.manager.config.ws_max_message_size

        if len(data) > max_size:
            logger.warning(
                "Message size exceeded limit",
                endpoint=self.endpoint_name,
                identifier=self.context.identifier if self.context else "unknown",
                size=len(data),
                max_size=max_size,
            )
            self.manager.metrics.increment_oversized()
            self.handle.close(CloseCode.MESSAGE_TOO_BIG, "Message too large")
            return False
        return True

    async def check_rate_limit(self: "HasWebSocket & HasManager") -> bool:
        """
        Check the per-connection message rate.

        Returns:
            True if allowed, False if rate limited (connection closed).
        """
        if not self.manager.rate_limiter.is_allowed(self.handle.handle_id):
            logger.warning(
                "Rate limit exceeded",
                endpoint=self.endpoint_name,
                identifier=self.context.identifier if self.context else "unknown",
            )
            self.manager.metrics.increment_rate_limited()
            self.handle.close(CloseCode.RATE_LIMITED, "Rate limit exceeded")
            return False
        return True


# =============================================================================
# OriginValidationMixin
# =============================================================================


class OriginValidationMixin:
    """
    Mixin for Origin header validation.

    Requires:
        - self.websocket
        - self.manager
    """

    def validate_origin(self: "HasWebSocket & HasManager") -> bool:
        """True if the Origin header is allowed (or absent)."""
        return validate_origin(
            self.get_origin(),
            self.manager.config.allowed_origin_list,
        )

    def get_origin(self: HasWebSocket) -> str | None:
        """Get origin header from websocket."""
        return self.websocket.headers.get("origin")


# =============================================================================
# HeartbeatMixin
# =============================================================================


class HeartbeatMixin:
    """
    Mixin for heartbeat frames.

    A client ``ping`` is answered with ``pong``; a client ``pong``
    is accepted as a reply to the server's probe. Both refresh lastSeenAt.

    Requires:
        - self.manager, self.handle
    """

    def handle_heartbeat(self: HasManager, data: str | bytes) -> bool:
        """
        Consume a heartbeat frame.

        Returns:
            True if ``data`` was a heartbeat and needs no further handling.
        """
        if not isinstance(data, str):
            return False
        kind = classify_heartbeat(data)
        if kind is HeartbeatKind.NONE:
            return False
        self.manager.record_activity(self.handle)
        if kind is HeartbeatKind.PING:
            self.handle.send({"type": OutboundType.PONG.value})
        return True


# =============================================================================
# ConnectionLifecycleMixin
# =============================================================================


class ConnectionLifecycleMixin:
    """
    Mixin for connection lifecycle logging.

    Requires:
        - self.endpoint_name, self.context
    """

    def log_connect(self: HasWebSocket) -> None:
        """Log connection event."""
        logger.info(
            "Signaling connection opened",
            **self.context.to_audit_dict("CONNECT") if self.context else {},
        )

    def log_disconnect(self: HasWebSocket, reason: str = "client_disconnect") -> None:
        """Log disconnection event."""
        logger.info(
            "Signaling connection closed",
            **(
                self.context.to_audit_dict("DISCONNECT", reason=reason)
                if self.context
                else {}
            ),
        )

    def log_connect_rejected(self: HasWebSocket, reason: str) -> None:
        """Log connection rejection event."""
        logger.warning(
            "Connection rejected",
            endpoint=self.endpoint_name,
            identifier=self.context.identifier if self.context else "unknown",
            reason=reason,
        )
        if self.context:
            self.context.audit("CONNECT_REJECTED", reason=reason)


__all__ = [
    "MessageValidationMixin",
    "OriginValidationMixin",
    "HeartbeatMixin",
    "ConnectionLifecycleMixin",
    # Protocols
    "HasWebSocket",
    "HasManager",
]
