"""
Signaling protocol errors.

Every error is recoverable: the protocol handler catches ``SignalingError``,
replies ``{"type": "error", "code": ..., "reason": ...}`` to the sender
and leaves registry state untouched.
"""

from __future__ import annotations

from typing import Any

from signal_gateway.components.core.constants import OutboundType


class SignalingError(Exception):
    """Base class for errors reported back to the sending client."""

    code: str = "SIGNALING_ERROR"

    def __init__(self, reason: str, **context: Any):
        super().__init__(reason)
        self.reason = reason
        self.context = context

    def to_message(self) -> dict[str, Any]:
        """Outbound ``error`` message for the sender."""
        return {
            "type": OutboundType.ERROR.value,
            "code": self.code,
            "reason": self.reason,
        }


class MalformedMessage(SignalingError):
    """Inbound data is not a JSON object."""

    code = "MALFORMED_MESSAGE"

    def __init__(self, reason: str = "invalid message format", **context: Any):
        super().__init__(reason, **context)


class UnknownMessageType(SignalingError):
    """Inbound ``type`` is missing or not in the catalog."""

    code = "UNKNOWN_MESSAGE_TYPE"

    def __init__(self, message_type: Any = None, **context: Any):
        super().__init__("unknown message type", message_type=message_type, **context)
        self.message_type = message_type


class MissingRequiredField(SignalingError):
    """A field the message type requires is absent or empty."""

    code = "MISSING_REQUIRED_FIELD"

    def __init__(self, field: str, **context: Any):
        super().__init__(f"{field} required", field=field, **context)
        self.field = field


class TargetNotFound(SignalingError):
    """No live registered session for the addressed identifier."""

    code = "TARGET_NOT_FOUND"

    def __init__(self, target: str | None, reason: str | None = None, **context: Any):
        super().__init__(
            reason or "target user not found or not connected",
            target=target,
            **context,
        )
        self.target = target


class DeliveryFailure(SignalingError):
    """The target's connection refused the message (closing or backed up)."""

    code = "DELIVERY_FAILURE"

    def __init__(self, target: str, **context: Any):
        super().__init__("message could not be delivered", target=target, **context)
        self.target = target


__all__ = [
    "SignalingError",
    "MalformedMessage",
    "UnknownMessageType",
    "MissingRequiredField",
    "TargetNotFound",
    "DeliveryFailure",
]
