"""
Heartbeat frame handling.

Clients may ping the server at any time; the server's liveness probe is a
``{"type":"ping"}`` message that counts as acknowledged once written. A
client pong is optional and also counts as activity.
"""

from __future__ import annotations

from enum import Enum

from signal_gateway.components.core.constants import MSG_PING_PLAIN, MSG_PING_JSON

_PONG_FRAMES = frozenset({"pong", '{"type":"pong"}', '{"type": "pong"}'})
_PING_FRAMES = frozenset({MSG_PING_PLAIN, MSG_PING_JSON, '{"type": "ping"}'})


class HeartbeatKind(str, Enum):
    """Classification of an inbound frame."""

    PING = "ping"  # Client-initiated, expects a pong
    PONG = "pong"  # Optional reply to a server probe
    NONE = "none"  # Regular protocol message


def classify_heartbeat(data: str) -> HeartbeatKind:
    """
    Classify an inbound text frame.

    Only exact heartbeat frames are recognized so that protocol messages
    are never swallowed.
    """
    stripped = data.strip()
    if stripped in _PING_FRAMES:
        return HeartbeatKind.PING
    if stripped in _PONG_FRAMES:
        return HeartbeatKind.PONG
    return HeartbeatKind.NONE
