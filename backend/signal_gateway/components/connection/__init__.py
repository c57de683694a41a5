"""
Connection components: transport handles, heartbeat frames, rate limiting.
"""

from signal_gateway.components.connection.handles import (
    ConnectionHandle,
    QueuedConnectionHandle,
    StreamHandle,
    WebSocketHandle,
    format_sse,
    is_ws_connected,
)
from signal_gateway.components.connection.heartbeat import HeartbeatKind, classify_heartbeat
from signal_gateway.components.connection.rate_limiter import ConnectionRateLimiter

__all__ = [
    "ConnectionHandle",
    "QueuedConnectionHandle",
    "StreamHandle",
    "WebSocketHandle",
    "format_sse",
    "is_ws_connected",
    "HeartbeatKind",
    "classify_heartbeat",
    "ConnectionRateLimiter",
]
