"""
Signaling Gateway Constants.

Close codes, message type catalog and tunable defaults. Values that can be
overridden through settings say so next to the constant.
"""

from enum import Enum, IntEnum
from typing import Final

__all__ = [
    "CloseCode",
    "GatewayConstants",
    "InboundType",
    "OutboundType",
    "RELAY_TYPES",
    "MSG_PING_PLAIN",
    "MSG_PING_JSON",
    "PROBE_MESSAGE",
    "validate_origin",
]


class CloseCode(IntEnum):
    """
    Close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    Custom codes (4000-4999) for application-specific reasons.
    """

    # Standard codes (RFC 6455)
    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down or liveness timeout
    POLICY_VIOLATION = 1008  # Generic policy violation
    MESSAGE_TOO_BIG = 1009  # Message too large to process
    SERVER_ERROR = 1011  # Unexpected server error

    # Custom application codes (4000-4999)
    SUPERSEDED = 4000  # Same identifier joined from another connection
    FORBIDDEN = 4003  # Origin not allowed
    RATE_LIMITED = 4029  # Too many messages per window


class InboundType(str, Enum):
    """Message types a client may send (case-sensitive)."""

    JOIN = "join"
    FIND_MATCH = "find-match"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    DISCONNECT = "disconnect"


class OutboundType(str, Enum):
    """Message types originated by the server."""

    JOINED = "joined"
    WAITING = "waiting"
    MATCHED = "matched"
    PARTNER_DISCONNECTED = "partner-disconnected"
    USER_COUNT = "user-count"
    ERROR = "error"
    PING = "ping"
    PONG = "pong"


# Negotiation messages forwarded verbatim between peers
RELAY_TYPES: Final[frozenset[str]] = frozenset({
    InboundType.OFFER.value,
    InboundType.ANSWER.value,
    InboundType.ICE_CANDIDATE.value,
})


class GatewayConstants:
    """
    Operational defaults.

    At runtime the SessionManager and endpoints read the matching values from
    ``shared.config.settings``; these are the fallbacks used by components
    constructed without settings (tests, scripts).
    """

    # LIVENESS_INTERVAL: 60 seconds (settings.liveness_interval)
    # Sweep period in seconds.
    LIVENESS_INTERVAL: Final[float] = 60.0

    # LIVENESS_TIMEOUT: 300 seconds (settings.liveness_timeout)
    # Inactivity threshold, 5x the sweep period.
    LIVENESS_TIMEOUT: Final[float] = 300.0

    # MAX_PENDING_MESSAGES: 256 (settings.ws_max_pending_messages)
    # Outbound queue bound per connection. A client that stops reading
    # fills its own queue and further sends fail as delivery failures
    # instead of growing memory without bound.
    MAX_PENDING_MESSAGES: Final[int] = 256

    # MAX_TRACKED_CONNECTIONS: 5000
    # Rate limiter memory bound.
    MAX_TRACKED_CONNECTIONS: Final[int] = 5000

    # WRITER_STOP_TIMEOUT: 2 seconds
    # How long a handle waits for its writer task to flush a close frame.
    WRITER_STOP_TIMEOUT: Final[float] = 2.0


# Heartbeat frames. Clients may ping; the server's liveness probe is a ping
# that counts as acknowledged once written to the connection.
MSG_PING_PLAIN: Final[str] = "ping"
MSG_PING_JSON: Final[str] = '{"type":"ping"}'
PROBE_MESSAGE: Final[dict[str, str]] = {"type": OutboundType.PING.value}


def validate_origin(origin: str | None, allowed: list[str]) -> bool:
    """
    Validate an Origin header against the allowed list.

    An empty list accepts any origin (anonymous matchmaking has no
    credentials to protect). A missing header is accepted since non-browser
    clients do not send one.
    """
    if not allowed or not origin:
        return True
    return origin in allowed

