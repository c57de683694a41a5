"""
Connection context for audit logging.

Encapsulates transport metadata so endpoints and the session manager log
lifecycle events with the same fields.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable


# Control characters, zero-width marks and bidirectional overrides
_CONTROL_CHAR_PATTERN = re.compile(
    r'[\x00-\x1f\x7f-\x9f'
    r'\u200b-\u200f'  # Zero-width and direction marks
    r'\u202a-\u202e'  # Bidirectional text formatting
    r'\u2066-\u2069'  # Isolate formatting characters
    r'\ufeff]'  # BOM
)


def sanitize_log_data(data: str, max_length: int = 100) -> str:
    """
    Sanitize user-provided data before logging.

    Truncates first, then removes control characters and escapes
    JSON-dangerous characters, so output length stays predictable.

    Args:
        data: Raw user data.
        max_length: Maximum length to include in logs.

    Returns:
        Sanitized, truncated string safe for structured logging.
    """
    truncated = data[:max_length] if len(data) > max_length else data
    was_truncated = len(data) > max_length

    sanitized = _CONTROL_CHAR_PATTERN.sub('', truncated)

    # Backslashes first to avoid double-escaping
    sanitized = sanitized.replace('\\', '\\\\')
    sanitized = sanitized.replace('"', '\\"')

    if was_truncated:
        return sanitized + "..."
    return sanitized


@dataclass
class ConnectionContext:
    """
    Metadata for one transport connection.

    Usage:
        ctx = ConnectionContext.from_headers(websocket.headers, "websocket", "/ws")
        ctx.audit("CONNECT")
        # ... after join
        ctx.user_id = "abc"
        ctx.audit("DISCONNECT", reason="client_disconnect")
    """

    transport: str
    endpoint: str
    origin: str | None = None
    client: str | None = None
    user_id: str | None = None

    @classmethod
    def from_headers(
        cls,
        headers: Any,
        transport: str,
        endpoint: str,
        client: str | None = None,
    ) -> "ConnectionContext":
        """Create a context from request/handshake headers."""
        forwarded = headers.get("x-forwarded-for")
        return cls(
            transport=transport,
            endpoint=endpoint,
            origin=headers.get("origin"),
            client=forwarded.split(",")[0].strip() if forwarded else client,
        )

    def to_audit_dict(self, event_type: str, **extra: Any) -> dict[str, Any]:
        """
        Convert to dictionary for audit logging.

        Only includes non-None fields to reduce log noise.
        """
        result: dict[str, Any] = {
            "event_type": event_type,
            "transport": self.transport,
            "endpoint": self.endpoint,
        }
        if self.origin:
            result["origin"] = self.origin
        if self.client:
            result["client"] = self.client
        if self.user_id:
            result["user_id"] = self.user_id
        result.update(extra)
        return result

    def audit(
        self,
        event_type: str,
        logger_func: Callable[..., None] | None = None,
        **extra: Any,
    ) -> None:
        """Log an audit event with all context fields."""
        if logger_func is None:
            from shared.config.logging import audit_session_event
            logger_func = audit_session_event

        audit_dict = self.to_audit_dict(event_type, **extra)
        audit_dict.pop("endpoint", None)
        audit_dict.pop("client", None)
        logger_func(**audit_dict)

    @property
    def identifier(self) -> str:
        """Human-readable identifier for log lines."""
        if self.user_id:
            return f"user:{sanitize_log_data(self.user_id, max_length=32)}"
        if self.client:
            return f"client:{self.client}"
        return "anonymous"
