"""
Shared Pydantic schemas for the HTTP surface.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Server-push stream commands
# =============================================================================


class SignalingCommand(BaseModel):
    """
    Body of a stream command POST.

    Extra fields are kept: negotiation payloads (``sdp``, ``candidate``...)
    are forwarded to the peer untouched.
    """

    model_config = ConfigDict(extra="allow")

    userId: str = Field(..., min_length=1)
    type: str | None = None
    to: str | None = None

    def to_message(self, message_type: str | None = None) -> dict:
        """Protocol message for the session core."""
        message = self.model_dump(exclude_none=True)
        if message_type is not None:
            message["type"] = message_type
        return message


class CommandResult(BaseModel):
    """Acknowledgement for commands with no direct reply."""

    status: Literal["ok"] = "ok"


# =============================================================================
# Health
# =============================================================================


class HealthResponse(BaseModel):
    """Health and status payload."""

    status: Literal["healthy"] = "healthy"
    service: str
    version: str
    environment: str
    users: int
    waiting: int
    timestamp: str
