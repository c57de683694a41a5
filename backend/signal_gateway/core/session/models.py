"""
Session state models.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from signal_gateway.components.connection.handles import ConnectionHandle


class SessionStatus(str, Enum):
    """Matchmaking status of a registered client."""

    IDLE = "idle"
    WAITING = "waiting"
    MATCHED = "matched"


@dataclass(eq=False)
class ClientSession:
    """
    Server-side record of one registered client.

    ``partner_id`` is set exactly when ``status`` is MATCHED, and the
    partner's record points back at this one.
    """

    id: str
    handle: "ConnectionHandle"
    status: SessionStatus = SessionStatus.IDLE
    partner_id: str | None = None
    last_seen_at: float = field(default_factory=time.monotonic)
    joined_at: float = field(default_factory=time.time)

    def touch(self, now: float | None = None) -> None:
        """Record inbound activity."""
        self.last_seen_at = time.monotonic() if now is None else now

    def reset(self) -> None:
        """Return to Idle with no partner."""
        self.status = SessionStatus.IDLE
        self.partner_id = None

    @property
    def is_open(self) -> bool:
        return self.handle.is_open


@dataclass(frozen=True)
class Matched:
    """The requester was paired."""

    partner_id: str
    is_initiator: bool


@dataclass(frozen=True)
class Waiting:
    """No eligible partner yet; the requester stays in the pool."""


MatchOutcome = Union[Matched, Waiting]


@dataclass(frozen=True)
class Registration:
    """Result of registering an identifier."""

    session: ClientSession
    superseded: ClientSession | None = None
    created: bool = True
