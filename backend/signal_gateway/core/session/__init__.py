"""
Session core: registry, waiting pool, matchmaking, relay, teardown,
liveness and protocol dispatch.

None of these classes lock on their own; SessionManager holds the store
lock around every call.
"""

from signal_gateway.core.session.models import (
    ClientSession,
    Matched,
    MatchOutcome,
    Registration,
    SessionStatus,
    Waiting,
)
from signal_gateway.core.session.waiting_pool import WaitingPool
from signal_gateway.core.session.registry import ConnectionRegistry
from signal_gateway.core.session.store import SessionStore
from signal_gateway.core.session.presence import PresenceBroadcaster
from signal_gateway.core.session.teardown import SessionTeardown
from signal_gateway.core.session.matchmaker import Matchmaker, coin_flip
from signal_gateway.core.session.relay import SignalRelay
from signal_gateway.core.session.liveness import (
    LivenessMonitor,
    LivenessSweep,
    LivenessVerdict,
    SessionSnapshot,
    SweepResult,
    evaluate_staleness,
)
from signal_gateway.core.session.protocol import SessionProtocolHandler, parse_message

__all__ = [
    # Models
    "ClientSession",
    "Matched",
    "MatchOutcome",
    "Registration",
    "SessionStatus",
    "Waiting",
    # State
    "WaitingPool",
    "ConnectionRegistry",
    "SessionStore",
    # Operations
    "PresenceBroadcaster",
    "SessionTeardown",
    "Matchmaker",
    "coin_flip",
    "SignalRelay",
    # Liveness
    "LivenessMonitor",
    "LivenessSweep",
    "LivenessVerdict",
    "SessionSnapshot",
    "SweepResult",
    "evaluate_staleness",
    # Protocol
    "SessionProtocolHandler",
    "parse_message",
]
