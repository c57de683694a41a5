"""
Signaling Session Manager.

Thin orchestrator that composes the session components:
- ConnectionRegistry / WaitingPool: shared state, guarded by one lock
- Matchmaker: pairs waiting clients
- SignalRelay: forwards negotiation messages
- SessionTeardown: partial and full teardown, partner notification
- LivenessSweep: evicts dead and inactive sessions
- SessionProtocolHandler: message dispatch

Every public method takes the store lock, so transports and the liveness
monitor can call in from any task. Nothing under the lock awaits.
"""

from __future__ import annotations

from typing import Any, Callable, TYPE_CHECKING

from shared.config.logging import get_logger
from shared.config.settings import Settings, settings as default_settings
from signal_gateway.components.connection.rate_limiter import ConnectionRateLimiter
from signal_gateway.components.core.constants import CloseCode
from signal_gateway.components.metrics.collector import MetricsCollector
from signal_gateway.core.session import (
    LivenessSweep,
    Matchmaker,
    PresenceBroadcaster,
    SessionProtocolHandler,
    SessionStore,
    SessionTeardown,
    SignalRelay,
    SweepResult,
    coin_flip,
)
from signal_gateway.core.session.models import SessionStatus

if TYPE_CHECKING:
    from signal_gateway.components.connection.handles import ConnectionHandle

logger = get_logger(__name__)

__all__ = ["SessionManager"]


class SessionManager:
    """
    Entry point for transports and the liveness monitor.

    Usage:
        manager = SessionManager()
        manager.handle_message(handle, raw_frame)
        manager.connection_closed(handle)
    """

    def __init__(
        self,
        config: Settings | None = None,
        coin: Callable[[], bool] = coin_flip,
    ) -> None:
        config = config or default_settings
        self.config = config

        self._store = SessionStore()
        self._metrics = MetricsCollector()
        self._presence = PresenceBroadcaster(self._store)
        self._teardown = SessionTeardown(self._store, self._presence, self._metrics)
        self._matchmaker = Matchmaker(self._store, self._teardown, self._metrics, coin=coin)
        self._relay = SignalRelay(self._store, self._metrics)
        self._sweep = LivenessSweep(
            self._store,
            self._teardown,
            self._metrics,
            timeout=config.liveness_timeout,
        )
        self._protocol = SessionProtocolHandler(
            self._store,
            self._matchmaker,
            self._relay,
            self._teardown,
            self._presence,
            self._metrics,
        )
        self._rate_limiter = ConnectionRateLimiter(
            max_messages=config.ws_message_rate_limit,
            window_seconds=config.ws_message_rate_window,
        )

    # =========================================================================
    # Component access
    # =========================================================================

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def rate_limiter(self) -> ConnectionRateLimiter:
        return self._rate_limiter

    # =========================================================================
    # Inbound messages
    # =========================================================================

    def handle_message(self, handle: "ConnectionHandle", raw: str | bytes) -> dict[str, Any] | None:
        """Parse and dispatch one inbound frame. Returns the direct reply."""
        with self._store.lock:
            return self._protocol.handle_raw(handle, raw)

    def dispatch(self, handle: "ConnectionHandle", message: dict[str, Any]) -> dict[str, Any] | None:
        """Dispatch a decoded message. Returns the direct reply."""
        with self._store.lock:
            return self._protocol.dispatch(handle, message)

    def join(self, handle: "ConnectionHandle", user_id: str) -> dict[str, Any]:
        """Register ``user_id`` on ``handle`` without a join message."""
        with self._store.lock:
            return self._protocol.join(handle, user_id)

    def record_activity(self, handle: "ConnectionHandle") -> bool:
        """Refresh lastSeenAt for a heartbeat or acknowledged probe."""
        with self._store.lock:
            return self._protocol.touch(handle)

    def find_handle(self, user_id: str) -> "ConnectionHandle | None":
        """Current handle for ``user_id``, if registered."""
        with self._store.lock:
            session = self._store.registry.lookup(user_id)
            return session.handle if session is not None else None

    # =========================================================================
    # Connection closure and liveness
    # =========================================================================

    def connection_closed(self, handle: "ConnectionHandle") -> bool:
        """
        Transport reported closure or error for ``handle``.

        Fully tears down the bound session if it is still bound to this
        handle. Safe to call more than once.
        """
        self._rate_limiter.remove(handle.handle_id)
        user_id = handle.user_id
        if user_id is None:
            return False
        with self._store.lock:
            return self._teardown.remove(user_id, reason="transport_closed", handle=handle)

    def sweep(self, now: float | None = None) -> SweepResult:
        """Run one liveness sweep."""
        with self._store.lock:
            return self._sweep.run(now)

    def shutdown(self) -> int:
        """Close every registered connection and clear all state."""
        with self._store.lock:
            sessions = self._store.registry.sessions()
            for session in sessions:
                session.handle.close(CloseCode.GOING_AWAY, "Server shutting down")
            self._store.registry.clear()
            self._store.pool.clear()
        if sessions:
            logger.info("Closed connections on shutdown", count=len(sessions))
        return len(sessions)

    # =========================================================================
    # Statistics
    # =========================================================================

    def counts(self) -> tuple[int, int]:
        """(registered, waiting)"""
        with self._store.lock:
            return self._store.counts()

    def get_stats(self) -> dict[str, Any]:
        """Gauges plus a metrics snapshot."""
        with self._store.lock:
            users, waiting = self._store.counts()
            matched = sum(
                1 for s in self._store.registry.sessions()
                if s.status is SessionStatus.MATCHED
            )
        return {
            "users": users,
            "waiting": waiting,
            "pairs": matched // 2,
            "rate_limiter_tracked": self._rate_limiter.tracked_count,
            "metrics": self._metrics.get_snapshot(),
        }
