"""
Per-connection rate limiter.

Sliding window over message timestamps, keyed by handle id. Memory is
bounded by ``max_tracked``; when full, the least recently active entries
are evicted.
"""

from __future__ import annotations

import threading
import time
from collections import deque

from shared.config.logging import get_logger
from signal_gateway.components.core.constants import GatewayConstants

logger = get_logger(__name__)


class ConnectionRateLimiter:
    """
    Sliding window rate limiter.

    Usage:
        limiter = ConnectionRateLimiter(max_messages=50, window_seconds=1)
        if not limiter.is_allowed(handle.handle_id):
            ...  # close with RATE_LIMITED
        limiter.remove(handle.handle_id)  # on disconnect
    """

    def __init__(
        self,
        max_messages: int,
        window_seconds: float,
        max_tracked: int = GatewayConstants.MAX_TRACKED_CONNECTIONS,
    ):
        self._max_messages = max_messages
        self._window_seconds = window_seconds
        self._max_tracked = max_tracked
        self._windows: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

        self._total_allowed = 0
        self._total_rejected = 0
        self._evictions = 0

    @property
    def tracked_count(self) -> int:
        """Number of connections currently being tracked."""
        with self._lock:
            return len(self._windows)

    def is_allowed(self, key: str, now: float | None = None) -> bool:
        """
        Record a message and report whether it is within the limit.

        Args:
            key: Connection key (handle id).
            now: Optional timestamp, defaults to ``time.monotonic()``.
        """
        now = time.monotonic() if now is None else now
        window_start = now - self._window_seconds

        with self._lock:
            window = self._windows.get(key)
            if window is None:
                if len(self._windows) >= self._max_tracked:
                    self._evict_oldest()
                window = deque()
                self._windows[key] = window

            while window and window[0] <= window_start:
                window.popleft()

            if len(window) >= self._max_messages:
                self._total_rejected += 1
                return False

            window.append(now)
            self._total_allowed += 1
            return True

    def remove(self, key: str) -> None:
        """Stop tracking a connection."""
        with self._lock:
            self._windows.pop(key, None)

    def _evict_oldest(self) -> None:
        """Evict 10% of entries with the oldest last activity. Caller holds the lock."""
        count = max(1, len(self._windows) // 10)
        by_age = sorted(
            self._windows.items(),
            key=lambda item: item[1][-1] if item[1] else 0.0,
        )
        for key, _ in by_age[:count]:
            del self._windows[key]
        self._evictions += count
        logger.warning(
            "Rate limiter at capacity, evicted oldest entries",
            evicted=count,
            max_tracked=self._max_tracked,
        )

    def get_stats(self) -> dict[str, int | float]:
        """Get rate limiter statistics."""
        with self._lock:
            return {
                "tracked_connections": len(self._windows),
                "max_messages": self._max_messages,
                "window_seconds": self._window_seconds,
                "total_allowed": self._total_allowed,
                "total_rejected": self._total_rejected,
                "evictions": self._evictions,
            }
