"""
Metrics collector for the signaling gateway.

Thread-safe counters for matchmaking, relay and liveness activity. All
methods are synchronous: they are called from inside the session lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, asdict
from typing import Any


@dataclass
class SessionMetrics:
    """Registration and teardown counters."""
    joins: int = 0
    superseded: int = 0
    removed: int = 0
    partner_notifications: int = 0


@dataclass
class MatchMetrics:
    """Matchmaking counters."""
    requests: int = 0
    created: int = 0
    waiting: int = 0
    aborted: int = 0


@dataclass
class RelayMetrics:
    """Negotiation relay counters."""
    forwarded: int = 0
    target_not_found: int = 0
    delivery_failed: int = 0


@dataclass
class TransportMetrics:
    """Inbound frames rejected before dispatch."""
    rate_limited: int = 0
    oversized: int = 0
    origin_rejected: int = 0


@dataclass
class LivenessMetrics:
    """Liveness sweep counters."""
    sweeps: int = 0
    evicted_closed: int = 0
    evicted_timeout: int = 0
    probe_failures: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector.

    Usage:
        metrics = MetricsCollector()
        metrics.increment_matches_created()
        stats = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session = SessionMetrics()
        self._match = MatchMetrics()
        self._relay = RelayMetrics()
        self._transport = TransportMetrics()
        self._liveness = LivenessMetrics()
        self._errors: dict[str, int] = {}

    # ==========================================================================
    # Session Metrics
    # ==========================================================================

    def increment_joins(self) -> None:
        with self._lock:
            self._session.joins += 1

    def increment_superseded(self) -> None:
        with self._lock:
            self._session.superseded += 1

    def increment_removed(self) -> None:
        with self._lock:
            self._session.removed += 1

    def increment_partner_notifications(self) -> None:
        with self._lock:
            self._session.partner_notifications += 1

    # ==========================================================================
    # Match Metrics
    # ==========================================================================

    def increment_match_requests(self) -> None:
        with self._lock:
            self._match.requests += 1

    def increment_matches_created(self) -> None:
        with self._lock:
            self._match.created += 1

    def increment_match_waiting(self) -> None:
        with self._lock:
            self._match.waiting += 1

    def increment_match_aborted(self) -> None:
        """Candidate vanished between selection and pairing."""
        with self._lock:
            self._match.aborted += 1

    # ==========================================================================
    # Relay Metrics
    # ==========================================================================

    def increment_relay_forwarded(self) -> None:
        with self._lock:
            self._relay.forwarded += 1

    def increment_relay_target_not_found(self) -> None:
        with self._lock:
            self._relay.target_not_found += 1

    def increment_relay_delivery_failed(self) -> None:
        with self._lock:
            self._relay.delivery_failed += 1

    # ==========================================================================
    # Liveness Metrics
    # ==========================================================================

    def record_sweep(self, closed: int, expired: int, probe_failures: int) -> None:
        """Record one completed liveness sweep."""
        with self._lock:
            self._liveness.sweeps += 1
            self._liveness.evicted_closed += closed
            self._liveness.evicted_timeout += expired
            self._liveness.probe_failures += probe_failures

    # ==========================================================================
    # Transport Metrics
    # ==========================================================================

    def increment_rate_limited(self) -> None:
        with self._lock:
            self._transport.rate_limited += 1

    def increment_oversized(self) -> None:
        with self._lock:
            self._transport.oversized += 1

    def increment_origin_rejected(self) -> None:
        with self._lock:
            self._transport.origin_rejected += 1

    # ==========================================================================
    # Protocol Errors
    # ==========================================================================

    def record_error(self, code: str) -> None:
        """Count an error reply by its code."""
        with self._lock:
            self._errors[code] = self._errors.get(code, 0) + 1

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot(self) -> dict[str, Any]:
        """
        Copy of all counters.

        Names follow ``{category}_{metric}``; error counts are nested under
        ``errors`` keyed by error code.
        """
        with self._lock:
            snapshot: dict[str, Any] = {}
            for prefix, group in (
                ("sessions", self._session),
                ("matches", self._match),
                ("relay", self._relay),
                ("liveness", self._liveness),
                ("frames", self._transport),
            ):
                for key, value in asdict(group).items():
                    snapshot[f"{prefix}_{key}"] = value
            snapshot["errors"] = dict(self._errors)
            return snapshot

    def reset(self) -> dict[str, Any]:
        """Reset all counters and return the previous values."""
        snapshot = self.get_snapshot()
        with self._lock:
            self._session = SessionMetrics()
            self._match = MatchMetrics()
            self._relay = RelayMetrics()
            self._transport = TransportMetrics()
            self._liveness = LivenessMetrics()
            self._errors.clear()
        return snapshot
