"""
Liveness monitoring.

The staleness decision is a pure function over a snapshot of the registry;
``LivenessSweep`` applies it through the regular teardown path, and
``LivenessMonitor`` runs the sweep on a timer.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from shared.config.logging import get_logger, mask_user_id
from signal_gateway.components.core.constants import CloseCode, GatewayConstants
from signal_gateway.components.metrics.collector import MetricsCollector
from signal_gateway.core.session.store import SessionStore
from signal_gateway.core.session.teardown import SessionTeardown

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    """What the staleness check needs to know about one session."""

    user_id: str
    is_open: bool
    last_seen_at: float


@dataclass(frozen=True)
class LivenessVerdict:
    """Sessions partitioned by what the sweep should do with them."""

    closed: tuple[str, ...] = ()  # Connection already gone: remove
    expired: tuple[str, ...] = ()  # Inactive too long: close, then remove
    alive: tuple[str, ...] = ()  # Probe


def evaluate_staleness(
    snapshots: Iterable[SessionSnapshot],
    now: float,
    timeout: float,
) -> LivenessVerdict:
    """
    Classify sessions for a liveness sweep.

    A session is expired when ``now - last_seen_at`` is strictly greater
    than ``timeout``. Closed connections take precedence over expiry.
    """
    closed: list[str] = []
    expired: list[str] = []
    alive: list[str] = []
    for snapshot in snapshots:
        if not snapshot.is_open:
            closed.append(snapshot.user_id)
        elif now - snapshot.last_seen_at > timeout:
            expired.append(snapshot.user_id)
        else:
            alive.append(snapshot.user_id)
    return LivenessVerdict(tuple(closed), tuple(expired), tuple(alive))


@dataclass(frozen=True)
class SweepResult:
    """Counts from one sweep."""

    closed: int = 0
    expired: int = 0
    probed: int = 0
    probe_failures: int = 0

    @property
    def removed(self) -> int:
        return self.closed + self.expired + self.probe_failures


class LivenessSweep:
    """Applies a liveness verdict. Caller holds the store lock."""

    def __init__(
        self,
        store: SessionStore,
        teardown: SessionTeardown,
        metrics: MetricsCollector,
        timeout: float = GatewayConstants.LIVENESS_TIMEOUT,
    ) -> None:
        self._store = store
        self._teardown = teardown
        self._metrics = metrics
        self.timeout = timeout

    def snapshot(self) -> list[SessionSnapshot]:
        return [
            SessionSnapshot(s.id, s.is_open, s.last_seen_at)
            for s in self._store.registry.sessions()
        ]

    def run(self, now: float | None = None) -> SweepResult:
        now = time.monotonic() if now is None else now
        verdict = evaluate_staleness(self.snapshot(), now, self.timeout)
        registry = self._store.registry

        closed = 0
        for user_id in verdict.closed:
            if self._teardown.remove(user_id, reason="liveness_closed"):
                closed += 1

        expired = 0
        for user_id in verdict.expired:
            session = registry.lookup(user_id)
            if session is None:
                continue
            session.handle.close(CloseCode.GOING_AWAY, "Connection timeout")
            logger.info(
                "Evicting inactive session",
                user_id=mask_user_id(user_id),
                idle_seconds=round(now - session.last_seen_at, 1),
            )
            if self._teardown.remove(user_id, reason="liveness_timeout"):
                expired += 1

        probed = 0
        probe_failures = 0
        for user_id in verdict.alive:
            session = registry.lookup(user_id)
            if session is None:
                # Removed earlier in this sweep
                continue
            if session.handle.probe():
                probed += 1
                continue
            probe_failures += 1
            self._teardown.remove(user_id, reason="liveness_probe_failed")

        self._metrics.record_sweep(closed, expired, probe_failures)
        return SweepResult(closed, expired, probed, probe_failures)


class LivenessMonitor:
    """
    Runs a sweep every ``interval`` seconds in a background task.

    Usage:
        monitor = LivenessMonitor(manager.sweep, interval=60)
        monitor.start()
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        sweep: Callable[[], SweepResult],
        interval: float = GatewayConstants.LIVENESS_INTERVAL,
    ) -> None:
        self._sweep = sweep
        self._interval = interval
        self._task: asyncio.Task | None = None
        self.cycles = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.create_task(self._run(), name="liveness_monitor")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._interval)
                self.cycles += 1
                result = self._sweep()
                if result.removed:
                    logger.info(
                        "Liveness sweep removed sessions",
                        closed=result.closed,
                        expired=result.expired,
                        probe_failures=result.probe_failures,
                    )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Error in liveness sweep", error=str(e), exc_info=True)
