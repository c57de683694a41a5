"""
Tests for liveness monitoring.
"""

import asyncio
import time

import pytest

from signal_gateway.core.session import (
    LivenessMonitor,
    SessionSnapshot,
    SweepResult,
    evaluate_staleness,
)


class TestEvaluateStaleness:
    """Pure staleness classification."""

    def test_partitions_sessions(self):
        snapshots = [
            SessionSnapshot("closed", is_open=False, last_seen_at=100.0),
            SessionSnapshot("stale", is_open=True, last_seen_at=0.0),
            SessionSnapshot("fresh", is_open=True, last_seen_at=90.0),
        ]

        verdict = evaluate_staleness(snapshots, now=100.0, timeout=50.0)

        assert verdict.closed == ("closed",)
        assert verdict.expired == ("stale",)
        assert verdict.alive == ("fresh",)

    def test_closed_takes_precedence_over_expiry(self):
        verdict = evaluate_staleness(
            [SessionSnapshot("x", is_open=False, last_seen_at=0.0)], now=1000.0, timeout=1.0,
        )

        assert verdict.closed == ("x",)
        assert verdict.expired == ()

    def test_exactly_at_timeout_is_alive(self):
        verdict = evaluate_staleness(
            [SessionSnapshot("x", is_open=True, last_seen_at=0.0)], now=300.0, timeout=300.0,
        )

        assert verdict.alive == ("x",)

    def test_empty_registry(self):
        verdict = evaluate_staleness([], now=0.0, timeout=1.0)

        assert (verdict.closed, verdict.expired, verdict.alive) == ((), (), ())


class TestSweep:
    """SessionManager.sweep applies the verdict through teardown."""

    def test_alive_sessions_are_probed(self, join, manager):
        a = join("A")

        result = manager.sweep()

        assert result == SweepResult(closed=0, expired=0, probed=1, probe_failures=0)
        assert a.probes == 1

    def test_closed_connection_is_removed(self, matched_pair, manager, store):
        a, b = matched_pair
        a.open = False

        result = manager.sweep()

        assert result.closed == 1
        assert store.registry.lookup("A") is None
        assert len(b.of_type("partner-disconnected")) == 1
        assert b.probes == 1

    def test_stale_session_evicted_and_partner_notified_once(self, matched_pair, manager, store):
        a, b = matched_pair
        now = time.monotonic() + manager.config.liveness_timeout + 10
        store.registry.lookup("B").touch(now)

        result = manager.sweep(now)

        assert result.expired == 1
        assert a.close_code == 1001
        assert a.close_reason == "Connection timeout"
        assert store.registry.lookup("A") is None
        assert len(b.of_type("partner-disconnected")) == 1
        assert b.last("user-count") == {"type": "user-count", "count": 1, "waiting": 0}
        assert store.check_invariants() == []

    def test_failed_probe_removes_session(self, join, manager, store):
        a = join("A")
        a.accept = False

        result = manager.sweep()

        assert result.probe_failures == 1
        assert store.registry.count() == 0

    def test_both_sides_stale(self, matched_pair, manager, store):
        a, b = matched_pair
        now = time.monotonic() + manager.config.liveness_timeout + 10

        result = manager.sweep(now)

        assert result.expired == 2
        assert store.counts() == (0, 0)
        # A was evicted first and B was notified before its own eviction
        assert len(b.of_type("partner-disconnected")) == 1
        assert a.of_type("partner-disconnected") == []

    def test_activity_refreshes_last_seen(self, join, send, manager, store):
        a = join("A")
        session = store.registry.lookup("A")
        session.last_seen_at = 0.0

        send(a, type="find-match")

        assert session.last_seen_at > 0.0

    @pytest.mark.parametrize("raw", ["garbage", '{"type": "hello"}', '{"type": "offer"}'])
    def test_rejected_frames_still_refresh_last_seen(self, join, manager, store, raw):
        a = join("A")
        session = store.registry.lookup("A")
        session.last_seen_at = 0.0

        reply = manager.handle_message(a, raw)

        assert reply["type"] == "error"
        assert session.last_seen_at > 0.0

    def test_record_activity_only_for_current_handle(self, join, manager, store):
        old = join("A")
        join("A", type(old)())
        session = store.registry.lookup("A")
        session.last_seen_at = 0.0

        assert manager.record_activity(old) is False
        assert session.last_seen_at == 0.0


class TestLivenessMonitor:
    """Background sweep scheduling."""

    @pytest.mark.asyncio
    async def test_runs_sweep_periodically(self):
        calls = []

        def sweep():
            calls.append(1)
            return SweepResult()

        monitor = LivenessMonitor(sweep, interval=0.01)
        monitor.start()
        await asyncio.sleep(0.1)
        await monitor.stop()

        assert len(calls) >= 2
        assert monitor.running is False

    @pytest.mark.asyncio
    async def test_sweep_errors_do_not_stop_monitor(self):
        calls = []

        def sweep():
            calls.append(1)
            raise RuntimeError("boom")

        monitor = LivenessMonitor(sweep, interval=0.01)
        monitor.start()
        await asyncio.sleep(0.1)

        assert monitor.running is True
        await monitor.stop()
        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        monitor = LivenessMonitor(lambda: SweepResult(), interval=1)

        await monitor.stop()

        assert monitor.cycles == 0
