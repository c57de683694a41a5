"""
Tests for disconnect and teardown.
"""

from signal_gateway.core.session import SessionStatus

from tests.conftest import RecordingHandle


class TestExplicitDisconnect:
    """disconnect message: leave the pair, stay registered."""

    def test_partner_notified_once(self, matched_pair, send, store):
        a, b = matched_pair

        reply = send(a, type="disconnect")

        assert reply is None
        assert b.of_type("partner-disconnected") == [
            {"type": "partner-disconnected", "message": "Your chat partner disconnected"}
        ]
        assert a.of_type("partner-disconnected") == []
        for user_id in ("A", "B"):
            session = store.registry.lookup(user_id)
            assert session.status is SessionStatus.IDLE
            assert session.partner_id is None
        assert store.registry.count() == 2
        assert store.check_invariants() == []

    def test_disconnect_does_not_broadcast_user_count(self, matched_pair, send):
        a, b = matched_pair

        send(a, type="disconnect")

        assert a.of_type("user-count") == []
        assert b.of_type("user-count") == []

    def test_disconnect_while_waiting_leaves_pool(self, join, send, store):
        a = join("A")
        send(a, type="find-match")

        send(a, type="disconnect")

        assert not store.pool.member("A")
        assert store.registry.lookup("A").status is SessionStatus.IDLE

    def test_disconnect_twice_is_harmless(self, matched_pair, send):
        a, b = matched_pair

        send(a, type="disconnect")
        send(a, type="disconnect")

        assert len(b.of_type("partner-disconnected")) == 1

    def test_disconnect_unknown_user_is_noop(self, send):
        reply = send(RecordingHandle(), type="disconnect", userId="ghost")

        assert reply is None

    def test_can_rematch_after_disconnect(self, matched_pair, send):
        a, b = matched_pair
        send(a, type="disconnect")
        send(a, type="find-match")

        reply = send(b, type="find-match")

        assert reply["partnerId"] == "A"


class TestTransportClosure:
    """connection_closed: full teardown."""

    def test_full_teardown_notifies_partner_and_broadcasts(self, matched_pair, manager, store):
        a, b = matched_pair
        a.open = False

        assert manager.connection_closed(a) is True

        assert store.registry.lookup("A") is None
        assert b.types() == ["partner-disconnected", "user-count"]
        assert b.last("user-count") == {"type": "user-count", "count": 1, "waiting": 0}
        assert store.registry.lookup("B").status is SessionStatus.IDLE

    def test_closure_is_idempotent(self, matched_pair, manager):
        a, b = matched_pair

        manager.connection_closed(a)
        assert manager.connection_closed(a) is False

        assert len(b.of_type("partner-disconnected")) == 1

    def test_unbound_handle_closure(self, manager):
        assert manager.connection_closed(RecordingHandle()) is False

    def test_superseded_handle_closing_late_keeps_replacement(self, join, manager, store):
        old = join("A")
        new = join("A", RecordingHandle())

        assert manager.connection_closed(old) is False

        assert store.registry.lookup("A").handle is new

    def test_waiting_session_removed_from_pool(self, join, send, manager, store):
        a = join("A")
        send(a, type="find-match")

        manager.connection_closed(a)

        assert len(store.pool) == 0
        assert store.registry.count() == 0


class TestShutdown:
    """Server shutdown closes everything."""

    def test_shutdown_closes_all(self, matched_pair, join, manager, store):
        a, b = matched_pair
        c = join("C")

        assert manager.shutdown() == 3

        for handle in (a, b, c):
            assert handle.close_code == 1001
            assert handle.close_reason == "Server shutting down"
        assert store.counts() == (0, 0)
