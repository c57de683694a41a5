"""
Tests for negotiation message relay.
"""

import pytest

from signal_gateway.components.core.errors import DeliveryFailure, TargetNotFound
from signal_gateway.core.session import SessionStatus

from tests.conftest import RecordingHandle


class TestRelay:
    """offer / answer / ice-candidate forwarding."""

    def test_offer_forwarded_with_from(self, matched_pair, send):
        a, b = matched_pair

        reply = send(a, type="offer", to="B", sdp="v=0 fake")

        assert reply is None
        assert b.sent == [{"type": "offer", "to": "B", "sdp": "v=0 fake", "from": "A"}]
        assert a.sent == []

    @pytest.mark.parametrize("message_type", ["answer", "ice-candidate"])
    def test_payload_is_opaque(self, matched_pair, send, message_type):
        a, b = matched_pair
        payload = {"candidate": "candidate:1 1 udp 2122260223 10.0.0.1 5000 typ host", "sdpMLineIndex": 0}

        send(b, type=message_type, to="A", candidate=payload, nested={"x": [1, 2]})

        forwarded = a.last(message_type)
        assert forwarded["candidate"] == payload
        assert forwarded["nested"] == {"x": [1, 2]}
        assert forwarded["from"] == "B"

    def test_client_supplied_from_is_overwritten(self, matched_pair, send):
        a, b = matched_pair

        send(a, type="answer", to="B", sdp="x", **{"from": "mallory"})

        assert b.last("answer")["from"] == "A"

    def test_unknown_target(self, join, send):
        a = join("A")
        a.clear()

        reply = send(a, type="offer", to="nobody", sdp="x")

        assert reply["type"] == "error"
        assert reply["code"] == "TARGET_NOT_FOUND"
        assert a.sent == [reply]

    def test_closed_target_is_not_found(self, matched_pair, send):
        a, b = matched_pair
        b.open = False

        reply = send(a, type="offer", to="B", sdp="x")

        assert reply["code"] == "TARGET_NOT_FOUND"

    def test_delivery_failure_keeps_match(self, matched_pair, send, store):
        a, b = matched_pair
        b.accept = False

        reply = send(a, type="offer", to="B", sdp="x")

        assert reply["code"] == "DELIVERY_FAILURE"
        assert store.registry.lookup("A").status is SessionStatus.MATCHED
        assert store.registry.lookup("B").partner_id == "A"

    def test_missing_target(self, matched_pair, send):
        a, _ = matched_pair

        reply = send(a, type="offer", sdp="x")

        assert reply == {"type": "error", "code": "MISSING_REQUIRED_FIELD", "reason": "to required"}

    def test_relay_does_not_require_pairing(self, join, send):
        a = join("A")
        c = join("C")
        c.clear()

        send(a, type="ice-candidate", to="C", candidate="c")

        assert c.last("ice-candidate")["from"] == "A"

    def test_unbound_sender_uses_message_user_id(self, join, send):
        b = join("B")
        b.clear()

        send(RecordingHandle(), type="offer", to="B", userId="A", sdp="x")

        assert b.last("offer")["from"] == "A"


class TestSignalRelayDirect:
    """SignalRelay raises; the protocol handler replies."""

    def test_raises_target_not_found(self, manager):
        with pytest.raises(TargetNotFound):
            manager._relay.relay("A", "B", {"type": "offer"})

    def test_raises_delivery_failure(self, manager, join):
        b = join("B")
        b.accept = False

        with pytest.raises(DeliveryFailure):
            manager._relay.relay("A", "B", {"type": "offer"})
