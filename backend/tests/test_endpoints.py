"""
Tests for the HTTP and WebSocket surface.
"""

import json
import logging

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from shared.config.settings import Settings
from shared.infrastructure.correlation import CorrelationIdFilter
from signal_gateway.components.connection import StreamHandle
from signal_gateway.main import create_app
from signal_gateway.session_manager import SessionManager


def build_client(**overrides):
    config = Settings(_env_file=None, environment="test", debug=False, **overrides)
    manager = SessionManager(config, coin=lambda: True)
    return TestClient(create_app(manager)), manager


@pytest.fixture
def app_client():
    client, manager = build_client()
    with client:
        yield client, manager


def join_ws(ws, user_id):
    ws.send_text(json.dumps({"type": "join", "userId": user_id}))
    joined = ws.receive_json()
    assert joined["type"] == "joined"
    return ws.receive_json()  # user-count


class TestHealthEndpoints:
    """Read-only status routes."""

    @pytest.mark.parametrize("path", ["/health", "/api/signaling/status"])
    def test_health(self, app_client, path):
        client, _ = app_client

        response = client.get(path)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "signal-gateway"
        assert data["environment"] == "test"
        assert data["users"] == 0
        assert data["waiting"] == 0
        assert "timestamp" in data

    def test_request_id_header(self, app_client):
        client, _ = app_client

        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_metrics(self, app_client):
        client, manager = app_client
        manager.join(StreamHandle(), "alice")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "signalgw_users_connected 1" in response.text
        assert "signalgw_joins_total 1" in response.text

    def test_invalid_configuration_fails_startup(self):
        client, _ = build_client(liveness_interval=60, liveness_timeout=60)

        with pytest.raises(RuntimeError, match="LIVENESS_TIMEOUT"):
            with client:
                pass


class TestWebSocketEndpoint:
    """Duplex signaling over /ws."""

    def test_join_and_match(self, app_client):
        client, manager = app_client

        with client.websocket_connect("/ws") as ws_a, client.websocket_connect("/ws") as ws_b:
            assert join_ws(ws_a, "A") == {"type": "user-count", "count": 1, "waiting": 0}
            assert join_ws(ws_b, "B") == {"type": "user-count", "count": 2, "waiting": 0}
            assert ws_a.receive_json() == {"type": "user-count", "count": 2, "waiting": 0}

            ws_a.send_text(json.dumps({"type": "find-match"}))
            assert ws_a.receive_json()["type"] == "waiting"

            ws_b.send_text(json.dumps({"type": "find-match"}))
            assert ws_b.receive_json() == {"type": "matched", "partnerId": "A", "isInitiator": True}
            assert ws_a.receive_json() == {"type": "matched", "partnerId": "B", "isInitiator": False}

            ws_b.send_text(json.dumps({"type": "offer", "to": "A", "sdp": "v=0"}))
            assert ws_a.receive_json() == {"type": "offer", "to": "A", "sdp": "v=0", "from": "B"}

    def test_heartbeat(self, app_client):
        client, _ = app_client

        with client.websocket_connect("/ws") as ws:
            ws.send_text("ping")
            assert ws.receive_json() == {"type": "pong"}
            ws.send_text('{"type":"ping"}')
            assert ws.receive_json() == {"type": "pong"}

    def test_idle_client_reading_probes_survives_sweeps(self, app_client):
        client, manager = app_client
        interval = manager.config.liveness_interval

        with client.websocket_connect("/ws") as ws:
            join_ws(ws, "A")
            session = manager.store.registry.lookup("A")

            for _ in range(8):
                session.last_seen_at -= interval
                result = client.portal.call(manager.sweep)
                assert result.expired == 0
                assert result.probed == 1
                assert ws.receive_json() == {"type": "ping"}

            assert manager.counts() == (1, 0)
            assert manager.find_handle("A") is not None

    def test_malformed_frame(self, app_client):
        client, manager = app_client

        with client.websocket_connect("/ws") as ws:
            ws.send_text("{nope")
            assert ws.receive_json() == {
                "type": "error",
                "code": "MALFORMED_MESSAGE",
                "reason": "invalid message format",
            }
            ws.send_bytes(json.dumps({"type": "join", "userId": "bin"}).encode())
            assert ws.receive_json()["type"] == "joined"

    def test_transport_close_tears_down(self, app_client):
        client, manager = app_client

        with client.websocket_connect("/ws") as ws_b:
            join_ws(ws_b, "B")
            with client.websocket_connect("/ws") as ws_a:
                join_ws(ws_a, "A")
                ws_b.receive_json()  # user-count 2
                ws_a.send_text(json.dumps({"type": "find-match"}))
                ws_a.receive_json()
                ws_b.send_text(json.dumps({"type": "find-match"}))
                ws_b.receive_json()
                ws_a.receive_json()

            assert ws_b.receive_json()["type"] == "partner-disconnected"
            assert ws_b.receive_json() == {"type": "user-count", "count": 1, "waiting": 0}

        assert manager.counts() == (0, 0)

    def test_superseded_connection_is_closed(self, app_client):
        client, manager = app_client

        with client.websocket_connect("/ws") as ws_old:
            join_ws(ws_old, "alice")
            with client.websocket_connect("/ws") as ws_new:
                join_ws(ws_new, "alice")

                with pytest.raises(WebSocketDisconnect) as exc_info:
                    ws_old.receive_json()
                assert exc_info.value.code == 4000

                assert manager.find_handle("alice") is not None
                assert manager.counts() == (1, 0)

    def test_oversized_frame_closes(self):
        client, _ = build_client(ws_max_message_size=64)

        with client, client.websocket_connect("/ws") as ws:
            ws.send_text("x" * 100)
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

        assert exc_info.value.code == 1009

    def test_rate_limit_closes(self):
        client, manager = build_client(ws_message_rate_limit=2, ws_message_rate_window=60)

        with client, client.websocket_connect("/ws") as ws:
            for _ in range(3):
                ws.send_text("ping")
            assert ws.receive_json() == {"type": "pong"}
            assert ws.receive_json() == {"type": "pong"}
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

        assert exc_info.value.code == 4029
        assert manager.metrics.get_snapshot()["frames_rate_limited"] == 1

    def test_origin_rejected(self):
        client, _ = build_client(allowed_origins="https://chat.example")

        with client:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with client.websocket_connect("/ws", headers={"origin": "https://evil.example"}):
                    pass

        assert exc_info.value.code == 4003


class TestStreamCommands:
    """POST commands for server-push stream clients."""

    def test_find_match_waiting(self, app_client):
        client, manager = app_client
        handle = StreamHandle()
        manager.join(handle, "alice")

        response = client.post("/api/signaling/find-match", json={"userId": "alice"})

        assert response.status_code == 200
        assert response.json() == {"type": "waiting", "message": "Waiting for someone to chat with..."}
        assert manager.counts() == (1, 1)

    def test_find_match_paired(self, app_client):
        client, manager = app_client
        manager.join(StreamHandle(), "alice")
        manager.join(StreamHandle(), "bob")
        client.post("/api/signaling/find-match", json={"userId": "alice"})

        response = client.post("/api/signaling/find-match", json={"userId": "bob"})

        assert response.json() == {"type": "matched", "partnerId": "alice", "isInitiator": True}

    def test_unknown_user(self, app_client):
        client, _ = app_client

        response = client.post("/api/signaling/find-match", json={"userId": "ghost"})

        assert response.status_code == 404

    def test_command_logs_are_tagged_with_stream_user(self, app_client):
        client, _ = app_client
        records = []
        handler = logging.Handler()
        handler.addFilter(CorrelationIdFilter())
        handler.emit = records.append
        exceptions_logger = logging.getLogger("shared.utils.exceptions")
        exceptions_logger.addHandler(handler)
        try:
            client.post("/api/signaling/find-match", json={"userId": "ghost-7"})
        finally:
            exceptions_logger.removeHandler(handler)

        assert [r.connection for r in records] == ["sse:ghos***"]
        assert records[0].request_id != "-"

    def test_missing_user_id(self, app_client):
        client, _ = app_client

        response = client.post("/api/signaling/find-match", json={})

        assert response.status_code == 422

    def test_signal_forwards_to_stream(self, app_client):
        client, manager = app_client
        manager.join(StreamHandle(), "alice")
        bob = StreamHandle()
        manager.join(bob, "bob")

        response = client.post(
            "/api/signaling/signal",
            json={"userId": "alice", "type": "offer", "to": "bob", "sdp": "v=0"},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        # joined, user-count, offer
        assert bob.pending == 3

    def test_signal_rejects_other_types(self, app_client):
        client, manager = app_client
        manager.join(StreamHandle(), "alice")

        response = client.post(
            "/api/signaling/signal",
            json={"userId": "alice", "type": "join", "to": "bob"},
        )

        assert response.status_code == 400

    def test_signal_unknown_target(self, app_client):
        client, manager = app_client
        manager.join(StreamHandle(), "alice")

        response = client.post(
            "/api/signaling/signal",
            json={"userId": "alice", "type": "offer", "to": "ghost"},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "target user not found or not connected"

    def test_disconnect(self, app_client):
        client, manager = app_client
        manager.join(StreamHandle(), "alice")
        client.post("/api/signaling/find-match", json={"userId": "alice"})

        response = client.post("/api/signaling/disconnect", json={"userId": "alice"})

        assert response.json() == {"status": "ok"}
        assert manager.counts() == (1, 0)

    def test_stream_requires_user_id(self, app_client):
        client, _ = app_client

        assert client.get("/api/signaling").status_code == 422

    def test_stream_origin_rejected(self):
        client, manager = build_client(allowed_origins="https://chat.example")

        with client:
            response = client.get(
                "/api/signaling",
                params={"userId": "alice"},
                headers={"origin": "https://evil.example"},
            )

        assert response.status_code == 403
        assert manager.counts() == (0, 0)
