"""
Pytest configuration and fixtures for signaling gateway tests.
"""

import itertools
import json
from typing import Any

import pytest

from shared.config.settings import Settings
from signal_gateway.session_manager import SessionManager


_handle_ids = itertools.count(1)


class RecordingHandle:
    """
    In-memory connection handle.

    Records every message sent to it. ``accept=False`` makes sends fail as
    if the outbound queue were full.
    """

    transport = "test"

    def __init__(self, name: str | None = None, accept: bool = True):
        self.handle_id = name or f"h{next(_handle_ids)}"
        self.user_id: str | None = None
        self.sent: list[dict[str, Any]] = []
        self.probes = 0
        self.open = True
        self.accept = accept
        self.close_code: int | None = None
        self.close_reason: str | None = None

    @property
    def is_open(self) -> bool:
        return self.open

    def send(self, message: dict[str, Any]) -> bool:
        if not self.open or not self.accept:
            return False
        self.sent.append(message)
        return True

    def probe(self) -> bool:
        if not self.open or not self.accept:
            return False
        self.probes += 1
        return True

    def close(self, code: int = 1000, reason: str = "") -> None:
        self.open = False
        self.close_code = code
        self.close_reason = reason

    # Test helpers

    def of_type(self, message_type: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m.get("type") == message_type]

    def last(self, message_type: str | None = None) -> dict[str, Any]:
        messages = self.sent if message_type is None else self.of_type(message_type)
        assert messages, f"no {message_type or 'messages'} sent to {self.handle_id}"
        return messages[-1]

    def types(self) -> list[str]:
        return [m.get("type") for m in self.sent]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def gateway_settings():
    """Settings with defaults, independent of any local .env file."""
    return Settings(_env_file=None, environment="test", debug=False)


@pytest.fixture
def manager(gateway_settings):
    """SessionManager whose coin flip always makes the requester initiator."""
    return SessionManager(gateway_settings, coin=lambda: True)


@pytest.fixture
def store(manager):
    return manager.store


@pytest.fixture
def send(manager):
    """Send a protocol message as JSON text on a handle."""
    def _send(handle: RecordingHandle, **message: Any):
        return manager.handle_message(handle, json.dumps(message))
    return _send


@pytest.fixture
def join(send):
    """Join ``user_id`` on a fresh (or given) handle and return the handle."""
    def _join(user_id: str, handle: RecordingHandle | None = None) -> RecordingHandle:
        handle = handle or RecordingHandle(name=f"conn-{user_id}")
        send(handle, type="join", userId=user_id)
        return handle
    return _join


@pytest.fixture
def matched_pair(join, send):
    """A and B joined and matched; B requested last and is the initiator."""
    a = join("A")
    b = join("B")
    send(a, type="find-match")
    send(b, type="find-match")
    a.clear()
    b.clear()
    return a, b
