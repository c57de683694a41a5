"""
WebSocket endpoint handlers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import WebSocket

from shared.infrastructure.correlation import rebind_connection_user
from signal_gateway.components.endpoints.base import WebSocketEndpointBase

if TYPE_CHECKING:
    from signal_gateway.session_manager import SessionManager


class SignalingEndpoint(WebSocketEndpointBase):
    """
    Duplex signaling endpoint.

    Every non-heartbeat frame goes to the session protocol handler; replies
    and notifications flow back through the connection's handle.
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "SessionManager",
        endpoint_name: str = "/ws",
    ):
        super().__init__(websocket, manager, endpoint_name)

    async def handle_message(self, data: str | bytes) -> None:
        self.manager.handle_message(self.handle, data)
        if self.context is not None and self.handle.user_id != self.context.user_id:
            self.context.user_id = self.handle.user_id
            rebind_connection_user(self.handle.transport, self.handle.user_id)
