"""
WebSocket Endpoint Base Class.

Owns the connection lifecycle: origin check, accept, writer task,
message loop with frame validation, and exactly one teardown when the
connection ends.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect

from shared.config.logging import get_logger
from shared.infrastructure.correlation import bind_connection
from signal_gateway.components.connection.handles import WebSocketHandle
from signal_gateway.components.core.constants import CloseCode
from signal_gateway.components.core.context import ConnectionContext
from signal_gateway.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    HeartbeatMixin,
    MessageValidationMixin,
    OriginValidationMixin,
)

if TYPE_CHECKING:
    from signal_gateway.session_manager import SessionManager

logger = get_logger(__name__)


class WebSocketEndpointBase(
    MessageValidationMixin,
    OriginValidationMixin,
    HeartbeatMixin,
    ConnectionLifecycleMixin,
    ABC,
):
    """
    Base class for WebSocket endpoints.

    Subclasses implement handle_message() for non-heartbeat frames.

    Usage:
        endpoint = SignalingEndpoint(websocket, manager)
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "SessionManager",
        endpoint_name: str,
    ):
        self.websocket = websocket
        self.manager = manager
        self.endpoint_name = endpoint_name
        self.handle = WebSocketHandle(
            websocket,
            on_probe_delivered=manager.record_activity,
            max_pending=manager.config.ws_max_pending_messages,
        )
        self.context: ConnectionContext | None = None
        self._is_running = False

    @abstractmethod
    async def handle_message(self, data: str | bytes) -> None:
        """Handle a non-heartbeat frame."""

    async def run(self) -> None:
        """
        Run the endpoint until the connection ends.

        1. Validate origin (closed with FORBIDDEN before accept otherwise)
        2. Accept and start the writer
        3. Message loop
        4. Teardown and writer shutdown
        """
        client = self.websocket.client.host if self.websocket.client else None
        self.context = ConnectionContext.from_headers(
            self.websocket.headers, "websocket", self.endpoint_name, client=client,
        )

        with bind_connection(self.handle.transport):
            if not self.validate_origin():
                self.log_connect_rejected("invalid_origin")
                self.manager.metrics.increment_origin_rejected()
                await self.websocket.close(code=CloseCode.FORBIDDEN, reason="Origin not allowed")
                return

            await self.websocket.accept()
            self.handle.start()
            self.log_connect()

            self._is_running = True
            reason = "client_disconnect"
            try:
                await self._message_loop()
                if self.handle.close_reason:
                    reason = self.handle.close_reason
            except WebSocketDisconnect:
                pass
            except Exception as e:
                reason = "error"
                logger.error(
                    "Unexpected error in WebSocket endpoint",
                    endpoint=self.endpoint_name,
                    identifier=self.context.identifier,
                    error=str(e),
                    exc_info=True,
                )
                self.handle.close(CloseCode.SERVER_ERROR, "Internal error")
            finally:
                self._is_running = False
                self.manager.connection_closed(self.handle)
                await self.handle.stop()
                self.context.user_id = self.handle.user_id
                self.log_disconnect(reason)

    async def _message_loop(self) -> None:
        """
        Receive frames until the client disconnects or the handle closes.

        Per frame: size check, rate limit, heartbeat, then handle_message().
        """
        while self._is_running:
            data = await self._receive()
            if data is None:
                break

            if self.handle.close_code is not None:
                # Superseded or evicted; drop frames still buffered
                break

            if not await self.validate_message_size(data):
                break

            if not await self.check_rate_limit():
                break

            if self.handle_heartbeat(data):
                continue

            await self.handle_message(data)

    async def _receive(self) -> str | bytes | None:
        """
        Receive one text or binary frame.

        Returns:
            Frame payload, or None once the connection is gone.
        """
        try:
            message = await self.websocket.receive()
        except RuntimeError:
            # Receive after the close handshake
            return None
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", CloseCode.NORMAL))
        if message.get("text") is not None:
            return message["text"]
        if message.get("bytes") is not None:
            return message["bytes"]
        return None
