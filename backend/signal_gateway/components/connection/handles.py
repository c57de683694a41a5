"""
Connection handles.

A handle is the core's only view of a client connection: a non-blocking
``send``, a liveness ``probe``, an ``is_open`` query and ``close`` with a
reason code. Each handle owns an outbound queue so the core never awaits
network I/O while holding the session lock.

- WebSocketHandle: a writer task drains the queue onto a Starlette WebSocket.
- StreamHandle: the server-push response generator drains the queue.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from abc import ABC
from typing import Any, AsyncIterator, Callable, Protocol, TYPE_CHECKING

from starlette.websockets import WebSocketState

from shared.config.logging import get_logger

from signal_gateway.components.core.constants import (
    CloseCode,
    GatewayConstants,
    PROBE_MESSAGE,
)

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)

# Queue sentinel: the writer closes the transport when it reaches this
_CLOSE = object()


class ConnectionHandle(Protocol):
    """What the session core needs from a transport connection."""

    handle_id: str
    transport: str
    user_id: str | None

    @property
    def is_open(self) -> bool: ...

    def send(self, message: dict[str, Any]) -> bool: ...

    def probe(self) -> bool: ...

    def close(self, code: int, reason: str) -> None: ...


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if a Starlette WebSocket is connected on both sides.

    Transitional states are not exposed, so a connection may appear
    connected briefly after the peer started closing.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class QueuedConnectionHandle(ABC):
    """
    Base handle with a bounded outbound queue.

    ``send`` and ``close`` only enqueue, so they are safe to call while
    holding the session lock. The queue itself is unbounded so the close
    sentinel always fits; ``max_pending`` bounds regular messages.
    """

    transport: str = "unknown"

    def __init__(self, max_pending: int = GatewayConstants.MAX_PENDING_MESSAGES) -> None:
        self.handle_id = uuid.uuid4().hex[:12]
        self.user_id: str | None = None
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self._max_pending = max_pending
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self._sent = 0

    @property
    def is_open(self) -> bool:
        return not self._closed and self._transport_open()

    @property
    def pending(self) -> int:
        """Messages queued but not yet written."""
        return self._queue.qsize()

    def _transport_open(self) -> bool:
        """Transport-specific open check."""
        return True

    def send(self, message: dict[str, Any]) -> bool:
        """
        Enqueue a message for delivery.

        Returns:
            False if the handle is closed or its queue is full.
        """
        if not self.is_open:
            return False
        if self._queue.qsize() >= self._max_pending:
            logger.warning(
                "Outbound queue full, dropping message",
                handle_id=self.handle_id,
                transport=self.transport,
                pending=self._queue.qsize(),
            )
            return False
        self._queue.put_nowait(message)
        return True

    def probe(self) -> bool:
        """Enqueue a liveness probe. False if it could not be queued."""
        return self.send(PROBE_MESSAGE)

    def close(self, code: int = CloseCode.NORMAL, reason: str = "") -> None:
        """Request closure. Messages already queued are flushed first."""
        if self._closed:
            return
        self._closed = True
        self.close_code = int(code)
        self.close_reason = reason
        self._queue.put_nowait(_CLOSE)

    def mark_closed(self) -> None:
        """Record that the transport went away without a close request."""
        self._closed = True


class WebSocketHandle(QueuedConnectionHandle):
    """
    Handle for a Starlette/FastAPI WebSocket.

    A probe counts as acknowledged once the writer has handed it to the
    socket. Dead peers are caught by the server's protocol-level pings,
    which end the receive loop.
    """

    transport = "websocket"

    def __init__(
        self,
        websocket: "WebSocket",
        on_probe_delivered: Callable[["WebSocketHandle"], None] | None = None,
        max_pending: int = GatewayConstants.MAX_PENDING_MESSAGES,
    ) -> None:
        super().__init__(max_pending)
        self._websocket = websocket
        self._on_probe_delivered = on_probe_delivered
        self._writer: asyncio.Task | None = None

    def _transport_open(self) -> bool:
        return is_ws_connected(self._websocket)

    def start(self) -> None:
        """Start the writer task. Call after the WebSocket is accepted."""
        if self._writer is None:
            self._writer = asyncio.create_task(
                self._write_loop(), name=f"ws_writer_{self.handle_id}"
            )

    async def stop(self, timeout: float = GatewayConstants.WRITER_STOP_TIMEOUT) -> None:
        """Stop the writer, letting a pending close frame go out first."""
        writer = self._writer
        if writer is None or writer.done():
            self.mark_closed()
            return
        if self.close_code is not None:
            try:
                await asyncio.wait_for(asyncio.shield(writer), timeout=timeout)
            except asyncio.TimeoutError:
                logger.debug("Writer did not finish before timeout", handle_id=self.handle_id)
        self.mark_closed()
        if not writer.done():
            writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)

    async def _write_loop(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _CLOSE:
                try:
                    await self._websocket.close(
                        code=self.close_code or CloseCode.NORMAL,
                        reason=self.close_reason or "",
                    )
                except (RuntimeError, OSError) as e:
                    logger.debug("Close on finished WebSocket", handle_id=self.handle_id, error=str(e))
                return
            try:
                await self._websocket.send_text(json.dumps(item))
            except Exception as e:
                # Starlette and uvicorn raise their own disconnect types here
                logger.debug(
                    "WebSocket send failed, marking closed",
                    handle_id=self.handle_id,
                    error=type(e).__name__,
                )
                self.mark_closed()
                return
            self._sent += 1

            if item is PROBE_MESSAGE and self._on_probe_delivered is not None:
                self._on_probe_delivered(self)


def format_sse(message: dict[str, Any]) -> str:
    """Render one message as a server-sent event frame."""
    event = message.get("type", "message")
    return f"event: {event}\ndata: {json.dumps(message)}\n\n"


SSE_KEEPALIVE_FRAME = ": keepalive\n\n"


class StreamHandle(QueuedConnectionHandle):
    """
    Handle for a server-push (server-sent events) stream.

    A probe counts as acknowledged once the response generator has written
    it, which only happens while the client is still reading the stream.
    """

    transport = "sse"

    def __init__(
        self,
        on_probe_delivered: Callable[["StreamHandle"], None] | None = None,
        max_pending: int = GatewayConstants.MAX_PENDING_MESSAGES,
    ) -> None:
        super().__init__(max_pending)
        self._on_probe_delivered = on_probe_delivered

    async def frames(self, keepalive_interval: float) -> AsyncIterator[str]:
        """
        Yield SSE frames until the handle is closed.

        Emits a comment frame when idle for ``keepalive_interval`` so
        intermediaries keep the response open.
        """
        while True:
            try:
                item = await asyncio.wait_for(self._queue.get(), timeout=keepalive_interval)
            except asyncio.TimeoutError:
                if self._closed:
                    return
                yield SSE_KEEPALIVE_FRAME
                continue

            if item is _CLOSE:
                return

            yield format_sse(item)
            self._sent += 1

            if item is PROBE_MESSAGE and self._on_probe_delivered is not None:
                self._on_probe_delivered(self)
