"""
Server-push stream transport (server-sent events).

GET opens a stream and registers the user; commands arrive as POSTs and go
through the same protocol handler as WebSocket frames. Outbound messages
are written to the stream as ``event: <type>`` frames.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from shared.config.logging import get_logger
from shared.infrastructure.correlation import bind_connection
from shared.utils.exceptions import ForbiddenError, NotFoundError, ValidationError
from shared.utils.schemas import CommandResult, SignalingCommand
from signal_gateway.components.connection.handles import StreamHandle
from signal_gateway.components.core.constants import (
    InboundType,
    OutboundType,
    RELAY_TYPES,
    validate_origin,
)
from signal_gateway.components.core.context import ConnectionContext
from signal_gateway.session_manager import SessionManager

logger = get_logger(__name__)

router = APIRouter(prefix="/api/signaling", tags=["signaling"])

STREAM_ENDPOINT = "/api/signaling"


def get_manager(request: Request) -> SessionManager:
    """Dependency: the app's SessionManager."""
    return request.app.state.manager


# =============================================================================
# Stream
# =============================================================================


@router.get("")
async def open_stream(
    request: Request,
    userId: str = Query(..., min_length=1, description="Client identifier"),
    manager: SessionManager = Depends(get_manager),
) -> StreamingResponse:
    """
    Open the event stream for ``userId``.

    The first event is ``joined``, followed by ``user-count``.
    """
    context = ConnectionContext.from_headers(
        request.headers,
        "sse",
        STREAM_ENDPOINT,
        client=request.client.host if request.client else None,
    )
    if not validate_origin(context.origin, manager.config.allowed_origin_list):
        manager.metrics.increment_origin_rejected()
        context.audit("CONNECT_REJECTED", reason="invalid_origin")
        raise ForbiddenError("Origin not allowed", origin=context.origin)

    handle = StreamHandle(
        on_probe_delivered=manager.record_activity,
        max_pending=manager.config.ws_max_pending_messages,
    )
    with bind_connection(handle.transport, userId):
        manager.join(handle, userId)
        context.user_id = userId
        logger.info("Signaling stream opened", **context.to_audit_dict("CONNECT"))

    keepalive = manager.config.sse_keepalive_interval

    async def event_stream():
        try:
            async for frame in handle.frames(keepalive):
                yield frame
        finally:
            handle.mark_closed()
            manager.connection_closed(handle)
            logger.info(
                "Signaling stream closed",
                **context.to_audit_dict("DISCONNECT", reason=handle.close_reason or "client_disconnect"),
            )

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


# =============================================================================
# Commands
# =============================================================================


def _dispatch(
    manager: SessionManager,
    command: SignalingCommand,
    message_type: str | None = None,
) -> dict[str, Any]:
    """Run a command on the user's stream handle and map the reply to HTTP."""
    with bind_connection(StreamHandle.transport, command.userId):
        handle = manager.find_handle(command.userId)
        if handle is None:
            raise NotFoundError("Stream", command.userId)
        reply = manager.dispatch(handle, command.to_message(message_type))
        if reply is None:
            return CommandResult().model_dump()
        if reply.get("type") == OutboundType.ERROR.value:
            raise ValidationError(reply["reason"], code=reply["code"])
        return reply


@router.post("/find-match")
async def find_match(
    command: SignalingCommand,
    manager: SessionManager = Depends(get_manager),
) -> dict[str, Any]:
    """Request a partner. Returns ``matched`` or ``waiting``."""
    return _dispatch(manager, command, InboundType.FIND_MATCH.value)


@router.post("/signal")
async def signal(
    command: SignalingCommand,
    manager: SessionManager = Depends(get_manager),
) -> dict[str, Any]:
    """Relay an offer, answer or ICE candidate to ``to``."""
    if command.type not in RELAY_TYPES:
        raise ValidationError("type must be offer, answer or ice-candidate", type=command.type)
    return _dispatch(manager, command)


@router.post("/disconnect")
async def disconnect(
    command: SignalingCommand,
    manager: SessionManager = Depends(get_manager),
) -> dict[str, Any]:
    """Leave the current pair or the waiting pool. The stream stays open."""
    return _dispatch(manager, command, InboundType.DISCONNECT.value)
