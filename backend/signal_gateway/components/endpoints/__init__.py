"""
Endpoints: WebSocket handler and server-sent event routes.
"""

from signal_gateway.components.endpoints.base import WebSocketEndpointBase
from signal_gateway.components.endpoints.handlers import SignalingEndpoint
from signal_gateway.components.endpoints.sse import router as stream_router

__all__ = [
    "WebSocketEndpointBase",
    "SignalingEndpoint",
    "stream_router",
]
