"""
Log correlation for HTTP requests and signaling connections.

Two context values are stamped on every log record by CorrelationIdFilter:

- request_id: one per HTTP request (health, status, stream commands),
  taken from X-Request-ID or generated.
- connection: ``<transport>:<masked userId>`` for the client being served,
  so WebSocket frames, stream events and POST commands of one client can be
  grouped without logging the raw identifier.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from shared.config.logging import mask_user_id

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
connection_var: ContextVar[str] = ContextVar("signaling_connection", default="")


def get_connection_tag() -> str:
    """Tag of the connection being served, or empty outside one."""
    return connection_var.get()


def connection_tag(transport: str, user_id: str | None) -> str:
    return f"{transport}:{mask_user_id(user_id)}"


@contextmanager
def bind_connection(transport: str, user_id: str | None = None) -> Iterator[None]:
    """
    Tag log records emitted inside the block with this connection.

    Usage:
        with bind_connection("sse", command.userId):
            manager.dispatch(handle, message)
    """
    token = connection_var.set(connection_tag(transport, user_id))
    try:
        yield
    finally:
        connection_var.reset(token)


def rebind_connection_user(transport: str, user_id: str | None) -> None:
    """Retag the current connection after it joins under a new identifier."""
    connection_var.set(connection_tag(transport, user_id))


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Assigns a request ID to every HTTP request.

    An incoming X-Request-ID header is reused; otherwise a UUID is
    generated. The ID is echoed in the response headers.
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        try:
            request.state.request_id = request_id
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = request_id
            return response
        finally:
            request_id_var.reset(token)


class CorrelationIdFilter:
    """
    Logging filter that adds request_id and connection to log records.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.connection = connection_var.get() or "-"
        return True
