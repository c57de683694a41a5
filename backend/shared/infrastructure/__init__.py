"""
Infrastructure module: cross-cutting HTTP and logging plumbing.

Provides:
- Request IDs and connection tags for log correlation (correlation.py)
"""

from shared.infrastructure.correlation import (
    CorrelationIdMiddleware,
    CorrelationIdFilter,
    bind_connection,
    get_connection_tag,
    rebind_connection_user,
)

__all__ = [
    "CorrelationIdMiddleware",
    "CorrelationIdFilter",
    "bind_connection",
    "get_connection_tag",
    "rebind_connection_user",
]
