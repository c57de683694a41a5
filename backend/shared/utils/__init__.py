"""
Utilities module: HTTP exceptions and schemas.
"""

from shared.utils.exceptions import (
    AppException,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    CommandResult,
    HealthResponse,
    SignalingCommand,
)

__all__ = [
    # exceptions
    "AppException",
    "ForbiddenError",
    "NotFoundError",
    "ValidationError",
    # schemas
    "CommandResult",
    "HealthResponse",
    "SignalingCommand",
]
