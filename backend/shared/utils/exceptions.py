"""
Centralized HTTP exceptions for consistent error handling.

Used by the HTTP side of the gateway (server-push stream commands).
WebSocket traffic never raises these; protocol errors there are replied
as ``error`` messages.

Usage:
    from shared.utils.exceptions import NotFoundError, ValidationError

    raise NotFoundError("Stream", user_id)
    raise ValidationError("Body must be a JSON object")
"""

from fastapi import HTTPException, status
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Stream", "user-42")
    """

    def __init__(self, entity: str, entity_id: str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} '{entity_id}' not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("userId required", field="userId")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


# =============================================================================
# 403 Forbidden Errors
# =============================================================================


class ForbiddenError(AppException):
    """
    Request refused (403).

    Usage:
        raise ForbiddenError("Origin not allowed", origin=origin)
    """

    def __init__(self, detail: str = "Forbidden", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            **log_context,
        )
