"""
Foundational components: constants, errors, connection context.
"""

from signal_gateway.components.core.constants import (
    CloseCode,
    GatewayConstants,
    InboundType,
    OutboundType,
    RELAY_TYPES,
    validate_origin,
)
from signal_gateway.components.core.context import ConnectionContext, sanitize_log_data
from signal_gateway.components.core.errors import (
    DeliveryFailure,
    MalformedMessage,
    MissingRequiredField,
    SignalingError,
    TargetNotFound,
    UnknownMessageType,
)

__all__ = [
    "CloseCode",
    "GatewayConstants",
    "InboundType",
    "OutboundType",
    "RELAY_TYPES",
    "validate_origin",
    "ConnectionContext",
    "sanitize_log_data",
    "SignalingError",
    "MalformedMessage",
    "UnknownMessageType",
    "MissingRequiredField",
    "TargetNotFound",
    "DeliveryFailure",
]
