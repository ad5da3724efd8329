"""
Gateway module - HTTP surface, chat service and streaming orchestration

Import the app factory from gateway.api; this package only re-exports the
leaf modules so that other packages can depend on its exceptions.
"""

from gateway.config import GatewaySettings, load_gateway_settings
from gateway.exceptions import (
    GatewayError,
    InvalidRequestError,
    RateLimitExceededError,
    SessionFailureError,
    SessionTimeoutError,
)
from gateway.models import ErrorDetail, ErrorResponse, ModelCard, ModelList

__all__ = [
    "GatewaySettings",
    "load_gateway_settings",
    "GatewayError",
    "InvalidRequestError",
    "RateLimitExceededError",
    "SessionTimeoutError",
    "SessionFailureError",
    "ErrorDetail",
    "ErrorResponse",
    "ModelCard",
    "ModelList",
]
