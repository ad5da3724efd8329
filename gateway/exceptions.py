"""
Custom exceptions for the Gateway.

Each exception that reaches the HTTP layer carries the status code and the
error type/code reported in the error body.
"""

from typing import Optional


class GatewayError(Exception):
    """Base exception for all Gateway errors."""

    status_code = 500
    error_type = "api_error"
    error_code = "internal_error"


class InvalidRequestError(GatewayError):
    """Malformed request. Reported to the caller, never retried."""

    status_code = 400
    error_type = "invalid_request_error"
    error_code = None


class RateLimitExceededError(GatewayError):
    """Caller exceeded its request budget for the current window."""

    status_code = 429
    error_type = "rate_limit_error"
    error_code = "rate_limit_exceeded"

    def __init__(self, message: str, retry_after_seconds: Optional[float] = None):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class SessionTimeoutError(GatewayError):
    """Streaming session produced no event within the inactivity bound."""

    error_code = "session_timeout"


class SessionFailureError(GatewayError):
    """Streaming session's background task raised."""

    error_code = "provider_error"
