"""
Custom exceptions for guardrail filters.

A rejection is a caller-facing 4xx error, distinct from provider failures.
"""


class GuardrailError(Exception):
    """Base exception for all guardrail errors."""
    pass


class ContentRejectedError(GuardrailError):
    """Text was rejected by a filter and must not be processed further."""

    status_code = 400
    error_type = "invalid_request_error"
    error_code = "content_rejected"

    def __init__(self, message: str, filter_name: str = "unknown"):
        super().__init__(message)
        self.filter_name = filter_name
