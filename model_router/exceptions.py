"""
Custom exceptions for Model Router.

ProviderError and its subclasses are raised by adapters and absorbed by the
router's failover walk. ConfigurationError marks an adapter that could not
initialize; such an adapter stays disabled for the life of the process.
"""


class ModelRouterError(Exception):
    """Base exception for all Model Router errors."""
    pass


class ProviderError(ModelRouterError):
    """Error from a specific LLM provider call."""

    def __init__(self, message: str, provider: str = "unknown"):
        super().__init__(message)
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    """Provider call timed out."""
    pass


class ProviderRateLimitError(ProviderError):
    """Provider rejected the call because of its own rate limit."""
    pass


class ProviderAuthenticationError(ProviderError):
    """Provider rejected the credentials."""
    pass


class ConfigurationError(ModelRouterError):
    """Adapter failed to initialize (missing or malformed settings)."""
    pass
