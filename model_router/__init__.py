"""
Model Router module - tier classification, provider adapters and failover routing
"""

from model_router.classifier import HeuristicClassifier, ScoredClassifier, TierClassifier
from model_router.config import ModelRouterConfig, build_model_chains, load_router_config
from model_router.context import RoutingContext
from model_router.exceptions import (
    ConfigurationError,
    ModelRouterError,
    ProviderAuthenticationError,
    ProviderError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from model_router.models import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    Choice,
    DeltaMessage,
    MessageRole,
    ModelChain,
    RoutingTier,
    Usage,
)
from model_router.providers import (
    AnthropicProvider,
    OllamaProvider,
    OpenAIProvider,
    ProviderAdapter,
)
from model_router.registry import ProviderRegistry
from model_router.router import ModelRouter

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "Choice",
    "DeltaMessage",
    "MessageRole",
    "ModelChain",
    "RoutingTier",
    "Usage",
    "TierClassifier",
    "HeuristicClassifier",
    "ScoredClassifier",
    "ProviderAdapter",
    "OpenAIProvider",
    "AnthropicProvider",
    "OllamaProvider",
    "ProviderRegistry",
    "RoutingContext",
    "ModelRouter",
    "ModelRouterConfig",
    "build_model_chains",
    "load_router_config",
    "ModelRouterError",
    "ProviderError",
    "ProviderTimeoutError",
    "ProviderRateLimitError",
    "ProviderAuthenticationError",
    "ConfigurationError",
]
