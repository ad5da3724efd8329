"""
Provider Registry - ordered collection of provider adapters.

Registration order is significant: when more than one enabled adapter
claims a model name, the one registered first serves it.
"""

import asyncio
from typing import Dict, Iterator, List, Optional

from common.logging import get_logger
from model_router.config import ModelRouterConfig
from model_router.providers import (
    AnthropicProvider,
    OllamaProvider,
    OpenAIProvider,
    ProviderAdapter,
)

logger = get_logger(__name__)


class ProviderRegistry:
    """
    Registry for provider adapters.

    Adapters are registered at startup and initialized together; the
    registry is only read afterwards.
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._adapters: List[ProviderAdapter] = []

    @classmethod
    def from_config(cls, config: ModelRouterConfig) -> "ProviderRegistry":
        """
        Build the standard adapter set: OpenAI, Anthropic, then Ollama.

        Adapters are not initialized yet; call initialize() from async code.
        """
        registry = cls()
        registry.register(OpenAIProvider(config.openai))
        registry.register(AnthropicProvider(config.anthropic))
        registry.register(OllamaProvider(config.ollama))
        return registry

    def register(self, adapter: ProviderAdapter) -> None:
        """
        Append an adapter to the registry.

        Raises:
            ValueError: If adapter is not a ProviderAdapter instance
            KeyError: If an adapter with the same name is already registered
        """
        if not isinstance(adapter, ProviderAdapter):
            raise ValueError(f"Adapter must be an instance of ProviderAdapter, got {type(adapter)}")

        if any(existing.name == adapter.name for existing in self._adapters):
            raise KeyError(f"Provider '{adapter.name}' is already registered")

        self._adapters.append(adapter)

    def __iter__(self) -> Iterator[ProviderAdapter]:
        return iter(tuple(self._adapters))

    def __len__(self) -> int:
        return len(self._adapters)

    def get(self, name: str) -> Optional[ProviderAdapter]:
        for adapter in self._adapters:
            if adapter.name == name:
                return adapter
        return None

    def find(self, model_name: str) -> Optional[ProviderAdapter]:
        """
        First adapter, in registration order, that is enabled and supports
        the model.

        Args:
            model_name: Model identifier (e.g., "gpt-4o", "claude-3-opus-20240229")

        Returns:
            The matching adapter, or None if no enabled adapter claims it
        """
        for adapter in self._adapters:
            if adapter.enabled and adapter.supports_model(model_name):
                return adapter
        return None

    async def initialize(self) -> None:
        """Initialize every adapter. Failures only disable the adapter concerned."""
        await asyncio.gather(*(adapter.initialize() for adapter in self._adapters))
        logger.info(
            "providers_initialized",
            enabled=self.get_providers(),
            registered=[adapter.name for adapter in self._adapters],
        )

    async def aclose(self) -> None:
        for adapter in self._adapters:
            try:
                await adapter.aclose()
            except Exception as e:
                logger.warning(
                    "provider_close_failed",
                    provider=adapter.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    def get_providers(self) -> List[str]:
        """
        Get list of enabled provider names.

        Returns:
            List of provider names (e.g., ["openai", "anthropic"])
        """
        return [adapter.name for adapter in self._adapters if adapter.enabled]

    def status(self) -> Dict[str, bool]:
        """Enablement of every registered adapter, keyed by name."""
        return {adapter.name: adapter.enabled for adapter in self._adapters}

    def get_supported_models(self) -> List[str]:
        """
        Get list of all models supported by enabled providers.

        Returns:
            Sorted list of model identifiers
        """
        models = set()
        for adapter in self._adapters:
            if adapter.enabled:
                models.update(adapter.get_supported_models())
        return sorted(models)
