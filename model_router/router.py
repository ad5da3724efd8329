"""
Model Router Core - walks a tier's model chain against the adapter registry.

Handles provider selection, ordered failover and the synthesized fallback
answer used when every candidate in the chain fails.
"""

import asyncio
import time
from typing import Dict, List

from common.logging import get_logger
from model_router.context import RoutingContext
from model_router.models import ChatRequest, ChatResponse, ModelChain, RoutingTier, Usage, new_completion_id
from model_router.providers import ChunkCallback, ProviderAdapter

logger = get_logger(__name__)

MOCK_PROVIDER = "mock"


class ModelRouter:
    """
    Routes chat requests to a model from the tier's chain.

    Candidates are tried strictly in chain order, one at a time. A provider
    failure is logged and the next candidate is tried; callers never see a
    provider error from route(). When the chain is exhausted the router
    answers with a synthesized placeholder built from the chain's first
    model.
    """

    def __init__(self, context: RoutingContext):
        """
        Initialize the Model Router.

        Args:
            context: Tier chains and adapter registry, built at startup
        """
        self._context = context

    async def initialize(self) -> None:
        """Initialize every registered adapter. Call once at startup."""
        await self._context.registry.initialize()

    async def aclose(self) -> None:
        await self._context.registry.aclose()

    def chain_for(self, tier: RoutingTier) -> ModelChain:
        return self._context.chain_for(tier)

    def _find_provider(self, model_name: str):
        """
        Find the first enabled adapter that serves the given model.

        Args:
            model_name: Model identifier (e.g., "gpt-4o", "claude-3-opus-20240229")

        Returns:
            ProviderAdapter that supports the model, or None if not found
        """
        return self._context.registry.find(model_name)

    async def route(self, request: ChatRequest, tier: RoutingTier) -> ChatResponse:
        """
        Route a non-streaming request through the tier's chain.

        Args:
            request: Validated chat request
            tier: Tier chosen by the classifier

        Returns:
            The first successful provider response, or a placeholder when
            every candidate failed
        """
        chain = self.chain_for(tier)

        for model_name in chain.models:
            provider = self._find_provider(model_name)
            if provider is None:
                logger.warning("no_provider_for_model", model=model_name, tier=chain.tier.value)
                continue

            logger.info("routing_attempt", model=model_name, provider=provider.name, tier=chain.tier.value)
            start_time = time.time()
            try:
                response = await provider.generate(request, model_name)
            except Exception as e:
                logger.warning(
                    "provider_call_failed",
                    model=model_name,
                    provider=provider.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            logger.info(
                "routing_success",
                model=model_name,
                provider=provider.name,
                tier=chain.tier.value,
                latency_ms=round((time.time() - start_time) * 1000, 2),
            )
            return response

        logger.warning("routing_chain_exhausted", tier=chain.tier.value, model=chain.primary)
        return self._mock_response(chain.primary)

    async def route_streaming(
        self,
        request: ChatRequest,
        tier: RoutingTier,
        on_chunk: ChunkCallback,
    ) -> None:
        """
        Route a streaming request through the tier's chain.

        Same candidate walk as route(): a failing candidate is logged and
        the next one is tried, whether or not it had already delivered
        chunks. A failed candidate never delivered its terminal chunk, so
        the stream still ends with exactly one terminal chunk.

        Args:
            request: Validated chat request
            tier: Tier chosen by the classifier
            on_chunk: Awaited once per chunk, in production order
        """
        chain = self.chain_for(tier)

        for model_name in chain.models:
            provider = self._find_provider(model_name)
            if provider is None:
                logger.warning("no_provider_for_model", model=model_name, tier=chain.tier.value)
                continue

            logger.info(
                "streaming_attempt", model=model_name, provider=provider.name, tier=chain.tier.value
            )
            delivered = 0

            async def forward(chunk: ChatResponse) -> None:
                nonlocal delivered
                delivered += 1
                await on_chunk(chunk)

            try:
                await provider.generate_streaming(request, model_name, forward)
            except Exception as e:
                if delivered:
                    logger.warning(
                        "provider_stream_interrupted",
                        model=model_name,
                        provider=provider.name,
                        chunks_delivered=delivered,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    continue
                logger.warning(
                    "provider_call_failed",
                    model=model_name,
                    provider=provider.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            logger.info("streaming_success", model=model_name, provider=provider.name, chunks=delivered)
            return

        logger.warning("routing_chain_exhausted", tier=chain.tier.value, model=chain.primary)
        await self._mock_streaming_response(chain.primary, on_chunk)

    def _mock_response(self, model: str) -> ChatResponse:
        content = (
            f"This is a mock response from {model}. "
            "Configure API keys to use real LLM providers."
        )
        return ChatResponse.completion(
            model=model,
            content=content,
            usage=Usage.of(10, 20),
            provider=MOCK_PROVIDER,
        )

    async def _mock_streaming_response(self, model: str, on_chunk: ChunkCallback) -> None:
        text = (
            f"This is a mock streaming response from {model}. "
            "Configure API keys to use real LLM providers."
        )
        completion_id = new_completion_id()
        delay = self._context.mock_stream_delay_seconds

        for word in text.split(" "):
            await on_chunk(
                ChatResponse.chunk(model, word + " ", completion_id=completion_id, provider=MOCK_PROVIDER)
            )
            if delay:
                await asyncio.sleep(delay)

        await on_chunk(
            ChatResponse.chunk(
                model, "", finish_reason="stop", completion_id=completion_id, provider=MOCK_PROVIDER
            )
        )

    def get_providers(self) -> List[str]:
        """
        Get list of enabled provider names.

        Returns:
            List of provider names (e.g., ["openai", "anthropic"])
        """
        return self._context.registry.get_providers()

    def get_supported_models(self) -> List[str]:
        """
        Get list of all models supported by enabled providers.

        Returns:
            List of model identifiers supported by at least one provider
        """
        return self._context.registry.get_supported_models()

    def provider_status(self) -> Dict[str, bool]:
        """Enablement of every registered adapter, keyed by provider name."""
        return self._context.registry.status()

    def get_adapters(self) -> List[ProviderAdapter]:
        return list(self._context.registry)
