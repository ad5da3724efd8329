"""
Routing context: the process-wide routing state, built once at startup.
"""

from types import MappingProxyType
from typing import Mapping, Optional

from model_router.config import ModelRouterConfig, build_model_chains
from model_router.exceptions import ConfigurationError
from model_router.models import ModelChain, RoutingTier
from model_router.registry import ProviderRegistry


class RoutingContext:
    """
    Immutable bundle of tier chains, the adapter registry and router settings.

    Passed explicitly to the router and the streaming orchestrator.

    Args:
        chains: One ModelChain per RoutingTier
        registry: Adapters in registration order
        mock_stream_delay_seconds: Pause between synthesized fallback chunks

    Raises:
        ConfigurationError: If a tier has no chain or a chain is filed under
            the wrong tier
    """

    __slots__ = ("_chains", "_registry", "_mock_stream_delay_seconds")

    def __init__(
        self,
        chains: Mapping[RoutingTier, ModelChain],
        registry: ProviderRegistry,
        mock_stream_delay_seconds: float = 0.05,
    ):
        for tier in RoutingTier:
            chain = chains.get(tier)
            if chain is None:
                raise ConfigurationError(f"No model chain configured for tier {tier.value}")
            if RoutingTier(chain.tier) != tier:
                raise ConfigurationError(
                    f"Chain for tier {tier.value} is declared for tier {chain.tier}"
                )

        object.__setattr__(self, "_chains", MappingProxyType(dict(chains)))
        object.__setattr__(self, "_registry", registry)
        object.__setattr__(self, "_mock_stream_delay_seconds", mock_stream_delay_seconds)

    def __setattr__(self, name, value):
        raise AttributeError("RoutingContext is immutable")

    @classmethod
    def from_config(
        cls,
        config: ModelRouterConfig,
        registry: Optional[ProviderRegistry] = None,
    ) -> "RoutingContext":
        """
        Build chains from configuration and, unless given, the standard registry.
        """
        return cls(
            chains=build_model_chains(config),
            registry=registry if registry is not None else ProviderRegistry.from_config(config),
            mock_stream_delay_seconds=config.mock_stream_delay_seconds,
        )

    @property
    def chains(self) -> Mapping[RoutingTier, ModelChain]:
        return self._chains

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def mock_stream_delay_seconds(self) -> float:
        return self._mock_stream_delay_seconds

    def chain_for(self, tier: RoutingTier) -> ModelChain:
        return self._chains[RoutingTier(tier)]
