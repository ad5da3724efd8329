"""
Configuration loader for Model Router.

Loads provider settings, tier chains and classifier thresholds from the
'model_router' section of a YAML file. API keys are normally supplied
through environment variables, which win over anything in the file.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from model_router.models import ModelChain, RoutingTier

DEFAULT_PREMIUM_KEYWORDS = ["code", "implement", "complex", "analyze", "refactor"]
DEFAULT_ECO_EXCLUSIONS = ["explain", "how"]

# Sections whose YAML value may be left empty (parsed as None).
_SECTIONS = {"openai", "anthropic", "ollama", "chains", "classifier"}


class TierModels(BaseModel):
    """Per-tier model name overrides for one provider."""

    premium: Optional[str] = None
    balanced: Optional[str] = None
    eco: Optional[str] = None


class OpenAIConfig(BaseModel):
    api_key: Optional[str] = Field(None, description="From env: OPENAI_API_KEY")
    base_url: Optional[str] = Field(None, description="Override for OpenAI-compatible endpoints")
    timeout_seconds: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    models: TierModels = Field(default_factory=TierModels)


class AnthropicConfig(BaseModel):
    api_key: Optional[str] = Field(None, description="From env: ANTHROPIC_API_KEY")
    base_url: Optional[str] = None
    timeout_seconds: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    models: TierModels = Field(default_factory=TierModels)


class OllamaConfig(BaseModel):
    enabled: bool = Field(default=False, description="Use a local Ollama server")
    base_url: str = Field(default="http://localhost:11434")
    timeout_seconds: float = Field(default=60.0, gt=0)
    default_model: Optional[str] = Field(None, description="ECO-tier local model")


class ChainOverrides(BaseModel):
    """Explicit per-tier chains. A non-empty list replaces the derived chain."""

    premium: List[str] = Field(default_factory=list)
    balanced: List[str] = Field(default_factory=list)
    eco: List[str] = Field(default_factory=list)


class ClassifierConfig(BaseModel):
    """Thresholds and keyword sets for the heuristic tier classifier."""

    premium_length_threshold: int = Field(default=500, ge=0)
    eco_length_threshold: int = Field(default=100, ge=0)
    premium_keywords: List[str] = Field(default_factory=lambda: list(DEFAULT_PREMIUM_KEYWORDS))
    eco_exclusions: List[str] = Field(default_factory=lambda: list(DEFAULT_ECO_EXCLUSIONS))


class ModelRouterConfig(BaseModel):
    """
    Configuration for Model Router.

    Contains provider setup, tier chains and classifier settings. Read once
    at startup; nothing here changes while the process runs.
    """

    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    anthropic: AnthropicConfig = Field(default_factory=AnthropicConfig)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    chains: ChainOverrides = Field(default_factory=ChainOverrides)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    mock_stream_delay_seconds: float = Field(
        default=0.05,
        ge=0,
        description="Pause between synthesized chunks when every candidate fails",
    )

    model_config = ConfigDict(use_enum_values=True)


def looks_like_api_key(value: Optional[str]) -> bool:
    """True for a non-empty key that is not an unexpanded ${...} placeholder."""
    if not value or not value.strip():
        return False
    return not value.strip().startswith("${")


def _pick(configured: Optional[str], fallback: str) -> str:
    return configured if configured else fallback


def build_model_chains(config: ModelRouterConfig) -> Dict[RoutingTier, ModelChain]:
    """
    Build the per-tier fallback chains.

    Configured tier models are substituted into the default chains; a tier
    with an explicit list under 'chains' uses that list verbatim.
    """
    derived = {
        RoutingTier.PREMIUM: [
            _pick(config.openai.models.premium, "gpt-4o"),
            _pick(config.anthropic.models.premium, "claude-3-5-sonnet-20241022"),
            "gpt-4-turbo",
        ],
        RoutingTier.BALANCED: [
            _pick(config.openai.models.balanced, "gpt-4o-mini"),
            _pick(config.anthropic.models.balanced, "claude-3-sonnet-20240229"),
            "gemini-pro",
        ],
        RoutingTier.ECO: [
            _pick(config.openai.models.eco, "gpt-3.5-turbo"),
            _pick(config.ollama.default_model, "llama3"),
            "mistral-7b",
        ],
    }
    overrides = {
        RoutingTier.PREMIUM: config.chains.premium,
        RoutingTier.BALANCED: config.chains.balanced,
        RoutingTier.ECO: config.chains.eco,
    }

    chains = {}
    for tier in RoutingTier:
        models = overrides[tier] or derived[tier]
        chains[tier] = ModelChain(tier=tier, models=tuple(models))
    return chains


def load_router_config(config_path: str) -> ModelRouterConfig:
    """
    Load Model Router configuration from a YAML file.

    Reads the 'model_router' section and overlays API keys and the Ollama
    URL from environment variables.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        ModelRouterConfig with all router settings

    Raises:
        FileNotFoundError: If the config file doesn't exist
        yaml.YAMLError: If the YAML file is invalid
        ValueError: If the config structure is invalid
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Invalid YAML in config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a YAML dictionary, got {type(data)}")

    if "model_router" not in data:
        raise ValueError("Config file must contain a 'model_router' key")

    router_data = data["model_router"] or {}

    if not isinstance(router_data, dict):
        raise ValueError(f"'model_router' must be a dictionary, got {type(router_data)}")

    router_data = {
        key: (value if value is not None else {}) if key in _SECTIONS else value
        for key, value in router_data.items()
    }
    router_data.setdefault("openai", {})
    router_data.setdefault("anthropic", {})
    router_data.setdefault("ollama", {})

    openai_key = os.getenv("OPENAI_API_KEY")
    anthropic_key = os.getenv("ANTHROPIC_API_KEY")
    ollama_url = os.getenv("OLLAMA_BASE_URL")

    if openai_key:
        router_data["openai"] = {**router_data["openai"], "api_key": openai_key}
    if anthropic_key:
        router_data["anthropic"] = {**router_data["anthropic"], "api_key": anthropic_key}
    if ollama_url:
        router_data["ollama"] = {**router_data["ollama"], "base_url": ollama_url}

    try:
        return ModelRouterConfig(**router_data)
    except Exception as e:
        raise ValueError(f"Invalid Model Router configuration: {e}") from e

