"""
Configuration loader for the Gateway.

Reads the gateway-level sections (streaming, rate_limit, cost_tracking,
guardrails) from the same YAML file the model router uses. Every section
is optional; absent sections take their defaults.
"""

from pathlib import Path
from typing import Dict, List

import yaml
from pydantic import BaseModel, Field

_SECTIONS = ("streaming", "rate_limit", "cost_tracking", "guardrails")


class StreamingSettings(BaseModel):
    """Lifecycle bounds for streaming sessions."""

    inactivity_timeout_seconds: float = Field(
        default=60.0, gt=0, description="Max wait for the next event before TIMED_OUT"
    )
    queue_size: int = Field(default=1, ge=1, description="Chunks buffered between producer and consumer")
    cancel_grace_seconds: float = Field(
        default=5.0, ge=0, description="How long a disconnected producer may keep running"
    )


class RateLimitSettings(BaseModel):
    enabled: bool = Field(default=False)
    default_limit: int = Field(default=60, ge=1, description="Requests per window per user")
    window_seconds: float = Field(default=60.0, gt=0)


class CostTrackingSettings(BaseModel):
    """
    Cost tracking settings.

    prices maps a model-name prefix to USD per 1K tokens, split into
    'prompt' and 'completion'. The longest matching prefix wins.
    """

    enabled: bool = Field(default=True)
    prices: Dict[str, Dict[str, float]] = Field(default_factory=dict)


class PIIMaskingSettings(BaseModel):
    enabled: bool = Field(default=False)


class ContentModerationSettings(BaseModel):
    enabled: bool = Field(default=False)
    blocked_terms: List[str] = Field(default_factory=list)


class GuardrailSettings(BaseModel):
    pii_masking: PIIMaskingSettings = Field(default_factory=PIIMaskingSettings)
    content_moderation: ContentModerationSettings = Field(default_factory=ContentModerationSettings)


class GatewaySettings(BaseModel):
    """Gateway settings that sit around the routing core."""

    streaming: StreamingSettings = Field(default_factory=StreamingSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cost_tracking: CostTrackingSettings = Field(default_factory=CostTrackingSettings)
    guardrails: GuardrailSettings = Field(default_factory=GuardrailSettings)


def load_gateway_settings(config_path: str) -> GatewaySettings:
    """
    Load Gateway settings from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        GatewaySettings, with defaults for any section not present

    Raises:
        FileNotFoundError: If the config file doesn't exist
        yaml.YAMLError: If the YAML file is invalid
        ValueError: If a section has the wrong shape or invalid values
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Invalid YAML in config file {config_path}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a YAML dictionary, got {type(data)}")

    sections = {}
    for name in _SECTIONS:
        section = data.get(name)
        if section is None:
            continue
        if not isinstance(section, dict):
            raise ValueError(f"'{name}' must be a dictionary, got {type(section)}")
        sections[name] = section

    try:
        return GatewaySettings(**sections)
    except Exception as e:
        raise ValueError(f"Invalid Gateway configuration: {e}") from e
