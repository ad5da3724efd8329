"""
Tests for Gateway settings loading.
"""

import tempfile
from pathlib import Path

import pytest
import yaml

from gateway.config import GatewaySettings, load_gateway_settings


def _write_text(text: str) -> str:
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        f.write(text)
        return f.name


def _write_config(config_data) -> str:
    return _write_text(yaml.dump(config_data))


class TestGatewaySettings:
    def test_defaults(self):
        settings = GatewaySettings()
        assert settings.streaming.inactivity_timeout_seconds == 60.0
        assert settings.streaming.queue_size == 1
        assert settings.streaming.cancel_grace_seconds == 5.0
        assert settings.rate_limit.enabled is False
        assert settings.cost_tracking.enabled is True
        assert settings.guardrails.pii_masking.enabled is False
        assert settings.guardrails.content_moderation.blocked_terms == []


class TestLoadGatewaySettings:
    """Test load_gateway_settings function."""

    def test_load_valid_config(self):
        path = _write_config(
            {
                "streaming": {"inactivity_timeout_seconds": 5, "queue_size": 4},
                "rate_limit": {"enabled": True, "default_limit": 10},
                "guardrails": {
                    "pii_masking": {"enabled": True},
                    "content_moderation": {"enabled": True, "blocked_terms": ["bad"]},
                },
                "model_router": {"chains": {}},
            }
        )
        try:
            settings = load_gateway_settings(path)
            assert settings.streaming.inactivity_timeout_seconds == 5.0
            assert settings.streaming.queue_size == 4
            assert settings.streaming.cancel_grace_seconds == 5.0
            assert settings.rate_limit.enabled is True
            assert settings.rate_limit.default_limit == 10
            assert settings.guardrails.pii_masking.enabled is True
            assert settings.guardrails.content_moderation.blocked_terms == ["bad"]
        finally:
            Path(path).unlink()

    def test_empty_file_gives_defaults(self):
        path = _write_text("")
        try:
            assert load_gateway_settings(path) == GatewaySettings()
        finally:
            Path(path).unlink()

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_gateway_settings("/nonexistent/gateway.yaml")

    def test_invalid_yaml(self):
        path = _write_text("streaming: [unclosed")
        try:
            with pytest.raises(yaml.YAMLError):
                load_gateway_settings(path)
        finally:
            Path(path).unlink()

    def test_non_dict_root(self):
        path = _write_config(["a", "b"])
        try:
            with pytest.raises(ValueError, match="must contain a YAML dictionary"):
                load_gateway_settings(path)
        finally:
            Path(path).unlink()

    def test_non_dict_section(self):
        path = _write_config({"streaming": "fast"})
        try:
            with pytest.raises(ValueError, match="'streaming' must be a dictionary"):
                load_gateway_settings(path)
        finally:
            Path(path).unlink()

    def test_invalid_values(self):
        path = _write_config({"streaming": {"queue_size": 0}})
        try:
            with pytest.raises(ValueError, match="Invalid Gateway configuration"):
                load_gateway_settings(path)
        finally:
            Path(path).unlink()

    def test_sample_config_loads(self):
        sample = Path(__file__).resolve().parent.parent / "config" / "default.yaml"
        settings = load_gateway_settings(str(sample))
        assert isinstance(settings, GatewaySettings)
