"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
import yaml

from storechat.config.loader import ConfigError, load_config, save_config
from storechat.config.schema import StoreChatConfig


def test_default_config():
    """Test that default config has expected values."""
    config = StoreChatConfig()

    assert config.model.provider == "google"
    assert config.model.name == "gemini-2.5-flash"
    assert config.model.temperature == 1.0

    assert config.agent.max_tool_rounds == 10
    assert config.agent.approve_all_tools is False
    assert config.agent.reject_duplicate_renders is True
    assert config.agent.system_prompt is None

    assert config.database.url.startswith("sqlite:///")
    assert config.database.tls.mode == "verify-full"
    assert config.database.tls.allow_insecure is False

    assert config.sandbox.timeout_seconds == 50.0
    assert config.woocommerce.max_pages == 1000
    assert config.server.port == 8000
    assert config.plugins.enabled is False
    assert "gemini-2.5-flash" in config.pricing


def test_load_config_nonexistent_returns_defaults(tmp_path: Path):
    config = load_config(tmp_path / "missing.yaml")

    assert config.model.name == "gemini-2.5-flash"


def test_load_config_empty_file_returns_defaults(tmp_path: Path):
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert load_config(path).agent.max_tool_rounds == 10


def test_load_config_partial_override(tmp_path: Path):
    """Test that partial config overrides only specified values."""
    path = tmp_path / "partial.yaml"
    path.write_text(
        yaml.dump(
            {
                "model": {"provider": "openai", "name": "gpt-4o-mini"},
                "agent": {"max_tool_rounds": 3},
                "database": {"tls": {"mode": "require", "allow_insecure": True}},
            }
        )
    )

    config = load_config(path)

    assert config.model.provider == "openai"
    assert config.model.name == "gpt-4o-mini"
    assert config.model.temperature == 1.0
    assert config.agent.max_tool_rounds == 3
    assert config.database.tls.mode == "require"
    assert config.database.tls.allow_insecure is True
    assert config.sandbox.timeout_seconds == 50.0


def test_load_config_invalid_yaml(tmp_path: Path):
    path = tmp_path / "broken.yaml"
    path.write_text("model: [unclosed")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(path)


def test_load_config_rejects_non_mapping(tmp_path: Path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")

    with pytest.raises(ConfigError, match="must be a mapping"):
        load_config(path)


@pytest.mark.parametrize(
    "data",
    [
        {"agent": {"max_tool_rounds": 0}},
        {"agent": {"max_tool_rounds": 51}},
        {"model": {"provider": "anthropic"}},
        {"database": {"tls": {"mode": "sometimes"}}},
    ],
)
def test_load_config_validation_errors(tmp_path: Path, data):
    path = tmp_path / "invalid.yaml"
    path.write_text(yaml.dump(data))

    with pytest.raises(ConfigError, match="validation failed"):
        load_config(path)


def test_save_and_reload_config(tmp_path: Path):
    config = StoreChatConfig()
    config.model.name = "deepseek-chat"
    config.agent.max_tool_rounds = 4

    path = save_config(config, tmp_path / "nested" / "storechat.yaml")
    loaded = load_config(path)

    assert path.exists()
    assert loaded.model.name == "deepseek-chat"
    assert loaded.agent.max_tool_rounds == 4
    assert loaded.pricing["gpt-4o"].output_price == config.pricing["gpt-4o"].output_price
