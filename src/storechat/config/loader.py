"""Configuration loading and validation."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from storechat.config.schema import DEFAULT_DATA_DIR, StoreChatConfig

DEFAULT_CONFIG_PATH = DEFAULT_DATA_DIR / "storechat.yaml"


class ConfigError(Exception):
    """Configuration error.

    Base class for every "fail fast before any remote call" condition:
    bad config files, missing API keys, missing thread ids, missing store
    credentials and refused TLS settings.
    """


def load_config(path: Path | None = None) -> StoreChatConfig:
    """Load and validate storechat configuration from a YAML file.

    Args:
        path: Path to config file. If None, tries the default location.
              If the file doesn't exist, returns the default config.

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If the config file exists but is invalid
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    if not path.exists():
        return StoreChatConfig()

    try:
        with open(path) as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    if config_data is None:
        return StoreChatConfig()
    if not isinstance(config_data, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping")

    try:
        return StoreChatConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


def save_config(config: StoreChatConfig, path: str | Path | None = None) -> Path:
    """Save configuration to a YAML file.

    Args:
        config: Configuration object to save
        path: Destination path. If None, uses the default location.

    Returns:
        The path written
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
    elif isinstance(path, str):
        path = Path(path)

    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.safe_dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)

    return path
