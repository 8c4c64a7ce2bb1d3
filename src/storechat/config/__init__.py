"""Configuration schema and YAML loading."""

from storechat.config.loader import ConfigError, load_config, save_config
from storechat.config.schema import StoreChatConfig, TLSConfig

__all__ = ["ConfigError", "StoreChatConfig", "TLSConfig", "load_config", "save_config"]
