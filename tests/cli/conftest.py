"""Shared fixtures for CLI tests."""

from pathlib import Path

import pytest

from storechat.config.loader import save_config
from storechat.config.schema import DatabaseConfig, StoreChatConfig


@pytest.fixture
def tmp_config_path(tmp_path: Path) -> Path:
    """Provide a temporary config file path."""
    return tmp_path / "storechat.yaml"


@pytest.fixture
def configured(tmp_config_path: Path, db_url: str) -> Path:
    """Write a config pointing at a temporary SQLite database."""
    save_config(StoreChatConfig(database=DatabaseConfig(url=db_url)), tmp_config_path)
    return tmp_config_path
