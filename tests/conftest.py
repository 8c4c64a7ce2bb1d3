"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from storechat.config.schema import DatabaseConfig, StoreChatConfig
from storechat.memory.checkpointer import AnnotatedConversationStore
from storechat.memory.database import create_db_engine, init_db
from storechat.memory.threads import ThreadStore


@pytest.fixture
def default_config() -> StoreChatConfig:
    """Provide a default configuration for tests."""
    return StoreChatConfig()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'storechat.db'}"


@pytest.fixture
def engine(db_url: str):
    """SQLite engine with every table created."""
    engine = create_db_engine(DatabaseConfig(url=db_url))
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine) -> AnnotatedConversationStore:
    return AnnotatedConversationStore.from_engine(engine)


@pytest.fixture
def thread_store(engine) -> ThreadStore:
    return ThreadStore(engine)


@pytest.fixture
def credentials() -> dict[str, str]:
    """Store credentials as a request would send them."""
    return {
        "url": "https://shop.example.com",
        "consumerKey": "ck_test",
        "consumerSecret": "cs_test",
    }
