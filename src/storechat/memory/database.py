"""Database engine factory and table definitions.

TLS settings travel with the engine being built. Nothing here touches
process-wide state such as ``ssl`` defaults or environment variables.
"""

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine, make_url

from storechat.config.loader import ConfigError
from storechat.config.schema import DatabaseConfig, TLSConfig

logger = logging.getLogger(__name__)

JSONType = JSON().with_variant(postgresql.JSONB(), "postgresql")

INSECURE_TLS_MODES = {"disable", "allow", "prefer", "require"}

metadata = MetaData()

checkpoints = Table(
    "checkpoints",
    metadata,
    Column("thread_id", String(255), primary_key=True),
    Column("version", Integer, nullable=False),
    Column("checkpoint_id", String(64)),
    Column("checkpoint", JSONType, nullable=False),
    Column("channel_metadata", JSONType, nullable=False, default=dict),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

message_metadata = Table(
    "message_metadata",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("thread_id", String(255), nullable=False, index=True),
    Column("message_index", Integer, nullable=False),
    Column("message_id", String(255)),
    Column("user_id", String(255)),
    Column("is_liked", Boolean, nullable=False, default=False),
    Column("is_disliked", Boolean, nullable=False, default=False),
    Column("is_favorited", Boolean, nullable=False, default=False),
    Column("is_bookmarked", Boolean, nullable=False, default=False),
    Column("is_flagged", Boolean, nullable=False, default=False),
    Column("is_archived", Boolean, nullable=False, default=False),
    UniqueConstraint("thread_id", "message_index", name="uq_message_metadata_thread_index"),
)

threads = Table(
    "threads",
    metadata,
    Column("id", String(255), primary_key=True),
    Column("title", String(100), nullable=False),
    Column("user_id", String(255), index=True),
    Column("bookmarked", Boolean, nullable=False, default=False),
    Column("archived", Boolean, nullable=False, default=False),
    Column("token_usage", JSONType, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False, index=True),
)


class InsecureTLSError(ConfigError):
    """Raised when a non-verifying TLS mode is configured without opting in."""


def tls_connect_args(tls: TLSConfig) -> dict[str, Any]:
    """Build libpq connection arguments for a TLS configuration.

    Args:
        tls: Scoped TLS settings

    Returns:
        Keyword arguments for the PostgreSQL driver

    Raises:
        InsecureTLSError: If the mode skips certificate verification and
            ``allow_insecure`` is not set
    """
    if tls.mode in INSECURE_TLS_MODES and not tls.allow_insecure:
        raise InsecureTLSError(
            f"TLS mode '{tls.mode}' does not verify the server certificate; "
            "set database.tls.allow_insecure to use it"
        )
    if tls.mode in INSECURE_TLS_MODES:
        logger.warning("Database TLS certificate verification disabled (mode=%s)", tls.mode)

    args: dict[str, Any] = {"sslmode": tls.mode}
    if tls.root_cert:
        args["sslrootcert"] = tls.root_cert
    return args


def create_db_engine(config: DatabaseConfig) -> Engine:
    """Create the shared SQLAlchemy engine.

    One engine (and its pool) serves every thread and tool invocation in
    the process.

    Args:
        config: Database configuration

    Returns:
        Configured engine
    """
    url = make_url(config.url)
    backend = url.get_backend_name()

    if backend == "sqlite":
        if url.database and url.database != ":memory:":
            Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        return create_engine(
            url,
            echo=config.echo,
            connect_args={"check_same_thread": False},
        )

    if backend == "postgresql":
        return create_engine(
            url,
            echo=config.echo,
            pool_size=config.pool_size,
            pool_pre_ping=True,
            connect_args=tls_connect_args(config.tls),
        )

    raise ConfigError(f"Unsupported database backend: {backend}")


def init_db(engine: Engine) -> None:
    """Create tables if they don't exist."""
    metadata.create_all(engine)


def upsert(engine: Engine, table: Table) -> Any:
    """Return a dialect-specific INSERT supporting ``on_conflict_do_update``."""
    backend = engine.dialect.name
    if backend == "postgresql":
        return postgresql.insert(table)
    if backend == "sqlite":
        return sqlite.insert(table)
    raise ConfigError(f"Upsert not supported for backend: {backend}")
