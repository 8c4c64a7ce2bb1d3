"""Conversation state port and its SQL implementation."""

import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from storechat.memory.database import checkpoints
from storechat.memory.schema import CheckpointRecord

logger = logging.getLogger(__name__)


class CheckpointConflictError(Exception):
    """A checkpoint write was rejected to protect stored history."""


class StaleCheckpointError(CheckpointConflictError):
    """The writer's version does not match the stored version."""

    def __init__(self, thread_id: str, expected: int, actual: int):
        super().__init__(
            f"Stale checkpoint for thread {thread_id}: "
            f"expected version {expected}, stored version is {actual}"
        )
        self.thread_id = thread_id
        self.expected = expected
        self.actual = actual


class MessageHistoryRewriteError(CheckpointConflictError):
    """The new message list does not extend the stored one."""


class ConversationStateStore(Protocol):
    """Save/load an opaque conversation snapshot by thread id."""

    def get(self, thread_id: str) -> CheckpointRecord | None: ...

    def put(
        self,
        thread_id: str,
        checkpoint: dict[str, Any],
        metadata: dict[str, Any],
        expected_version: int,
    ) -> int: ...


class SQLConversationStateStore:
    """Single latest snapshot per thread, guarded by a version counter."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @staticmethod
    def _current_version(conn: Any, thread_id: str) -> int:
        version = conn.execute(
            select(checkpoints.c.version).where(checkpoints.c.thread_id == thread_id)
        ).scalar_one_or_none()
        return version or 0

    def get(self, thread_id: str) -> CheckpointRecord | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(checkpoints).where(checkpoints.c.thread_id == thread_id)
            ).first()

        if row is None:
            return None

        return CheckpointRecord(
            thread_id=row.thread_id,
            version=row.version,
            checkpoint=row.checkpoint,
            metadata=row.channel_metadata or {},
            updated_at=row.updated_at,
        )

    def put(
        self,
        thread_id: str,
        checkpoint: dict[str, Any],
        metadata: dict[str, Any],
        expected_version: int,
    ) -> int:
        """Compare-and-set write of a snapshot.

        Args:
            thread_id: Conversation id
            checkpoint: Snapshot to store
            metadata: Channel metadata stored alongside
            expected_version: Version the writer last read (0 for a new thread)

        Returns:
            The new version

        Raises:
            StaleCheckpointError: If another writer got there first
        """
        new_version = expected_version + 1
        values = {
            "version": new_version,
            "checkpoint_id": checkpoint.get("id"),
            "checkpoint": checkpoint,
            "channel_metadata": metadata,
            "updated_at": datetime.now(UTC),
        }

        try:
            with self.engine.begin() as conn:
                if expected_version == 0:
                    conn.execute(insert(checkpoints).values(thread_id=thread_id, **values))
                else:
                    result = conn.execute(
                        update(checkpoints)
                        .where(checkpoints.c.thread_id == thread_id)
                        .where(checkpoints.c.version == expected_version)
                        .values(**values)
                    )
                    if result.rowcount != 1:
                        raise StaleCheckpointError(
                            thread_id, expected_version, self._current_version(conn, thread_id)
                        )
        except IntegrityError as e:
            # Another writer created the thread's first checkpoint concurrently
            with self.engine.connect() as conn:
                actual = self._current_version(conn, thread_id)
            raise StaleCheckpointError(thread_id, expected_version, actual) from e

        logger.debug("Stored checkpoint for thread %s at version %d", thread_id, new_version)
        return new_version
