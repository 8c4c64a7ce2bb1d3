"""Conversation store with a per-message annotation overlay.

Composes a :class:`ConversationStateStore` (opaque snapshot per thread)
with a :class:`MessageAnnotationStore` (flags keyed by message position).
Reads merge the two positionally, so message lists are append-only: a
write whose list is shorter than, or does not extend, the stored list is
rejected, as is a write based on a stale version.
"""

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.engine import Engine

from storechat.config.loader import ConfigError
from storechat.memory.annotations import MessageAnnotationStore, SQLMessageAnnotationStore
from storechat.memory.messages import extract_messages, message_identity, normalize_message
from storechat.memory.schema import CheckpointRecord, MessageMetadata
from storechat.memory.state import (
    ConversationStateStore,
    MessageHistoryRewriteError,
    SQLConversationStateStore,
    StaleCheckpointError,
)

logger = logging.getLogger(__name__)


class MissingThreadIdError(ConfigError):
    """Raised when a call's config does not name a thread."""

    def __init__(self) -> None:
        super().__init__("Missing required config.configurable.thread_id")


def require_thread_id(config: dict[str, Any]) -> str:
    thread_id = (config or {}).get("configurable", {}).get("thread_id")
    if not thread_id:
        raise MissingThreadIdError()
    return str(thread_id)


def build_checkpoint(
    messages: list[dict[str, Any]],
    pending_tool_calls: list[dict[str, Any]] | None = None,
    **channel_values: Any,
) -> dict[str, Any]:
    """Create a snapshot in the layout the store understands.

    Extra keyword arguments are stored as additional channel values.
    """
    return {
        "v": 1,
        "id": uuid.uuid4().hex,
        "ts": datetime.now(UTC).isoformat(),
        "channel_values": {
            **channel_values,
            "messages": messages,
            "pending_tool_calls": pending_tool_calls or [],
        },
        "channel_versions": {"messages": len(messages)},
    }


def _check_append_only(thread_id: str, stored: list[Any], incoming: list[Any] | None) -> None:
    if incoming is None:
        if stored:
            raise MessageHistoryRewriteError(
                f"Checkpoint for thread {thread_id} drops its message list"
            )
        return
    if len(incoming) < len(stored):
        raise MessageHistoryRewriteError(
            f"Checkpoint for thread {thread_id} has {len(incoming)} messages, "
            f"stored history has {len(stored)}"
        )
    for index, (old, new) in enumerate(zip(stored, incoming, strict=False)):
        if message_identity(old) != message_identity(new):
            raise MessageHistoryRewriteError(
                f"Checkpoint for thread {thread_id} rewrites message at index {index}"
            )


class AnnotatedConversationStore:
    """Checkpoint store that overlays message annotations on read."""

    def __init__(self, state: ConversationStateStore, annotations: MessageAnnotationStore):
        self.state = state
        self.annotations = annotations

    @classmethod
    def from_engine(cls, engine: Engine) -> "AnnotatedConversationStore":
        return cls(SQLConversationStateStore(engine), SQLMessageAnnotationStore(engine))

    def put(
        self,
        config: dict[str, Any],
        checkpoint: dict[str, Any],
        metadata: dict[str, Any] | None = None,
        new_versions: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Persist a snapshot, then upsert one annotation row per message.

        Args:
            config: ``{"configurable": {"thread_id", "checkpoint_version", "user_id"}}``.
                ``checkpoint_version`` is the version the caller last read;
                omitted means the caller expects a new thread.
            checkpoint: Snapshot with ``channel_values.messages``
            metadata: Channel metadata stored with the snapshot
            new_versions: Channel versions merged into the snapshot

        Returns:
            Updated config carrying the new ``checkpoint_version``

        Raises:
            MissingThreadIdError: If the config has no thread id
            StaleCheckpointError: If the stored version moved on
            MessageHistoryRewriteError: If the message list is not an extension
        """
        thread_id = require_thread_id(config)
        configurable = config.get("configurable", {})
        expected = int(configurable.get("checkpoint_version") or 0)

        if new_versions:
            checkpoint = {
                **checkpoint,
                "channel_versions": {**checkpoint.get("channel_versions", {}), **new_versions},
            }

        messages = extract_messages(checkpoint)
        current = self.state.get(thread_id)
        current_version = current.version if current else 0
        if current_version != expected:
            raise StaleCheckpointError(thread_id, expected, current_version)
        if current is not None:
            _check_append_only(thread_id, extract_messages(current.checkpoint) or [], messages)

        version = self.state.put(thread_id, checkpoint, metadata or {}, expected)

        if messages:
            self.annotations.upsert_messages(
                thread_id, messages, user_id=configurable.get("user_id")
            )

        updated = {
            "thread_id": thread_id,
            "checkpoint_id": checkpoint.get("id"),
            "checkpoint_version": version,
        }
        if configurable.get("user_id"):
            updated["user_id"] = configurable["user_id"]
        return {"configurable": updated}

    def get(self, config: dict[str, Any]) -> dict[str, Any] | None:
        """Raw snapshot passthrough, no annotation merge."""
        record = self.get_record(config)
        return record.checkpoint if record else None

    def get_record(self, config: dict[str, Any]) -> CheckpointRecord | None:
        return self.state.get(require_thread_id(config))

    def get_with_metadata(self, config: dict[str, Any]) -> list[dict[str, Any]]:
        """Load history with annotation flags merged by message position.

        Returns:
            Messages in stored order; empty if there is no snapshot
        """
        thread_id = require_thread_id(config)
        record = self.state.get(thread_id)
        if record is None:
            return []

        messages = extract_messages(record.checkpoint)
        if messages is None:
            return []

        overlay = self.annotations.load(thread_id)
        enriched = []
        for index, raw in enumerate(messages):
            msg = dict(normalize_message(raw))
            meta = overlay.get(index)
            if meta is not None:
                msg.update(meta.overlay())
            enriched.append(msg)
        return enriched

    def apply_message_action(
        self,
        thread_id: str,
        message_index: int,
        action: str,
        message_id: str | None = None,
        user_id: str | None = None,
    ) -> MessageMetadata:
        """Targeted annotation update; the snapshot is not rewritten."""
        return self.annotations.apply_action(
            thread_id, message_index, action, message_id=message_id, user_id=user_id
        )
