"""Per-message annotation port and its SQL implementation.

Rows are keyed by ``(thread_id, message_index)``. Checkpoint writes upsert
one row per message but only ever overwrite ``user_id`` (and ``is_liked``
when the message carries it); every other flag belongs to the explicit
action path in :meth:`SQLMessageAnnotationStore.apply_action`.
"""

import logging
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.engine import Engine

from storechat.memory.database import message_metadata, upsert
from storechat.memory.messages import message_id_of, normalize_message
from storechat.memory.schema import FLAG_FIELDS, MessageMetadata

logger = logging.getLogger(__name__)

MESSAGE_ACTIONS: dict[str, str] = {
    "like": "is_liked",
    "dislike": "is_disliked",
    "favorite": "is_favorited",
    "bookmark": "is_bookmarked",
    "flag": "is_flagged",
    "archive": "is_archived",
}

# Setting one of these clears the other
EXCLUSIVE_FLAGS = {"is_liked": "is_disliked", "is_disliked": "is_liked"}


class MessageAnnotationStore(Protocol):
    """Upsert/query annotation rows by ``(thread_id, message_index)``."""

    def upsert_messages(
        self, thread_id: str, messages: list[Any], user_id: str | None = None
    ) -> None: ...

    def load(self, thread_id: str) -> dict[int, MessageMetadata]: ...

    def apply_action(
        self,
        thread_id: str,
        message_index: int,
        action: str,
        message_id: str | None = None,
        user_id: str | None = None,
    ) -> MessageMetadata: ...


def _carried_like(raw: Any) -> bool | None:
    msg = normalize_message(raw)
    for source in (msg, msg.get("data")):
        if isinstance(source, dict) and isinstance(source.get("is_liked"), bool):
            return source["is_liked"]
    return None


class SQLMessageAnnotationStore:
    """SQLAlchemy-backed annotation rows."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def upsert_messages(
        self, thread_id: str, messages: list[Any], user_id: str | None = None
    ) -> None:
        """Upsert one row per message index with the narrow conflict rule.

        On conflict ``user_id`` is always overwritten. ``is_liked`` is
        overwritten only when the message itself carries a boolean
        ``is_liked``; a message without one leaves the stored like alone
        rather than resetting it to false, so a like set through
        :meth:`apply_action` survives later checkpoint writes. The other
        flags are never touched here.

        Args:
            thread_id: Conversation id
            messages: Ordered message list from the checkpoint
            user_id: Fallback user id for messages that do not carry one
        """
        table = message_metadata
        with self.engine.begin() as conn:
            for index, raw in enumerate(messages):
                msg = normalize_message(raw)
                values: dict[str, Any] = {
                    "thread_id": thread_id,
                    "message_index": index,
                    "message_id": message_id_of(msg),
                    "user_id": msg.get("user_id") or user_id,
                }
                update_cols = ["user_id"]

                liked = _carried_like(msg)
                if liked is not None:
                    values["is_liked"] = liked
                    update_cols.append("is_liked")

                stmt = upsert(self.engine, table).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[table.c.thread_id, table.c.message_index],
                    set_={col: stmt.excluded[col] for col in update_cols},
                )
                conn.execute(stmt)

        logger.debug("Upserted metadata for %d messages in thread %s", len(messages), thread_id)

    def load(self, thread_id: str) -> dict[int, MessageMetadata]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(message_metadata).where(message_metadata.c.thread_id == thread_id)
            ).mappings()
            return {
                row["message_index"]: MessageMetadata(
                    **{key: row[key] for key in MessageMetadata.model_fields}
                )
                for row in rows
            }

    def apply_action(
        self,
        thread_id: str,
        message_index: int,
        action: str,
        message_id: str | None = None,
        user_id: str | None = None,
    ) -> MessageMetadata:
        """Toggle one social flag on a message.

        Args:
            thread_id: Conversation id
            message_index: Position of the message in the thread
            action: like, dislike, favorite, bookmark, flag or archive
            message_id: Identifier of the message, recorded if known
            user_id: User applying the action

        Returns:
            The row after the update

        Raises:
            ValueError: If the action is unknown
        """
        field = MESSAGE_ACTIONS.get(action)
        if field is None:
            raise ValueError(
                f"Invalid action '{action}'. Must be one of: {', '.join(MESSAGE_ACTIONS)}"
            )

        table = message_metadata
        with self.engine.begin() as conn:
            current = (
                conn.execute(
                    select(table)
                    .where(table.c.thread_id == thread_id)
                    .where(table.c.message_index == message_index)
                    .with_for_update()
                )
                .mappings()
                .first()
            )

            flags = {name: bool(current[name]) if current else False for name in FLAG_FIELDS}
            flags[field] = not flags[field]
            if flags[field] and field in EXCLUSIVE_FLAGS:
                flags[EXCLUSIVE_FLAGS[field]] = False

            values: dict[str, Any] = {
                "thread_id": thread_id,
                "message_index": message_index,
                "message_id": message_id or (current["message_id"] if current else None),
                "user_id": user_id or (current["user_id"] if current else None),
                **flags,
            }
            stmt = upsert(self.engine, table).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.thread_id, table.c.message_index],
                set_={
                    col: stmt.excluded[col]
                    for col in ("message_id", "user_id", *FLAG_FIELDS)
                },
            )
            conn.execute(stmt)

        logger.info("Applied '%s' to message %d in thread %s", action, message_index, thread_id)
        return MessageMetadata(**values)
