"""Thread records: titles, flags and cumulative token usage."""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from storechat.llm.client import Usage
from storechat.memory.database import threads
from storechat.memory.schema import ThreadRecord, TokenUsage

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100


def make_title(seed: str | None) -> str:
    return ((seed or "").strip() or "New thread")[:MAX_TITLE_LENGTH]


def _record(row: Any) -> ThreadRecord:
    return ThreadRecord(
        id=row.id,
        title=row.title,
        user_id=row.user_id,
        bookmarked=row.bookmarked,
        archived=row.archived,
        token_usage=TokenUsage(**(row.token_usage or {})),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class ThreadStore:
    """SQLAlchemy-backed thread table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def ensure_thread(
        self, thread_id: str, seed: str | None = None, user_id: str | None = None
    ) -> ThreadRecord:
        """Return the thread, creating it on first use.

        An existing thread has its ``updated_at`` bumped, so every new user
        message moves the thread to the top of :meth:`list_threads`.

        Args:
            thread_id: Caller-generated id
            seed: Text the title is derived from (usually the first message)
            user_id: Owner of the thread

        Returns:
            The existing or newly created thread

        Raises:
            KeyError: If the thread cannot be read back after creation
        """
        now = datetime.now(UTC)
        with self.engine.begin() as conn:
            touched = conn.execute(
                update(threads).where(threads.c.id == thread_id).values(updated_at=now)
            ).rowcount

        if not touched:
            try:
                with self.engine.begin() as conn:
                    conn.execute(
                        insert(threads).values(
                            id=thread_id,
                            title=make_title(seed),
                            user_id=user_id,
                            bookmarked=False,
                            archived=False,
                            token_usage=TokenUsage().model_dump(),
                            created_at=now,
                            updated_at=now,
                        )
                    )
                logger.info("Created thread %s", thread_id)
            except IntegrityError:
                logger.debug("Thread %s created concurrently", thread_id)

        record = self.get_thread(thread_id)
        if record is None:
            raise KeyError(thread_id)
        return record

    def get_thread(self, thread_id: str) -> ThreadRecord | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(threads).where(threads.c.id == thread_id)).first()
        return _record(row) if row else None

    def list_threads(
        self,
        user_id: str | None = None,
        include_archived: bool = False,
        limit: int = 100,
    ) -> list[ThreadRecord]:
        """List threads, most recently updated first."""
        query = select(threads).order_by(threads.c.updated_at.desc()).limit(limit)
        if user_id is not None:
            query = query.where(threads.c.user_id == user_id)
        if not include_archived:
            query = query.where(threads.c.archived.is_(False))

        with self.engine.connect() as conn:
            return [_record(row) for row in conn.execute(query)]

    def update_thread(
        self,
        thread_id: str,
        title: str | None = None,
        bookmarked: bool | None = None,
        archived: bool | None = None,
    ) -> ThreadRecord | None:
        """Update title and flags. Returns None if the thread doesn't exist."""
        values: dict[str, Any] = {"updated_at": datetime.now(UTC)}
        if title is not None:
            values["title"] = make_title(title)
        if bookmarked is not None:
            values["bookmarked"] = bookmarked
        if archived is not None:
            values["archived"] = archived

        with self.engine.begin() as conn:
            result = conn.execute(update(threads).where(threads.c.id == thread_id).values(**values))
        if result.rowcount == 0:
            return None
        return self.get_thread(thread_id)

    def record_token_usage(
        self, thread_id: str, model: str, usage: Usage, cost: float
    ) -> TokenUsage:
        """Add one turn's usage to the thread totals.

        Args:
            thread_id: Conversation id
            model: Model the tokens were spent on
            usage: Token counts
            cost: Cost in USD

        Returns:
            Updated cumulative usage
        """
        now = datetime.now(UTC)
        with self.engine.begin() as conn:
            row = conn.execute(
                select(threads.c.token_usage).where(threads.c.id == thread_id).with_for_update()
            ).first()
            if row is None:
                raise KeyError(thread_id)

            totals = TokenUsage(**(row.token_usage or {}))
            totals.prompt_tokens += usage.prompt_tokens
            totals.completion_tokens += usage.completion_tokens
            totals.cached_tokens += usage.cached_tokens
            totals.total_tokens += usage.total_tokens
            totals.total_cost = round(totals.total_cost + cost, 8)
            totals.model_costs[model] = round(totals.model_costs.get(model, 0.0) + cost, 8)
            totals.last_updated = now.isoformat()

            conn.execute(
                update(threads)
                .where(threads.c.id == thread_id)
                .values(token_usage=totals.model_dump(), updated_at=now)
            )

        return totals
