"""Pydantic models for persisted records."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

FLAG_FIELDS = (
    "is_liked",
    "is_disliked",
    "is_favorited",
    "is_bookmarked",
    "is_flagged",
    "is_archived",
)


class MessageMetadata(BaseModel):
    """Social/annotation overlay for one message, keyed by position."""

    thread_id: str
    message_index: int
    message_id: str | None = None
    user_id: str | None = None
    is_liked: bool = False
    is_disliked: bool = False
    is_favorited: bool = False
    is_bookmarked: bool = False
    is_flagged: bool = False
    is_archived: bool = False

    def flags(self) -> dict[str, bool]:
        return {name: getattr(self, name) for name in FLAG_FIELDS}

    def overlay(self) -> dict[str, Any]:
        """Fields merged on top of a message when history is read."""
        return {"message_id": self.message_id, "user_id": self.user_id, **self.flags()}


class TokenUsage(BaseModel):
    """Cumulative token usage and cost for a thread."""

    total_tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cached_tokens: int = 0
    total_cost: float = 0.0
    model_costs: dict[str, float] = Field(default_factory=dict)
    last_updated: str | None = None


class ThreadRecord(BaseModel):
    """A persistent conversation."""

    id: str
    title: str
    user_id: str | None = None
    bookmarked: bool = False
    archived: bool = False
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    created_at: datetime
    updated_at: datetime

    def summary(self) -> dict[str, Any]:
        """Wire shape consumed by the thread list UI."""
        return {
            "id": self.id,
            "title": self.title,
            "bookmarked": self.bookmarked,
            "archived": self.archived,
            "tokenUsage": self.token_usage.model_dump(),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class CheckpointRecord(BaseModel):
    """A stored conversation snapshot with its optimistic version."""

    thread_id: str
    version: int
    checkpoint: dict[str, Any]
    metadata: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime
