"""Durable conversation state with a per-message annotation overlay.

Two persistence ports sit behind one interface:

- :class:`ConversationStateStore` saves and loads one snapshot per thread,
  guarded by an optimistic version counter.
- :class:`MessageAnnotationStore` keeps like/dislike/favorite/bookmark/flag/
  archive flags keyed by ``(thread_id, message_index)``.

:class:`AnnotatedConversationStore` composes them and merges the overlay
positionally when history is read.

Usage::

    from storechat.memory import AnnotatedConversationStore, create_db_engine, init_db

    engine = create_db_engine(config.database)
    init_db(engine)
    store = AnnotatedConversationStore.from_engine(engine)
    history = store.get_with_metadata({"configurable": {"thread_id": "t-1"}})
"""

from storechat.memory.annotations import (
    MESSAGE_ACTIONS,
    MessageAnnotationStore,
    SQLMessageAnnotationStore,
)
from storechat.memory.checkpointer import (
    AnnotatedConversationStore,
    MissingThreadIdError,
    build_checkpoint,
)
from storechat.memory.database import InsecureTLSError, create_db_engine, init_db
from storechat.memory.state import (
    CheckpointConflictError,
    ConversationStateStore,
    MessageHistoryRewriteError,
    SQLConversationStateStore,
    StaleCheckpointError,
)
from storechat.memory.threads import ThreadStore

__all__ = [
    "MESSAGE_ACTIONS",
    "AnnotatedConversationStore",
    "CheckpointConflictError",
    "ConversationStateStore",
    "InsecureTLSError",
    "MessageAnnotationStore",
    "MessageHistoryRewriteError",
    "MissingThreadIdError",
    "SQLConversationStateStore",
    "SQLMessageAnnotationStore",
    "StaleCheckpointError",
    "ThreadStore",
    "build_checkpoint",
    "create_db_engine",
    "init_db",
]
