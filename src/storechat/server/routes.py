"""API routes for the storechat server."""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any, Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from storechat import __version__
from storechat.agent.loop import ERROR, Orchestrator, TurnEvent, TurnOptions
from storechat.config.schema import StoreChatConfig
from storechat.memory.state import CheckpointConflictError

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    model: str
    version: str


class StreamOptions(BaseModel):
    """Per-request agent options."""

    model: str | None = None
    provider: str | None = None
    apiKey: str | None = None
    temperature: float | None = None
    systemPrompt: str | None = None
    approveAllTools: bool | None = None
    wooCommerceCredentials: dict[str, Any] | None = None
    userId: str | None = None

    def to_turn_options(self) -> TurnOptions:
        return TurnOptions(
            provider=self.provider,
            model=self.model,
            api_key=self.apiKey,
            temperature=self.temperature,
            system_prompt=self.systemPrompt,
            approve_all_tools=self.approveAllTools,
            woocommerce_credentials=self.wooCommerceCredentials,
            user_id=self.userId,
        )


class StreamRequest(BaseModel):
    """Start or continue a turn."""

    threadId: str = Field(min_length=1)
    message: str
    opts: StreamOptions = Field(default_factory=StreamOptions)


class ApproveRequest(BaseModel):
    """Resolve one pending tool call."""

    threadId: str = Field(min_length=1)
    toolCallId: str = Field(min_length=1)
    action: Literal["allow", "deny"]
    opts: StreamOptions = Field(default_factory=StreamOptions)


class ThreadUpdate(BaseModel):
    """Editable thread fields."""

    title: str | None = None
    bookmarked: bool | None = None
    archived: bool | None = None


class MessageActionRequest(BaseModel):
    """Toggle a social flag on one message."""

    threadId: str = Field(min_length=1)
    messageIndex: int = Field(ge=0)
    action: str
    messageId: str | None = None
    userId: str | None = None


async def _sse(events: AsyncIterator[TurnEvent], thread_id: str) -> AsyncIterator[dict[str, str]]:
    """Serialize turn events, turning a failure into error and done events."""
    try:
        async for event in events:
            yield {"event": event.event, "data": json.dumps(event.data, default=str)}
    except CheckpointConflictError as e:
        logger.warning("Conflicting write on thread %s: %s", thread_id, e)
        yield {"event": "error", "data": json.dumps({"message": str(e), "threadId": thread_id})}
        yield {"event": "done", "data": json.dumps({"threadId": thread_id, "status": ERROR})}
    except Exception as e:
        logger.exception("Stream failed for thread %s", thread_id)
        yield {"event": "error", "data": json.dumps({"message": str(e), "threadId": thread_id})}
        yield {"event": "done", "data": json.dumps({"threadId": thread_id, "status": ERROR})}


def create_router(orchestrator: Orchestrator, config: StoreChatConfig) -> APIRouter:
    """Create the API router.

    Args:
        orchestrator: Turn orchestrator bound to the stores
        config: storechat configuration

    Returns:
        Configured API router
    """
    router = APIRouter()
    store = orchestrator.store
    threads = orchestrator.threads

    @router.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy", model=config.model.name, version=__version__)

    @router.post("/agent/stream")
    async def agent_stream(request: StreamRequest) -> EventSourceResponse:
        """Run one turn and stream its events."""
        events = orchestrator.run_turn(
            request.threadId, request.message, request.opts.to_turn_options()
        )
        return EventSourceResponse(_sse(events, request.threadId))

    @router.post("/agent/approve")
    async def agent_approve(request: ApproveRequest) -> EventSourceResponse:
        """Allow or deny a pending tool call and stream the continuation."""
        pending = await orchestrator.pending_tool_calls(request.threadId)
        if not any(call.get("id") == request.toolCallId for call in pending):
            raise HTTPException(status_code=404, detail="No such pending tool call")

        events = orchestrator.resolve_tool_call(
            request.threadId,
            request.toolCallId,
            request.action,
            request.opts.to_turn_options(),
        )
        return EventSourceResponse(_sse(events, request.threadId))

    @router.get("/agent/threads")
    def list_threads(userId: str | None = None, includeArchived: bool = False) -> dict[str, Any]:
        records = threads.list_threads(user_id=userId, include_archived=includeArchived)
        return {"threads": [record.summary() for record in records]}

    @router.get("/agent/threads/{thread_id}")
    def get_thread(thread_id: str) -> dict[str, Any]:
        record = threads.get_thread(thread_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Thread not found")
        return record.summary()

    @router.patch("/agent/threads/{thread_id}")
    def update_thread(thread_id: str, update: ThreadUpdate) -> dict[str, Any]:
        record = threads.update_thread(
            thread_id, title=update.title, bookmarked=update.bookmarked, archived=update.archived
        )
        if record is None:
            raise HTTPException(status_code=404, detail="Thread not found")
        return record.summary()

    @router.get("/agent/threads/{thread_id}/messages")
    def thread_messages(thread_id: str) -> dict[str, Any]:
        """Full history with message flags merged in."""
        messages = store.get_with_metadata({"configurable": {"thread_id": thread_id}})
        return {"threadId": thread_id, "messages": messages}

    @router.post("/agent/messages/actions")
    def message_action(request: MessageActionRequest) -> dict[str, Any]:
        try:
            meta = store.apply_message_action(
                request.threadId,
                request.messageIndex,
                request.action,
                message_id=request.messageId,
                user_id=request.userId,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return {"success": True, "messageIndex": request.messageIndex, "flags": meta.flags()}

    return router
