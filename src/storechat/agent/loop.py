"""Turn orchestration: model calls, tool execution, approvals, persistence.

One turn runs ``ModelCall -> (ToolCall -> ToolResult -> ModelCall)* ->
FinalResponse``. Every appended message is persisted before the next step,
so history always reflects what actually happened. Tool rounds are
bounded by ``agent.max_tool_rounds``; past the bound the model is called
once more without tools and the turn ends as ``tool_loop_limit_reached``.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.engine import Engine

from storechat.agent.labels import format_tool_name
from storechat.agent.prompt import SYSTEM_PROMPT
from storechat.agent.usage import calculate_model_cost
from storechat.config.loader import ConfigError
from storechat.config.schema import StoreChatConfig
from storechat.llm.client import LLMClient, Message, ToolCall, Usage
from storechat.llm.factory import create_chat_model
from storechat.memory.checkpointer import (
    AnnotatedConversationStore,
    MissingThreadIdError,
    build_checkpoint,
)
from storechat.memory.messages import extract_messages, normalize_message
from storechat.memory.threads import ThreadStore
from storechat.tools.assembly import ToolSet, assemble_tools
from storechat.tools.base import Tool
from storechat.tools.plugins import discover_plugin_tools
from storechat.tools.presentation import presentation_fingerprint
from storechat.tools.registry import get_all_tools

logger = logging.getLogger(__name__)

COMPLETED = "completed"
AWAITING_APPROVAL = "awaiting_approval"
TOOL_LOOP_LIMIT_REACHED = "tool_loop_limit_reached"
ERROR = "error"

APPROVAL_ACTIONS = ("allow", "deny")

DENIED_RESULT = json.dumps({"success": False, "error": "The user denied this tool call."})
ABANDONED_RESULT = json.dumps(
    {"success": False, "error": "The tool call was not approved before the next message."}
)


def _duplicate_render_result(name: str) -> str:
    return json.dumps(
        {
            "success": False,
            "error": (
                f"This data has already been displayed in this turn. Do not call {name} "
                "again with the same data; provide your analysis in text."
            ),
        }
    )


def _succeeded(result: str) -> bool:
    try:
        payload = json.loads(result)
    except (TypeError, ValueError):
        return False
    return isinstance(payload, dict) and payload.get("success") is True


@dataclass
class TurnOptions:
    """Per-invocation settings. Keys and credentials are never cached."""

    provider: str | None = None
    model: str | None = None
    api_key: str | None = None
    temperature: float | None = None
    system_prompt: str | None = None
    tools: list[Tool] = field(default_factory=list)
    approve_all_tools: bool | None = None
    woocommerce_credentials: Any = None
    user_id: str | None = None


@dataclass
class TurnEvent:
    """One streamed step of a turn."""

    event: str  # "message", "approval_required", "tokenUsage", "error", "done"
    data: dict[str, Any]


@dataclass
class TurnResult:
    """Collected outcome of a turn."""

    thread_id: str
    status: str
    content: str = ""
    messages: list[dict[str, Any]] = field(default_factory=list)
    pending_tool_calls: list[dict[str, Any]] = field(default_factory=list)
    usage: dict[str, Any] | None = None
    error: str | None = None


@dataclass
class _Turn:
    thread_id: str
    user_id: str | None
    history: list[Any]
    version: int
    pending: list[dict[str, Any]] = field(default_factory=list)
    rendered: set[str] = field(default_factory=set)
    tool_rounds: int = 0
    usage: Usage = field(default_factory=Usage)
    llm: LLMClient | None = None
    toolset: ToolSet | None = None
    approve_all: bool = False
    system_prompt: str = SYSTEM_PROMPT


class Orchestrator:
    """Drives conversational turns against the configured stores."""

    def __init__(
        self,
        store: AnnotatedConversationStore,
        threads: ThreadStore,
        config: StoreChatConfig | None = None,
        llm_factory: Callable[..., LLMClient] = create_chat_model,
        registry_tools: list[Tool] | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            store: Checkpoint store with the annotation overlay
            threads: Thread and token usage store
            config: Application configuration
            llm_factory: Builds a chat model from provider, model, api_key,
                temperature and timeout
            registry_tools: Globally registered tools offered on every turn;
                defaults to the current registry contents
        """
        self.store = store
        self.threads = threads
        self.config = config or StoreChatConfig()
        self.llm_factory = llm_factory
        self.registry_tools = (
            registry_tools if registry_tools is not None else list(get_all_tools().values())
        )

    @classmethod
    def from_engine(cls, engine: Engine, config: StoreChatConfig) -> "Orchestrator":
        """Build stores on ``engine`` and load plugin tools if enabled."""
        registry_tools = list(get_all_tools().values())
        if config.plugins.enabled:
            registry_tools.extend(
                discover_plugin_tools(config.plugins.group, blocked=config.plugins.blocked)
            )
        return cls(
            AnnotatedConversationStore.from_engine(engine),
            ThreadStore(engine),
            config,
            registry_tools=registry_tools,
        )

    async def run_turn(
        self, thread_id: str, message: str, options: TurnOptions | None = None
    ) -> AsyncIterator[TurnEvent]:
        """Process one user message, yielding events as the turn progresses.

        Configuration problems (missing API key, incomplete store
        credentials) and model failures end the turn with a persisted
        error message. Tool failures are fed back to the model.

        Raises:
            MissingThreadIdError: If ``thread_id`` is empty
            CheckpointConflictError: If another writer updated the thread
        """
        options = options or TurnOptions()
        if not thread_id:
            raise MissingThreadIdError()

        turn = await self._load(thread_id, options.user_id)
        await asyncio.to_thread(self.threads.ensure_thread, thread_id, message, options.user_id)

        # calls still waiting for approval are abandoned by a new message
        for call in turn.pending:
            abandoned = self._tool_message(call["id"], call["name"], ABANDONED_RESULT)
            turn.history.append(abandoned.to_dict())
        turn.pending = []
        turn.rendered = set()
        turn.tool_rounds = 0
        turn.history.append(Message(role="user", content=message).to_dict())

        try:
            try:
                self._prepare(turn, options)
            except ConfigError as e:
                async for event in self._fail(turn, e):
                    yield event
                return

            await self._persist(turn)
            async for event in self._drive(turn):
                yield event
        finally:
            if turn.toolset is not None:
                await turn.toolset.aclose()

    async def run(
        self, thread_id: str, message: str, options: TurnOptions | None = None
    ) -> TurnResult:
        """Process one user message and return the collected result."""
        return await self._collect(thread_id, self.run_turn(thread_id, message, options))

    async def resolve_tool_call(
        self,
        thread_id: str,
        tool_call_id: str,
        action: str,
        options: TurnOptions | None = None,
    ) -> AsyncIterator[TurnEvent]:
        """Allow or deny one pending tool call and continue the turn.

        The turn resumes with the next model call once no calls remain
        pending; otherwise it stays ``awaiting_approval``.

        Raises:
            ValueError: If ``action`` is not allow or deny
            KeyError: If no such call is pending on the thread
        """
        options = options or TurnOptions()
        if action not in APPROVAL_ACTIONS:
            raise ValueError(f"Invalid action: {action}. Use allow or deny.")
        if not thread_id:
            raise MissingThreadIdError()

        turn = await self._load(thread_id, options.user_id)
        call_data = next((c for c in turn.pending if c.get("id") == tool_call_id), None)
        if call_data is None:
            raise KeyError(tool_call_id)

        try:
            try:
                self._prepare(turn, options)
            except ConfigError as e:
                async for event in self._fail(turn, e):
                    yield event
                return

            turn.pending = [c for c in turn.pending if c.get("id") != tool_call_id]
            call = ToolCall.from_dict(call_data)
            if action == "allow":
                result = await self._execute_tool_call(turn, turn.toolset.by_name(), call)
            else:
                logger.info("Tool call %s (%s) denied", call.id, call.name)
                result = DENIED_RESULT
            yield await self._append(turn, self._tool_message(call.id, call.name, result))

            async for event in self._drive(turn):
                yield event
        finally:
            if turn.toolset is not None:
                await turn.toolset.aclose()

    async def pending_tool_calls(self, thread_id: str) -> list[dict[str, Any]]:
        """Tool calls on ``thread_id`` waiting for approval."""
        turn = await self._load(thread_id, None)
        return turn.pending

    async def _drive(self, turn: _Turn) -> AsyncIterator[TurnEvent]:
        assert turn.llm is not None and turn.toolset is not None
        tools = turn.toolset.by_name()
        schemas = [t.schema.to_openai_format() for t in turn.toolset.tools] or None
        max_rounds = self.config.agent.max_tool_rounds

        while True:
            if turn.pending:
                async for event in self._finish(turn, AWAITING_APPROVAL):
                    yield event
                return

            limit_reached = turn.tool_rounds >= max_rounds
            try:
                response = await turn.llm.complete(
                    messages=self._conversation(turn),
                    tools=None if limit_reached else schemas,
                )
            except Exception as e:
                async for event in self._fail(turn, e):
                    yield event
                return

            if response.usage:
                turn.usage = turn.usage + response.usage

            tool_calls = None if limit_reached else response.tool_calls
            reply = Message(
                role="assistant", content=response.content or "", tool_calls=tool_calls
            )
            yield await self._append(turn, reply)

            if limit_reached:
                logger.warning(
                    "Thread %s hit the tool loop limit of %d rounds", turn.thread_id, max_rounds
                )
                async for event in self._finish(turn, TOOL_LOOP_LIMIT_REACHED):
                    yield event
                return

            if not tool_calls:
                async for event in self._finish(turn, COMPLETED):
                    yield event
                return

            turn.tool_rounds += 1
            for call in tool_calls:
                tool = tools.get(call.name)
                if tool is not None and tool.schema.requires_approval and not turn.approve_all:
                    turn.pending.append(call.to_dict())
                    continue
                result = await self._execute_tool_call(turn, tools, call)
                yield await self._append(turn, self._tool_message(call.id, call.name, result))

            if turn.pending:
                await self._persist(turn)

    async def _execute_tool_call(
        self, turn: _Turn, tools: dict[str, Tool], call: ToolCall
    ) -> str:
        """Run one tool call; every failure becomes the tool's result."""
        tool = tools.get(call.name)
        if tool is None:
            return f"Error: Unknown tool '{call.name}'"

        if "__raw_arguments__" in call.arguments:
            return f"Error: Invalid JSON arguments for tool '{call.name}'"

        fingerprint = None
        if self.config.agent.reject_duplicate_renders:
            fingerprint = presentation_fingerprint(call.name, call.arguments)
            if fingerprint is not None and fingerprint in turn.rendered:
                logger.info("Rejected duplicate %s render in thread %s", call.name, turn.thread_id)
                return _duplicate_render_result(call.name)

        try:
            result = await tool.execute(**call.arguments)
        except TypeError as e:
            return f"Error: Invalid arguments for tool '{call.name}': {e}"
        except Exception as e:
            logger.warning("Tool %s failed: %s", call.name, e)
            return f"Error executing tool '{call.name}': {e}"

        if fingerprint is not None and _succeeded(result):
            turn.rendered.add(fingerprint)
        return result

    def _prepare(self, turn: _Turn, options: TurnOptions) -> None:
        """Build the model and tools for this invocation.

        Raises:
            ConfigError: Missing API key or incomplete store credentials
        """
        turn.llm = self.llm_factory(
            provider=options.provider or self.config.model.provider,
            model=options.model or self.config.model.name,
            api_key=options.api_key,
            temperature=(
                options.temperature
                if options.temperature is not None
                else self.config.model.temperature
            ),
            timeout=self.config.model.timeout,
        )
        turn.toolset = assemble_tools(
            self.config,
            credentials=options.woocommerce_credentials,
            extra_tools=options.tools,
            registry_tools=self.registry_tools,
        )
        turn.approve_all = (
            options.approve_all_tools
            if options.approve_all_tools is not None
            else self.config.agent.approve_all_tools
        )
        turn.system_prompt = (
            options.system_prompt or self.config.agent.system_prompt or SYSTEM_PROMPT
        )

    async def _fail(self, turn: _Turn, error: Exception) -> AsyncIterator[TurnEvent]:
        logger.error("Turn failed on thread %s: %s", turn.thread_id, error)
        yield await self._append(turn, Message(role="error", content=str(error)))
        yield TurnEvent("error", {"message": str(error), "threadId": turn.thread_id})
        async for event in self._finish(turn, ERROR):
            yield event

    async def _finish(self, turn: _Turn, status: str) -> AsyncIterator[TurnEvent]:
        if turn.usage.total_tokens and turn.llm is not None:
            model = turn.llm.model
            usage = turn.usage
            cost = calculate_model_cost(
                model, usage.prompt_tokens, usage.completion_tokens, self.config.pricing
            )
            totals = await asyncio.to_thread(
                self.threads.record_token_usage, turn.thread_id, model, usage, cost
            )
            turn.usage = Usage()
            yield TurnEvent(
                "tokenUsage",
                {
                    "threadId": turn.thread_id,
                    "model": model,
                    "promptTokens": usage.prompt_tokens,
                    "completionTokens": usage.completion_tokens,
                    "cachedTokens": usage.cached_tokens,
                    "totalTokens": usage.total_tokens,
                    "cost": cost,
                    "threadTotals": totals.model_dump(),
                },
            )

        if status == AWAITING_APPROVAL:
            yield TurnEvent(
                "approval_required",
                {
                    "threadId": turn.thread_id,
                    "toolCalls": [
                        {**call, "label": format_tool_name(call.get("name", ""))}
                        for call in turn.pending
                    ],
                },
            )

        yield TurnEvent("done", {"threadId": turn.thread_id, "status": status})

    async def _append(self, turn: _Turn, message: Message) -> TurnEvent:
        """Append and persist ``message``, returning its stream event."""
        stored = message.to_dict()
        turn.history.append(stored)
        await self._persist(turn)

        data: dict[str, Any] = {"index": len(turn.history) - 1, "message": stored}
        if message.role == "tool" and message.name:
            data["label"] = format_tool_name(message.name)
        if message.tool_calls:
            data["toolCalls"] = [
                {**tc.to_dict(), "label": format_tool_name(tc.name)} for tc in message.tool_calls
            ]
        return TurnEvent("message", data)

    async def _persist(self, turn: _Turn) -> None:
        checkpoint = build_checkpoint(
            turn.history,
            turn.pending,
            tool_rounds=turn.tool_rounds,
            rendered_fingerprints=sorted(turn.rendered),
        )
        config = {
            "configurable": {
                "thread_id": turn.thread_id,
                "checkpoint_version": turn.version,
                "user_id": turn.user_id,
            }
        }
        updated = await asyncio.to_thread(
            self.store.put, config, checkpoint, {"source": "loop", "step": len(turn.history)}
        )
        turn.version = updated["configurable"]["checkpoint_version"]

    async def _load(self, thread_id: str, user_id: str | None) -> _Turn:
        record = await asyncio.to_thread(
            self.store.get_record, {"configurable": {"thread_id": thread_id}}
        )
        if record is None:
            return _Turn(thread_id=thread_id, user_id=user_id, history=[], version=0)

        values = record.checkpoint.get("channel_values") or {}
        return _Turn(
            thread_id=thread_id,
            user_id=user_id,
            history=list(extract_messages(record.checkpoint) or []),
            version=record.version,
            pending=list(values.get("pending_tool_calls") or []),
            rendered=set(values.get("rendered_fingerprints") or []),
            tool_rounds=int(values.get("tool_rounds") or 0),
        )

    def _conversation(self, turn: _Turn) -> list[Message]:
        messages = [Message(role="system", content=turn.system_prompt)]
        messages.extend(Message.from_dict(normalize_message(raw)) for raw in turn.history)
        return messages

    @staticmethod
    def _tool_message(call_id: str, name: str, result: str) -> Message:
        return Message(role="tool", content=result, tool_call_id=call_id, name=name)

    @staticmethod
    async def _collect(thread_id: str, events: AsyncIterator[TurnEvent]) -> TurnResult:
        result = TurnResult(thread_id=thread_id, status=COMPLETED)
        async for event in events:
            if event.event == "message":
                stored = event.data["message"]
                result.messages.append(stored)
                if stored.get("type") == "ai":
                    result.content = stored["data"].get("content") or ""
            elif event.event == "approval_required":
                result.pending_tool_calls = event.data["toolCalls"]
            elif event.event == "tokenUsage":
                result.usage = event.data
            elif event.event == "error":
                result.error = event.data["message"]
            elif event.event == "done":
                result.status = event.data["status"]
        return result
