"""Chat model protocol and conversation data types."""

import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol

# Persisted message type for each conversation role
ROLE_TO_TYPE = {
    "user": "human",
    "assistant": "ai",
    "tool": "tool",
    "error": "error",
    "system": "system",
}
TYPE_TO_ROLE = {v: k for k, v in ROLE_TO_TYPE.items()}


def new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex}"


@dataclass
class ToolCall:
    """A tool call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "args": self.arguments}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        return cls(
            id=data["id"],
            name=data["name"],
            arguments=data.get("args", data.get("arguments")) or {},
        )


@dataclass
class Message:
    """A message in the conversation.

    ``role`` is the provider-facing role; ``error`` marks a turn failure
    that is persisted for the user but never sent back to the model.
    """

    role: str  # "system", "user", "assistant", "tool", "error"
    content: str
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None  # For tool response messages
    name: str | None = None  # Tool name for tool response messages
    id: str = field(default_factory=new_message_id)

    @property
    def type(self) -> str:
        return ROLE_TO_TYPE.get(self.role, self.role)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the ``{type, data}`` shape stored in checkpoints."""
        data: dict[str, Any] = {"id": self.id, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        if self.name:
            data["name"] = self.name
        return {"type": self.type, "data": data}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Message":
        data = payload.get("data", {})
        tool_calls = data.get("tool_calls")
        return cls(
            role=TYPE_TO_ROLE.get(payload.get("type", "ai"), "assistant"),
            content=data.get("content") or "",
            tool_calls=[ToolCall.from_dict(tc) for tc in tool_calls] if tool_calls else None,
            tool_call_id=data.get("tool_call_id"),
            name=data.get("name"),
            id=data.get("id") or new_message_id(),
        )


@dataclass
class Usage:
    """Token counts reported by the provider for one completion."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    cached_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            cached_tokens=self.cached_tokens + other.cached_tokens,
        )


@dataclass
class CompletionResponse:
    """Response from a chat completion."""

    content: str
    tool_calls: list[ToolCall] | None = None
    finish_reason: str = "stop"
    usage: Usage | None = None
    model: str | None = None


class LLMClient(Protocol):
    """Protocol for chat model implementations."""

    model: str

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResponse:
        """Generate a completion from the model.

        Args:
            messages: Conversation history
            tools: Available tools in OpenAI function format
            temperature: Sampling temperature override
            max_tokens: Maximum tokens to generate

        Returns:
            CompletionResponse with content and optional tool calls
        """
        ...
