"""Client for OpenAI-compatible chat completion APIs."""

import json
import logging
from typing import Any

from openai import AsyncOpenAI

from storechat.llm.client import CompletionResponse, Message, ToolCall, Usage

logger = logging.getLogger(__name__)


def _wire_message(msg: Message) -> dict[str, Any]:
    """Render one history message as a chat completions message."""
    wire: dict[str, Any] = {"role": msg.role, "content": msg.content}
    if msg.tool_calls:
        wire["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
            }
            for call in msg.tool_calls
        ]
    if msg.role == "tool":
        wire["tool_call_id"] = msg.tool_call_id
        if msg.name:
            wire["name"] = msg.name
    return wire


def _read_tool_call(raw: Any) -> ToolCall:
    """Decode a provider tool call.

    Arguments that are not valid JSON are kept under ``__raw_arguments__``
    so the tool layer can report them back to the model.
    """
    name = raw.function.name
    try:
        args = json.loads(raw.function.arguments or "{}")
    except json.JSONDecodeError:
        logger.warning("Tool call %s carried malformed JSON arguments", name)
        args = {"__raw_arguments__": raw.function.arguments}
    if not isinstance(args, dict):
        args = {"value": args}
    return ToolCall(id=raw.id, name=name, arguments=args)


def _read_usage(usage: Any) -> Usage | None:
    if usage is None:
        return None
    details = getattr(usage, "prompt_tokens_details", None)
    return Usage(
        prompt_tokens=usage.prompt_tokens or 0,
        completion_tokens=usage.completion_tokens or 0,
        cached_tokens=getattr(details, "cached_tokens", None) or 0,
    )


class OpenAICompatibleClient:
    """Chat model client for any OpenAI-compatible endpoint.

    OpenAI, DeepSeek, Groq, OpenRouter and Google's Gemini API all expose
    ``/chat/completions`` with OpenAI tool-calling semantics, so providers
    differ only in base URL and key.
    """

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: str | None = None,
        timeout: int = 120,
        temperature: float = 1.0,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        """Initialise the client.

        Args:
            model: Model name served by the provider.
            api_key: Caller-supplied provider key.
            base_url: Endpoint override; None means api.openai.com.
            timeout: Request timeout in seconds.
            temperature: Default sampling temperature.
            default_headers: Extra headers sent with every request.
        """
        self.model = model
        self.base_url = base_url
        self.temperature = temperature
        # Retries are the caller's decision; a failed turn is persisted as an error.
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
            default_headers=default_headers,
        )

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResponse:
        """Run one chat completion over the conversation.

        Error messages in the history are a UI artifact and are not sent.

        Args:
            messages: Conversation history.
            tools: Tool schemas in OpenAI function format; None disables tools.
            temperature: Per-call override of the default temperature.
            max_tokens: Completion token cap.

        Returns:
            CompletionResponse with content, tool calls and token usage.
        """
        request: dict[str, Any] = {
            "model": self.model,
            "messages": [_wire_message(m) for m in messages if m.role != "error"],
            "temperature": self.temperature if temperature is None else temperature,
        }
        if tools:
            request.update(tools=tools, tool_choice="auto")
        if max_tokens:
            request["max_tokens"] = max_tokens

        response = await self.client.chat.completions.create(**request)
        choice = response.choices[0]
        calls = [_read_tool_call(raw) for raw in choice.message.tool_calls or []]

        return CompletionResponse(
            content=choice.message.content or "",
            tool_calls=calls or None,
            finish_reason=choice.finish_reason or "stop",
            usage=_read_usage(response.usage),
            model=self.model,
        )
