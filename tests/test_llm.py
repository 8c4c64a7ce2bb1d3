"""Tests for the OpenAI-compatible chat model client."""

import json

import pytest
import respx
from httpx import Response

from storechat.llm.client import Message, ToolCall, Usage
from storechat.llm.openai_compat import OpenAICompatibleClient

BASE_URL = "https://llm.example.com/v1"


@pytest.fixture
def llm_client():
    return OpenAICompatibleClient(model="test-model", api_key="sk-test", base_url=BASE_URL)


def _completion(message: dict, usage: dict | None = None) -> dict:
    body = {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1677652288,
        "model": "test-model",
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
    }
    if usage:
        body["usage"] = usage
    return body


@pytest.mark.asyncio
@respx.mock
async def test_complete_simple_response(llm_client):
    respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=Response(
            200,
            json=_completion(
                {"role": "assistant", "content": "Revenue is up."},
                usage={
                    "prompt_tokens": 120,
                    "completion_tokens": 30,
                    "total_tokens": 150,
                    "prompt_tokens_details": {"cached_tokens": 100},
                },
            ),
        )
    )

    response = await llm_client.complete([Message(role="user", content="How are sales?")])

    assert response.content == "Revenue is up."
    assert response.tool_calls is None
    assert response.model == "test-model"
    assert response.usage == Usage(prompt_tokens=120, completion_tokens=30, cached_tokens=100)


@pytest.mark.asyncio
@respx.mock
async def test_complete_with_tool_calls(llm_client):
    respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=Response(
            200,
            json=_completion(
                {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_1",
                            "type": "function",
                            "function": {
                                "name": "getStoreOverview",
                                "arguments": json.dumps({"period": "last_month"}),
                            },
                        },
                        {
                            "id": "call_2",
                            "type": "function",
                            "function": {"name": "getOrders", "arguments": "{not json"},
                        },
                    ],
                }
            ),
        )
    )

    response = await llm_client.complete([Message(role="user", content="Overview please")])

    assert response.content == ""
    assert response.tool_calls[0] == ToolCall(
        id="call_1", name="getStoreOverview", arguments={"period": "last_month"}
    )
    assert response.tool_calls[1].arguments == {"__raw_arguments__": "{not json"}


@pytest.mark.asyncio
@respx.mock
async def test_request_body_drops_error_messages(llm_client):
    route = respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=Response(200, json=_completion({"role": "assistant", "content": "ok"}))
    )
    tools = [{"type": "function", "function": {"name": "noop", "parameters": {}}}]
    messages = [
        Message(role="system", content="You are an analyst."),
        Message(role="user", content="Hi"),
        Message(role="error", content="Provider outage"),
        Message(
            role="assistant",
            content="",
            tool_calls=[ToolCall(id="call_1", name="noop", arguments={"a": 1})],
        ),
        Message(role="tool", content="{}", tool_call_id="call_1", name="noop"),
    ]

    await llm_client.complete(messages, tools=tools, temperature=0.2)

    body = json.loads(route.calls.last.request.content)
    assert [m["role"] for m in body["messages"]] == ["system", "user", "assistant", "tool"]
    assert body["messages"][2]["tool_calls"][0]["function"]["arguments"] == '{"a": 1}'
    assert body["messages"][3]["tool_call_id"] == "call_1"
    assert body["messages"][3]["name"] == "noop"
    assert body["tool_choice"] == "auto"
    assert body["temperature"] == 0.2


def test_message_round_trip_keeps_id():
    message = Message(
        role="assistant",
        content="Displayed.",
        tool_calls=[ToolCall(id="call_9", name="createDataCards", arguments={"title": "KPIs"})],
    )

    stored = message.to_dict()
    restored = Message.from_dict(stored)

    assert stored["type"] == "ai"
    assert stored["data"]["tool_calls"] == [
        {"id": "call_9", "name": "createDataCards", "args": {"title": "KPIs"}}
    ]
    assert restored.id == message.id
    assert restored.role == "assistant"
    assert restored.tool_calls == message.tool_calls


def test_usage_addition():
    total = Usage(10, 5, 2) + Usage(1, 1, 0)

    assert total == Usage(prompt_tokens=11, completion_tokens=6, cached_tokens=2)
    assert total.total_tokens == 17
