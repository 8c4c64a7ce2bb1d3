"""Tests for the HTTP API."""

import json

import pytest
from fastapi.testclient import TestClient

from storechat import __version__
from storechat.config.schema import StoreChatConfig
from storechat.llm.client import CompletionResponse, ToolCall, Usage
from storechat.llm.factory import create_chat_model
from storechat.server.app import create_app


class MockLLM:
    """Mock chat model returning canned responses in order."""

    def __init__(self, responses):
        self.responses = responses
        self.model = "gpt-4o"
        self.call_count = 0

    async def complete(self, messages, tools=None, temperature=None, max_tokens=None):
        response = self.responses[min(self.call_count, len(self.responses) - 1)]
        self.call_count += 1
        return response


def _events(body: str) -> list[tuple[str, dict]]:
    """Parse an SSE body into (event, data) pairs."""
    events = []
    for block in body.replace("\r\n", "\n").split("\n\n"):
        name, data = None, None
        for line in block.split("\n"):
            if line.startswith("event:"):
                name = line[len("event:") :].strip()
            elif line.startswith("data:"):
                data = json.loads(line[len("data:") :].strip())
        if name is not None:
            events.append((name, data))
    return events


@pytest.fixture
def llm():
    return MockLLM([CompletionResponse(content="Revenue is up 12%.", usage=Usage(100, 10))])


@pytest.fixture
def client(engine, llm):
    app = create_app(StoreChatConfig(), engine=engine, llm_factory=lambda **kwargs: llm)
    return TestClient(app)


def _stream(client, thread_id="t-1", message="How are sales?", **opts):
    return client.post(
        "/agent/stream",
        json={"threadId": thread_id, "message": message, "opts": {"apiKey": "key", **opts}},
    )


def test_health_endpoint(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "model": "gemini-2.5-flash",
        "version": __version__,
    }


def test_stream_requires_thread_id(client):
    response = client.post("/agent/stream", json={"threadId": "", "message": "hi"})

    assert response.status_code == 422


def test_stream_events(client):
    response = _stream(client)

    assert response.status_code == 200
    assert "text/event-stream" in response.headers["content-type"]
    events = _events(response.text)
    assert [name for name, _ in events] == ["message", "tokenUsage", "done"]
    assert events[0][1]["message"]["data"]["content"] == "Revenue is up 12%."
    assert events[-1][1] == {"threadId": "t-1", "status": "completed"}


def test_stream_config_error_becomes_events(engine):
    client = TestClient(
        create_app(StoreChatConfig(), engine=engine, llm_factory=create_chat_model)
    )

    response = client.post("/agent/stream", json={"threadId": "t-1", "message": "hi"})

    events = _events(response.text)
    assert [name for name, _ in events] == ["message", "error", "done"]
    assert "No API key provided" in events[1][1]["message"]
    assert events[-1][1]["status"] == "error"


def test_threads_and_messages(client):
    _stream(client, userId="u-1")

    threads = client.get("/agent/threads", params={"userId": "u-1"}).json()["threads"]
    assert [t["id"] for t in threads] == ["t-1"]
    assert threads[0]["title"] == "How are sales?"
    assert threads[0]["tokenUsage"]["total_tokens"] == 110

    messages = client.get("/agent/threads/t-1/messages").json()
    assert messages["threadId"] == "t-1"
    assert [m["type"] for m in messages["messages"]] == ["human", "ai"]
    assert messages["messages"][1]["is_liked"] is False


def test_get_and_update_thread(client):
    _stream(client)

    response = client.patch("/agent/threads/t-1", json={"title": "Sales check", "bookmarked": True})
    assert response.status_code == 200
    assert response.json()["title"] == "Sales check"
    assert client.get("/agent/threads/t-1").json()["bookmarked"] is True

    assert client.get("/agent/threads/missing").status_code == 404
    assert client.patch("/agent/threads/missing", json={"title": "x"}).status_code == 404


def test_message_actions(client):
    _stream(client)

    response = client.post(
        "/agent/messages/actions",
        json={"threadId": "t-1", "messageIndex": 1, "action": "like", "userId": "u-1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["messageIndex"] == 1
    assert body["flags"]["is_liked"] is True
    messages = client.get("/agent/threads/t-1/messages").json()["messages"]
    assert messages[1]["is_liked"] is True
    assert messages[0]["is_liked"] is False


def test_message_action_validation(client):
    bad_action = client.post(
        "/agent/messages/actions",
        json={"threadId": "t-1", "messageIndex": 0, "action": "love"},
    )
    bad_index = client.post(
        "/agent/messages/actions",
        json={"threadId": "t-1", "messageIndex": -1, "action": "like"},
    )

    assert bad_action.status_code == 400
    assert "Invalid action" in bad_action.json()["detail"]
    assert bad_index.status_code == 422


def test_approve_flow(client, llm, credentials):
    llm.responses = [
        CompletionResponse(
            content="",
            tool_calls=[ToolCall(id="call_1", name="getLowStockProducts", arguments={})],
        ),
        CompletionResponse(content="Nothing is running low."),
    ]

    events = _events(_stream(client, wooCommerceCredentials=credentials).text)
    approval = dict(events)["approval_required"]
    assert approval["toolCalls"][0]["id"] == "call_1"
    assert approval["toolCalls"][0]["label"] == "⚡ Get Low Stock Products"

    denied = client.post(
        "/agent/approve",
        json={
            "threadId": "t-1",
            "toolCallId": "call_1",
            "action": "deny",
            "opts": {"apiKey": "key", "wooCommerceCredentials": credentials},
        },
    )

    names = [name for name, _ in _events(denied.text)]
    assert names == ["message", "message", "done"]
    assert _events(denied.text)[-1][1]["status"] == "completed"


def test_approve_unknown_call(client):
    response = client.post(
        "/agent/approve",
        json={"threadId": "t-1", "toolCallId": "nope", "action": "allow"},
    )

    assert response.status_code == 404


def test_approve_rejects_bad_action(client):
    response = client.post(
        "/agent/approve",
        json={"threadId": "t-1", "toolCallId": "call_1", "action": "maybe"},
    )

    assert response.status_code == 422
