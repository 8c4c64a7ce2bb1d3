"""Tests for the child-process side of the sandbox."""

import io
import json

import pytest

from storechat.sandbox.helpers import default_helpers
from storechat.sandbox.interpreter import SandboxResult
from storechat.sandbox.worker import Channel, evaluate, remote_helper


def test_evaluate_returns_last_expression():
    assert evaluate("add(2, 3)", default_helpers(), 5) == SandboxResult(success=True, result=5)


def test_evaluate_stops_a_busy_loop_at_the_deadline():
    result = evaluate("n = 0\nwhile True:\n    n += 1", default_helpers(), 0.1)

    assert result == SandboxResult(success=False, error="Execution timed out after 0.1 seconds")


def test_evaluate_hides_open():
    result = evaluate('open("/etc/passwd")', default_helpers(), 5)

    assert result.success is False
    assert "open" in result.error


def test_remote_helper_round_trip():
    sent = io.StringIO()
    channel = Channel(io.StringIO('{"value": {"total": 3}}\n'), sent)

    value = remote_helper(channel, "fetch")("/orders", {"page": 1}, fetchAll=False)

    assert value == {"total": 3}
    assert json.loads(sent.getvalue()) == {
        "call": "fetch",
        "args": ["/orders", {"page": 1}],
        "kwargs": {"fetchAll": False},
    }


def test_remote_helper_raises_parent_error():
    channel = Channel(io.StringIO('{"error": "StoreAPIError: 401"}\n'), io.StringIO())

    with pytest.raises(RuntimeError, match="StoreAPIError: 401"):
        remote_helper(channel, "fetch")("/orders")


def test_channel_receive_on_closed_input():
    with pytest.raises(EOFError):
        Channel(io.StringIO(""), io.StringIO()).receive()
