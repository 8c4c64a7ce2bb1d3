"""Tests for thread records and token usage."""

import pytest

from storechat.llm.client import Usage
from storechat.memory.threads import ThreadStore, make_title


def test_make_title():
    assert make_title("  Show top products  ") == "Show top products"
    assert make_title("") == "New thread"
    assert make_title(None) == "New thread"
    assert len(make_title("x" * 300)) == 100


def test_ensure_thread_is_idempotent(thread_store: ThreadStore):
    first = thread_store.ensure_thread("t-1", "What sold best last month?", user_id="u-1")
    second = thread_store.ensure_thread("t-1", "a different message")

    assert first.title == "What sold best last month?"
    assert second.title == first.title
    assert second.user_id == "u-1"
    assert second.token_usage.total_tokens == 0


def test_ensure_thread_bumps_existing_thread(thread_store):
    first = thread_store.ensure_thread("t-1", "one")
    thread_store.ensure_thread("t-2", "two")

    again = thread_store.ensure_thread("t-1", "follow-up question")

    assert again.updated_at > first.updated_at
    assert again.title == "one"
    assert [t.id for t in thread_store.list_threads()] == ["t-1", "t-2"]


def test_ensure_thread_raises_when_row_is_unreadable(thread_store, monkeypatch):
    monkeypatch.setattr(thread_store, "get_thread", lambda thread_id: None)

    with pytest.raises(KeyError):
        thread_store.ensure_thread("t-1", "hello")


def test_summary_shape(thread_store):
    record = thread_store.ensure_thread("t-1", "hello")

    summary = record.summary()

    assert summary["id"] == "t-1"
    assert summary["bookmarked"] is False
    assert summary["tokenUsage"] == {
        "total_tokens": 0,
        "prompt_tokens": 0,
        "completion_tokens": 0,
        "cached_tokens": 0,
        "total_cost": 0.0,
        "model_costs": {},
        "last_updated": None,
    }


def test_list_threads_filters(thread_store):
    thread_store.ensure_thread("t-1", "one", user_id="u-1")
    thread_store.ensure_thread("t-2", "two", user_id="u-1")
    thread_store.ensure_thread("t-3", "three", user_id="u-2")
    thread_store.update_thread("t-2", archived=True)

    assert {t.id for t in thread_store.list_threads(user_id="u-1")} == {"t-1"}
    assert {t.id for t in thread_store.list_threads(user_id="u-1", include_archived=True)} == {
        "t-1",
        "t-2",
    }
    assert len(thread_store.list_threads()) == 2


def test_update_thread(thread_store):
    thread_store.ensure_thread("t-1", "hello")

    updated = thread_store.update_thread("t-1", title="Renamed", bookmarked=True)

    assert updated.title == "Renamed"
    assert updated.bookmarked is True
    assert thread_store.update_thread("missing", title="x") is None


def test_record_token_usage_accumulates(thread_store):
    thread_store.ensure_thread("t-1", "hello")

    thread_store.record_token_usage("t-1", "gpt-4o", Usage(1000, 200, 50), 0.0045)
    totals = thread_store.record_token_usage("t-1", "gemini-2.5-flash", Usage(500, 100, 0), 0.0004)

    assert totals.prompt_tokens == 1500
    assert totals.completion_tokens == 300
    assert totals.cached_tokens == 50
    assert totals.total_tokens == 1800
    assert totals.total_cost == pytest.approx(0.0049)
    assert totals.model_costs == {"gpt-4o": 0.0045, "gemini-2.5-flash": 0.0004}
    assert totals.last_updated is not None
    assert thread_store.get_thread("t-1").token_usage == totals


def test_record_token_usage_unknown_thread(thread_store):
    with pytest.raises(KeyError):
        thread_store.record_token_usage("missing", "gpt-4o", Usage(1, 1, 0), 0.0)
