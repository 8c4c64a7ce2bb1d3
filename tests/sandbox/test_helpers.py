"""Tests for the sandbox helper allowlist."""

import logging

import pytest

from storechat.sandbox.helpers import (
    ConsoleWriter,
    average,
    days_between,
    default_helpers,
    divide,
    format_date,
    group_by,
    sort_by,
)


def test_arithmetic_helpers():
    helpers = default_helpers()

    assert helpers["multiply"](3, 4) == 12
    assert helpers["add"](3, 4) == 7
    assert helpers["subtract"](3, 4) == -1
    assert divide(10, 4) == 2.5
    assert divide(10, 0) == 0


def test_average():
    assert average([1, 2, 3, 4]) == 2.5
    assert average([]) == 0


def test_sort_by_key_puts_missing_last():
    items = [{"n": "b", "v": 2}, {"n": "x"}, {"n": "a", "v": 5}, {"n": "c", "v": 1}]

    assert [i["n"] for i in sort_by(items, "v")] == ["c", "b", "a", "x"]
    assert [i["n"] for i in sort_by(items, "v", descending=True)] == ["a", "b", "c", "x"]


def test_sort_by_callable():
    assert sort_by(["ccc", "a", "bb"], len) == ["a", "bb", "ccc"]


def test_group_by():
    orders = [{"status": "completed"}, {"status": "pending"}, {"status": "completed"}]

    groups = group_by(orders, "status")

    assert set(groups) == {"completed", "pending"}
    assert len(groups["completed"]) == 2


def test_format_date():
    assert format_date("2024-03-15T10:30:00") == "2024-03-15"
    assert format_date("2024-03-15T10:30:00", "%d/%m/%Y") == "15/03/2024"
    with pytest.raises(ValueError, match="Invalid date"):
        format_date("yesterday")


def test_days_between_ignores_order():
    assert days_between("2024-03-15", "2024-03-01") == 14
    assert days_between("2024-03-01", "2024-03-15") == 14


def test_helper_names():
    assert set(default_helpers()) == {
        "multiply",
        "add",
        "subtract",
        "divide",
        "sum",
        "average",
        "max",
        "min",
        "sort_by",
        "group_by",
        "format_date",
        "days_between",
        "now",
        "console",
    }


def test_console_writer_logs_lines(caplog):
    writer = ConsoleWriter(logging.INFO)

    with caplog.at_level(logging.INFO, logger="storechat.sandbox"):
        writer.write("first\nsec")
        writer.write("ond\n")
        writer.write("tail")
        writer.flush()

    assert [r.getMessage() for r in caplog.records] == [
        "[SANDBOX] first",
        "[SANDBOX] second",
        "[SANDBOX] tail",
    ]


def test_console_log(caplog):
    with caplog.at_level(logging.INFO, logger="storechat.sandbox"):
        default_helpers()["console"].log("total", 42)

    assert caplog.records[-1].getMessage() == "[SANDBOX] total 42"
