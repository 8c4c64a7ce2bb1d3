"""Helper functions exposed inside the code interpreter."""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from storechat.woocommerce.periods import parse_date

sandbox_logger = logging.getLogger("storechat.sandbox")


def multiply(a: float, b: float) -> float:
    return a * b


def add(a: float, b: float) -> float:
    return a + b


def subtract(a: float, b: float) -> float:
    return a - b


def divide(a: float, b: float) -> float:
    return a / b if b != 0 else 0


def average(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0


def _key_func(key: str | Callable[[Any], Any]) -> Callable[[Any], Any]:
    if callable(key):
        return key
    return lambda item: item.get(key) if isinstance(item, dict) else getattr(item, key, None)


def sort_by(
    items: Iterable[Any], key: str | Callable[[Any], Any], descending: bool = False
) -> list:
    """Sort by a dict key (or callable); missing values sort last."""
    get = _key_func(key)
    items = list(items)
    present = [item for item in items if get(item) is not None]
    missing = [item for item in items if get(item) is None]
    return sorted(present, key=get, reverse=descending) + missing


def group_by(items: Iterable[Any], key: str | Callable[[Any], Any]) -> dict[str, list]:
    get = _key_func(key)
    groups: dict[str, list] = {}
    for item in items:
        groups.setdefault(str(get(item)), []).append(item)
    return groups


def format_date(value: Any, fmt: str = "%Y-%m-%d") -> str:
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"Invalid date: {value!r}")
    return parsed.strftime(fmt)


def days_between(start: Any, end: Any) -> int:
    """Whole days between two dates, ignoring order."""
    first, second = parse_date(start), parse_date(end)
    if first is None or second is None:
        raise ValueError(f"Invalid date range: {start!r}, {end!r}")
    return abs((second - first).days)


def now() -> str:
    return datetime.now().astimezone().isoformat()


class ConsoleWriter:
    """File-like sink routing interpreter output to the sandbox logger."""

    def __init__(self, level: int = logging.INFO):
        self.level = level
        self._buffer = ""

    def write(self, text: str) -> int:
        self._buffer += text
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            sandbox_logger.log(self.level, "[SANDBOX] %s", line)
        return len(text)

    def flush(self) -> None:
        if self._buffer:
            sandbox_logger.log(self.level, "[SANDBOX] %s", self._buffer)
            self._buffer = ""


class Console:
    """``console.log``/``console.error`` for code written in that habit."""

    def log(self, *args: Any) -> None:
        sandbox_logger.info("[SANDBOX] %s", " ".join(str(a) for a in args))

    info = log

    def warn(self, *args: Any) -> None:
        sandbox_logger.warning("[SANDBOX] %s", " ".join(str(a) for a in args))

    def error(self, *args: Any) -> None:
        sandbox_logger.error("[SANDBOX] %s", " ".join(str(a) for a in args))


def default_helpers() -> dict[str, Any]:
    """The fixed helper allowlist, minus the store-bound ``fetch``."""
    return {
        "multiply": multiply,
        "add": add,
        "subtract": subtract,
        "divide": divide,
        "sum": sum,
        "average": average,
        "max": max,
        "min": min,
        "sort_by": sort_by,
        "group_by": group_by,
        "format_date": format_date,
        "days_between": days_between,
        "now": now,
        "console": Console(),
    }
