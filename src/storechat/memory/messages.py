"""Message shape helpers shared by the persistence layer."""

import json
from typing import Any


def _is_serialized_wrapper(raw: dict[str, Any]) -> bool:
    # {"lc": 1, "type": "constructor", "id": [..., "messages", "HumanMessage"], "kwargs": {...}}
    ident = raw.get("id")
    return "lc" in raw and isinstance(raw.get("kwargs"), dict) and isinstance(ident, list) and (
        "messages" in ident
    )


def _wrapper_type(raw: dict[str, Any]) -> str:
    kwargs = raw["kwargs"]
    if kwargs.get("role") in ("user", "human"):
        return "human"
    if any("Human" in str(part) for part in raw["id"]):
        return "human"
    return "ai"


def normalize_message(raw: Any) -> dict[str, Any]:
    """Bring a stored message into the plain ``{type, data}`` shape.

    Handles three inputs: serialized framework wrappers (converted to
    ``{type, data}``, human or ai), objects exposing ``to_dict()`` (their
    own serialization), and plain dicts (passed through untouched).
    """
    if isinstance(raw, dict):
        if _is_serialized_wrapper(raw):
            return {"type": _wrapper_type(raw), "data": dict(raw["kwargs"])}
        return raw
    to_dict = getattr(raw, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"Unsupported message object: {type(raw).__name__}")


def message_id_of(raw: Any) -> str | None:
    """Best-effort identifier assigned by the state layer."""
    msg = normalize_message(raw)
    data = msg.get("data")
    if isinstance(data, dict) and data.get("id"):
        return str(data["id"])
    if msg.get("id") and not isinstance(msg.get("id"), list):
        return str(msg["id"])
    return None


def message_identity(raw: Any) -> str:
    """Stable identity used to detect rewritten history."""
    message_id = message_id_of(raw)
    if message_id:
        return f"id:{message_id}"
    return "json:" + json.dumps(normalize_message(raw), sort_keys=True, default=str)


def extract_messages(checkpoint: dict[str, Any] | None) -> list[Any] | None:
    """Return ``channel_values.messages`` if present and a list."""
    if not checkpoint:
        return None
    channel_values = checkpoint.get("channel_values")
    if not isinstance(channel_values, dict):
        return None
    messages = channel_values.get("messages")
    return messages if isinstance(messages, list) else None
