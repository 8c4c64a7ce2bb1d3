"""Registry for globally registered tools.

Tools registered here (directly or by plugins) are offered to every
conversation alongside the per-request store, sandbox and presentation
tools.
"""

import inspect
from collections.abc import Callable
from types import UnionType
from typing import Any, Union, get_args, get_origin, get_type_hints

from storechat.tools.base import Tool, ToolFunction, ToolParameter, ToolSchema

_TOOLS: dict[str, Tool] = {}


_JSON_TYPES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


def _python_type_to_json_schema(py_type: Any) -> str:
    """Map a type hint onto a JSON Schema type name.

    ``X | None`` maps as ``X``, parametrized ``list``/``dict`` as their
    bare origin, and anything unrecognised as ``"string"``.
    """
    if get_origin(py_type) in (Union, UnionType):
        py_type = next((arg for arg in get_args(py_type) if arg is not type(None)), str)
    return _JSON_TYPES.get(get_origin(py_type) or py_type, "string")


def _param_description(fn: ToolFunction, param_name: str) -> str:
    # Simple parsing: look for "param_name: description" in the docstring
    for line in (fn.__doc__ or "").split("\n"):
        line = line.strip()
        if line.startswith(f"{param_name}:"):
            return line[len(param_name) + 1 :].strip()
    return f"Parameter {param_name}"


def tool(
    description: str,
    requires_approval: bool = True,
) -> Callable[[ToolFunction], ToolFunction]:
    """Decorator to register a function as a tool.

    Introspects the function signature and docstring to build the schema.

    Args:
        description: Human-readable description of what the tool does
        requires_approval: Whether the call waits for user approval when a
            request does not auto-approve tools

    Returns:
        Decorator function

    Example:
        @tool(description="Convert an amount between currencies")
        async def convert_currency(amount: float, to: str) -> str:
            '''Convert currency.

            Args:
                amount: Amount in the store currency
                to: ISO currency code
            '''
            ...
    """

    def decorator(fn: ToolFunction) -> ToolFunction:
        hints = get_type_hints(fn)
        sig = inspect.signature(fn)

        parameters: list[ToolParameter] = []
        for param_name, param in sig.parameters.items():
            has_default = param.default is not inspect.Parameter.empty
            parameters.append(
                ToolParameter(
                    name=param_name,
                    type=_python_type_to_json_schema(hints.get(param_name, str)),
                    description=_param_description(fn, param_name),
                    required=not has_default,
                    default=param.default if has_default else None,
                )
            )

        schema = ToolSchema(
            name=fn.__name__,
            description=description,
            parameters=parameters,
            requires_approval=requires_approval,
        )

        _TOOLS[fn.__name__] = Tool(schema=schema, fn=fn)

        return fn

    return decorator


def register_tool(t: Tool) -> None:
    _TOOLS[t.schema.name] = t


def get_tool(name: str) -> Tool:
    """Get a registered tool by name.

    Raises:
        KeyError: If tool not found
    """
    return _TOOLS[name]


def get_all_tools() -> dict[str, Tool]:
    """Get all registered tools."""
    return _TOOLS.copy()


def clear_tools() -> None:
    """Clear all registered tools. Used for testing."""
    _TOOLS.clear()
