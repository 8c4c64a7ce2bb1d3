"""Base types for the tool system."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # JSON Schema type
    description: str
    required: bool = True
    enum: list[str] | None = None
    default: Any = None
    # Nested JSON Schema for arrays/objects (items, properties, ...)
    schema: dict[str, Any] = field(default_factory=dict)

    def to_json_schema(self) -> dict[str, Any]:
        param_schema: dict[str, Any] = {
            "type": self.type,
            "description": self.description,
            **self.schema,
        }
        if self.enum:
            param_schema["enum"] = self.enum
        if self.default is not None:
            param_schema["default"] = self.default
        return param_schema


@dataclass
class ToolSchema:
    """JSON Schema representation of a tool for LLM function calling."""

    name: str
    description: str
    parameters: list[ToolParameter]
    requires_approval: bool = True

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format.

        Returns:
            Dictionary matching OpenAI's function schema format
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {p.name: p.to_json_schema() for p in self.parameters},
                    "required": [p.name for p in self.parameters if p.required],
                },
            },
        }

    def apply_defaults(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Fill in declared defaults for omitted optional arguments."""
        merged = dict(arguments)
        for param in self.parameters:
            if param.name not in merged and param.default is not None:
                merged[param.name] = param.default
        return merged


# Tool function signature: async function that returns a string result
ToolFunction = Callable[..., Awaitable[str]]


@dataclass
class Tool:
    """A tool that the agent can use."""

    schema: ToolSchema
    fn: ToolFunction

    @property
    def name(self) -> str:
        return self.schema.name

    async def execute(self, **kwargs: Any) -> str:
        """Execute the tool with given arguments.

        Args:
            **kwargs: Tool arguments

        Returns:
            Tool execution result as string
        """
        return await self.fn(**self.schema.apply_defaults(kwargs))
