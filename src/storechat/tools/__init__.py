"""Tools the model can call during a turn."""

from storechat.tools.assembly import ToolSet, assemble_tools
from storechat.tools.base import Tool, ToolParameter, ToolSchema
from storechat.tools.plugins import discover_plugin_tools
from storechat.tools.presentation import (
    CREATE_DATA_CARDS,
    CREATE_DATA_DISPLAY,
    PRESENTATION_TOOLS,
    presentation_fingerprint,
)
from storechat.tools.registry import get_all_tools, register_tool, tool

__all__ = [
    "CREATE_DATA_CARDS",
    "CREATE_DATA_DISPLAY",
    "PRESENTATION_TOOLS",
    "Tool",
    "ToolParameter",
    "ToolSchema",
    "ToolSet",
    "assemble_tools",
    "discover_plugin_tools",
    "get_all_tools",
    "presentation_fingerprint",
    "register_tool",
    "tool",
]
