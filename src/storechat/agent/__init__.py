"""Conversational store analyst: prompt, labels, cost accounting and the turn loop."""

from storechat.agent.labels import format_tool_name
from storechat.agent.loop import (
    AWAITING_APPROVAL,
    COMPLETED,
    ERROR,
    TOOL_LOOP_LIMIT_REACHED,
    Orchestrator,
    TurnEvent,
    TurnOptions,
    TurnResult,
)
from storechat.agent.prompt import SYSTEM_PROMPT
from storechat.agent.usage import calculate_model_cost

__all__ = [
    "AWAITING_APPROVAL",
    "COMPLETED",
    "ERROR",
    "SYSTEM_PROMPT",
    "TOOL_LOOP_LIMIT_REACHED",
    "Orchestrator",
    "TurnEvent",
    "TurnOptions",
    "TurnResult",
    "calculate_model_cost",
    "format_tool_name",
]
