"""Presentation tools: validate a visualization and wrap it for the UI.

Neither tool draws anything. Each checks the arguments the model sent
and, when they are well formed, returns the exact envelope the rendering
layer consumes together with a message telling the model the data is
already on screen.
"""

import hashlib
import json
from typing import Any

from storechat.tools.base import Tool, ToolParameter, ToolSchema

CREATE_DATA_CARDS = "createDataCards"
CREATE_DATA_DISPLAY = "createDataDisplay"
PRESENTATION_TOOLS = (CREATE_DATA_CARDS, CREATE_DATA_DISPLAY)

CHART_TYPES = ["bar", "line", "pie", "doughnut"]
CARD_ICONS = ["dollar", "cart", "credit", "chart"]


class PresentationError(ValueError):
    """Arguments that cannot be rendered."""


def _failure(error: str) -> str:
    return json.dumps({"success": False, "error": error})


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _require_title(title: Any) -> str:
    if _blank(title):
        raise PresentationError("Title is required and cannot be empty")
    return str(title).strip()


def validate_cards(title: Any, cards: Any) -> dict[str, Any]:
    """Validate card arguments and return the ``data_cards`` payload.

    Raises:
        PresentationError: With the reason shown to the model
    """
    title = _require_title(title)
    if not cards:
        raise PresentationError("At least one card is required")
    for card in cards:
        if not isinstance(card, dict) or _blank(card.get("title")):
            raise PresentationError("Each card must have a title")
        if _blank(card.get("value")):
            raise PresentationError("Each card must have a value")
    return {"type": "data_cards", "title": title, "cards": cards}


def _validate_chart(chart_config: dict[str, Any]) -> None:
    data = chart_config.get("data") or {}
    labels = data.get("labels") or []
    if not labels:
        raise PresentationError("Chart labels are required and cannot be empty")

    datasets = data.get("datasets") or []
    if not datasets:
        raise PresentationError("At least one dataset is required for the chart")

    for dataset in datasets:
        if _blank(dataset.get("label")):
            raise PresentationError("Each dataset must have a label")
        values = dataset.get("data") or []
        if not values:
            raise PresentationError("Each dataset must have data values")
        if len(values) != len(labels):
            raise PresentationError("Dataset data length must match labels length")


def _normalize_table(table_data: dict[str, Any]) -> dict[str, Any]:
    columns = table_data.get("columns") or []
    if not columns:
        raise PresentationError("Table columns are required and cannot be empty")

    rows = table_data.get("rows") or []
    if not rows:
        raise PresentationError("Table rows are required and cannot be empty")

    normalized = []
    for row in rows:
        if not isinstance(row, list):
            raise PresentationError("All table rows must be arrays")
        if len(row) != len(columns):
            raise PresentationError(
                f"Table row length ({len(row)}) must match column count ({len(columns)})"
            )
        normalized.append(["" if cell is None else str(cell) for cell in row])

    return {"columns": [str(c) for c in columns], "rows": normalized}


def validate_display(
    title: Any,
    chart_config: dict[str, Any] | None = None,
    table_data: dict[str, Any] | None = None,
    show_chart: bool | None = None,
    show_table: bool | None = None,
) -> dict[str, Any]:
    """Validate display arguments and return the ``data_display`` payload.

    The chart is only checked when it will be shown, a table always is.
    Table cells are coerced to strings, None becoming the empty string.

    Raises:
        PresentationError: With the reason shown to the model
    """
    title = _require_title(title)

    if chart_config and show_chart is not False:
        _validate_chart(chart_config)

    if table_data:
        table_data = _normalize_table(table_data)

    show_chart = bool(chart_config) and show_chart is not False
    show_table = bool(table_data) and show_table is not False

    if not show_chart and not show_table:
        if not chart_config and not table_data:
            raise PresentationError("At least one of chartConfig or tableData must be provided")
        raise PresentationError("At least one display option (chart or table) must be enabled")

    return {
        "type": "data_display",
        "title": title,
        "data": {
            "chartConfig": chart_config,
            "tableData": table_data,
            "showChart": show_chart,
            "showTable": show_table,
        },
    }


def render_fingerprint(title: Any, data: Any) -> str:
    """Stable hash of a render's title and data, used to spot repeats."""
    canonical = json.dumps(
        {"title": str(title or "").strip(), "data": data},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(canonical.encode()).hexdigest()


def presentation_fingerprint(name: str, arguments: dict[str, Any]) -> str | None:
    """Fingerprint a presentation tool call, or None for any other tool."""
    if name == CREATE_DATA_CARDS:
        return render_fingerprint(arguments.get("title"), {"cards": arguments.get("cards")})
    if name == CREATE_DATA_DISPLAY:
        return render_fingerprint(
            arguments.get("title"),
            {
                "chartConfig": arguments.get("chartConfig"),
                "tableData": arguments.get("tableData"),
            },
        )
    return None


async def create_data_cards(title: str = "", cards: list | None = None) -> str:
    try:
        payload = validate_cards(title, cards)
    except PresentationError as e:
        return _failure(str(e))
    except Exception as e:
        return _failure(f"Failed to create data cards: {e}")

    message = (
        f'✅ Data cards with title "{payload["title"]}" have been successfully displayed '
        "to the user. DO NOT call this tool again with the same data. The UI is now "
        f"showing {len(payload['cards'])} metric card(s). You should now provide "
        "analytical insights in your text response."
    )
    return json.dumps({"success": True, "message": message, "data": payload})


async def create_data_display(
    title: str = "",
    chartConfig: dict | None = None,
    tableData: dict | None = None,
    showChart: bool | None = None,
    showTable: bool | None = None,
) -> str:
    try:
        payload = validate_display(title, chartConfig, tableData, showChart, showTable)
    except PresentationError as e:
        return _failure(str(e))
    except Exception as e:
        return _failure(f"Failed to create data display: {e}")

    shown = []
    data = payload["data"]
    if data["showChart"]:
        shown.append(f"chart with {len(data['chartConfig']['data']['labels'])} data points")
    if data["showTable"]:
        shown.append(f"table with {len(data['tableData']['rows'])} rows")

    message = (
        f'✅ Data display with title "{payload["title"]}" has been successfully displayed '
        f"to the user showing {' and '.join(shown)}. DO NOT call createDataDisplay or "
        "createDataCards again with this same data. The visualization is now visible in "
        "the UI. You should now provide analytical insights and recommendations in your "
        "text response without repeating the data."
    )
    return json.dumps({"success": True, "message": message, "data": payload})


_CARD_SCHEMA = {
    "items": {
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "Metric name"},
            "value": {"type": "string", "description": "Formatted metric value"},
            "change": {
                "type": "object",
                "properties": {
                    "value": {"type": "number"},
                    "period": {"type": "string"},
                    "trend": {"type": "string", "enum": ["up", "down"]},
                },
            },
            "icon": {"type": "string", "enum": CARD_ICONS},
        },
        "required": ["title", "value"],
    }
}

_CHART_SCHEMA = {
    "properties": {
        "type": {"type": "string", "enum": CHART_TYPES},
        "data": {
            "type": "object",
            "properties": {
                "labels": {"type": "array", "items": {"type": "string"}},
                "datasets": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "label": {"type": "string"},
                            "data": {"type": "array", "items": {"type": "number"}},
                            "backgroundColor": {},
                            "borderColor": {},
                            "borderWidth": {"type": "number"},
                        },
                        "required": ["label", "data"],
                    },
                },
            },
            "required": ["labels", "datasets"],
        },
        "options": {"type": "object"},
    },
    "required": ["type", "data"],
}

_TABLE_SCHEMA = {
    "properties": {
        "columns": {"type": "array", "items": {"type": "string"}},
        "rows": {"type": "array", "items": {"type": "array", "items": {}}},
    },
    "required": ["columns", "rows"],
}


def build_presentation_tools() -> list[Tool]:
    """The two presentation tools. They never need approval."""
    cards = Tool(
        schema=ToolSchema(
            name=CREATE_DATA_CARDS,
            description=(
                "Display key metrics as cards in the UI. Use for a handful of headline "
                "numbers (revenue, orders, average order value). Call it once per set of "
                "metrics, then explain the numbers in text."
            ),
            parameters=[
                ToolParameter("title", "string", "Title shown above the cards"),
                ToolParameter("cards", "array", "Metric cards", schema=_CARD_SCHEMA),
            ],
            requires_approval=False,
        ),
        fn=create_data_cards,
    )
    display = Tool(
        schema=ToolSchema(
            name=CREATE_DATA_DISPLAY,
            description=(
                "Display a chart and/or table in the UI. Provide chartConfig, tableData "
                "or both, and use showChart/showTable to choose what is visible. Every "
                "dataset must have one value per label and every table row one cell per "
                "column. Call it once per dataset, then explain the data in text."
            ),
            parameters=[
                ToolParameter("title", "string", "Title shown above the display"),
                ToolParameter(
                    "chartConfig",
                    "object",
                    "Chart definition",
                    required=False,
                    schema=_CHART_SCHEMA,
                ),
                ToolParameter(
                    "tableData",
                    "object",
                    "Table columns and rows",
                    required=False,
                    schema=_TABLE_SCHEMA,
                ),
                ToolParameter("showChart", "boolean", "Show the chart", required=False),
                ToolParameter("showTable", "boolean", "Show the table", required=False),
            ],
            requires_approval=False,
        ),
        fn=create_data_display,
    )
    return [cards, display]
