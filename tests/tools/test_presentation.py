"""Tests for the data cards and data display tools."""

import json

import pytest

from storechat.tools.presentation import (
    CREATE_DATA_CARDS,
    CREATE_DATA_DISPLAY,
    PresentationError,
    build_presentation_tools,
    create_data_cards,
    create_data_display,
    presentation_fingerprint,
    validate_display,
)

CHART = {
    "type": "bar",
    "data": {
        "labels": ["Jan", "Feb", "Mar"],
        "datasets": [{"label": "Revenue", "data": [100, 200, 150]}],
    },
}
TABLE = {"columns": ["Month", "Revenue"], "rows": [["Jan", 100], ["Feb", None]]}


@pytest.mark.asyncio
async def test_cards_success():
    cards = [{"title": "Revenue", "value": "$1,200", "icon": "dollar"}]

    result = json.loads(await create_data_cards(title="This month", cards=cards))

    assert result["success"] is True
    assert result["data"] == {"type": "data_cards", "title": "This month", "cards": cards}
    assert result["message"].startswith('✅ Data cards with title "This month"')
    assert "1 metric card(s)" in result["message"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("title", "cards", "error"),
    [
        ("  ", [{"title": "a", "value": "1"}], "Title is required and cannot be empty"),
        ("Metrics", [], "At least one card is required"),
        ("Metrics", None, "At least one card is required"),
        ("Metrics", [{"value": "1"}], "Each card must have a title"),
        ("Metrics", [{"title": "Orders", "value": ""}], "Each card must have a value"),
    ],
)
async def test_cards_validation(title, cards, error):
    result = json.loads(await create_data_cards(title=title, cards=cards))

    assert result == {"success": False, "error": error}


@pytest.mark.asyncio
async def test_display_chart_and_table():
    result = json.loads(
        await create_data_display(title="Q1 revenue", chartConfig=CHART, tableData=TABLE)
    )

    data = result["data"]["data"]
    assert result["success"] is True
    assert result["data"]["type"] == "data_display"
    assert data["showChart"] is True
    assert data["showTable"] is True
    assert data["tableData"]["rows"] == [["Jan", "100"], ["Feb", ""]]
    assert "showing chart with 3 data points and table with 2 rows" in result["message"]


@pytest.mark.asyncio
async def test_display_table_only():
    result = json.loads(
        await create_data_display(title="Customers", tableData=TABLE, showChart=False)
    )

    data = result["data"]["data"]
    assert data["showChart"] is False
    assert data["showTable"] is True
    assert data["chartConfig"] is None
    assert "showing table with 2 rows." in result["message"]


@pytest.mark.asyncio
async def test_hidden_chart_is_not_validated():
    broken = {"type": "bar", "data": {"labels": [], "datasets": []}}

    result = json.loads(
        await create_data_display(title="T", chartConfig=broken, tableData=TABLE, showChart=False)
    )

    assert result["success"] is True


@pytest.mark.parametrize(
    ("kwargs", "error"),
    [
        ({"title": ""}, "Title is required and cannot be empty"),
        ({"title": "T"}, "At least one of chartConfig or tableData must be provided"),
        (
            {"title": "T", "chart_config": CHART, "show_chart": False},
            "At least one display option (chart or table) must be enabled",
        ),
        (
            {"title": "T", "chart_config": {"type": "bar", "data": {"labels": []}}},
            "Chart labels are required and cannot be empty",
        ),
        (
            {"title": "T", "chart_config": {"type": "bar", "data": {"labels": ["a"]}}},
            "At least one dataset is required for the chart",
        ),
        (
            {
                "title": "T",
                "chart_config": {
                    "type": "bar",
                    "data": {"labels": ["a"], "datasets": [{"data": [1]}]},
                },
            },
            "Each dataset must have a label",
        ),
        (
            {
                "title": "T",
                "chart_config": {
                    "type": "bar",
                    "data": {"labels": ["a"], "datasets": [{"label": "x", "data": []}]},
                },
            },
            "Each dataset must have data values",
        ),
        (
            {
                "title": "T",
                "chart_config": {
                    "type": "bar",
                    "data": {"labels": ["a", "b"], "datasets": [{"label": "x", "data": [1]}]},
                },
            },
            "Dataset data length must match labels length",
        ),
        (
            {"title": "T", "table_data": {"columns": [], "rows": [["a"]]}},
            "Table columns are required and cannot be empty",
        ),
        (
            {"title": "T", "table_data": {"columns": ["a"], "rows": []}},
            "Table rows are required and cannot be empty",
        ),
        (
            {"title": "T", "table_data": {"columns": ["a"], "rows": ["a"]}},
            "All table rows must be arrays",
        ),
        (
            {"title": "T", "table_data": {"columns": ["a", "b"], "rows": [["1"]]}},
            "Table row length (1) must match column count (2)",
        ),
    ],
)
def test_display_validation(kwargs, error):
    with pytest.raises(PresentationError) as exc_info:
        validate_display(**kwargs)

    assert str(exc_info.value) == error


@pytest.mark.asyncio
async def test_display_validation_failure_is_json():
    result = json.loads(await create_data_display(title="T"))

    assert result == {
        "success": False,
        "error": "At least one of chartConfig or tableData must be provided",
    }


def test_fingerprint_is_stable_and_tool_specific():
    args = {"title": "Q1 ", "chartConfig": CHART, "tableData": TABLE, "showChart": True}
    reordered = {"tableData": TABLE, "chartConfig": CHART, "title": "Q1", "showChart": False}

    assert presentation_fingerprint(CREATE_DATA_DISPLAY, args) == presentation_fingerprint(
        CREATE_DATA_DISPLAY, reordered
    )
    assert presentation_fingerprint(CREATE_DATA_DISPLAY, args) != presentation_fingerprint(
        CREATE_DATA_DISPLAY, {**args, "title": "Q2"}
    )
    assert presentation_fingerprint("getOrders", args) is None


def test_presentation_tools_never_need_approval():
    tools = build_presentation_tools()

    assert [t.name for t in tools] == [CREATE_DATA_CARDS, CREATE_DATA_DISPLAY]
    assert all(t.schema.requires_approval is False for t in tools)
    params = tools[1].schema.to_openai_format()["function"]["parameters"]
    assert params["required"] == ["title"]
    assert params["properties"]["chartConfig"]["properties"]["type"]["enum"] == [
        "bar",
        "line",
        "pie",
        "doughnut",
    ]
