"""Tests for per-invocation tool assembly."""

import pytest

from storechat.config.schema import StoreChatConfig
from storechat.tools.assembly import assemble_tools
from storechat.tools.base import Tool, ToolSchema
from storechat.woocommerce.client import MissingCredentialsError


def _tool(name: str) -> Tool:
    async def fn() -> str:
        return name

    return Tool(schema=ToolSchema(name=name, description=name, parameters=[]), fn=fn)


def test_without_credentials_only_presentation_tools():
    toolset = assemble_tools(StoreChatConfig())

    assert [t.name for t in toolset.tools] == ["createDataCards", "createDataDisplay"]
    assert toolset.client is None


@pytest.mark.asyncio
async def test_with_credentials_order(credentials):
    toolset = assemble_tools(
        StoreChatConfig(),
        credentials,
        extra_tools=[_tool("custom")],
        registry_tools=[_tool("plugin_tool")],
    )

    names = [t.name for t in toolset.tools]
    assert names[:3] == ["custom", "plugin_tool", "getStoreOverview"]
    assert names[-3:] == ["codeInterpreter", "createDataCards", "createDataDisplay"]
    assert len(names) == 19
    assert toolset.client is not None

    await toolset.aclose()
    assert toolset.client is None


def test_duplicate_names_keep_first():
    first, second = _tool("dup"), _tool("dup")

    toolset = assemble_tools(StoreChatConfig(), extra_tools=[first], registry_tools=[second])

    assert toolset.by_name()["dup"] is first
    assert [t.name for t in toolset.tools].count("dup") == 1


def test_incomplete_credentials_raise():
    with pytest.raises(MissingCredentialsError):
        assemble_tools(StoreChatConfig(), {"url": "https://shop.example.com"})
