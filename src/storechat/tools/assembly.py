"""Per-invocation tool assembly."""

import logging
from dataclasses import dataclass, field
from typing import Any

from storechat.config.schema import StoreChatConfig
from storechat.tools.base import Tool
from storechat.tools.code_interpreter import build_code_interpreter
from storechat.tools.presentation import build_presentation_tools
from storechat.tools.store_data import build_store_tools
from storechat.woocommerce.client import WooCommerceClient, WooCommerceCredentials

logger = logging.getLogger(__name__)


@dataclass
class ToolSet:
    """Tools offered for one turn and the store client backing them."""

    tools: list[Tool] = field(default_factory=list)
    client: WooCommerceClient | None = None

    def by_name(self) -> dict[str, Tool]:
        return {t.name: t for t in self.tools}

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None


def assemble_tools(
    config: StoreChatConfig,
    credentials: Any = None,
    extra_tools: list[Tool] | None = None,
    registry_tools: list[Tool] | None = None,
) -> ToolSet:
    """Build the tool list for one invocation.

    Order is caller-supplied tools, registry and plugin tools, store data
    tools, the code interpreter, then the presentation tools. A later tool
    never replaces an earlier one with the same name.

    Args:
        config: Application configuration
        credentials: Store credentials from the request; None omits every
            store-bound tool
        extra_tools: Tools supplied with the request
        registry_tools: Globally registered and plugin tools

    Returns:
        The assembled tools

    Raises:
        MissingCredentialsError: If credentials are given but incomplete
    """
    groups: list[list[Tool]] = [list(extra_tools or []), list(registry_tools or [])]

    client = None
    if credentials is not None:
        creds = WooCommerceCredentials.parse(credentials)
        client = WooCommerceClient(
            creds,
            timeout=config.woocommerce.timeout,
            max_pages=config.woocommerce.max_pages,
            default_per_page=config.woocommerce.default_per_page,
        )
        groups.append(build_store_tools(client))
        groups.append([build_code_interpreter(client, timeout=config.sandbox.timeout_seconds)])

    groups.append(build_presentation_tools())

    tools: list[Tool] = []
    seen: set[str] = set()
    for group in groups:
        for t in group:
            if t.name in seen:
                logger.warning("Duplicate tool name '%s' ignored", t.name)
                continue
            seen.add(t.name)
            tools.append(t)

    logger.debug("Assembled %d tools", len(tools))
    return ToolSet(tools=tools, client=client)
