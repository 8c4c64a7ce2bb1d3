"""Discovery of tools shipped by installed plugins.

A plugin is a module exposed under the ``storechat.tools`` entry point
group that registers tools with :func:`storechat.tools.registry.tool` on
import. Registry diffing captures which tools each plugin added.
"""

import logging
from importlib.metadata import entry_points
from typing import Any

from storechat.tools.base import Tool
from storechat.tools.registry import _TOOLS

logger = logging.getLogger(__name__)


def discover_plugin_tools(
    group: str = "storechat.tools",
    blocked: list[str] | None = None,
) -> list[Tool]:
    """Import every plugin in ``group`` and return the tools they register.

    Args:
        group: Entry point group to scan
        blocked: Plugin names to skip

    Returns:
        Tools registered by the loaded plugins
    """
    blocked_names = set(blocked or [])
    discovered: list[Tool] = []

    for ep in entry_points(group=group):
        if ep.name in blocked_names:
            logger.info("Plugin '%s' is blocked, skipping", ep.name)
            continue
        discovered.extend(_load_entry_point(ep))

    return discovered


def _load_entry_point(ep: Any) -> list[Tool]:
    before = set(_TOOLS)
    try:
        ep.load()
    except Exception as e:
        logger.warning("Failed to load plugin '%s': %s", ep.name, e)
        return []

    new_names = sorted(set(_TOOLS) - before)
    logger.info("Loaded plugin '%s' with %d tools", ep.name, len(new_names))
    return [_TOOLS[name] for name in new_names]
