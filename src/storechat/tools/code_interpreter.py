"""The codeInterpreter tool: run model-written Python in the sandbox."""

import json
import logging
from typing import Any

from storechat.sandbox import Sandbox
from storechat.tools.base import Tool, ToolParameter, ToolSchema
from storechat.woocommerce.client import WooCommerceClient

logger = logging.getLogger(__name__)

CODE_INTERPRETER = "codeInterpreter"

DESCRIPTION = (
    "Execute sandboxed Python for complex, multi-step store data analysis: quarterly "
    "analysis, custom date ranges beyond week/month/year, multi-step calculations and "
    "transformations other tools cannot handle. The code has read access to the full "
    "store API through fetch(endpoint, params) which returns {'data': [...], 'total': n}. "
    "Helpers: sum, average, max, min, add, subtract, multiply, divide, sort_by, group_by, "
    "format_date, days_between, now, console.log. The value of the last expression (or a "
    "variable named result) is returned. IMPORTANT: fetch uses fetchAll=True by default "
    "to follow pagination; pass fetchAll=False for a single page."
)


def make_fetch(client: WooCommerceClient) -> Any:
    """Build the sandbox ``fetch`` helper for ``client``."""

    async def fetch(endpoint: str, params: dict | None = None, **kwargs: Any) -> dict[str, Any]:
        """Read a store endpoint, following pagination unless fetchAll is false."""
        query = {**(params or {}), **kwargs}
        fetch_all = query.pop("fetchAll", True)
        fetch_all = query.pop("fetch_all", fetch_all)

        if fetch_all:
            items = await client.fetch_all_pages(endpoint, query)
            return {"data": items, "total": len(items)}
        result = await client.request(endpoint, query)
        return result.to_dict()

    return fetch


def build_code_interpreter(client: WooCommerceClient, timeout: float = 50.0) -> Tool:
    """Create the codeInterpreter tool bound to ``client``."""

    async def code_interpreter(code: str) -> str:
        sandbox = Sandbox(helpers={"fetch": make_fetch(client)}, timeout=timeout)
        try:
            outcome = await sandbox.run(code)
        except Exception as e:
            logger.warning("Code interpreter failed: %s", e)
            return json.dumps({"success": False, "error": str(e), "stack": None})
        return json.dumps(outcome.to_dict(), default=str)

    return Tool(
        schema=ToolSchema(
            name=CODE_INTERPRETER,
            description=DESCRIPTION,
            parameters=[
                ToolParameter(
                    "code",
                    "string",
                    "Python code to run. Fetch data with "
                    "fetch('/orders', {'after': '2024-01-01T00:00:00'}).",
                )
            ],
        ),
        fn=code_interpreter,
    )
