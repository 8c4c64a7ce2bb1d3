"""Read-only store data tools bound to one set of request credentials."""

import json
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from storechat.tools.base import Tool, ToolParameter, ToolSchema
from storechat.woocommerce import analytics
from storechat.woocommerce.client import PageResult, WooCommerceClient
from storechat.woocommerce.periods import PERIODS

logger = logging.getLogger(__name__)

StoreCall = Callable[[dict[str, Any]], Awaitable[Any]]

ORDER_STATUSES = [
    "any",
    "pending",
    "processing",
    "on-hold",
    "completed",
    "cancelled",
    "refunded",
    "failed",
]
PRODUCT_STATUSES = ["any", "draft", "pending", "private", "publish"]
STOCK_STATUSES = ["instock", "outofstock", "onbackorder"]


def _to_json(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, PageResult):
        result = result.to_dict()
    return json.dumps(result, default=str)


def _wrap(name: str, call: StoreCall) -> Callable[..., Awaitable[str]]:
    """Run ``call`` and turn any exception into a JSON failure result."""

    async def run(**arguments: Any) -> str:
        try:
            return _to_json(await call(arguments))
        except Exception as e:
            logger.warning("Store tool %s failed: %s", name, e)
            return json.dumps(
                {
                    "success": False,
                    "error": f"Tool execution failed: {e}",
                    "timestamp": datetime.now(UTC).isoformat(),
                }
            )

    run.__name__ = name
    return run


def _positive_id(value: Any) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _by_id(kind: str, fetch: Callable[[int], Awaitable[PageResult]]) -> StoreCall:
    async def call(arguments: dict[str, Any]) -> Any:
        object_id = _positive_id(arguments.get("id"))
        if object_id is None:
            return {"success": False, "error": f"Invalid {kind} ID. Must be a positive number."}
        return await fetch(object_id)

    return call


def _paging() -> list[ToolParameter]:
    return [
        ToolParameter(
            "per_page", "integer", "Results per page (max 100)", required=False, default=20
        ),
        ToolParameter("page", "integer", "Page number, starting from 1", required=False, default=1),
    ]


def _date_range(subject: str, note: str = "") -> list[ToolParameter]:
    return [
        ToolParameter(
            "after",
            "string",
            f"Only {subject} after this ISO date, e.g. '2024-01-01T00:00:00Z'.{note}",
            required=False,
        ),
        ToolParameter(
            "before",
            "string",
            f"Only {subject} before this ISO date, e.g. '2024-12-31T23:59:59Z'.{note}",
            required=False,
        ),
    ]


def _id_param(kind: str) -> list[ToolParameter]:
    return [ToolParameter("id", "integer", f"The ID of the {kind} to retrieve")]


def build_store_tools(client: WooCommerceClient) -> list[Tool]:
    """Create every store data tool for ``client``.

    Each tool returns JSON. Exceptions never escape: they come back as
    ``{"success": false, "error": "Tool execution failed: ..."}``.
    """
    specs: list[tuple[str, str, list[ToolParameter], StoreCall]] = [
        (
            "getStoreOverview",
            "Get a performance summary of the store for a period: total revenue, total "
            "orders, new customers, average order value and top-selling products.",
            [
                ToolParameter(
                    "period",
                    "string",
                    "'week' (last 7 days), 'month' (current month to date), 'last_month' "
                    "(previous full month) or 'year' (current year to date)",
                    required=False,
                    enum=list(PERIODS),
                    default="month",
                )
            ],
            lambda a: analytics.store_overview(client, a.get("period", "month")),
        ),
        (
            "getProducts",
            "Fetch products filtered by category, search term, stock status, price or "
            "publication status. Results are paginated.",
            [
                *_paging(),
                ToolParameter(
                    "search", "string", "Match name, description or SKU", required=False
                ),
                ToolParameter("category", "string", "Category slug or ID", required=False),
                ToolParameter(
                    "status", "string", "Publication status", required=False, enum=PRODUCT_STATUSES
                ),
                ToolParameter(
                    "stock_status", "string", "Stock status", required=False, enum=STOCK_STATUSES
                ),
                ToolParameter("on_sale", "boolean", "Only products on sale", required=False),
                ToolParameter("featured", "boolean", "Only featured products", required=False),
                ToolParameter("min_price", "string", "Minimum price, e.g. '10.00'", required=False),
                ToolParameter(
                    "max_price", "string", "Maximum price, e.g. '100.00'", required=False
                ),
                *_date_range("products created"),
            ],
            client.get_products,
        ),
        (
            "getProductById",
            "Fetch a single product by its ID.",
            _id_param("product"),
            _by_id("product", client.get_product),
        ),
        (
            "getOrders",
            "Fetch orders filtered by status, customer or date range, including billing "
            "details, line items and totals. Results are paginated.",
            [
                *_paging(),
                ToolParameter(
                    "status", "string", "Order status", required=False, enum=ORDER_STATUSES
                ),
                ToolParameter("customer", "integer", "Customer ID", required=False),
                *_date_range("orders created"),
            ],
            client.get_orders,
        ),
        (
            "getOrderById",
            "Fetch a single order by its ID.",
            _id_param("order"),
            _by_id("order", client.get_order),
        ),
        (
            "getCustomers",
            "Fetch customers. IMPORTANT: for date filtering you MUST use fetchAll=true, "
            "the store API has no date range filter for customers.",
            [
                *_paging(),
                ToolParameter("search", "string", "Match name or email address", required=False),
                ToolParameter(
                    "fetchAll",
                    "boolean",
                    "Fetch every page. Required for date filtering.",
                    required=False,
                ),
                *_date_range("customers registered", " Requires fetchAll=true."),
            ],
            client.get_customers,
        ),
        (
            "getCustomerById",
            "Fetch a single customer by their ID.",
            _id_param("customer"),
            _by_id("customer", client.get_customer),
        ),
        (
            "getTopCustomers",
            "Rank customers by total spend in a period, analyzing every paid order. "
            "Returns name, email, total spend and number of orders.",
            [
                ToolParameter(
                    "period",
                    "string",
                    "Analysis period",
                    required=False,
                    enum=list(PERIODS),
                    default="month",
                ),
                ToolParameter(
                    "limit", "integer", "Maximum customers to return", required=False, default=10
                ),
            ],
            lambda a: analytics.top_customers(client, a.get("period", "month"), a.get("limit", 10)),
        ),
        (
            "getLowStockProducts",
            "List stock-managed products whose quantity is at or below a threshold.",
            [
                ToolParameter(
                    "threshold", "integer", "Stock quantity threshold", required=False, default=5
                )
            ],
            lambda a: analytics.low_stock_products(client, int(a.get("threshold", 5))),
        ),
        (
            "getSalesGrowthComparison",
            "Compare sales revenue between two periods using the store's sales reports. "
            "Returns both totals, the growth rate and the trend. IMPORTANT: only 'week', "
            "'month' and 'year' are supported. For quarterly or custom date ranges, use "
            "the codeInterpreter tool instead.",
            [
                ToolParameter(
                    "currentPeriod",
                    "string",
                    "The recent period",
                    required=False,
                    enum=list(analytics.GROWTH_PERIODS),
                    default="month",
                ),
                ToolParameter(
                    "previousPeriod",
                    "string",
                    "The period before it to compare against",
                    required=False,
                    enum=list(analytics.GROWTH_PERIODS),
                    default="month",
                ),
            ],
            lambda a: analytics.sales_growth(
                client, a.get("currentPeriod", "month"), a.get("previousPeriod", "month")
            ),
        ),
        (
            "getCategories",
            "Fetch product categories with their product counts.",
            [*_paging(), ToolParameter("search", "string", "Match category name", required=False)],
            client.get_categories,
        ),
        (
            "getCoupons",
            "Fetch coupons with their codes, amounts and usage counts.",
            [*_paging(), ToolParameter("search", "string", "Match coupon code", required=False)],
            client.get_coupons,
        ),
        (
            "getProductReviews",
            "Fetch product reviews with ratings and reviewer details.",
            [
                *_paging(),
                ToolParameter(
                    "product", "integer", "Only reviews of this product ID", required=False
                ),
                ToolParameter("status", "string", "Review status", required=False),
            ],
            client.get_reviews,
        ),
        (
            "getReport",
            "Fetch a built-in store report such as 'sales', 'top_sellers' or "
            "'orders/totals'.",
            [
                ToolParameter("report", "string", "Report name"),
                ToolParameter("period", "string", "Report period", required=False),
                ToolParameter("date_min", "string", "Start date, YYYY-MM-DD", required=False),
                ToolParameter("date_max", "string", "End date, YYYY-MM-DD", required=False),
            ],
            lambda a: client.get_report(
                str(a.get("report", "")).strip("/"),
                {k: v for k, v in a.items() if k != "report"},
            ),
        ),
    ]

    return [
        Tool(
            schema=ToolSchema(name=name, description=description, parameters=parameters),
            fn=_wrap(name, call),
        )
        for name, description, parameters, call in specs
    ]
