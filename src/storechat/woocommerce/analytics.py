"""Composite analytics built on the store client."""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

from storechat.woocommerce.client import WooCommerceClient
from storechat.woocommerce.periods import format_iso, period_window

PAID_STATUSES = "completed,processing"
GROWTH_PERIODS = ("week", "month", "year")


def _money(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


async def _orders_in_window(
    client: WooCommerceClient, after: datetime, before: datetime | None
) -> list[dict[str, Any]]:
    return await client.fetch_all_pages(
        "/orders",
        {
            "after": format_iso(after),
            "before": format_iso(before) if before else None,
            "status": PAID_STATUSES,
        },
    )


async def store_overview(
    client: WooCommerceClient, period: str = "month", now: datetime | None = None
) -> dict[str, Any]:
    """Revenue, orders, new customers and top products for a period.

    The four remote fetches run concurrently.
    """
    now = now or datetime.now(UTC)
    after, before = period_window(period, now)

    orders, customers, products, coupons = await asyncio.gather(
        _orders_in_window(client, after, before),
        client.get_customers(
            {
                "fetchAll": True,
                "after": format_iso(after),
                "before": format_iso(before) if before else None,
            }
        ),
        client.get_products({"per_page": 1}),
        client.get_coupons({"per_page": 1}),
    )

    total_revenue = sum(_money(order.get("total")) for order in orders)
    average_order_value = total_revenue / len(orders) if orders else 0.0

    # dict preserves first-seen order, sorted() is stable
    quantities: dict[str, int] = {}
    for order in orders:
        for item in order.get("line_items") or []:
            name = item.get("name")
            quantities[name] = quantities.get(name, 0) + int(item.get("quantity") or 0)
    top_products = sorted(quantities.items(), key=lambda kv: kv[1], reverse=True)[:5]

    return {
        "success": True,
        "data": {
            "period": period,
            "dateRange": {"from": format_iso(after), "to": format_iso(before or now)},
            "totalRevenue": round(total_revenue, 2),
            "totalOrders": len(orders),
            "totalNewCustomers": customers.total,
            "averageOrderValue": round(average_order_value, 2),
            "topSellingProducts": [{"name": n, "quantity": q} for n, q in top_products],
            "totalProductsInStore": products.total,
            "totalCouponsAvailable": coupons.total,
        },
    }


async def top_customers(
    client: WooCommerceClient,
    period: str = "month",
    limit: int = 10,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Rank customers by spend over every paid order in the period.

    Orders without a billing email are keyed ``guest_<orderId>`` and are
    never merged with each other.
    """
    after, before = period_window(period, now)
    orders = await _orders_in_window(client, after, before)

    customers: dict[str, dict[str, Any]] = {}
    for order in orders:
        billing = order.get("billing") or {}
        key = billing.get("email") or f"guest_{order.get('id')}"
        name = f"{billing.get('first_name') or ''} {billing.get('last_name') or ''}".strip()
        entry = customers.setdefault(
            key, {"name": name or "Guest", "email": key, "total": 0.0, "orders": 0}
        )
        entry["total"] += _money(order.get("total"))
        entry["orders"] += 1

    ranked = sorted(customers.values(), key=lambda c: c["total"], reverse=True)[: int(limit)]
    for entry in ranked:
        entry["total"] = round(entry["total"], 2)
    return {"success": True, "data": ranked}


async def low_stock_products(client: WooCommerceClient, threshold: int = 5) -> dict[str, Any]:
    """Stock-managed products at or below ``threshold`` units."""
    products = await client.fetch_all_pages("/products", {"per_page": 100})
    low = [
        {
            "id": p.get("id"),
            "name": p.get("name"),
            "sku": p.get("sku"),
            "stock_quantity": p.get("stock_quantity"),
            "permalink": p.get("permalink"),
        }
        for p in products
        if p.get("manage_stock")
        and isinstance(p.get("stock_quantity"), int | float)
        and not isinstance(p.get("stock_quantity"), bool)
        and p["stock_quantity"] <= threshold
    ]
    return {"success": True, "data": low, "count": len(low)}


def _report_params(period: str, previous: bool, now: datetime) -> dict[str, Any]:
    if not previous:
        return {"period": period}
    if period == "month":
        return {"period": "last_month"}
    today = now.date()
    if period == "week":
        return {
            "date_min": (today - timedelta(days=14)).isoformat(),
            "date_max": (today - timedelta(days=8)).isoformat(),
        }
    return {
        "date_min": today.replace(year=today.year - 1, month=1, day=1).isoformat(),
        "date_max": today.replace(year=today.year - 1, month=12, day=31).isoformat(),
    }


def _sum_sales(rows: Any) -> float:
    if not isinstance(rows, list):
        return 0.0
    return sum(_money(row.get("total_sales")) for row in rows if isinstance(row, dict))


async def sales_growth(
    client: WooCommerceClient,
    current_period: str = "month",
    previous_period: str = "month",
    now: datetime | None = None,
) -> dict[str, Any]:
    """Compare built-in sales reports for two periods.

    Only week, month and year are supported; quarters and custom ranges
    belong to the code interpreter.
    """
    for period in (current_period, previous_period):
        if period not in GROWTH_PERIODS:
            raise ValueError(
                f"Unsupported period '{period}'. Use week, month or year, "
                "or the codeInterpreter tool for custom ranges."
            )

    now = now or datetime.now(UTC)
    current, previous = await asyncio.gather(
        client.get_report("sales", _report_params(current_period, False, now)),
        client.get_report("sales", _report_params(previous_period, True, now)),
    )

    current_total = _sum_sales(current.data)
    previous_total = _sum_sales(previous.data)
    growth = (current_total - previous_total) / previous_total * 100 if previous_total > 0 else 0.0

    return {
        "success": True,
        "data": {
            "currentPeriod": current_period,
            "previousPeriod": previous_period,
            "currentTotal": round(current_total, 2),
            "previousTotal": round(previous_total, 2),
            "growthRate": round(growth, 2),
            "trend": "up" if growth > 0 else "down" if growth < 0 else "stable",
        },
    }
