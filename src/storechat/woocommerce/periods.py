"""Reporting periods and date handling for store queries."""

from datetime import UTC, datetime, timedelta
from typing import Any

PERIODS = ("week", "month", "last_month", "year")

# First populated field wins
CUSTOMER_DATE_FIELDS = ("date_registered", "date_created", "date_created_gmt", "date_modified")


def period_window(period: str, now: datetime | None = None) -> tuple[datetime, datetime | None]:
    """Map a named period to an ``[after, before)`` window.

    ``before`` is None when the window runs up to ``now``.

    Args:
        period: week (last 7 days), month (month to date), last_month
            (previous full month) or year (year to date)
        now: Reference time, defaults to the current UTC time

    Raises:
        ValueError: For an unknown period
    """
    now = now or datetime.now(UTC)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    if period == "week":
        return now - timedelta(days=7), None
    if period == "month":
        return month_start, None
    if period == "last_month":
        previous_start = (month_start - timedelta(days=1)).replace(day=1)
        return previous_start, month_start
    if period == "year":
        return month_start.replace(month=1), None

    raise ValueError(f"Unknown period '{period}'. Valid periods: {', '.join(PERIODS)}")


def format_iso(value: datetime) -> str:
    """Format a datetime the way the store API expects (UTC, no offset)."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S")


def parse_date(value: Any) -> datetime | None:
    """Parse an ISO-8601 string; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def customer_date(customer: dict[str, Any]) -> datetime | None:
    for field in CUSTOMER_DATE_FIELDS:
        if customer.get(field):
            return parse_date(customer[field])
    return None


def filter_by_customer_date(
    customers: list[dict[str, Any]],
    after: Any = None,
    before: Any = None,
) -> list[dict[str, Any]]:
    """Keep customers whose first populated date falls in ``[after, before)``.

    Customers without any of the date fields cannot be range-matched and
    are dropped.
    """
    start = parse_date(after)
    end = parse_date(before)

    kept = []
    for customer in customers:
        when = customer_date(customer)
        if when is None:
            continue
        if start is not None and when < start:
            continue
        if end is not None and when >= end:
            continue
        kept.append(customer)
    return kept
