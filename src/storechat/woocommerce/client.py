"""Async client for the WooCommerce REST API (read-only)."""

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from storechat.config.loader import ConfigError
from storechat.woocommerce.periods import filter_by_customer_date

logger = logging.getLogger(__name__)

API_PREFIX = "/wp-json/wc/v3"
MAX_PER_PAGE = 100


class MissingCredentialsError(ConfigError):
    """Raised when store credentials are absent or incomplete."""

    def __init__(self) -> None:
        super().__init__(
            "Missing WooCommerce credentials. "
            "Please configure url, consumerKey, and consumerSecret."
        )


class StoreAPIError(Exception):
    """Non-success response from the store API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class WooCommerceCredentials(BaseModel):
    """Store URL and REST API key pair supplied with a request."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(min_length=1)
    consumer_key: str = Field(alias="consumerKey", min_length=1)
    consumer_secret: str = Field(alias="consumerSecret", min_length=1)

    @classmethod
    def parse(cls, data: Any) -> "WooCommerceCredentials":
        """Validate caller input, raising :class:`MissingCredentialsError`."""
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(data or {})
        except ValidationError as e:
            raise MissingCredentialsError() from e


@dataclass
class PageResult:
    """One page of a list endpoint, or a single object."""

    data: Any
    total: int | None = None
    total_pages: int | None = None
    current_page: int = 1
    per_page: int = 10

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "total": self.total,
            "totalPages": self.total_pages,
            "currentPage": self.current_page,
            "perPage": self.per_page,
        }


def _int_header(response: httpx.Response, name: str) -> int | None:
    value = response.headers.get(name)
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


class WooCommerceClient:
    """Read-only WooCommerce client bound to one set of credentials.

    Authenticates with the key pair as query parameters and paginates
    with ``page``/``per_page`` using the ``X-WP-Total`` headers.
    """

    def __init__(
        self,
        credentials: WooCommerceCredentials,
        timeout: float = 30.0,
        max_pages: int = 1000,
        default_per_page: int = MAX_PER_PAGE,
    ):
        """Initialize the client.

        Args:
            credentials: Store URL and key pair
            timeout: Request timeout in seconds
            max_pages: Upper bound on pages followed by fetch-all requests
            default_per_page: Page size used by fetch-all requests
        """
        self.credentials = credentials
        self.base_url = credentials.url.rstrip("/") + API_PREFIX
        self.max_pages = max_pages
        self.default_per_page = min(default_per_page, MAX_PER_PAGE)
        self.client = httpx.AsyncClient(timeout=timeout, headers={"Accept": "application/json"})

    async def __aenter__(self) -> "WooCommerceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    async def request(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        method: str = "GET",
    ) -> PageResult:
        """Issue one request.

        Args:
            endpoint: Path below ``/wp-json/wc/v3``, e.g. ``/orders``
            params: Query parameters; None values are dropped
            method: Only GET is accepted

        Returns:
            Page of results with pagination totals

        Raises:
            StoreAPIError: For non-GET methods and non-success responses
        """
        if method.upper() != "GET":
            raise StoreAPIError("Only GET requests are allowed")

        params = {k: v for k, v in (params or {}).items() if v is not None}
        query = {
            **params,
            "consumer_key": self.credentials.consumer_key,
            "consumer_secret": self.credentials.consumer_secret,
        }
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint

        response = await self.client.get(self.base_url + endpoint, params=query)

        if not response.is_success:
            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
            raise StoreAPIError(
                f"WooCommerce API Error ({response.status_code} on GET {endpoint}): "
                f"{json.dumps(body)}",
                status_code=response.status_code,
            )

        current_page = int(params.get("page", 1))
        per_page = int(params.get("per_page", 10))

        content_type = response.headers.get("content-type", "")
        if response.status_code == 204 or "json" not in content_type:
            return PageResult(
                data=[], total=0, total_pages=0, current_page=current_page, per_page=per_page
            )

        return PageResult(
            data=response.json(),
            total=_int_header(response, "x-wp-total"),
            total_pages=_int_header(response, "x-wp-totalpages"),
            current_page=current_page,
            per_page=per_page,
        )

    async def fetch_all_pages(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> list[Any]:
        """Follow pagination sequentially until exhausted.

        Stops at ``max_pages`` to guard against a server that never
        reports the last page.
        """
        params = dict(params or {})
        per_page = min(int(params.pop("per_page", None) or self.default_per_page), MAX_PER_PAGE)
        params.pop("page", None)

        items: list[Any] = []
        page = 1
        while True:
            result = await self.request(endpoint, {**params, "per_page": per_page, "page": page})
            batch = result.data if isinstance(result.data, list) else []
            items.extend(batch)

            if result.total_pages is not None:
                done = page >= result.total_pages
            else:
                done = len(batch) < per_page
            if done or not batch:
                break
            if page >= self.max_pages:
                logger.warning("Stopped paginating %s after %d pages", endpoint, page)
                break
            page += 1

        return items

    async def get_products(self, params: dict[str, Any] | None = None) -> PageResult:
        return await self.request("/products", params)

    async def get_product(self, product_id: int) -> PageResult:
        return await self.request(f"/products/{product_id}")

    async def get_orders(self, params: dict[str, Any] | None = None) -> PageResult:
        return await self.request("/orders", params)

    async def get_order(self, order_id: int) -> PageResult:
        return await self.request(f"/orders/{order_id}")

    async def get_customers(self, params: dict[str, Any] | None = None) -> PageResult:
        """List customers, with client-side date filtering.

        The customers endpoint has no date-range filter, so ``after`` or
        ``before`` switch to fetching every page and filtering locally.
        ``fetchAll`` fetches every page without filtering.
        """
        params = dict(params or {})
        fetch_all = bool(params.pop("fetchAll", False))
        fetch_all = bool(params.pop("fetch_all", False)) or fetch_all
        after = params.pop("after", None)
        before = params.pop("before", None)

        if not (fetch_all or after or before):
            return await self.request("/customers", params)

        customers = await self.fetch_all_pages("/customers", params)
        if after or before:
            customers = filter_by_customer_date(customers, after, before)
        return PageResult(
            data=customers,
            total=len(customers),
            total_pages=1,
            current_page=1,
            per_page=len(customers),
        )

    async def get_customer(self, customer_id: int) -> PageResult:
        return await self.request(f"/customers/{customer_id}")

    async def get_categories(self, params: dict[str, Any] | None = None) -> PageResult:
        return await self.request("/products/categories", params)

    async def get_coupons(self, params: dict[str, Any] | None = None) -> PageResult:
        return await self.request("/coupons", params)

    async def get_reviews(self, params: dict[str, Any] | None = None) -> PageResult:
        return await self.request("/products/reviews", params)

    async def get_report(
        self, report_type: str, params: dict[str, Any] | None = None
    ) -> PageResult:
        return await self.request(f"/reports/{report_type}", params)
