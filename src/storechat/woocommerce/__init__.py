"""WooCommerce REST client and store analytics."""

from storechat.woocommerce.client import (
    MissingCredentialsError,
    PageResult,
    StoreAPIError,
    WooCommerceClient,
    WooCommerceCredentials,
)

__all__ = [
    "MissingCredentialsError",
    "PageResult",
    "StoreAPIError",
    "WooCommerceClient",
    "WooCommerceCredentials",
]
