"""
External Integrations

Network clients used to acquire site content:
- Fetcher: httpx with a curl fallback for connections rejected by bot defenses
- Catalog: public storefront product endpoints (Shopify, Salla, Zid, WooCommerce)
"""

from .fetcher import FetchResolver, FetchResult, FetchOutputTooLargeError, parse_fallback_output
from .catalog import CatalogClient, normalize_catalog_item, parse_price

__all__ = [
    # Fetcher
    "FetchResolver",
    "FetchResult",
    "FetchOutputTooLargeError",
    "parse_fallback_output",
    # Catalog
    "CatalogClient",
    "normalize_catalog_item",
    "parse_price",
]
