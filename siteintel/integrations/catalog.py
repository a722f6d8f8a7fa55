"""
Storefront Catalog Client

Reads the public product catalog that e-commerce platforms expose
alongside the storefront:
- Shopify: /products.json
- Salla / Zid: /api/products
- WooCommerce: /wp-json/wc/store/v1/products (Store API)

Responses are normalized into ExtractedProduct records. Catalog lookups are
best-effort: any transport error, non-200 status or non-JSON body yields an
empty list.
"""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from siteintel.models import ExtractedProduct
from siteintel.utils.config import get_settings

logger = logging.getLogger(__name__)


SHOPIFY_PATH = "/products.json"
STOREFRONT_API_PATH = "/api/products"
WOOCOMMERCE_PATH = "/wp-json/wc/store/v1/products"

# Probed in order when the platform is unknown
PROBE_PATHS = [STOREFRONT_API_PATH, SHOPIFY_PATH, WOOCOMMERCE_PATH]

CATALOG_CONFIDENCE = 90
DESCRIPTION_LIMIT = 200

ARABIC_DIGITS = str.maketrans("٠١٢٣٤٥٦٧٨٩", "0123456789")
PRICE_PATTERN = re.compile(r"\d[\d,]*(?:\.\d+)?", re.ASCII)


# =============================================================================
# NORMALIZATION
# =============================================================================


def parse_price(value: Any) -> Optional[float]:
    """
    Parse a price from a number or display string.

    Takes the first number in the text and drops thousands separators
    ("1,299.00 SAR" -> 1299.0, "ر.س 100" -> 100.0). Arabic-Indic digits and
    the Arabic decimal separator are understood.
    Returns None when no number can be read.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).translate(ARABIC_DIGITS).replace("٫", ".").replace("٬", ",")
    match = PRICE_PATTERN.search(text)
    if not match:
        return None

    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def strip_html(html: str) -> str:
    """Collapse an HTML fragment to plain text."""
    text = BeautifulSoup(html or "", "html.parser").get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


def extract_items(data: Any) -> List[Dict[str, Any]]:
    """Find the product list in a catalog payload ({products}, {data} or a bare list)."""
    if isinstance(data, dict):
        data = data.get("products", data.get("data"))
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


def _first_image(item: Dict[str, Any]) -> Optional[str]:
    image = item.get("image")
    if isinstance(image, str):
        return image
    if isinstance(image, dict):
        return image.get("src") or image.get("url")

    images = item.get("images")
    if isinstance(images, list) and images:
        first = images[0]
        if isinstance(first, str):
            return first
        if isinstance(first, dict):
            return first.get("src") or first.get("url")

    thumbnail = item.get("thumbnail")
    return thumbnail if isinstance(thumbnail, str) else None


def _item_price(item: Dict[str, Any]) -> Optional[float]:
    # WooCommerce Store API reports minor units
    prices = item.get("prices")
    if isinstance(prices, dict) and prices.get("price") is not None:
        amount = parse_price(prices.get("price"))
        if amount is None:
            return None
        minor_unit = int(prices.get("currency_minor_unit") or 0)
        return amount / (10 ** minor_unit)

    price = item.get("price")
    if isinstance(price, dict):
        # Salla style {"amount": 120, "currency": "SAR"}
        price = price.get("amount")
    if price is not None:
        return parse_price(price)

    variants = item.get("variants")
    if isinstance(variants, list) and variants and isinstance(variants[0], dict):
        return parse_price(variants[0].get("price"))

    return None


def _item_currency(item: Dict[str, Any], default: str) -> str:
    prices = item.get("prices")
    if isinstance(prices, dict) and prices.get("currency_code"):
        return prices["currency_code"]

    price = item.get("price")
    if isinstance(price, dict) and price.get("currency"):
        return price["currency"]

    return item.get("currency") or default


def _item_in_stock(item: Dict[str, Any]) -> bool:
    for key in ("available", "is_in_stock", "is_available"):
        if key in item:
            return bool(item[key])

    variants = item.get("variants")
    if isinstance(variants, list) and variants:
        flags = [v.get("available") for v in variants if isinstance(v, dict) and "available" in v]
        if flags:
            return any(flags)

    return True


def _item_url(item: Dict[str, Any], base_url: str) -> Optional[str]:
    url = item.get("url") or item.get("permalink")
    if isinstance(url, str) and url:
        return urljoin(base_url, url)

    handle = item.get("handle")
    if isinstance(handle, str) and handle:
        return urljoin(base_url, f"/products/{handle}")

    return None


def normalize_catalog_item(
    item: Dict[str, Any],
    base_url: str,
    default_currency: str = "SAR",
) -> Optional[ExtractedProduct]:
    """
    Normalize one catalog entry into an ExtractedProduct.

    Returns None for entries without a usable name.
    """
    name = item.get("title") or item.get("name")
    if not isinstance(name, str) or not name.strip():
        return None

    description = item.get("body_html") or item.get("description") or ""
    if not isinstance(description, str):
        description = ""

    category = None
    product_type = item.get("product_type")
    categories = item.get("categories")
    if isinstance(product_type, str) and product_type:
        category = product_type
    elif isinstance(categories, list) and categories and isinstance(categories[0], dict):
        category = categories[0].get("name")

    tags = item.get("tags") or []
    if isinstance(tags, str):
        tags = [t.strip() for t in tags.split(",") if t.strip()]
    elif isinstance(tags, list):
        tags = [t.get("name", "") if isinstance(t, dict) else str(t) for t in tags]
        tags = [t for t in tags if t]
    else:
        tags = []

    return ExtractedProduct(
        name=name.strip(),
        description=strip_html(description)[:DESCRIPTION_LIMIT],
        price=_item_price(item),
        currency=_item_currency(item, default_currency),
        image_url=_first_image(item),
        product_url=_item_url(item, base_url),
        category=category,
        tags=tags,
        in_stock=_item_in_stock(item),
        confidence=CATALOG_CONFIDENCE,
        source="catalog_api",
    )


# =============================================================================
# CLIENT
# =============================================================================


class CatalogClient:
    """
    Fetches storefront catalog endpoints.

    Usage:
        async with CatalogClient() as catalog:
            products = await catalog.fetch_products("https://shop.example", "/products.json")
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_products: Optional[int] = None,
        default_currency: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.CATALOG_API_TIMEOUT
        self.max_products = max_products or settings.MAX_CATALOG_PRODUCTS
        self.default_currency = default_currency or settings.DEFAULT_CURRENCY

        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def fetch_products(self, base_url: str, path: str) -> List[ExtractedProduct]:
        """
        Fetch and normalize one catalog endpoint.

        Args:
            base_url: Any URL on the store (only the origin is used)
            path: Endpoint path, e.g. "/products.json"

        Returns:
            Normalized products (at most max_products), or [] on any failure
        """
        parsed = urlparse(base_url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        endpoint = urljoin(origin, path)

        try:
            response = await self._get_client().get(endpoint)
        except httpx.HTTPError as e:
            logger.debug(f"Catalog endpoint {endpoint} unreachable: {e}")
            return []

        if response.status_code != 200:
            logger.debug(f"Catalog endpoint {endpoint} returned HTTP {response.status_code}")
            return []

        content_type = response.headers.get("content-type", "")
        if "json" not in content_type:
            logger.debug(f"Catalog endpoint {endpoint} is not JSON ({content_type})")
            return []

        try:
            data = response.json()
        except ValueError as e:
            logger.debug(f"Catalog endpoint {endpoint} returned invalid JSON: {e}")
            return []

        products = []
        for item in extract_items(data)[:self.max_products]:
            product = normalize_catalog_item(item, origin, self.default_currency)
            if product:
                products.append(product)

        if products:
            logger.info(f"Catalog endpoint {endpoint}: {len(products)} products")
        return products

    async def probe(self, base_url: str, paths: Optional[List[str]] = None) -> List[ExtractedProduct]:
        """Try each endpoint in turn and return the first non-empty catalog."""
        for path in paths or PROBE_PATHS:
            products = await self.fetch_products(base_url, path)
            if products:
                return products
        return []

    async def close(self):
        """Close the HTTP client if this catalog client created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
