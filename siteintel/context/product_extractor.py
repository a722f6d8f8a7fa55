"""
Product Extractor

Builds a normalized product list for a storefront by running a chain of
extraction strategies until one returns products:

1. Platform catalog API (Shopify, Salla, Zid), independent of scraping
2. JSON-LD structured data (Product, ItemList, @graph)
3. HTML product-card patterns (common theme class names)
4. Catalog endpoint probe, for stores on an unknown platform
5. Claude extraction from page text

Strategies are isolated: one that raises is logged and skipped.
ProductExtractor.extract() never raises and returns [] when nothing is found.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, TYPE_CHECKING
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from pydantic import BaseModel, Field, ValidationError

from siteintel.integrations.catalog import (
    PROBE_PATHS,
    SHOPIFY_PATH,
    STOREFRONT_API_PATH,
    CatalogClient,
    parse_price,
    strip_html,
)
from siteintel.models import ExtractedProduct, Platform
from siteintel.utils.config import get_settings

if TYPE_CHECKING:
    from siteintel.analyzer.client import ClaudeClient

logger = logging.getLogger(__name__)


# =============================================================================
# PLATFORM CLASSIFICATION
# =============================================================================

PLATFORM_DOMAINS = {
    Platform.SHOPIFY: ("myshopify.com",),
    Platform.SALLA: ("salla.sa", "salla.shop"),
    Platform.ZID: ("zid.store", "zid.sa"),
}

PLATFORM_CATALOG_PATHS = {
    Platform.SHOPIFY: [SHOPIFY_PATH],
    Platform.SALLA: [STOREFRONT_API_PATH],
    Platform.ZID: [STOREFRONT_API_PATH],
}


def classify_platform(url: str) -> Platform:
    """Identify the storefront platform from the URL's hostname."""
    host = (urlparse(url).hostname or "").lower()
    for platform, domains in PLATFORM_DOMAINS.items():
        if any(host == domain or host.endswith("." + domain) for domain in domains):
            return platform
    return Platform.GENERIC


# =============================================================================
# STRATEGIES
# =============================================================================


class ProductExtractionStrategy(ABC):
    """One way of finding products for a page."""

    name = "base"

    @abstractmethod
    async def extract(self, url: str, html: str, text: str) -> List[ExtractedProduct]:
        """Return products found, or [] when this strategy has nothing."""


class CatalogApiStrategy(ProductExtractionStrategy):
    """Reads the store's public catalog endpoint(s)."""

    name = "catalog_api"

    def __init__(self, catalog: CatalogClient, paths: List[str], name: Optional[str] = None):
        self.catalog = catalog
        self.paths = paths
        if name:
            self.name = name

    async def extract(self, url: str, html: str, text: str) -> List[ExtractedProduct]:
        return await self.catalog.probe(url, self.paths)


class StructuredDataStrategy(ProductExtractionStrategy):
    """Parses schema.org JSON-LD blocks."""

    name = "structured_data"
    CONFIDENCE = 95

    def __init__(self, default_currency: Optional[str] = None):
        self.default_currency = default_currency or get_settings().DEFAULT_CURRENCY

    async def extract(self, url: str, html: str, text: str) -> List[ExtractedProduct]:
        if not html:
            return []

        soup = BeautifulSoup(html, "html.parser")
        products = []
        seen = set()

        for script in soup.find_all("script", type="application/ld+json"):
            raw = script.string or script.get_text()
            try:
                data = json.loads(raw)
            except (json.JSONDecodeError, TypeError):
                logger.debug(f"Skipping unparseable JSON-LD block on {url}")
                continue

            for node in self._product_nodes(data):
                product = self._to_product(node, url)
                if product is None:
                    continue
                key = (product.name, product.product_url)
                if key not in seen:
                    seen.add(key)
                    products.append(product)

        return products

    def _product_nodes(self, data: Any) -> Iterator[Dict[str, Any]]:
        if isinstance(data, list):
            for entry in data:
                yield from self._product_nodes(entry)
            return

        if not isinstance(data, dict):
            return

        if "@graph" in data:
            yield from self._product_nodes(data["@graph"])

        types = data.get("@type", [])
        types = types if isinstance(types, list) else [types]

        if "Product" in types:
            yield data
        elif "ItemList" in types:
            for element in data.get("itemListElement") or []:
                if isinstance(element, dict):
                    item = element.get("item", element)
                    yield from self._product_nodes(item)

    def _to_product(self, node: Dict[str, Any], base_url: str) -> Optional[ExtractedProduct]:
        name = node.get("name")
        if not isinstance(name, str) or not name.strip():
            return None

        offers = node.get("offers") or {}
        if isinstance(offers, list):
            offers = offers[0] if offers else {}
        if not isinstance(offers, dict):
            offers = {}

        price = offers.get("price")
        if price is None:
            price = offers.get("lowPrice")

        availability = str(offers.get("availability") or "")

        image = node.get("image")
        if isinstance(image, list):
            image = image[0] if image else None
        if isinstance(image, dict):
            image = image.get("url")

        product_url = node.get("url") or offers.get("url")
        category = node.get("category")
        description = node.get("description")

        return ExtractedProduct(
            name=name.strip(),
            description=strip_html(description) if isinstance(description, str) else "",
            price=parse_price(price),
            currency=offers.get("priceCurrency") or self.default_currency,
            image_url=urljoin(base_url, image) if isinstance(image, str) else None,
            product_url=urljoin(base_url, product_url) if isinstance(product_url, str) else None,
            category=category if isinstance(category, str) else None,
            in_stock="OutOfStock" not in availability,
            confidence=self.CONFIDENCE,
            source=self.name,
        )


class HtmlPatternStrategy(ProductExtractionStrategy):
    """Finds product cards by the class names popular store themes use."""

    name = "html_patterns"
    CONFIDENCE = 75

    CARD_SELECTORS = [
        ".product-card",
        ".product-item",
        ".product",
        "[data-product]",
        "[data-product-id]",
        ".s-product-card",
        ".woocommerce-loop-product",
        ".product-grid-item",
    ]
    NAME_SELECTORS = [
        ".product-title",
        ".product-name",
        "h3",
        "h2",
        ".s-product-card-entry__title",
        ".woocommerce-loop-product__title",
    ]
    PRICE_SELECTORS = [
        ".price",
        ".product-price",
        ".s-product-card-entry__price",
        ".amount",
    ]

    def __init__(self, max_products: Optional[int] = None, default_currency: Optional[str] = None):
        settings = get_settings()
        self.max_products = max_products or settings.MAX_CATALOG_PRODUCTS
        self.default_currency = default_currency or settings.DEFAULT_CURRENCY

    async def extract(self, url: str, html: str, text: str) -> List[ExtractedProduct]:
        if not html:
            return []

        soup = BeautifulSoup(html, "html.parser")

        # First selector that yields products wins
        for selector in self.CARD_SELECTORS:
            cards = soup.select(selector)
            if not cards:
                continue

            products = []
            for card in cards[:self.max_products]:
                product = self._card_to_product(card, url)
                if product:
                    products.append(product)

            if products:
                logger.debug(f"HTML pattern {selector} matched {len(products)} products on {url}")
                return products

        return []

    def _select_text(self, card, selectors: List[str]) -> str:
        for selector in selectors:
            element = card.select_one(selector)
            if element:
                value = element.get_text(" ", strip=True)
                if value:
                    return value
        return ""

    def _card_to_product(self, card, base_url: str) -> Optional[ExtractedProduct]:
        name = self._select_text(card, self.NAME_SELECTORS)
        if not name:
            return None

        image = card.find("img")
        image_src = (image.get("src") or image.get("data-src")) if image else None

        link = card.find("a", href=True)

        return ExtractedProduct(
            name=name,
            price=parse_price(self._select_text(card, self.PRICE_SELECTORS)),
            currency=self.default_currency,
            image_url=urljoin(base_url, image_src) if image_src else None,
            product_url=urljoin(base_url, link["href"]) if link else None,
            confidence=self.CONFIDENCE,
            source=self.name,
        )


# =============================================================================
# AI EXTRACTION
# =============================================================================

AI_EXTRACTION_SYSTEM_PROMPT = """You extract product and service listings from online store content.
Only list items that are actually offered for sale on the page.
Return JSON only, no other text."""

AI_EXTRACTION_PROMPT = """Extract every product or service offered on this website.

## Website: {url}

## Content:
{content}

Return a JSON object with this structure:
```json
{{
    "products": [
        {{
            "name": "Product name",
            "description": "Short description",
            "price": 100.0,
            "currency": "SAR",
            "category": "Category or null",
            "tags": ["tag1", "tag2"],
            "in_stock": true,
            "confidence": 85
        }}
    ]
}}
```

Use null for a price that is not shown. Confidence is 0-100."""


class AIProduct(BaseModel):
    name: str
    description: str = ""
    price: Optional[float] = None
    currency: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    in_stock: bool = True
    confidence: int = 60


class AIProductsPayload(BaseModel):
    """Expected shape of the AI extraction response; items are checked one by one."""
    products: List[Any] = Field(default_factory=list)


class AIExtractionStrategy(ProductExtractionStrategy):
    """Asks Claude to read products out of the page text."""

    name = "ai"
    MIN_TEXT_LENGTH = 100

    def __init__(
        self,
        claude_client: "ClaudeClient",
        text_limit: Optional[int] = None,
        default_currency: Optional[str] = None,
    ):
        settings = get_settings()
        self.claude_client = claude_client
        self.text_limit = text_limit or settings.AI_TEXT_LIMIT
        self.default_currency = default_currency or settings.DEFAULT_CURRENCY

    async def extract(self, url: str, html: str, text: str) -> List[ExtractedProduct]:
        if len(text) < self.MIN_TEXT_LENGTH:
            logger.info(f"Not enough text on {url} for AI extraction ({len(text)} chars)")
            return []

        payload = await self.claude_client.invoke_json(
            AI_EXTRACTION_PROMPT.format(url=url, content=text[:self.text_limit]),
            AIProductsPayload,
            system=AI_EXTRACTION_SYSTEM_PROMPT,
        )
        if payload is None:
            return []

        items = []
        for raw in payload.products:
            try:
                items.append(AIProduct.model_validate(raw))
            except ValidationError as e:
                logger.info(f"Dropping unreadable AI product from {url}: {e.error_count()} errors")

        return [
            ExtractedProduct(
                name=item.name.strip(),
                description=item.description,
                price=item.price,
                currency=item.currency or self.default_currency,
                category=item.category,
                tags=item.tags,
                in_stock=item.in_stock,
                confidence=max(0, min(100, item.confidence)),
                source=self.name,
            )
            for item in items
            if item.name.strip()
        ]


# =============================================================================
# EXTRACTOR
# =============================================================================


class ProductExtractor:
    """
    Runs the strategy chain for a URL.

    Usage:
        extractor = ProductExtractor(claude_client=client)
        products = await extractor.extract(url, html, text)
        await extractor.close()
    """

    def __init__(
        self,
        claude_client: Optional["ClaudeClient"] = None,
        catalog: Optional[CatalogClient] = None,
    ):
        self.claude_client = claude_client
        self.catalog = catalog or CatalogClient()

    def strategies_for(self, url: str) -> List[ProductExtractionStrategy]:
        """Ordered strategy chain for a URL."""
        platform = classify_platform(url)
        chain: List[ProductExtractionStrategy] = []

        if platform in PLATFORM_CATALOG_PATHS:
            chain.append(CatalogApiStrategy(self.catalog, PLATFORM_CATALOG_PATHS[platform]))

        chain.append(StructuredDataStrategy())
        chain.append(HtmlPatternStrategy())

        if platform == Platform.GENERIC:
            chain.append(CatalogApiStrategy(self.catalog, PROBE_PATHS, name="catalog_probe"))

        if self.claude_client:
            chain.append(AIExtractionStrategy(self.claude_client))

        return chain

    async def extract(self, url: str, html: str = "", text: str = "") -> List[ExtractedProduct]:
        """
        Extract products for a page.

        Args:
            url: Page URL (drives platform detection and URL resolution)
            html: Page HTML, may be empty when scraping failed
            text: Normalized page text, may be empty

        Returns:
            Products from the first strategy that found any, or []
        """
        for strategy in self.strategies_for(url):
            try:
                products = await strategy.extract(url, html, text)
            except Exception as e:
                logger.warning(f"Product strategy {strategy.name} failed for {url}: {e}")
                continue

            if products:
                logger.info(f"Extracted {len(products)} products from {url} via {strategy.name}")
                return products

        logger.info(f"No products found for {url}")
        return []

    async def close(self):
        """Close the catalog client."""
        await self.catalog.close()
