"""
Tests for product extraction.

These tests verify:
- Platform classification from the URL
- Catalog normalization (Shopify, Salla, WooCommerce shapes)
- JSON-LD and HTML card strategies
- Strategy chain ordering and isolation
"""

import json
import pytest
from unittest.mock import AsyncMock, MagicMock

import httpx

from siteintel.context.product_extractor import (
    AIExtractionStrategy,
    AIProduct,
    AIProductsPayload,
    HtmlPatternStrategy,
    ProductExtractor,
    StructuredDataStrategy,
    classify_platform,
)
from siteintel.integrations.catalog import (
    CatalogClient,
    normalize_catalog_item,
    parse_price,
)
from siteintel.models import ExtractedProduct, Platform


# =============================================================================
# PLATFORM CLASSIFICATION
# =============================================================================

class TestClassifyPlatform:

    @pytest.mark.parametrize("url,platform", [
        ("https://dates.myshopify.com", Platform.SHOPIFY),
        ("https://store.salla.sa/en", Platform.SALLA),
        ("https://salla.sa", Platform.SALLA),
        ("https://perfume.zid.store", Platform.ZID),
        ("https://desertdates.example.sa", Platform.GENERIC),
        ("https://notsalla.sa", Platform.GENERIC),
    ])
    def test_classification(self, url, platform):
        assert classify_platform(url) == platform


# =============================================================================
# CATALOG NORMALIZATION
# =============================================================================

class TestParsePrice:

    @pytest.mark.parametrize("value,expected", [
        (120, 120.0),
        ("1,299.00 SAR", 1299.0),
        ("٢٥٠ ر.س", 250.0),
        ("١٢٫٥", 12.5),
        ("100.00 ر.س", 100.0),
        ("ر.س 100", 100.0),
        ("١٢٠٫٠٠ ر.س", 120.0),
        ("SAR 1,299.00", 1299.0),
        ("٣٬٥٠٠ ر.س", 3500.0),
        ("free", None),
        (None, None),
        (True, None),
    ])
    def test_parse(self, value, expected):
        assert parse_price(value) == expected


class TestNormalizeCatalogItem:

    def test_shopify_item(self):
        item = {
            "title": "Ajwa Dates",
            "handle": "ajwa-dates",
            "body_html": "<p>Soft dates</p>",
            "product_type": "Dates",
            "tags": "premium, madinah",
            "images": [{"src": "https://cdn.shopify.com/ajwa.jpg"}],
            "variants": [{"price": "120.00", "available": False}],
        }

        product = normalize_catalog_item(item, "https://dates.myshopify.com", "SAR")

        assert product.name == "Ajwa Dates"
        assert product.description == "Soft dates"
        assert product.price == 120.0
        assert product.category == "Dates"
        assert product.tags == ["premium", "madinah"]
        assert product.image_url == "https://cdn.shopify.com/ajwa.jpg"
        assert product.product_url == "https://dates.myshopify.com/products/ajwa-dates"
        assert product.in_stock is False
        assert product.confidence == 90
        assert product.source == "catalog_api"

    def test_salla_price_dict(self):
        item = {"name": "Oud Oil", "price": {"amount": 350, "currency": "AED"}, "url": "/p/oud"}

        product = normalize_catalog_item(item, "https://store.salla.sa", "SAR")

        assert product.price == 350.0
        assert product.currency == "AED"
        assert product.product_url == "https://store.salla.sa/p/oud"

    def test_woocommerce_minor_units(self):
        item = {
            "name": "Sukkari",
            "permalink": "https://shop.example.sa/product/sukkari",
            "prices": {"price": "8500", "currency_code": "SAR", "currency_minor_unit": 2},
            "categories": [{"name": "Dates"}],
            "is_in_stock": True,
        }

        product = normalize_catalog_item(item, "https://shop.example.sa")

        assert product.price == 85.0
        assert product.currency == "SAR"
        assert product.category == "Dates"

    def test_description_truncated(self):
        product = normalize_catalog_item({"name": "Long", "description": "x" * 500}, "https://a.sa")
        assert len(product.description) == 200

    def test_nameless_item_skipped(self):
        assert normalize_catalog_item({"price": 10}, "https://a.sa") is None


class TestCatalogClient:

    @staticmethod
    def make_catalog(handler) -> CatalogClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return CatalogClient(client=client, max_products=2, default_currency="SAR")

    @pytest.mark.asyncio
    async def test_fetch_products(self):
        payload = {"products": [{"title": f"Item {i}", "variants": [{"price": "10"}]} for i in range(5)]}
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json=payload)

        catalog = self.make_catalog(handler)
        products = await catalog.fetch_products("https://dates.myshopify.com/collections/all", "/products.json")

        assert seen == ["https://dates.myshopify.com/products.json"]
        assert [p.name for p in products] == ["Item 0", "Item 1"]

    @pytest.mark.asyncio
    async def test_html_response_ignored(self):
        catalog = self.make_catalog(
            lambda request: httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"})
        )
        assert await catalog.fetch_products("https://a.sa", "/api/products") == []

    @pytest.mark.asyncio
    async def test_error_status_ignored(self):
        catalog = self.make_catalog(lambda request: httpx.Response(404, json={"error": "missing"}))
        assert await catalog.fetch_products("https://a.sa", "/api/products") == []

    @pytest.mark.asyncio
    async def test_transport_error_ignored(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        catalog = self.make_catalog(handler)
        assert await catalog.fetch_products("https://a.sa", "/api/products") == []

    @pytest.mark.asyncio
    async def test_probe_tries_paths_in_order(self):
        def handler(request):
            if request.url.path == "/wp-json/wc/store/v1/products":
                return httpx.Response(200, json=[{"name": "Woo item", "prices": {"price": "500"}}])
            return httpx.Response(404)

        catalog = self.make_catalog(handler)
        products = await catalog.probe("https://shop.example.sa")

        assert [p.name for p in products] == ["Woo item"]
        assert products[0].price == 500.0


# =============================================================================
# PAGE STRATEGIES
# =============================================================================

class TestStructuredDataStrategy:

    @pytest.mark.asyncio
    async def test_single_product(self, store_html):
        products = await StructuredDataStrategy("SAR").extract(
            "https://desertdates.example.sa", store_html, ""
        )

        assert len(products) == 1
        product = products[0]
        assert product.name == "Ajwa Dates 1kg"
        assert product.description == "Soft Ajwa dates from Madinah"
        assert product.price == 120.0
        assert product.image_url == "https://desertdates.example.sa/images/ajwa.jpg"
        assert product.product_url == "https://desertdates.example.sa/products/ajwa"
        assert product.confidence == 95
        assert product.source == "structured_data"

    @pytest.mark.asyncio
    async def test_graph_and_item_list(self):
        data = {
            "@graph": [
                {"@type": "WebSite", "name": "Store"},
                {
                    "@type": "ItemList",
                    "itemListElement": [
                        {"@type": "ListItem", "item": {"@type": "Product", "name": "A", "offers": [{"price": 5}]}},
                        {"@type": "ListItem", "item": {"@type": "Product", "name": "B",
                                                       "offers": {"lowPrice": "7", "availability": "OutOfStock"}}},
                        {"@type": "ListItem", "item": {"@type": "Product", "name": "A", "offers": [{"price": 5}]}},
                    ],
                },
            ]
        }
        html = f'<script type="application/ld+json">{json.dumps(data)}</script>'

        products = await StructuredDataStrategy("SAR").extract("https://a.sa", html, "")

        assert [(p.name, p.price, p.in_stock) for p in products] == [("A", 5.0, True), ("B", 7.0, False)]

    @pytest.mark.asyncio
    async def test_invalid_json_skipped(self):
        html = '<script type="application/ld+json">{not json</script>'
        assert await StructuredDataStrategy("SAR").extract("https://a.sa", html, "") == []


class TestHtmlPatternStrategy:

    @pytest.mark.asyncio
    async def test_product_cards(self, store_html):
        strategy = HtmlPatternStrategy(max_products=10, default_currency="SAR")
        products = await strategy.extract("https://desertdates.example.sa", store_html, "")

        assert [(p.name, p.price) for p in products] == [
            ("Ajwa Dates 1kg", 120.0),
            ("Sukkari Dates 1kg", 85.0),
        ]
        assert products[1].product_url == "https://desertdates.example.sa/products/sukkari"
        assert products[1].image_url == "https://desertdates.example.sa/images/sukkari.jpg"
        assert products[0].source == "html_patterns"

    @pytest.mark.asyncio
    async def test_no_cards(self, bare_html):
        assert await HtmlPatternStrategy().extract("https://a.sa", bare_html, "") == []


class TestAIExtractionStrategy:

    @pytest.mark.asyncio
    async def test_short_text_skips_ai(self, mock_claude_client):
        strategy = AIExtractionStrategy(mock_claude_client)
        assert await strategy.extract("https://a.sa", "", "too short") == []
        mock_claude_client.invoke_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_products_from_ai(self, mock_claude_client):
        mock_claude_client.invoke_json.return_value = AIProductsPayload(products=[
            AIProduct(name="Gift Box", price=250.0, confidence=150),
            AIProduct(name="   "),
        ])
        strategy = AIExtractionStrategy(mock_claude_client, text_limit=50, default_currency="SAR")

        products = await strategy.extract("https://a.sa", "", "gift boxes " * 30)

        assert len(products) == 1
        assert products[0].name == "Gift Box"
        assert products[0].confidence == 100
        assert products[0].currency == "SAR"
        assert products[0].source == "ai"
        prompt = mock_claude_client.invoke_json.await_args.args[0]
        assert ("gift boxes " * 30)[:50] in prompt
        assert ("gift boxes " * 30)[:60] not in prompt

    @pytest.mark.asyncio
    async def test_bad_item_dropped_alone(self, mock_claude_client):
        mock_claude_client.invoke_json.return_value = AIProductsPayload(products=[
            {"name": "Gift Box", "price": 250},
            {"name": "Mystery Box", "price": "N/A"},
            {"price": 10},
            {"name": "Sukkari", "price": None},
        ])
        strategy = AIExtractionStrategy(mock_claude_client)

        products = await strategy.extract("https://a.sa", "", "gift boxes " * 30)

        assert [(p.name, p.price) for p in products] == [("Gift Box", 250.0), ("Sukkari", None)]


# =============================================================================
# EXTRACTOR
# =============================================================================

class TestProductExtractor:

    def test_chain_for_known_platform(self, mock_claude_client):
        extractor = ProductExtractor(claude_client=mock_claude_client, catalog=MagicMock())
        names = [s.name for s in extractor.strategies_for("https://dates.myshopify.com")]
        assert names == ["catalog_api", "structured_data", "html_patterns", "ai"]

    def test_chain_for_generic_site_without_ai(self):
        extractor = ProductExtractor(catalog=MagicMock())
        names = [s.name for s in extractor.strategies_for("https://desertdates.example.sa")]
        assert names == ["structured_data", "html_patterns", "catalog_probe"]

    @pytest.mark.asyncio
    async def test_platform_catalog_works_without_page(self):
        catalog = MagicMock()
        catalog.probe = AsyncMock(return_value=[ExtractedProduct(name="Ajwa", price=120.0)])
        extractor = ProductExtractor(catalog=catalog)

        products = await extractor.extract("https://dates.myshopify.com")

        assert [p.name for p in products] == ["Ajwa"]
        catalog.probe.assert_awaited_once_with("https://dates.myshopify.com", ["/products.json"])

    @pytest.mark.asyncio
    async def test_failing_strategy_is_skipped(self, store_html):
        catalog = MagicMock()
        catalog.probe = AsyncMock(side_effect=RuntimeError("boom"))
        extractor = ProductExtractor(catalog=catalog)

        products = await extractor.extract("https://perfume.zid.store", store_html, "")

        assert [p.source for p in products] == ["structured_data"]

    @pytest.mark.asyncio
    async def test_nothing_found(self, bare_html):
        catalog = MagicMock()
        catalog.probe = AsyncMock(return_value=[])
        extractor = ProductExtractor(catalog=catalog)

        assert await extractor.extract("https://desertdates.example.sa", bare_html, "Coming soon") == []
        catalog.probe.assert_awaited_once()
