"""
Pytest Configuration and Shared Fixtures

Provides common fixtures and configuration for all test modules.
"""

import pytest
from typing import List, Tuple
from unittest.mock import AsyncMock, MagicMock

from siteintel.database import init_db, reset_engine
from siteintel.models import ExtractedProduct, SiteQualityReport


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def db(tmp_path, monkeypatch):
    """Fresh SQLite database per test."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("POSTGRES_URL", raising=False)
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "siteintel_test.db"))
    reset_engine()
    init_db()
    yield
    reset_engine()


# ============================================================================
# Mock Page Fixtures
# ============================================================================

@pytest.fixture
def store_html() -> str:
    """A well-built storefront page."""
    return """<!DOCTYPE html>
<html lang="ar">
<head>
    <title>Desert Dates Store - Premium Saudi Dates</title>
    <meta name="description" content="Premium Saudi dates, coffee and sweets delivered across the Kingdom within 24 hours.">
    <meta name="keywords" content="dates, ajwa, sukkari">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <meta property="og:title" content="Desert Dates Store">
    <meta property="og:image" content="https://desertdates.example.sa/og.jpg">
    <link rel="stylesheet" href="/theme.css">
    <script type="application/ld+json">
    {
        "@context": "https://schema.org",
        "@type": "Product",
        "name": "Ajwa Dates 1kg",
        "description": "<p>Soft <b>Ajwa</b> dates from Madinah</p>",
        "image": "/images/ajwa.jpg",
        "url": "/products/ajwa",
        "offers": {
            "@type": "Offer",
            "price": "120.00",
            "priceCurrency": "SAR",
            "availability": "https://schema.org/InStock"
        }
    }
    </script>
</head>
<body>
    <nav><a href="/">Home</a> <a href="/shop">Shop</a></nav>
    <h1>Premium Dates</h1>
    <img src="/images/hero.jpg" alt="Date palms">
    <div class="product-card">
        <a href="/products/ajwa"><img src="/images/ajwa.jpg" alt="Ajwa"></a>
        <h3 class="product-title">Ajwa Dates 1kg</h3>
        <span class="price">120.00 SAR</span>
    </div>
    <div class="product-card">
        <a href="/products/sukkari"><img src="/images/sukkari.jpg" alt="Sukkari"></a>
        <h3 class="product-title">Sukkari Dates 1kg</h3>
        <span class="price">85 SAR</span>
    </div>
    <p>Call us at +966 555 123 4567 or write to hello@desertdates.example.sa</p>
    <a href="https://wa.me/966555123456">Chat with us</a>
    <iframe src="https://www.youtube.com/embed/harvest"></iframe>
    <footer>Desert Dates Store</footer>
</body>
</html>"""


@pytest.fixture
def bare_html() -> str:
    """A page with almost nothing on it."""
    return "<html><head></head><body><p>Coming soon</p></body></html>"


# ============================================================================
# Report / Product Fixtures
# ============================================================================

@pytest.fixture
def good_report() -> SiteQualityReport:
    """Report for a strong site."""
    return SiteQualityReport(
        url="https://desertdates.example.sa",
        title="Desert Dates Store",
        industry="food",
        seo_score=95,
        meta_tags={
            "description": "Premium Saudi dates delivered across the Kingdom.",
            "og_title": "Desert Dates Store",
            "og_image": "https://desertdates.example.sa/og.jpg",
        },
        performance_score=90,
        ux_score=100,
        content_quality=85,
        mobile_optimized=True,
        has_contact_info=True,
        has_whatsapp=True,
        word_count=800,
        image_count=12,
        video_count=1,
        overall_score=93,
    )


@pytest.fixture
def weak_report() -> SiteQualityReport:
    """Report for a site with problems on every dimension."""
    return SiteQualityReport(
        url="http://weakstore.example.sa",
        title="Store",
        seo_score=40,
        seo_issues=["Missing or too short meta description", "Missing H1 heading"],
        performance_score=45,
        load_time=6000,
        page_size=6 * 1024 * 1024,
        ux_score=50,
        mobile_optimized=False,
        has_contact_info=False,
        has_whatsapp=False,
        content_quality=45,
        word_count=120,
        image_count=0,
        video_count=0,
        overall_score=45,
    )


def make_product(name: str, price=None, **kwargs) -> ExtractedProduct:
    return ExtractedProduct(name=name, price=price, **kwargs)


@pytest.fixture
def priced_products() -> List[ExtractedProduct]:
    return [
        make_product("Ajwa", 100.0, source="catalog_api"),
        make_product("Sukkari", 200.0, source="catalog_api"),
        make_product("Khalas", 300.0, source="catalog_api"),
    ]


# ============================================================================
# Mock API Client
# ============================================================================

@pytest.fixture
def mock_claude_client():
    """Mock Claude API client."""
    client = MagicMock()
    client.invoke_json = AsyncMock(return_value=None)
    client.get_usage_summary = MagicMock(return_value={
        "total_tokens": 0,
        "estimated_cost": 0.0,
    })
    return client


# ============================================================================
# Background Tasks
# ============================================================================

class RecordingRegistry:
    """Task registry stand-in that records starts instead of scheduling."""

    def __init__(self):
        self.started: List[Tuple[str, int]] = []

    def start(self, kind, record_id, coroutine):
        self.started.append((kind.value, record_id))
        coroutine.close()

    def active_count(self) -> int:
        return 0


@pytest.fixture
def recording_registry() -> RecordingRegistry:
    return RecordingRegistry()


# ============================================================================
# Test Markers
# ============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
