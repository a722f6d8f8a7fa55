"""
Site Context Package

Turns a URL into structured business signals:
- Content scraping with user-agent rotation
- Site-quality scoring (SEO, performance, UX, content)
- Product extraction (catalog APIs, JSON-LD, HTML patterns, AI)

Usage:
    from siteintel.context import WebsiteAnalyzer, ProductExtractor

    report = await WebsiteAnalyzer().analyze("https://store.example.sa")
    products = await ProductExtractor().extract(url, html, text)
"""

from .scraper import ContentScraper, ScrapedPage, ScrapeError
from .website_analyzer import WebsiteAnalyzer, analyze_website
from .product_extractor import (
    ProductExtractor,
    ProductExtractionStrategy,
    CatalogApiStrategy,
    StructuredDataStrategy,
    HtmlPatternStrategy,
    AIExtractionStrategy,
    classify_platform,
)

__all__ = [
    # Scraping
    "ContentScraper",
    "ScrapedPage",
    "ScrapeError",
    # Site quality
    "WebsiteAnalyzer",
    "analyze_website",
    # Products
    "ProductExtractor",
    "ProductExtractionStrategy",
    "CatalogApiStrategy",
    "StructuredDataStrategy",
    "HtmlPatternStrategy",
    "AIExtractionStrategy",
    "classify_platform",
]
