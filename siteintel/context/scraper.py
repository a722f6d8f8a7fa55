"""
Content Scraper

Turns a URL into:
- Raw HTML plus a BeautifulSoup DOM view (meta tags, media counts)
- Normalized plain text (script/style stripped, whitespace collapsed)

Rotates user agents and skips Cloudflare challenge pages. Raises
ScrapeError when every attempt fails; callers treat that as
"no content available", never as a fatal pipeline error.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup

from siteintel.integrations.fetcher import FetchResolver

logger = logging.getLogger(__name__)


USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Googlebot/2.1 (+http://www.google.com/bot.html)",
]

CHALLENGE_MARKERS = ("cf-browser-verification", "challenge-platform")

NON_CONTENT_TAGS = ["script", "style", "noscript"]


class ScrapeError(Exception):
    """Raised when a page could not be retrieved with any user agent."""

    def __init__(self, message: str, url: Optional[str] = None, attempts: int = 0):
        super().__init__(message)
        self.url = url
        self.attempts = attempts


@dataclass
class ScrapedPage:
    """A fetched page with its DOM and text views."""
    url: str
    html: str
    text: str
    soup: BeautifulSoup = field(repr=False)
    load_time_ms: int = 0


def is_challenge_page(html: str) -> bool:
    """Detect Cloudflare interstitials that are not the real page."""
    if any(marker in html for marker in CHALLENGE_MARKERS):
        return True
    return len(html) < 1000 and "Just a moment" in html


def html_to_text(html: str) -> str:
    """Extract readable body text from HTML."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(NON_CONTENT_TAGS):
        tag.decompose()

    root = soup.body or soup
    text = root.get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


class ContentScraper:
    """Fetches a single page and prepares it for signal extraction."""

    def __init__(self, resolver: Optional[FetchResolver] = None):
        self.resolver = resolver or FetchResolver()

    async def scrape(self, url: str) -> ScrapedPage:
        """
        Scrape a page.

        Args:
            url: Absolute URL of the page

        Returns:
            ScrapedPage with html, text and soup

        Raises:
            ScrapeError: If no attempt produced usable HTML
        """
        last_error = "no attempts made"
        attempts = 0

        for user_agent in USER_AGENTS:
            attempts += 1
            result = await self.resolver.fetch(
                url,
                headers={"User-Agent": user_agent, "Cache-Control": "no-cache"},
            )

            if result.status == 0:
                # Network-level failure, another user agent will not help
                last_error = "no response"
                break

            if not result.ok:
                last_error = f"HTTP {result.status}"
                logger.warning(f"Scrape attempt for {url} got {last_error} ({user_agent[:30]}...)")
                continue

            if is_challenge_page(result.body):
                last_error = "Cloudflare challenge detected"
                logger.warning(f"Cloudflare challenge detected for {url} with UA: {user_agent[:30]}...")
                continue

            html = result.body
            text = html_to_text(html)
            logger.info(f"Scraped {url} - {len(html)} bytes, {len(text)} chars text")

            return ScrapedPage(
                url=url,
                html=html,
                text=text,
                soup=BeautifulSoup(html, "html.parser"),
                load_time_ms=result.elapsed_ms,
            )

        raise ScrapeError(
            f"Failed to scrape {url} after {attempts} attempts: {last_error}",
            url=url,
            attempts=attempts,
        )

    async def close(self):
        """Close the underlying resolver."""
        await self.resolver.close()
