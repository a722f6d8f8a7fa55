"""
Website Analyzer

Scores a storefront page on four dimensions, each starting at 100:
- SEO: title/description length, Open Graph tags, H1 structure, image alt text
- Performance: page weight, script/stylesheet/image counts, load time
- UX: mobile viewport, contact details, WhatsApp, navigation, footer
- Content: word count, images, videos (including YouTube/Vimeo embeds)

The overall score is a weighted sum (see SiteQualityReport.weighted_overall).
Industry is detected by Claude when a client is available.

If the page cannot be scraped the analyzer does not fail: it returns a
degraded, URL-only report with zero scores.
"""

import logging
import re
from typing import Any, Dict, Optional, TYPE_CHECKING
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from pydantic import BaseModel

from siteintel.context.scraper import ContentScraper, ScrapedPage, ScrapeError
from siteintel.models import SiteQualityReport

if TYPE_CHECKING:
    from siteintel.analyzer.client import ClaudeClient

logger = logging.getLogger(__name__)


# =============================================================================
# PATTERNS
# =============================================================================

PHONE_PATTERN = re.compile(r"(\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
WHATSAPP_PATTERN = re.compile(r"whatsapp|واتساب|واتس اب", re.IGNORECASE)
ARABIC_PATTERN = re.compile(r"[\u0600-\u06FF]")

VIDEO_HOSTS = ("youtube.com", "youtube-nocookie.com", "youtu.be", "vimeo.com")

# Keyword heuristics used when no AI is available (English and Arabic)
INDUSTRY_KEYWORDS = {
    "fashion": ["fashion", "clothing", "abaya", "apparel", "أزياء", "عباية", "ملابس"],
    "beauty": ["beauty", "cosmetic", "perfume", "makeup", "عطور", "تجميل"],
    "electronics": ["electronics", "gadget", "mobile", "إلكترونيات", "جوالات"],
    "food": ["food", "coffee", "restaurant", "sweets", "dates", "bakery", "قهوة", "تمور", "حلويات"],
    "jewelry": ["jewel", "gold", "watch", "مجوهرات", "ذهب", "ساعات"],
    "furniture": ["furniture", "decor", "أثاث", "ديكور"],
    "health": ["pharmacy", "health", "vitamin", "صيدلية", "صحة"],
    "toys": ["toy", "kids", "baby", "ألعاب", "أطفال"],
    "sports": ["sport", "fitness", "gym", "رياضة"],
    "books": ["book", "library", "كتب", "مكتبة"],
}

INDUSTRY_TEXT_LIMIT = 2000


# =============================================================================
# AI PROMPTS
# =============================================================================

INDUSTRY_SYSTEM_PROMPT = """You classify online stores by industry.
Answer with the industry in one or two lowercase English words (e.g. "fashion",
"consumer electronics", "beauty"). Return JSON only."""

INDUSTRY_PROMPT = """What industry is this website in?

## Website: {url}

## Content:
{content}

Return a JSON object: {{"industry": "one or two words"}}"""

URL_INDUSTRY_PROMPT = """The website {url} could not be loaded. Based only on its
domain name, what industry is it most likely in?

Return a JSON object: {{"industry": "one or two words"}}
Use "unknown" if the name gives no clue."""


class IndustryPayload(BaseModel):
    """Expected shape of the industry classification response."""
    industry: str


# =============================================================================
# SUB-ANALYSES
# =============================================================================


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()


def analyze_seo(soup: BeautifulSoup) -> Dict[str, Any]:
    """Score on-page SEO and collect the meta tags that matter for sharing."""
    score = 100
    issues = []

    title = soup.title.get_text(strip=True) if soup.title else ""
    description = _meta_content(soup, name="description")
    og_title = _meta_content(soup, property="og:title")
    og_image = _meta_content(soup, property="og:image")

    if len(title) < 10:
        score -= 15
        issues.append("Missing or too short title tag")

    if len(description) < 50:
        score -= 15
        issues.append("Missing or too short meta description")

    if not og_title:
        score -= 10
        issues.append("Missing Open Graph title")

    if not og_image:
        score -= 10
        issues.append("Missing Open Graph image")

    h1_count = len(soup.find_all("h1"))
    if h1_count == 0:
        score -= 10
        issues.append("Missing H1 heading")
    elif h1_count > 1:
        score -= 5
        issues.append(f"Multiple H1 headings ({h1_count})")

    missing_alt = [img for img in soup.find_all("img") if not (img.get("alt") or "").strip()]
    if missing_alt:
        score -= min(10, len(missing_alt) * 2)
        issues.append(f"{len(missing_alt)} images missing alt text")

    meta_tags = {
        "title": title,
        "description": description,
        "keywords": _meta_content(soup, name="keywords"),
        "og_title": og_title,
        "og_description": _meta_content(soup, property="og:description"),
        "og_image": og_image,
    }

    return {
        "title": title,
        "description": description,
        "seo_score": max(0, score),
        "seo_issues": issues,
        "meta_tags": {k: v for k, v in meta_tags.items() if v},
    }


def analyze_performance(soup: BeautifulSoup, html: str, load_time_ms: int = 0) -> Dict[str, Any]:
    """Score page weight; load time is measured when known, else estimated from size."""
    score = 100
    page_size = len(html.encode("utf-8"))
    load_time = load_time_ms or int(page_size / 1024 * 0.1)

    if page_size > 5 * 1024 * 1024:
        score -= 30
    elif page_size > 2 * 1024 * 1024:
        score -= 15

    if len(soup.find_all("img")) > 50:
        score -= 10

    if len(soup.find_all("script")) > 20:
        score -= 10

    if len(soup.find_all("link", rel="stylesheet")) > 10:
        score -= 5

    return {
        "performance_score": max(0, score),
        "load_time": load_time,
        "page_size": page_size,
    }


def analyze_ux(soup: BeautifulSoup, text: str) -> Dict[str, Any]:
    """Score mobile readiness and how easy it is to reach the merchant."""
    score = 100

    mobile_optimized = soup.find("meta", attrs={"name": "viewport"}) is not None
    if not mobile_optimized:
        score -= 20

    has_contact_info = bool(
        PHONE_PATTERN.search(text)
        or EMAIL_PATTERN.search(text)
        or soup.select_one('a[href^="tel:"], a[href^="mailto:"]')
    )
    if not has_contact_info:
        score -= 15

    has_whatsapp = bool(
        WHATSAPP_PATTERN.search(text)
        or soup.select_one('a[href*="wa.me"], a[href*="whatsapp"]')
    )
    if not has_whatsapp:
        score -= 10

    if soup.find("nav") is None:
        score -= 10

    if soup.find("footer") is None:
        score -= 5

    return {
        "ux_score": max(0, score),
        "mobile_optimized": mobile_optimized,
        "has_contact_info": has_contact_info,
        "has_whatsapp": has_whatsapp,
    }


def analyze_content(soup: BeautifulSoup, text: str) -> Dict[str, Any]:
    """Score content volume and media richness."""
    score = 100

    word_count = len(text.split())
    if word_count < 300:
        score -= 20
    elif word_count < 500:
        score -= 10

    image_count = len(soup.find_all("img"))
    if image_count == 0:
        score -= 15

    embeds = [
        frame for frame in soup.find_all("iframe")
        if any(host in (frame.get("src") or "") for host in VIDEO_HOSTS)
    ]
    video_count = len(soup.find_all("video")) + len(embeds)

    return {
        "content_quality": max(0, score),
        "word_count": word_count,
        "image_count": image_count,
        "video_count": video_count,
    }


def detect_language(soup: BeautifulSoup, text: str) -> str:
    """Arabic script wins, then <html lang>, then English."""
    if ARABIC_PATTERN.search(text):
        return "ar"

    html_tag = soup.find("html")
    lang = (html_tag.get("lang") or "") if html_tag else ""
    if lang:
        return lang.split("-")[0].lower()

    return "en"


def hostname(url: str) -> str:
    """Bare hostname of a URL, without a leading www."""
    host = urlparse(url).hostname or url
    return host[4:] if host.startswith("www.") else host


def infer_industry(text: str) -> str:
    """Keyword-based industry guess; "unknown" when nothing matches."""
    lowered = text.lower()
    for industry, keywords in INDUSTRY_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return industry
    return "unknown"


def _clean_industry(value: str) -> str:
    words = value.strip().strip(".").lower().split()
    return " ".join(words[:2]) or "unknown"


# =============================================================================
# WEBSITE ANALYZER
# =============================================================================


class WebsiteAnalyzer:
    """
    Produces a SiteQualityReport for a URL.

    Usage:
        analyzer = WebsiteAnalyzer(claude_client=client)
        report = await analyzer.analyze("https://store.example.sa")
        await analyzer.close()
    """

    def __init__(
        self,
        scraper: Optional[ContentScraper] = None,
        claude_client: Optional["ClaudeClient"] = None,
    ):
        self.scraper = scraper or ContentScraper()
        self.claude_client = claude_client

    async def analyze(self, url: str) -> SiteQualityReport:
        """
        Analyze a website.

        Args:
            url: Absolute URL of the page

        Returns:
            SiteQualityReport (degraded when the page could not be scraped)
        """
        logger.info(f"Analyzing website: {url}")

        try:
            page = await self.scraper.scrape(url)
        except ScrapeError as e:
            logger.warning(f"Falling back to URL-only report for {url}: {e}")
            return await self.degraded_report(url)

        return await self.analyze_page(page)

    async def analyze_page(self, page: ScrapedPage) -> SiteQualityReport:
        """Score an already scraped page."""
        seo = analyze_seo(page.soup)
        performance = analyze_performance(page.soup, page.html, page.load_time_ms)
        ux = analyze_ux(page.soup, page.text)
        content = analyze_content(page.soup, page.text)

        report = SiteQualityReport(
            url=page.url,
            industry=await self._detect_industry(page.url, page.text),
            language=detect_language(page.soup, page.text),
            **seo,
            **performance,
            **ux,
            **content,
        )
        report.overall_score = SiteQualityReport.weighted_overall(
            report.seo_score,
            report.performance_score,
            report.ux_score,
            report.content_quality,
        )

        logger.info(
            f"Analysis of {page.url}: overall={report.overall_score} "
            f"(seo={report.seo_score}, perf={report.performance_score}, "
            f"ux={report.ux_score}, content={report.content_quality}), "
            f"industry={report.industry}, language={report.language}"
        )
        return report

    async def degraded_report(self, url: str) -> SiteQualityReport:
        """Best-effort report for a site whose content is unavailable."""
        if self.claude_client:
            industry = await self._ask_industry(URL_INDUSTRY_PROMPT.format(url=url))
        else:
            industry = infer_industry(hostname(url))

        return SiteQualityReport(
            url=url,
            title=hostname(url),
            description=(
                "The site could not be fetched; title and industry were "
                "inferred from the URL and all scores are zero."
            ),
            industry=industry,
            degraded=True,
        )

    async def _detect_industry(self, url: str, text: str) -> str:
        if not self.claude_client:
            return infer_industry(f"{hostname(url)} {text[:INDUSTRY_TEXT_LIMIT]}")

        prompt = INDUSTRY_PROMPT.format(url=url, content=text[:INDUSTRY_TEXT_LIMIT])
        return await self._ask_industry(prompt)

    async def _ask_industry(self, prompt: str) -> str:
        try:
            payload = await self.claude_client.invoke_json(
                prompt,
                IndustryPayload,
                system=INDUSTRY_SYSTEM_PROMPT,
                max_tokens=50,
            )
        except Exception as e:
            logger.warning(f"Industry detection failed: {e}")
            return "unknown"

        if payload is None:
            return "unknown"
        return _clean_industry(payload.industry)

    async def close(self):
        """Close the underlying scraper."""
        await self.scraper.close()


async def analyze_website(url: str, claude_client: Optional["ClaudeClient"] = None) -> SiteQualityReport:
    """
    Convenience function for a one-off analysis.

    Args:
        url: Absolute URL of the page
        claude_client: Optional Claude client for industry detection

    Returns:
        SiteQualityReport
    """
    analyzer = WebsiteAnalyzer(claude_client=claude_client)
    try:
        return await analyzer.analyze(url)
    finally:
        await analyzer.close()


# =============================================================================
# MANUAL RUN
# =============================================================================

async def run_sample_analysis():
    """Analyze a URL from the command line and print the scores."""
    import sys
    from dotenv import load_dotenv

    from siteintel.analyzer.client import create_claude_client

    load_dotenv()

    if len(sys.argv) < 2:
        print("Usage: python -m siteintel.context.website_analyzer <url>")
        return

    claude = create_claude_client()
    report = await analyze_website(sys.argv[1], claude_client=claude)

    print(f"Title: {report.title}")
    print(f"Industry: {report.industry} ({report.language})")
    print(f"Overall: {report.overall_score}")
    print(f"  SEO: {report.seo_score} {report.seo_issues}")
    print(f"  Performance: {report.performance_score} ({report.page_size} bytes, {report.load_time} ms)")
    print(f"  UX: {report.ux_score}")
    print(f"  Content: {report.content_quality} ({report.word_count} words)")
    if report.degraded:
        print("Site could not be fetched; URL-only report")
    if claude:
        usage = claude.get_usage_summary()
        print(f"Claude: {usage['total_calls']} calls, {usage['total_tokens']} tokens, ${usage['estimated_cost']:.4f}")


if __name__ == "__main__":
    import asyncio

    asyncio.run(run_sample_analysis())
