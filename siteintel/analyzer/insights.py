"""
Insight Generator

Turns a SiteQualityReport into prioritized, actionable insights.

Rules are deterministic: the same report always yields the same insights,
ordered critical first and, within a priority, by confidence.
"""

import logging
from typing import List
from urllib.parse import urlparse

from siteintel.models import (
    Insight,
    InsightCategory,
    InsightPriority,
    InsightType,
    SiteQualityReport,
)

logger = logging.getLogger(__name__)


# Score bands
WEAK_SCORE = 50
CRITICAL_SCORE = 30
STRONG_SCORE = 80

SLOW_LOAD_MS = 3000
HEAVY_PAGE_BYTES = 2 * 1024 * 1024
THIN_CONTENT_WORDS = 300


# =============================================================================
# RULES
# =============================================================================


def _seo_insights(report: SiteQualityReport) -> List[Insight]:
    insights = []

    if report.seo_score < WEAK_SCORE:
        issues = "; ".join(report.seo_issues) or "several on-page problems"
        insights.append(Insight(
            category=InsightCategory.SEO,
            type=InsightType.WEAKNESS,
            priority=InsightPriority.CRITICAL if report.seo_score < CRITICAL_SCORE else InsightPriority.HIGH,
            title="Search engines will struggle to rank this site",
            description=f"SEO score is {report.seo_score}/100: {issues}.",
            recommendation="Fix the listed on-page issues, starting with the title and meta description.",
            impact="Higher visibility in organic search results",
            confidence=90,
        ))
    elif report.seo_score >= STRONG_SCORE:
        insights.append(Insight(
            category=InsightCategory.SEO,
            type=InsightType.STRENGTH,
            priority=InsightPriority.LOW,
            title="Solid on-page SEO",
            description=f"SEO score is {report.seo_score}/100.",
            confidence=85,
        ))

    if not report.meta_tags.get("description"):
        insights.append(Insight(
            category=InsightCategory.SEO,
            type=InsightType.RECOMMENDATION,
            priority=InsightPriority.MEDIUM,
            title="Add a meta description",
            description="The page has no meta description, so search engines pick arbitrary text for the snippet.",
            recommendation="Write a 120-160 character description that names the store and its main products.",
            impact="Better click-through rate from search results",
            confidence=90,
        ))

    if not report.meta_tags.get("og_title") or not report.meta_tags.get("og_image"):
        insights.append(Insight(
            category=InsightCategory.MARKETING,
            type=InsightType.OPPORTUNITY,
            priority=InsightPriority.LOW,
            title="Improve social sharing previews",
            description="Open Graph title or image is missing, so shared links show a plain preview.",
            recommendation="Add og:title, og:description and og:image tags.",
            impact="More attractive links on WhatsApp, X and Snapchat",
            confidence=85,
        ))

    return insights


def _performance_insights(report: SiteQualityReport) -> List[Insight]:
    insights = []

    if report.performance_score < WEAK_SCORE + 10:
        size_mb = report.page_size / (1024 * 1024)
        insights.append(Insight(
            category=InsightCategory.PERFORMANCE,
            type=InsightType.WEAKNESS,
            priority=InsightPriority.HIGH,
            title="Page is heavy",
            description=f"Performance score is {report.performance_score}/100 with a {size_mb:.1f} MB page.",
            recommendation="Compress images, lazy-load below-the-fold media and remove unused scripts.",
            impact="Faster pages and fewer abandoned visits",
            confidence=85,
        ))
    elif report.page_size > HEAVY_PAGE_BYTES:
        insights.append(Insight(
            category=InsightCategory.PERFORMANCE,
            type=InsightType.RECOMMENDATION,
            priority=InsightPriority.MEDIUM,
            title="Reduce page weight",
            description=f"The page weighs {report.page_size // 1024} KB.",
            recommendation="Serve images in WebP/AVIF and bundle scripts.",
            confidence=80,
        ))

    if report.load_time > SLOW_LOAD_MS:
        insights.append(Insight(
            category=InsightCategory.PERFORMANCE,
            type=InsightType.WEAKNESS,
            priority=InsightPriority.MEDIUM,
            title="Slow page load",
            description=f"The page took {report.load_time / 1000:.1f}s to load.",
            recommendation="Use a CDN and enable caching for static assets.",
            impact="Better conversion on mobile networks",
            confidence=75,
        ))

    return insights


def _ux_insights(report: SiteQualityReport) -> List[Insight]:
    insights = []

    if not report.mobile_optimized:
        insights.append(Insight(
            category=InsightCategory.UX,
            type=InsightType.WEAKNESS,
            priority=InsightPriority.CRITICAL,
            title="Site is not optimized for mobile",
            description="No viewport meta tag was found, so phones render the desktop layout.",
            recommendation="Add a responsive viewport tag and test the store on common phone sizes.",
            impact="Most shoppers browse on mobile",
            confidence=95,
        ))

    if not report.has_contact_info:
        insights.append(Insight(
            category=InsightCategory.UX,
            type=InsightType.WEAKNESS,
            priority=InsightPriority.HIGH,
            title="No visible contact details",
            description="No phone number or email address was found on the page.",
            recommendation="Show a phone number and email in the header or footer.",
            impact="More trust and fewer abandoned carts",
            confidence=85,
        ))

    if report.has_whatsapp:
        insights.append(Insight(
            category=InsightCategory.MARKETING,
            type=InsightType.STRENGTH,
            priority=InsightPriority.LOW,
            title="WhatsApp contact available",
            description="Customers can reach the store on WhatsApp directly from the site.",
            confidence=90,
        ))
    else:
        insights.append(Insight(
            category=InsightCategory.MARKETING,
            type=InsightType.OPPORTUNITY,
            priority=InsightPriority.HIGH,
            title="Add a WhatsApp contact button",
            description="The site offers no WhatsApp link or mention.",
            recommendation="Add a floating WhatsApp button linking to wa.me with the store number.",
            impact="Direct conversations usually convert better than contact forms",
            confidence=90,
        ))

    if report.ux_score >= STRONG_SCORE:
        insights.append(Insight(
            category=InsightCategory.UX,
            type=InsightType.STRENGTH,
            priority=InsightPriority.LOW,
            title="Good user experience basics",
            description=f"UX score is {report.ux_score}/100.",
            confidence=80,
        ))

    return insights


def _content_insights(report: SiteQualityReport) -> List[Insight]:
    insights = []

    if report.word_count < THIN_CONTENT_WORDS:
        insights.append(Insight(
            category=InsightCategory.CONTENT,
            type=InsightType.WEAKNESS,
            priority=InsightPriority.MEDIUM,
            title="Thin page content",
            description=f"The page has only {report.word_count} words.",
            recommendation="Add product descriptions, an about section and FAQs.",
            impact="More keywords to rank for and clearer value to visitors",
            confidence=85,
        ))

    if report.image_count == 0:
        insights.append(Insight(
            category=InsightCategory.CONTENT,
            type=InsightType.WEAKNESS,
            priority=InsightPriority.MEDIUM,
            title="No images on the page",
            description="Shoppers expect to see products before buying.",
            recommendation="Add product photos with descriptive alt text.",
            confidence=90,
        ))

    if report.video_count == 0:
        insights.append(Insight(
            category=InsightCategory.CONTENT,
            type=InsightType.OPPORTUNITY,
            priority=InsightPriority.LOW,
            title="Use video to showcase products",
            description="The page has no video content.",
            recommendation="Embed short product or brand videos.",
            impact="Longer visits and higher engagement",
            confidence=70,
        ))

    return insights


def _security_insights(report: SiteQualityReport) -> List[Insight]:
    if urlparse(report.url).scheme != "http":
        return []

    return [Insight(
        category=InsightCategory.SECURITY,
        type=InsightType.THREAT,
        priority=InsightPriority.HIGH,
        title="Site is not served over HTTPS",
        description="Browsers mark plain HTTP pages as not secure.",
        recommendation="Install a TLS certificate and redirect HTTP to HTTPS.",
        impact="Shopper trust and search ranking",
        confidence=95,
    )]


# =============================================================================
# GENERATOR
# =============================================================================


def generate_insights(report: SiteQualityReport) -> List[Insight]:
    """
    Generate insights for a site-quality report.

    Args:
        report: Scored report

    Returns:
        Insights sorted by priority (critical first), then confidence
    """
    insights = (
        _seo_insights(report)
        + _performance_insights(report)
        + _ux_insights(report)
        + _content_insights(report)
        + _security_insights(report)
    )

    if report.overall_score >= STRONG_SCORE:
        insights.append(Insight(
            category=InsightCategory.MARKETING,
            type=InsightType.STRENGTH,
            priority=InsightPriority.LOW,
            title="Strong overall site quality",
            description=f"Overall score is {report.overall_score}/100.",
            confidence=85,
        ))

    insights.sort(key=lambda i: (i.priority.rank, -i.confidence))

    logger.info(f"Generated {len(insights)} insights for {report.url}")
    return insights
