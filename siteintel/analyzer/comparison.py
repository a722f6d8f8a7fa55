"""
Competitor Comparison

Compares a merchant's site-quality report with completed competitor
analyses and summarizes the result as strengths, weaknesses and
opportunities, plus a pricing band built from competitor price aggregates.

Comparison is deterministic and synchronous. It does not check ownership;
callers pass only records the merchant may see.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from siteintel.models import SiteQualityReport

logger = logging.getLogger(__name__)


# Score gap (points) that counts as a clear lead or lag
SIGNIFICANT_GAP = 10

DIMENSIONS = [
    ("overall_score", "Overall quality"),
    ("seo_score", "SEO"),
    ("performance_score", "Performance"),
    ("ux_score", "User experience"),
    ("content_quality", "Content"),
]

FEATURES = [
    ("has_whatsapp", "WhatsApp contact"),
    ("mobile_optimized", "a mobile-optimized layout"),
    ("has_contact_info", "visible contact details"),
]


# =============================================================================
# PRICING
# =============================================================================


@dataclass
class PricingStats:
    """Price aggregates over a product list (priced products only)."""
    avg_price: float = 0.0
    min_price: float = 0.0
    max_price: float = 0.0
    product_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def aggregate_pricing(products: Iterable[Any]) -> PricingStats:
    """
    Aggregate prices of products with a positive price.

    Works with ExtractedProduct instances and stored product rows alike.
    With no priced products every field is zero.
    """
    total = 0.0
    count = 0
    low: Optional[float] = None
    high: Optional[float] = None

    for product in products:
        price = getattr(product, "price", None)
        if price is None or price <= 0:
            continue
        total += price
        count += 1
        low = price if low is None else min(low, price)
        high = price if high is None else max(high, price)

    if count == 0:
        return PricingStats()

    return PricingStats(
        avg_price=total / count,
        min_price=low,
        max_price=high,
        product_count=count,
    )


@dataclass
class PricingComparison:
    """Where the merchant's prices sit relative to competitors."""
    band_min: float
    band_max: float
    market_avg: float
    competitors_priced: int
    merchant_avg: Optional[float] = None
    position: str = "unknown"  # below, within, above, unknown

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def compare_pricing(
    competitor_prices: List[PricingStats],
    merchant_prices: Optional[PricingStats] = None,
) -> Optional[PricingComparison]:
    """Build the competitor price band; None when no competitor has prices."""
    priced = [p for p in competitor_prices if p.product_count > 0]
    if not priced:
        return None

    band = PricingComparison(
        band_min=min(p.min_price for p in priced),
        band_max=max(p.max_price for p in priced),
        market_avg=round(sum(p.avg_price for p in priced) / len(priced), 2),
        competitors_priced=len(priced),
    )

    if merchant_prices and merchant_prices.product_count > 0:
        band.merchant_avg = merchant_prices.avg_price
        if merchant_prices.avg_price < band.band_min:
            band.position = "below"
        elif merchant_prices.avg_price > band.band_max:
            band.position = "above"
        else:
            band.position = "within"

    return band


# =============================================================================
# COMPARISON
# =============================================================================


@dataclass
class CompetitorReport:
    """A completed competitor analysis as seen by the comparison engine."""
    name: str
    report: SiteQualityReport
    pricing: PricingStats = field(default_factory=PricingStats)


@dataclass
class ComparisonResult:
    """Outcome of comparing a merchant with its competitors."""
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    opportunities: List[str] = field(default_factory=list)
    pricing: Optional[PricingComparison] = None
    competitors_compared: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strengths": self.strengths,
            "weaknesses": self.weaknesses,
            "opportunities": self.opportunities,
            "pricing": self.pricing.to_dict() if self.pricing else None,
            "competitors_compared": self.competitors_compared,
        }


def compare(
    merchant: Optional[SiteQualityReport],
    competitors: List[CompetitorReport],
    merchant_prices: Optional[PricingStats] = None,
) -> ComparisonResult:
    """
    Compare a merchant report with competitor reports.

    Args:
        merchant: Merchant's report (None when there is nothing to compare)
        competitors: Completed competitor analyses
        merchant_prices: Merchant's own price aggregates, if known

    Returns:
        ComparisonResult; empty when either side is missing
    """
    result = ComparisonResult()
    if merchant is None or not competitors:
        return result

    result.competitors_compared = len(competitors)
    reports = [c.report for c in competitors]

    # Score dimensions vs. the competitor average
    for attribute, label in DIMENSIONS:
        mine = getattr(merchant, attribute)
        average = sum(getattr(r, attribute) for r in reports) / len(reports)
        gap = mine - average

        if gap >= SIGNIFICANT_GAP:
            result.strengths.append(
                f"{label} is {gap:.0f} points above the competitor average ({mine} vs {average:.0f})"
            )
        elif gap <= -SIGNIFICANT_GAP:
            result.weaknesses.append(
                f"{label} is {-gap:.0f} points below the competitor average ({mine} vs {average:.0f})"
            )

    # Feature gaps
    for attribute, label in FEATURES:
        offering = [c.name for c in competitors if getattr(c.report, attribute)]
        if getattr(merchant, attribute):
            if not offering:
                result.strengths.append(f"Only store among those compared with {label}")
        elif offering:
            result.opportunities.append(
                f"Add {label}: {len(offering)} of {len(competitors)} competitors offer it ({', '.join(offering)})"
            )

    # Best-in-class callouts
    best = max(competitors, key=lambda c: c.report.overall_score)
    if best.report.overall_score > merchant.overall_score:
        result.opportunities.append(
            f"Study {best.name}: highest overall score ({best.report.overall_score} vs your {merchant.overall_score})"
        )

    for attribute, label in DIMENSIONS[1:]:
        leader = max(competitors, key=lambda c: getattr(c.report, attribute))
        lead = getattr(leader.report, attribute) - getattr(merchant, attribute)
        if lead >= SIGNIFICANT_GAP * 2:
            result.opportunities.append(
                f"{leader.name} leads on {label} by {lead} points"
            )

    # Pricing band
    result.pricing = compare_pricing([c.pricing for c in competitors], merchant_prices)
    if result.pricing and result.pricing.position == "above":
        result.opportunities.append(
            f"Average price {result.pricing.merchant_avg:.2f} is above every competitor "
            f"(band {result.pricing.band_min:.2f}-{result.pricing.band_max:.2f}); "
            f"justify it with value messaging or offers"
        )
    elif result.pricing and result.pricing.position == "below":
        result.strengths.append(
            f"Average price {result.pricing.merchant_avg:.2f} undercuts every competitor "
            f"(band {result.pricing.band_min:.2f}-{result.pricing.band_max:.2f})"
        )

    logger.info(
        f"Compared {merchant.url} with {len(competitors)} competitors: "
        f"{len(result.strengths)} strengths, {len(result.weaknesses)} weaknesses, "
        f"{len(result.opportunities)} opportunities"
    )
    return result
