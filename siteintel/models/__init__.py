"""
Site Intelligence - Data Models

Shared data models passed between the scraper, the signal extractor,
the insight generator and the orchestrator:
- Site-quality reports (SEO, performance, UX, content scores)
- Extracted catalog products
- Insights and their classification enums
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# ENUMS
# =============================================================================


class TargetKind(str, Enum):
    """Whose site an analysis is about."""
    WEBSITE = "website"  # the merchant's own store
    COMPETITOR = "competitor"


class Platform(str, Enum):
    """Storefront platform detected from the URL."""
    SHOPIFY = "shopify"
    SALLA = "salla"
    ZID = "zid"
    GENERIC = "generic"


class InsightCategory(str, Enum):
    """Area of the site an insight is about."""
    SEO = "seo"
    PERFORMANCE = "performance"
    UX = "ux"
    CONTENT = "content"
    MARKETING = "marketing"
    SECURITY = "security"


class InsightType(str, Enum):
    """SWOT-style classification of an insight."""
    STRENGTH = "strength"
    WEAKNESS = "weakness"
    OPPORTUNITY = "opportunity"
    THREAT = "threat"
    RECOMMENDATION = "recommendation"


class InsightPriority(str, Enum):
    """How urgently an insight should be acted on."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Sort key, critical first."""
        return {
            InsightPriority.CRITICAL: 0,
            InsightPriority.HIGH: 1,
            InsightPriority.MEDIUM: 2,
            InsightPriority.LOW: 3,
        }[self]


# =============================================================================
# SITE QUALITY
# =============================================================================


# Weights for the overall score
SEO_WEIGHT = 0.30
PERFORMANCE_WEIGHT = 0.25
UX_WEIGHT = 0.25
CONTENT_WEIGHT = 0.20


@dataclass
class SiteQualityReport:
    """
    Scored site-quality report for one URL.

    A degraded report is produced when the page could not be scraped:
    scores are 0 and title/industry are best-effort guesses from the URL.
    """
    url: str
    title: str = ""
    description: str = ""
    industry: str = "unknown"
    language: str = "en"

    # SEO
    seo_score: int = 0
    seo_issues: List[str] = field(default_factory=list)
    meta_tags: Dict[str, str] = field(default_factory=dict)

    # Performance
    performance_score: int = 0
    load_time: int = 0  # milliseconds
    page_size: int = 0  # bytes

    # UX
    ux_score: int = 0
    mobile_optimized: bool = False
    has_contact_info: bool = False
    has_whatsapp: bool = False

    # Content
    content_quality: int = 0
    word_count: int = 0
    image_count: int = 0
    video_count: int = 0

    overall_score: int = 0
    degraded: bool = False

    @staticmethod
    def weighted_overall(seo: int, performance: int, ux: int, content: int) -> int:
        """Weighted aggregate of the four sub-scores."""
        return round(
            seo * SEO_WEIGHT
            + performance * PERFORMANCE_WEIGHT
            + ux * UX_WEIGHT
            + content * CONTENT_WEIGHT
        )

    def quality_fields(self) -> Dict[str, Any]:
        """Fields persisted on an analysis record."""
        data = asdict(self)
        data.pop("url")
        data.pop("degraded")
        return data

    @classmethod
    def from_record(cls, record: Any, url: Optional[str] = None) -> "SiteQualityReport":
        """
        Build a report from a persisted analysis row (or any object with the
        same attribute names). Missing or null values fall back to defaults.
        """
        def value(name: str, default: Any) -> Any:
            found = getattr(record, name, None)
            return default if found is None else found

        return cls(
            url=url or value("url", ""),
            title=value("title", ""),
            description=value("description", ""),
            industry=value("industry", "unknown"),
            language=value("language", "en"),
            seo_score=value("seo_score", 0),
            seo_issues=list(value("seo_issues", [])),
            meta_tags=dict(value("meta_tags", {})),
            performance_score=value("performance_score", 0),
            load_time=value("load_time", 0),
            page_size=value("page_size", 0),
            ux_score=value("ux_score", 0),
            mobile_optimized=value("mobile_optimized", False),
            has_contact_info=value("has_contact_info", False),
            has_whatsapp=value("has_whatsapp", False),
            content_quality=value("content_quality", 0),
            word_count=value("word_count", 0),
            image_count=value("image_count", 0),
            video_count=value("video_count", 0),
            overall_score=value("overall_score", 0),
        )


# =============================================================================
# PRODUCTS
# =============================================================================


@dataclass
class ExtractedProduct:
    """A catalog product found on a site."""
    name: str
    description: str = ""
    price: Optional[float] = None
    currency: str = "SAR"
    image_url: Optional[str] = None
    product_url: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    in_stock: bool = True
    confidence: int = 70  # 0-100, extractor's self-assessed reliability
    source: str = "unknown"  # strategy that produced it

    @property
    def has_price(self) -> bool:
        return self.price is not None and self.price > 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# INSIGHTS
# =============================================================================


@dataclass
class Insight:
    """An actionable finding derived from a site-quality report."""
    category: InsightCategory
    type: InsightType
    priority: InsightPriority
    title: str
    description: str
    recommendation: Optional[str] = None
    impact: Optional[str] = None
    confidence: int = 80

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "type": self.type.value,
            "priority": self.priority.value,
            "title": self.title,
            "description": self.description,
            "recommendation": self.recommendation,
            "impact": self.impact,
            "confidence": self.confidence,
        }
