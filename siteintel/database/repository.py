"""
Repository Layer - Clean Interface for Data Operations

Provides simple functions to store and retrieve analyses, products and
insights. Handles all SQLAlchemy complexity internally.

Ownership: every read or delete by ID takes the caller's merchant_id and
raises AccessDeniedError when the record does not belong to that merchant,
including when it does not exist at all.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, Union

from siteintel.models import ExtractedProduct, Insight, TargetKind

from .models import (
    AnalysisStatus,
    CompetitorAnalysis,
    CompetitorProduct,
    ExtractedProductRecord,
    WebsiteAnalysis,
    WebsiteInsight,
)
from .session import get_db_context

logger = logging.getLogger(__name__)


# Column limits, applied before persistence
NAME_LIMIT = 500
DESCRIPTION_LIMIT = 2000
CURRENCY_LIMIT = 10
URL_LIMIT = 500
CATEGORY_LIMIT = 255
TITLE_LIMIT = 500
INDUSTRY_LIMIT = 100
LANGUAGE_LIMIT = 10

AnalysisRecord = Union[WebsiteAnalysis, CompetitorAnalysis]

ANALYSIS_MODELS = {
    TargetKind.WEBSITE: WebsiteAnalysis,
    TargetKind.COMPETITOR: CompetitorAnalysis,
}

QUALITY_FIELDS = (
    "title", "description", "industry", "language",
    "seo_score", "seo_issues", "meta_tags",
    "performance_score", "load_time", "page_size",
    "ux_score", "mobile_optimized", "has_contact_info", "has_whatsapp",
    "content_quality", "word_count", "image_count", "video_count",
    "overall_score",
)


class AccessDeniedError(Exception):
    """Raised when a merchant asks for a record it does not own."""

    def __init__(self, resource: str, record_id: int, merchant_id: int):
        super().__init__(f"Access denied to {resource} {record_id}")
        self.resource = resource
        self.record_id = record_id
        self.merchant_id = merchant_id


def _truncate(value: Optional[str], limit: int) -> Optional[str]:
    if value is None:
        return None
    return value[:limit]


def _model_for(kind: TargetKind) -> Type[AnalysisRecord]:
    return ANALYSIS_MODELS[TargetKind(kind)]


# =============================================================================
# ANALYSIS LIFECYCLE
# =============================================================================

def create_website_analysis(merchant_id: int, url: str) -> int:
    """
    Create a website analysis in status analyzing.

    Returns:
        ID of the created analysis
    """
    with get_db_context() as db:
        analysis = WebsiteAnalysis(
            merchant_id=merchant_id,
            url=url,
            status=AnalysisStatus.ANALYZING,
            overall_score=0,
        )
        db.add(analysis)
        db.flush()

        analysis_id = analysis.id
        logger.info(f"Created website analysis {analysis_id} for merchant {merchant_id}: {url}")
        return analysis_id


def create_competitor_analysis(merchant_id: int, name: str, url: str) -> int:
    """
    Create a competitor analysis in status analyzing.

    Returns:
        ID of the created competitor
    """
    with get_db_context() as db:
        competitor = CompetitorAnalysis(
            merchant_id=merchant_id,
            name=_truncate(name, 255),
            url=url,
            status=AnalysisStatus.ANALYZING,
            overall_score=0,
        )
        db.add(competitor)
        db.flush()

        competitor_id = competitor.id
        logger.info(f"Created competitor {competitor_id} for merchant {merchant_id}: {name} ({url})")
        return competitor_id


def get_analysis_record(kind: TargetKind, record_id: int) -> Optional[AnalysisRecord]:
    """Unscoped read used by the pipeline that owns the record."""
    with get_db_context() as db:
        return db.get(_model_for(kind), record_id)


def update_site_quality(kind: TargetKind, record_id: int, fields: Dict[str, Any]):
    """Store site-quality fields; status is left unchanged."""
    with get_db_context() as db:
        record = db.get(_model_for(kind), record_id)
        if not record:
            logger.warning(f"Cannot store site quality: {kind.value} {record_id} not found")
            return

        for name in QUALITY_FIELDS:
            if name in fields:
                setattr(record, name, fields[name])

        record.title = _truncate(record.title, TITLE_LIMIT)
        record.industry = _truncate(record.industry, INDUSTRY_LIMIT)
        record.language = _truncate(record.language, LANGUAGE_LIMIT)


def update_competitor_pricing(
    competitor_id: int,
    avg_price: float,
    min_price: float,
    max_price: float,
    product_count: int,
):
    """Store price aggregates for a competitor"""
    with get_db_context() as db:
        competitor = db.get(CompetitorAnalysis, competitor_id)
        if competitor:
            competitor.avg_price = avg_price
            competitor.min_price = min_price
            competitor.max_price = max_price
            competitor.product_count = product_count


def complete_analysis(
    kind: TargetKind,
    record_id: int,
    phase_results: Optional[List[Dict[str, Any]]] = None,
):
    """Mark an analysis as completed"""
    with get_db_context() as db:
        record = db.get(_model_for(kind), record_id)
        if record:
            record.status = AnalysisStatus.COMPLETED
            record.completed_at = datetime.utcnow()
            record.phase_results = phase_results or []
            logger.info(f"{kind.value.capitalize()} analysis {record_id} completed")


def fail_analysis(
    kind: TargetKind,
    record_id: int,
    error_message: str,
    phase_results: Optional[List[Dict[str, Any]]] = None,
):
    """Mark an analysis as failed"""
    with get_db_context() as db:
        record = db.get(_model_for(kind), record_id)
        if record:
            record.status = AnalysisStatus.FAILED
            record.completed_at = datetime.utcnow()
            record.error_message = error_message
            record.phase_results = phase_results or []
            logger.error(f"{kind.value.capitalize()} analysis {record_id} failed: {error_message}")


# =============================================================================
# PRODUCTS & INSIGHTS
# =============================================================================

def create_extracted_product(
    kind: TargetKind,
    record_id: int,
    merchant_id: int,
    product: ExtractedProduct,
) -> int:
    """
    Store one extracted product, truncated to column limits.

    Returns:
        ID of the stored product
    """
    values = dict(
        merchant_id=merchant_id,
        name=_truncate(product.name, NAME_LIMIT),
        description=_truncate(product.description or "", DESCRIPTION_LIMIT),
        price=product.price,
        currency=_truncate(product.currency or "SAR", CURRENCY_LIMIT),
        image_url=_truncate(product.image_url, URL_LIMIT),
        product_url=_truncate(product.product_url, URL_LIMIT),
        category=_truncate(product.category, CATEGORY_LIMIT),
        tags=list(product.tags or []),
        in_stock=product.in_stock,
        confidence=max(0, min(100, int(product.confidence))),
        source=product.source,
    )

    with get_db_context() as db:
        if TargetKind(kind) == TargetKind.COMPETITOR:
            row = CompetitorProduct(competitor_id=record_id, **values)
        else:
            row = ExtractedProductRecord(analysis_id=record_id, **values)
        db.add(row)
        db.flush()
        return row.id


def create_insight(analysis_id: int, merchant_id: int, insight: Insight) -> int:
    """
    Store one insight for a website analysis.

    Returns:
        ID of the stored insight
    """
    with get_db_context() as db:
        row = WebsiteInsight(
            analysis_id=analysis_id,
            merchant_id=merchant_id,
            category=insight.category.value,
            type=insight.type.value,
            priority=insight.priority.value,
            title=_truncate(insight.title, 255),
            description=insight.description,
            recommendation=insight.recommendation,
            impact=insight.impact,
            confidence=insight.confidence,
        )
        db.add(row)
        db.flush()
        return row.id


def get_products(kind: TargetKind, record_id: int) -> List[Union[ExtractedProductRecord, CompetitorProduct]]:
    """Products of an analysis, in insertion order (caller checks ownership)"""
    with get_db_context() as db:
        if TargetKind(kind) == TargetKind.COMPETITOR:
            query = db.query(CompetitorProduct).filter(CompetitorProduct.competitor_id == record_id)
            return query.order_by(CompetitorProduct.id).all()

        query = db.query(ExtractedProductRecord).filter(ExtractedProductRecord.analysis_id == record_id)
        return query.order_by(ExtractedProductRecord.id).all()


def get_insights(analysis_id: int) -> List[WebsiteInsight]:
    """Insights of a website analysis, in insertion order (caller checks ownership)"""
    with get_db_context() as db:
        return (
            db.query(WebsiteInsight)
            .filter(WebsiteInsight.analysis_id == analysis_id)
            .order_by(WebsiteInsight.id)
            .all()
        )


# =============================================================================
# MERCHANT-SCOPED ACCESS
# =============================================================================

def _get_owned(db, model: Type[AnalysisRecord], resource: str, record_id: int, merchant_id: int):
    record = db.get(model, record_id)
    if record is None or record.merchant_id != merchant_id:
        logger.warning(f"Merchant {merchant_id} denied access to {resource} {record_id}")
        raise AccessDeniedError(resource, record_id, merchant_id)
    return record


def get_website_analysis(analysis_id: int, merchant_id: int) -> WebsiteAnalysis:
    """
    Get a website analysis owned by the merchant.

    Raises:
        AccessDeniedError: If missing or owned by another merchant
    """
    with get_db_context() as db:
        return _get_owned(db, WebsiteAnalysis, "website analysis", analysis_id, merchant_id)


def list_website_analyses(merchant_id: int, limit: int = 50) -> List[WebsiteAnalysis]:
    """Merchant's website analyses, newest first"""
    with get_db_context() as db:
        return (
            db.query(WebsiteAnalysis)
            .filter(WebsiteAnalysis.merchant_id == merchant_id)
            .order_by(WebsiteAnalysis.created_at.desc(), WebsiteAnalysis.id.desc())
            .limit(limit)
            .all()
        )


def delete_website_analysis(analysis_id: int, merchant_id: int):
    """
    Delete a website analysis with its products and insights.

    Raises:
        AccessDeniedError: If missing or owned by another merchant
    """
    with get_db_context() as db:
        analysis = _get_owned(db, WebsiteAnalysis, "website analysis", analysis_id, merchant_id)
        db.delete(analysis)
        logger.info(f"Deleted website analysis {analysis_id} for merchant {merchant_id}")


def get_competitor(competitor_id: int, merchant_id: int) -> CompetitorAnalysis:
    """
    Get a competitor owned by the merchant.

    Raises:
        AccessDeniedError: If missing or owned by another merchant
    """
    with get_db_context() as db:
        return _get_owned(db, CompetitorAnalysis, "competitor", competitor_id, merchant_id)


def list_competitors(merchant_id: int, limit: int = 50) -> List[CompetitorAnalysis]:
    """Merchant's competitors, newest first"""
    with get_db_context() as db:
        return (
            db.query(CompetitorAnalysis)
            .filter(CompetitorAnalysis.merchant_id == merchant_id)
            .order_by(CompetitorAnalysis.created_at.desc(), CompetitorAnalysis.id.desc())
            .limit(limit)
            .all()
        )


def get_competitors_by_ids(competitor_ids: List[int], merchant_id: int) -> List[CompetitorAnalysis]:
    """Competitors among the given IDs that the merchant owns (others are silently dropped)"""
    if not competitor_ids:
        return []

    with get_db_context() as db:
        return (
            db.query(CompetitorAnalysis)
            .filter(
                CompetitorAnalysis.id.in_(competitor_ids),
                CompetitorAnalysis.merchant_id == merchant_id,
            )
            .order_by(CompetitorAnalysis.id)
            .all()
        )


def delete_competitor(competitor_id: int, merchant_id: int):
    """
    Delete a competitor with its products.

    Raises:
        AccessDeniedError: If missing or owned by another merchant
    """
    with get_db_context() as db:
        competitor = _get_owned(db, CompetitorAnalysis, "competitor", competitor_id, merchant_id)
        db.delete(competitor)
        logger.info(f"Deleted competitor {competitor_id} for merchant {merchant_id}")


# =============================================================================
# SERIALIZATION
# =============================================================================

def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def analysis_to_dict(record: AnalysisRecord) -> Dict[str, Any]:
    """Serialize a website or competitor analysis"""
    data = {
        "id": record.id,
        "merchant_id": record.merchant_id,
        "url": record.url,
        "status": record.status.value,
        "error_message": record.error_message,
        "phase_results": record.phase_results or [],
        "created_at": _isoformat(record.created_at),
        "updated_at": _isoformat(record.updated_at),
        "completed_at": _isoformat(record.completed_at),
    }
    for name in QUALITY_FIELDS:
        data[name] = getattr(record, name)
    data["seo_issues"] = data["seo_issues"] or []
    data["meta_tags"] = data["meta_tags"] or {}

    if isinstance(record, CompetitorAnalysis):
        data.update({
            "name": record.name,
            "avg_price": record.avg_price or 0,
            "min_price": record.min_price or 0,
            "max_price": record.max_price or 0,
            "product_count": record.product_count or 0,
        })
    return data


def product_to_dict(row: Union[ExtractedProductRecord, CompetitorProduct]) -> Dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "price": row.price,
        "currency": row.currency,
        "image_url": row.image_url,
        "product_url": row.product_url,
        "category": row.category,
        "tags": row.tags or [],
        "in_stock": row.in_stock,
        "confidence": row.confidence,
        "source": row.source,
    }


def insight_to_dict(row: WebsiteInsight) -> Dict[str, Any]:
    return {
        "id": row.id,
        "category": row.category,
        "type": row.type,
        "priority": row.priority,
        "title": row.title,
        "description": row.description,
        "recommendation": row.recommendation,
        "impact": row.impact,
        "confidence": row.confidence,
    }
