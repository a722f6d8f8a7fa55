"""
SQLAlchemy Models for Site Intelligence

Tables:
- website_analyses: a merchant's analysis of its own store
- extracted_products / website_insights: children of a website analysis
- competitor_analyses: same quality columns plus price aggregates
- competitor_products: children of a competitor analysis

Every row carries merchant_id; reads by ID are always merchant-scoped
(see repository.py).
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Text,
    ForeignKey, Enum, Index, JSON,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


# =============================================================================
# ENUMS
# =============================================================================

class AnalysisStatus(enum.Enum):
    """Lifecycle of an analysis: analyzing -> completed | failed"""
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# SHARED COLUMNS
# =============================================================================

class SiteQualityColumns:
    """Columns shared by website and competitor analyses"""

    merchant_id = Column(Integer, nullable=False, index=True)
    url = Column(String(2048), nullable=False)

    # Status tracking
    status = Column(Enum(AnalysisStatus), default=AnalysisStatus.ANALYZING, nullable=False)
    error_message = Column(Text)

    # Identity (nullable until phase 1 completes)
    title = Column(String(500))
    description = Column(Text)
    industry = Column(String(100))
    language = Column(String(10))

    # SEO
    seo_score = Column(Integer)
    seo_issues = Column(JSON, default=list)
    meta_tags = Column(JSON, default=dict)

    # Performance
    performance_score = Column(Integer)
    load_time = Column(Integer)  # ms
    page_size = Column(Integer)  # bytes

    # UX
    ux_score = Column(Integer)
    mobile_optimized = Column(Boolean)
    has_contact_info = Column(Boolean)
    has_whatsapp = Column(Boolean)

    # Content
    content_quality = Column(Integer)
    word_count = Column(Integer)
    image_count = Column(Integer)
    video_count = Column(Integer)

    overall_score = Column(Integer, default=0, nullable=False)

    # Tagged outcome of each phase: [{"phase", "status", "reason"}]
    phase_results = Column(JSON, default=list)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime)


class ProductColumns:
    """Columns shared by extracted and competitor products"""

    merchant_id = Column(Integer, nullable=False, index=True)

    name = Column(String(500), nullable=False)
    description = Column(Text)
    price = Column(Float)
    currency = Column(String(10), default="SAR")
    image_url = Column(String(500))
    product_url = Column(String(500))
    category = Column(String(255))
    tags = Column(JSON, default=list)
    in_stock = Column(Boolean, default=True)
    confidence = Column(Integer, default=70)  # 0-100
    source = Column(String(50))  # extraction strategy

    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# WEBSITE ANALYSIS
# =============================================================================

class WebsiteAnalysis(SiteQualityColumns, Base):
    """A merchant's analysis of its own website"""
    __tablename__ = "website_analyses"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Relationships
    products = relationship(
        "ExtractedProductRecord",
        back_populates="analysis",
        cascade="all, delete-orphan",
        order_by="ExtractedProductRecord.id",
    )
    insights = relationship(
        "WebsiteInsight",
        back_populates="analysis",
        cascade="all, delete-orphan",
        order_by="WebsiteInsight.id",
    )

    __table_args__ = (
        Index("idx_website_analysis_merchant_time", "merchant_id", "created_at"),
    )


class ExtractedProductRecord(ProductColumns, Base):
    """A product found on the merchant's site"""
    __tablename__ = "extracted_products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    analysis_id = Column(
        Integer,
        ForeignKey("website_analyses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    analysis = relationship("WebsiteAnalysis", back_populates="products")


class WebsiteInsight(Base):
    """An actionable finding for a website analysis"""
    __tablename__ = "website_insights"

    id = Column(Integer, primary_key=True, autoincrement=True)
    analysis_id = Column(
        Integer,
        ForeignKey("website_analyses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    merchant_id = Column(Integer, nullable=False, index=True)

    category = Column(String(20), nullable=False)  # seo, performance, ux, content, marketing, security
    type = Column(String(20), nullable=False)  # strength, weakness, opportunity, threat, recommendation
    priority = Column(String(10), nullable=False)  # low, medium, high, critical
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    recommendation = Column(Text)
    impact = Column(Text)
    confidence = Column(Integer, default=80)

    created_at = Column(DateTime, default=datetime.utcnow)

    analysis = relationship("WebsiteAnalysis", back_populates="insights")


# =============================================================================
# COMPETITOR ANALYSIS
# =============================================================================

class CompetitorAnalysis(SiteQualityColumns, Base):
    """A competitor site tracked by a merchant"""
    __tablename__ = "competitor_analyses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)

    # Price aggregates over priced products
    avg_price = Column(Float, default=0)
    min_price = Column(Float, default=0)
    max_price = Column(Float, default=0)
    product_count = Column(Integer, default=0)

    products = relationship(
        "CompetitorProduct",
        back_populates="competitor",
        cascade="all, delete-orphan",
        order_by="CompetitorProduct.id",
    )

    __table_args__ = (
        Index("idx_competitor_merchant_time", "merchant_id", "created_at"),
    )


class CompetitorProduct(ProductColumns, Base):
    """A product found on a competitor's site"""
    __tablename__ = "competitor_products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    competitor_id = Column(
        Integer,
        ForeignKey("competitor_analyses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    competitor = relationship("CompetitorAnalysis", back_populates="products")
