"""
Site Intelligence Database Layer

Usage:
    from siteintel.database import (
        # Session management
        init_db, get_db_context,

        # Models
        WebsiteAnalysis, CompetitorAnalysis, AnalysisStatus,

        # Repository (high-level operations)
        create_website_analysis, get_website_analysis, AccessDeniedError,
    )

    # Initialize database
    init_db()

    # Create an analysis
    analysis_id = create_website_analysis(merchant_id=7, url="https://store.example.sa")

    # Merchant-scoped read
    analysis = get_website_analysis(analysis_id, merchant_id=7)
"""

# Models
from .models import (
    Base,
    AnalysisStatus,
    WebsiteAnalysis,
    ExtractedProductRecord,
    WebsiteInsight,
    CompetitorAnalysis,
    CompetitorProduct,
)

# Session management
from .session import (
    get_db_context,
    init_db,
    check_db_connection,
    get_engine,
    get_db_info,
    get_database_url,
    reset_engine,
)

# Repository (high-level data operations)
from .repository import (
    AccessDeniedError,
    # Lifecycle
    create_website_analysis,
    create_competitor_analysis,
    get_analysis_record,
    update_site_quality,
    update_competitor_pricing,
    complete_analysis,
    fail_analysis,
    # Children
    create_extracted_product,
    create_insight,
    get_products,
    get_insights,
    # Merchant-scoped access
    get_website_analysis,
    list_website_analyses,
    delete_website_analysis,
    get_competitor,
    list_competitors,
    get_competitors_by_ids,
    delete_competitor,
    # Serialization
    analysis_to_dict,
    product_to_dict,
    insight_to_dict,
)

__all__ = [
    # Models
    "Base",
    "AnalysisStatus",
    "WebsiteAnalysis",
    "ExtractedProductRecord",
    "WebsiteInsight",
    "CompetitorAnalysis",
    "CompetitorProduct",
    # Session
    "get_db_context",
    "init_db",
    "check_db_connection",
    "get_engine",
    "get_db_info",
    "get_database_url",
    "reset_engine",
    # Repository
    "AccessDeniedError",
    "create_website_analysis",
    "create_competitor_analysis",
    "get_analysis_record",
    "update_site_quality",
    "update_competitor_pricing",
    "complete_analysis",
    "fail_analysis",
    "create_extracted_product",
    "create_insight",
    "get_products",
    "get_insights",
    "get_website_analysis",
    "list_website_analyses",
    "delete_website_analysis",
    "get_competitor",
    "list_competitors",
    "get_competitors_by_ids",
    "delete_competitor",
    "analysis_to_dict",
    "product_to_dict",
    "insight_to_dict",
]
