"""
API Endpoints for Website & Competitor Intelligence

FastAPI app that:
1. Starts website and competitor analyses (returns immediately)
2. Serves merchant-scoped results, products and insights
3. Compares a website analysis with the merchant's competitors

The merchant is identified by the X-Merchant-ID header.
"""

import logging
import sys
from datetime import datetime
from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, Field, HttpUrl

from siteintel import __version__
from siteintel.analyzer import create_claude_client
from siteintel.collector import task_registry
from siteintel.database import AccessDeniedError, check_db_connection, get_db_info, init_db
from siteintel.services import WebsiteAnalysisService
from siteintel.utils import get_settings

settings = get_settings()

# Configure logging to stdout
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

app = FastAPI(
    title="Site Intelligence",
    description="Website and competitor analysis for merchant storefronts",
    version=__version__,
)


# ============================================================================
# STARTUP / SHUTDOWN
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    logger.info("Initializing database...")
    try:
        init_db()
        if check_db_connection():
            logger.info("Database connection verified")
        else:
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    """Give running analyses a chance to finish."""
    pending = await task_registry.drain(timeout=settings.SHUTDOWN_DRAIN_TIMEOUT)
    if pending:
        logger.warning(f"Shutting down with {pending} analyses still running")


# ============================================================================
# DEPENDENCIES
# ============================================================================

@lru_cache
def get_service() -> WebsiteAnalysisService:
    """Shared service instance (AI enabled when ANTHROPIC_API_KEY is set)."""
    return WebsiteAnalysisService(claude_client=create_claude_client())


def get_merchant_id(merchant_id: int = Header(..., alias="X-Merchant-ID")) -> int:
    return merchant_id


def access_denied(error: AccessDeniedError) -> HTTPException:
    return HTTPException(status_code=403, detail=f"Access denied to this {error.resource}")


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class WebsiteAnalysisRequest(BaseModel):
    """Request to analyze the merchant's own storefront."""
    url: HttpUrl


class CompetitorRequest(BaseModel):
    """Request to start tracking a competitor."""
    name: str = Field(..., min_length=1, max_length=255)
    url: HttpUrl


class CompareRequest(BaseModel):
    """Competitors to compare against (omitted means all completed ones)."""
    competitor_ids: Optional[List[int]] = None


class AnalysisStarted(BaseModel):
    analysis_id: int
    status: str


class CompetitorStarted(BaseModel):
    competitor_id: int
    status: str


# ============================================================================
# HEALTH
# ============================================================================

@app.get("/api/health")
async def health():
    """Health check including database status."""
    db_connected = False
    try:
        db_connected = check_db_connection()
    except Exception as e:
        logger.error(f"Health check database probe failed: {e}")

    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "environment": settings.ENVIRONMENT,
        "analyses_running": task_registry.active_count(),
        "database": "connected" if db_connected else "disconnected",
    }


@app.get("/api/database")
async def database_status():
    """Database type, connection status and masked URL, for deployment debugging."""
    db_info = get_db_info()
    return {
        "status": "ok" if db_info["connected"] else "error",
        "database_type": db_info["database_type"],
        "connected": db_info["connected"],
        "connection_url": db_info["connection_url"],
        "error": db_info.get("error"),
    }


# ============================================================================
# WEBSITE ANALYSIS
# ============================================================================

@app.post("/api/website-analysis", response_model=AnalysisStarted)
async def start_website_analysis(
    request: WebsiteAnalysisRequest,
    merchant_id: int = Depends(get_merchant_id),
    service: WebsiteAnalysisService = Depends(get_service),
):
    """Start analyzing a website. Poll GET /api/website-analysis/{id} for results."""
    logger.info(f"Website analysis requested by merchant {merchant_id}: {request.url}")
    return await service.analyze(merchant_id, str(request.url))


@app.get("/api/website-analysis")
async def list_website_analyses(
    merchant_id: int = Depends(get_merchant_id),
    service: WebsiteAnalysisService = Depends(get_service),
):
    return service.list_analyses(merchant_id)


@app.get("/api/website-analysis/{analysis_id}")
async def get_website_analysis(
    analysis_id: int,
    merchant_id: int = Depends(get_merchant_id),
    service: WebsiteAnalysisService = Depends(get_service),
):
    """Analysis record with extracted_products and insights once completed."""
    try:
        return service.get_analysis(analysis_id, merchant_id)
    except AccessDeniedError as e:
        raise access_denied(e)


@app.get("/api/website-analysis/{analysis_id}/products")
async def get_website_products(
    analysis_id: int,
    merchant_id: int = Depends(get_merchant_id),
    service: WebsiteAnalysisService = Depends(get_service),
):
    try:
        return service.get_products(analysis_id, merchant_id)
    except AccessDeniedError as e:
        raise access_denied(e)


@app.get("/api/website-analysis/{analysis_id}/insights")
async def get_website_insights(
    analysis_id: int,
    merchant_id: int = Depends(get_merchant_id),
    service: WebsiteAnalysisService = Depends(get_service),
):
    try:
        return service.get_insights(analysis_id, merchant_id)
    except AccessDeniedError as e:
        raise access_denied(e)


@app.delete("/api/website-analysis/{analysis_id}")
async def delete_website_analysis(
    analysis_id: int,
    merchant_id: int = Depends(get_merchant_id),
    service: WebsiteAnalysisService = Depends(get_service),
):
    try:
        service.delete_analysis(analysis_id, merchant_id)
    except AccessDeniedError as e:
        raise access_denied(e)
    return {"deleted": True, "analysis_id": analysis_id}


@app.post("/api/website-analysis/{analysis_id}/compare")
async def compare_website_analysis(
    analysis_id: int,
    request: CompareRequest,
    merchant_id: int = Depends(get_merchant_id),
    service: WebsiteAnalysisService = Depends(get_service),
):
    """
    Compare an analysis with competitors.

    Returns strengths, weaknesses, opportunities and a pricing band.
    Competitors that are not completed or not owned are left out.
    """
    try:
        return service.compare_with_competitors(
            analysis_id, merchant_id, competitor_ids=request.competitor_ids
        )
    except AccessDeniedError as e:
        raise access_denied(e)


# ============================================================================
# COMPETITORS
# ============================================================================

@app.post("/api/competitors", response_model=CompetitorStarted)
async def add_competitor(
    request: CompetitorRequest,
    merchant_id: int = Depends(get_merchant_id),
    service: WebsiteAnalysisService = Depends(get_service),
):
    """Start tracking and analyzing a competitor."""
    logger.info(f"Competitor requested by merchant {merchant_id}: {request.name} ({request.url})")
    return await service.add_competitor(merchant_id, request.name, str(request.url))


@app.get("/api/competitors")
async def list_competitors(
    merchant_id: int = Depends(get_merchant_id),
    service: WebsiteAnalysisService = Depends(get_service),
):
    return service.list_competitors(merchant_id)


@app.get("/api/competitors/{competitor_id}")
async def get_competitor(
    competitor_id: int,
    merchant_id: int = Depends(get_merchant_id),
    service: WebsiteAnalysisService = Depends(get_service),
):
    try:
        return service.get_competitor(competitor_id, merchant_id)
    except AccessDeniedError as e:
        raise access_denied(e)


@app.get("/api/competitors/{competitor_id}/products")
async def get_competitor_products(
    competitor_id: int,
    merchant_id: int = Depends(get_merchant_id),
    service: WebsiteAnalysisService = Depends(get_service),
):
    try:
        return service.get_competitor_products(competitor_id, merchant_id)
    except AccessDeniedError as e:
        raise access_denied(e)


@app.delete("/api/competitors/{competitor_id}")
async def delete_competitor(
    competitor_id: int,
    merchant_id: int = Depends(get_merchant_id),
    service: WebsiteAnalysisService = Depends(get_service),
):
    try:
        service.delete_competitor(competitor_id, merchant_id)
    except AccessDeniedError as e:
        raise access_denied(e)
    return {"deleted": True, "competitor_id": competitor_id}


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
