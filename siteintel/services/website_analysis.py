"""
Website Analysis Service

Entry points for website and competitor intelligence:
1. Start an analysis (returns immediately, runs in the background)
2. Read results (merchant-scoped, children only once completed)
3. Compare a completed analysis with completed competitors
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from siteintel.analyzer.comparison import (
    CompetitorReport,
    PricingStats,
    aggregate_pricing,
    compare,
)
from siteintel.collector.orchestrator import (
    AnalysisOrchestrator,
    AnalysisTarget,
    PhaseResult,
    TaskRegistry,
    task_registry,
)
from siteintel.database import repository
from siteintel.database.models import AnalysisStatus
from siteintel.models import SiteQualityReport, TargetKind

logger = logging.getLogger(__name__)


class WebsiteAnalysisService:
    """Service for website and competitor analysis operations."""

    def __init__(
        self,
        claude_client=None,
        orchestrator_factory: Optional[Callable[[], AnalysisOrchestrator]] = None,
        registry: Optional[TaskRegistry] = None,
    ):
        """
        Initialize service.

        Args:
            claude_client: Optional ClaudeClient passed to each pipeline run
            orchestrator_factory: Builds a fresh orchestrator per run
            registry: Background task registry (defaults to the process-wide one)
        """
        self.claude_client = claude_client
        self.orchestrator_factory = orchestrator_factory or self._default_orchestrator
        self.registry = registry or task_registry

    def _default_orchestrator(self) -> AnalysisOrchestrator:
        return AnalysisOrchestrator(claude_client=self.claude_client)

    async def _run(self, target: AnalysisTarget) -> List[PhaseResult]:
        orchestrator = self.orchestrator_factory()
        try:
            return await orchestrator.run(target)
        finally:
            await orchestrator.close()

    # =========================================================================
    # WEBSITE ANALYSES
    # =========================================================================

    async def analyze(self, merchant_id: int, url: str) -> Dict[str, Any]:
        """
        Start analyzing the merchant's website.

        Returns:
            {"analysis_id", "status": "analyzing"}
        """
        analysis_id = repository.create_website_analysis(merchant_id, url)
        target = AnalysisTarget(TargetKind.WEBSITE, analysis_id, merchant_id, url)
        self.registry.start(TargetKind.WEBSITE, analysis_id, self._run(target))

        return {"analysis_id": analysis_id, "status": AnalysisStatus.ANALYZING.value}

    def get_analysis(self, analysis_id: int, merchant_id: int) -> Dict[str, Any]:
        """
        Get an analysis with its products and insights.

        Children are only included once the analysis has completed.

        Raises:
            AccessDeniedError: If the merchant does not own the analysis
        """
        analysis = repository.get_website_analysis(analysis_id, merchant_id)
        data = repository.analysis_to_dict(analysis)

        if analysis.status == AnalysisStatus.COMPLETED:
            data["extracted_products"] = [
                repository.product_to_dict(p)
                for p in repository.get_products(TargetKind.WEBSITE, analysis_id)
            ]
            data["insights"] = [
                repository.insight_to_dict(i) for i in repository.get_insights(analysis_id)
            ]
        else:
            data["extracted_products"] = []
            data["insights"] = []

        return data

    def list_analyses(self, merchant_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        """Merchant's analyses, newest first."""
        return [
            repository.analysis_to_dict(a)
            for a in repository.list_website_analyses(merchant_id, limit=limit)
        ]

    def get_products(self, analysis_id: int, merchant_id: int) -> List[Dict[str, Any]]:
        """Products extracted for an analysis."""
        repository.get_website_analysis(analysis_id, merchant_id)
        return [
            repository.product_to_dict(p)
            for p in repository.get_products(TargetKind.WEBSITE, analysis_id)
        ]

    def get_insights(self, analysis_id: int, merchant_id: int) -> List[Dict[str, Any]]:
        """Insights generated for an analysis."""
        repository.get_website_analysis(analysis_id, merchant_id)
        return [repository.insight_to_dict(i) for i in repository.get_insights(analysis_id)]

    def delete_analysis(self, analysis_id: int, merchant_id: int) -> None:
        """Delete an analysis with its products and insights."""
        repository.delete_website_analysis(analysis_id, merchant_id)

    # =========================================================================
    # COMPETITORS
    # =========================================================================

    async def add_competitor(self, merchant_id: int, name: str, url: str) -> Dict[str, Any]:
        """
        Start tracking a competitor.

        Returns:
            {"competitor_id", "status": "analyzing"}
        """
        competitor_id = repository.create_competitor_analysis(merchant_id, name, url)
        target = AnalysisTarget(TargetKind.COMPETITOR, competitor_id, merchant_id, url, name=name)
        self.registry.start(TargetKind.COMPETITOR, competitor_id, self._run(target))

        return {"competitor_id": competitor_id, "status": AnalysisStatus.ANALYZING.value}

    def list_competitors(self, merchant_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        """Merchant's competitors, newest first."""
        return [
            repository.analysis_to_dict(c)
            for c in repository.list_competitors(merchant_id, limit=limit)
        ]

    def get_competitor(self, competitor_id: int, merchant_id: int) -> Dict[str, Any]:
        """
        Get a competitor with its products (once completed).

        Raises:
            AccessDeniedError: If the merchant does not own the competitor
        """
        competitor = repository.get_competitor(competitor_id, merchant_id)
        data = repository.analysis_to_dict(competitor)

        if competitor.status == AnalysisStatus.COMPLETED:
            data["products"] = [
                repository.product_to_dict(p)
                for p in repository.get_products(TargetKind.COMPETITOR, competitor_id)
            ]
        else:
            data["products"] = []

        return data

    def get_competitor_products(self, competitor_id: int, merchant_id: int) -> List[Dict[str, Any]]:
        """Products extracted for a competitor."""
        repository.get_competitor(competitor_id, merchant_id)
        return [
            repository.product_to_dict(p)
            for p in repository.get_products(TargetKind.COMPETITOR, competitor_id)
        ]

    def delete_competitor(self, competitor_id: int, merchant_id: int) -> None:
        """Delete a competitor with its products."""
        repository.delete_competitor(competitor_id, merchant_id)

    # =========================================================================
    # COMPARISON
    # =========================================================================

    def compare_with_competitors(
        self,
        analysis_id: int,
        merchant_id: int,
        competitor_ids: Optional[List[int]] = None,
    ) -> Dict[str, Any]:
        """
        Compare a website analysis with the merchant's competitors.

        Only completed records take part. When competitor_ids is omitted,
        every completed competitor of the merchant is used. An empty list
        compares against nothing. IDs the merchant does not own are ignored.

        Raises:
            AccessDeniedError: If the merchant does not own the analysis
        """
        analysis = repository.get_website_analysis(analysis_id, merchant_id)

        if competitor_ids is not None:
            candidates = repository.get_competitors_by_ids(competitor_ids, merchant_id)
        else:
            candidates = repository.list_competitors(merchant_id)

        competitors = [
            CompetitorReport(
                name=c.name,
                report=SiteQualityReport.from_record(c),
                pricing=PricingStats(
                    avg_price=c.avg_price or 0,
                    min_price=c.min_price or 0,
                    max_price=c.max_price or 0,
                    product_count=c.product_count or 0,
                ),
            )
            for c in candidates
            if c.status == AnalysisStatus.COMPLETED
        ]

        merchant_report = None
        merchant_prices = None
        if analysis.status == AnalysisStatus.COMPLETED:
            merchant_report = SiteQualityReport.from_record(analysis)
            merchant_prices = aggregate_pricing(repository.get_products(TargetKind.WEBSITE, analysis_id))
        else:
            logger.info(f"Analysis {analysis_id} is {analysis.status.value}, nothing to compare yet")

        result = compare(merchant_report, competitors, merchant_prices)

        data = result.to_dict()
        data["analysis_id"] = analysis_id
        data["competitor_ids"] = [c.id for c in candidates if c.status == AnalysisStatus.COMPLETED]
        return data
