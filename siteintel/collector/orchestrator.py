"""
Analysis Orchestrator

Coordinates the four-phase analysis of a website or competitor:

1. Site analysis: score SEO/performance/UX/content, persist quality fields
2. Product extraction: scrape, extract, persist products one by one
   (competitors also get price aggregates)
3. Insight generation: website targets with a non-zero overall score
4. Finalize: status completed, with the tagged outcome of every phase

Phases run strictly in order and never stop the pipeline on their own:
each returns a PhaseResult tagged ok / degraded / failed / skipped, store
errors included. Only a failure to write the final status marks the
analysis failed.

Each analysis runs as an asyncio task tracked in the process-wide
task_registry, so callers can return immediately and shutdown can drain.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Tuple

from siteintel.analyzer.comparison import aggregate_pricing
from siteintel.analyzer.insights import generate_insights
from siteintel.context.product_extractor import ProductExtractor
from siteintel.context.scraper import ContentScraper, ScrapeError
from siteintel.context.website_analyzer import WebsiteAnalyzer, hostname
from siteintel.database import repository
from siteintel.models import SiteQualityReport, TargetKind

logger = logging.getLogger(__name__)


# =============================================================================
# PHASE RESULTS
# =============================================================================


class PhaseStatus(str, Enum):
    """Outcome of a single phase."""
    OK = "ok"
    DEGRADED = "degraded"  # finished with partial or placeholder data
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class PhaseResult:
    """Tagged result of a phase; data is kept in memory only."""
    phase: str
    status: PhaseStatus
    data: Any = field(default=None, repr=False)
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"phase": self.phase, "status": self.status.value, "reason": self.reason}


@dataclass
class AnalysisTarget:
    """What to analyze and where to store it."""
    kind: TargetKind
    record_id: int
    merchant_id: int
    url: str
    name: Optional[str] = None


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class AnalysisOrchestrator:
    """
    Runs the analysis pipeline for one target.

    Usage:
        orchestrator = AnalysisOrchestrator(claude_client=client)
        try:
            results = await orchestrator.run_analysis(analysis_id, merchant_id, url)
        finally:
            await orchestrator.close()
    """

    def __init__(
        self,
        claude_client=None,
        scraper: Optional[ContentScraper] = None,
        analyzer: Optional[WebsiteAnalyzer] = None,
        extractor: Optional[ProductExtractor] = None,
        store=None,
    ):
        """
        Initialize orchestrator.

        Args:
            claude_client: Optional ClaudeClient for AI-assisted extraction
            scraper: Content scraper (shared with the analyzer by default)
            analyzer: Website analyzer for phase 1
            extractor: Product extractor for phase 2
            store: Persistence functions (defaults to the repository module)
        """
        self.scraper = scraper or ContentScraper()
        self.analyzer = analyzer or WebsiteAnalyzer(scraper=self.scraper, claude_client=claude_client)
        self.extractor = extractor or ProductExtractor(claude_client=claude_client)
        self.store = store or repository

    async def run_analysis(self, analysis_id: int, merchant_id: int, url: str) -> List[PhaseResult]:
        """Analyze a merchant's own website."""
        return await self.run(AnalysisTarget(TargetKind.WEBSITE, analysis_id, merchant_id, url))

    async def run_competitor(
        self,
        competitor_id: int,
        merchant_id: int,
        url: str,
        name: Optional[str] = None,
    ) -> List[PhaseResult]:
        """Analyze a competitor site (no insights, adds price aggregates)."""
        return await self.run(
            AnalysisTarget(TargetKind.COMPETITOR, competitor_id, merchant_id, url, name=name)
        )

    async def run(self, target: AnalysisTarget) -> List[PhaseResult]:
        """
        Run all phases for a target.

        Never raises; the stored status ends as completed or failed.

        Returns:
            PhaseResult for each phase that ran
        """
        label = f"{target.kind.value} {target.record_id}"
        logger.info(f"Starting {label} analysis of {target.url}")
        results: List[PhaseResult] = []

        try:
            logger.info(f"[{label}] Phase 1: Site analysis...")
            results.append(await self._analyze_site(target))

            logger.info(f"[{label}] Phase 2: Product extraction...")
            results.append(await self._extract_products(target))

            logger.info(f"[{label}] Phase 3: Insight generation...")
            results.append(await self._generate_insights(target))

            logger.info(f"[{label}] Phase 4: Finalize")
            self.store.complete_analysis(
                target.kind, target.record_id, [r.to_dict() for r in results]
            )
            results.append(PhaseResult("finalize", PhaseStatus.OK))

        except Exception as e:
            logger.error(f"[{label}] Analysis failed: {e}")
            results.append(PhaseResult("finalize", PhaseStatus.FAILED, reason=str(e)))
            try:
                self.store.fail_analysis(
                    target.kind, target.record_id, str(e), [r.to_dict() for r in results]
                )
            except Exception as store_error:
                logger.error(f"[{label}] Could not record failure: {store_error}")

        summary = ", ".join(f"{r.phase}={r.status.value}" for r in results)
        logger.info(f"[{label}] Finished: {summary}")
        return results

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    async def _analyze_site(self, target: AnalysisTarget) -> PhaseResult:
        try:
            report = await self.analyzer.analyze(target.url)
            self.store.update_site_quality(target.kind, target.record_id, report.quality_fields())
        except Exception as e:
            logger.error(f"Site analysis of {target.url} failed, storing placeholder: {e}")
            return self._store_placeholder(target, str(e))

        if report.degraded:
            return PhaseResult(
                "site_analysis",
                PhaseStatus.DEGRADED,
                data=report,
                reason="site content unavailable, URL-only report",
            )
        return PhaseResult("site_analysis", PhaseStatus.OK, data=report)

    def _store_placeholder(self, target: AnalysisTarget, reason: str) -> PhaseResult:
        report = SiteQualityReport(
            url=target.url,
            title=hostname(target.url),
            description=f"Site analysis could not be completed: {reason}",
            degraded=True,
        )
        try:
            self.store.update_site_quality(target.kind, target.record_id, report.quality_fields())
        except Exception as e:
            logger.error(f"Could not store placeholder for {target.url}: {e}")
            return PhaseResult("site_analysis", PhaseStatus.FAILED, reason=f"{reason}; {e}")
        return PhaseResult("site_analysis", PhaseStatus.DEGRADED, data=report, reason=reason)

    async def _extract_products(self, target: AnalysisTarget) -> PhaseResult:
        html, text = "", ""
        scrape_error = None
        try:
            page = await self.scraper.scrape(target.url)
            html, text = page.html, page.text
        except ScrapeError as e:
            scrape_error = str(e)
            logger.warning(f"Product phase continuing without page content: {e}")
        except Exception as e:
            scrape_error = str(e)
            logger.error(f"Unexpected scrape error for {target.url}: {e}")

        try:
            products = await self.extractor.extract(target.url, html, text)
        except Exception as e:
            logger.error(f"Product extraction for {target.url} failed: {e}")
            return PhaseResult("products", PhaseStatus.FAILED, data=[], reason=str(e))

        stored = []
        for product in products:
            try:
                self.store.create_extracted_product(
                    target.kind, target.record_id, target.merchant_id, product
                )
                stored.append(product)
            except Exception as e:
                logger.error(f"Failed to store product '{product.name[:50]}': {e}")

        logger.info(f"Stored {len(stored)}/{len(products)} products for {target.url}")

        if target.kind == TargetKind.COMPETITOR:
            stats = aggregate_pricing(stored)
            try:
                self.store.update_competitor_pricing(target.record_id, **stats.to_dict())
            except Exception as e:
                logger.error(f"Could not store pricing for competitor {target.record_id}: {e}")
                return PhaseResult(
                    "products", PhaseStatus.DEGRADED, data=stored, reason=f"pricing not stored: {e}"
                )
            logger.info(
                f"Competitor {target.record_id} pricing: avg={stats.avg_price} "
                f"min={stats.min_price} max={stats.max_price} ({stats.product_count} priced)"
            )

        if len(stored) < len(products):
            return PhaseResult(
                "products",
                PhaseStatus.DEGRADED,
                data=stored,
                reason=f"{len(products) - len(stored)} of {len(products)} products could not be stored",
            )
        if scrape_error:
            return PhaseResult("products", PhaseStatus.DEGRADED, data=stored, reason=scrape_error)
        return PhaseResult("products", PhaseStatus.OK, data=stored)

    async def _generate_insights(self, target: AnalysisTarget) -> PhaseResult:
        if target.kind == TargetKind.COMPETITOR:
            return PhaseResult("insights", PhaseStatus.SKIPPED, reason="not generated for competitors")

        try:
            record = self.store.get_analysis_record(target.kind, target.record_id)
            if record is None:
                return PhaseResult("insights", PhaseStatus.FAILED, reason="analysis record not found")

            report = SiteQualityReport.from_record(record, url=target.url)
            if report.overall_score <= 0:
                return PhaseResult("insights", PhaseStatus.SKIPPED, reason="overall score is 0")

            insights = generate_insights(report)
        except Exception as e:
            logger.error(f"Insight generation for {target.url} failed: {e}")
            return PhaseResult("insights", PhaseStatus.FAILED, reason=str(e))

        stored = []
        for insight in insights:
            try:
                self.store.create_insight(target.record_id, target.merchant_id, insight)
                stored.append(insight)
            except Exception as e:
                logger.error(f"Failed to store insight '{insight.title}': {e}")

        if len(stored) < len(insights):
            return PhaseResult(
                "insights",
                PhaseStatus.DEGRADED,
                data=stored,
                reason=f"{len(insights) - len(stored)} of {len(insights)} insights could not be stored",
            )
        return PhaseResult("insights", PhaseStatus.OK, data=stored)

    async def close(self):
        """Release HTTP clients."""
        await self.analyzer.close()
        await self.extractor.close()
        if self.scraper is not self.analyzer.scraper:
            await self.scraper.close()


# =============================================================================
# TASK REGISTRY
# =============================================================================


class TaskRegistry:
    """
    Tracks background analysis tasks by (kind, record id).

    Finished tasks remove themselves. drain() lets shutdown wait for
    running analyses instead of abandoning them mid-write.
    """

    def __init__(self):
        self._tasks: Dict[Tuple[str, int], asyncio.Task] = {}

    @staticmethod
    def _key(kind: TargetKind, record_id: int) -> Tuple[str, int]:
        return TargetKind(kind).value, record_id

    def start(self, kind: TargetKind, record_id: int, coroutine: Awaitable) -> asyncio.Task:
        """Schedule a coroutine on the running loop and track it."""
        key = self._key(kind, record_id)
        task = asyncio.create_task(coroutine, name=f"analysis-{key[0]}-{record_id}")
        self._tasks[key] = task
        task.add_done_callback(lambda finished: self._finished(key, finished))
        logger.debug(f"Started background task for {key[0]} {record_id}")
        return task

    def _finished(self, key: Tuple[str, int], task: asyncio.Task):
        if self._tasks.get(key) is task:
            del self._tasks[key]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background task for {key[0]} {key[1]} crashed: {task.exception()}")

    def get(self, kind: TargetKind, record_id: int) -> Optional[asyncio.Task]:
        return self._tasks.get(self._key(kind, record_id))

    def active_count(self) -> int:
        return len(self._tasks)

    def __contains__(self, item) -> bool:
        kind, record_id = item
        return self._key(kind, record_id) in self._tasks

    async def drain(self, timeout: Optional[float] = None) -> int:
        """
        Wait for running tasks.

        Returns:
            Number of tasks still running when the timeout expired
        """
        tasks = list(self._tasks.values())
        if not tasks:
            return 0

        logger.info(f"Waiting for {len(tasks)} running analyses...")
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} analyses still running after {timeout}s")
        return len(pending)


# Process-wide registry
task_registry = TaskRegistry()
