"""
Site Intelligence - Analysis Pipeline

Runs website and competitor analyses as background tasks:
- Phase 1: Site analysis (quality scores)
- Phase 2: Product extraction (and competitor price aggregates)
- Phase 3: Insight generation
- Phase 4: Finalize
"""

from .orchestrator import (
    AnalysisOrchestrator,
    AnalysisTarget,
    PhaseResult,
    PhaseStatus,
    TaskRegistry,
    task_registry,
)

__all__ = [
    "AnalysisOrchestrator",
    "AnalysisTarget",
    "PhaseResult",
    "PhaseStatus",
    "TaskRegistry",
    "task_registry",
]
