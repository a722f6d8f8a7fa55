"""
Site Intelligence Services Layer

Business logic services that orchestrate repository operations,
background analysis pipelines and comparisons.
"""

from .website_analysis import WebsiteAnalysisService

__all__ = ["WebsiteAnalysisService"]
