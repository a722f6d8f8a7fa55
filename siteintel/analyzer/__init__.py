"""
Site Intelligence - Analysis

- ClaudeClient: AI invocation with retries and schema-validated JSON
- Insights: rule-based recommendations from a site-quality report
- Comparison: merchant vs. competitors, including pricing bands
"""

from .client import ClaudeClient, create_claude_client
from .insights import generate_insights
from .comparison import (
    ComparisonResult,
    CompetitorReport,
    PricingComparison,
    PricingStats,
    aggregate_pricing,
    compare,
)

__all__ = [
    # Client
    "ClaudeClient",
    "create_claude_client",
    # Insights
    "generate_insights",
    # Comparison
    "ComparisonResult",
    "CompetitorReport",
    "PricingComparison",
    "PricingStats",
    "aggregate_pricing",
    "compare",
]
