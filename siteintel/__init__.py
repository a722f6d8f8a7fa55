"""
siteintel - Website & Competitor Intelligence

Analyzes a merchant's storefront (or a competitor's):
1. Fetches the page, working around anti-bot blocking
2. Scores SEO, performance, UX and content signals
3. Extracts the product catalog (platform APIs, structured data, Claude AI)
4. Generates prioritized insights and competitor comparisons
"""

__version__ = "0.1.0"
