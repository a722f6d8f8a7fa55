"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Claude API (Optional - analysis degrades to heuristics without it)
    ANTHROPIC_API_KEY: Optional[str] = None
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Fetching
    FETCH_TIMEOUT: float = 15.0
    FETCH_MAX_OUTPUT_BYTES: int = 10 * 1024 * 1024
    FALLBACK_FETCH_ENABLED: bool = True
    CURL_BINARY: str = "curl"

    # Product catalog endpoints
    CATALOG_API_TIMEOUT: float = 5.0
    MAX_CATALOG_PRODUCTS: int = 50
    DEFAULT_CURRENCY: str = "SAR"

    # Limits
    AI_TEXT_LIMIT: int = 8000
    SHUTDOWN_DRAIN_TIMEOUT: float = 30.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
