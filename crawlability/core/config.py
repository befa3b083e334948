"""
Configuration system with environment-based settings.
Uses pydantic-settings for validation and type safety.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_VERSION: str = "1.0.0"
    ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Crawler
    CRAWLER_USER_AGENT: str = "Mozilla/5.0 (compatible; CrawlabilityBot/1.0; +https://example.com/bot)"
    CRAWLER_REQUEST_TIMEOUT: float = Field(10.0, gt=0)
    ROBOTS_USER_AGENT: str = "*"          # Agent whose robots.txt rules are evaluated
    ROBOTS_MAX_BYTES: int = 512_000       # Google stops reading robots.txt after 500 KiB
    PAGE_MAX_BYTES: int = 5_000_000

    # Sitemaps
    SITEMAP_MAX_BYTES: int = 50_000_000   # sitemaps.org limit, uncompressed
    SITEMAP_MAX_DEPTH: int = Field(10, ge=1)
    SITEMAP_MAX_URLS_PER_SITEMAP: int = Field(100_000, ge=1)
    SITEMAP_MAX_TOTAL_URLS: int = Field(500_000, ge=1)
    SITEMAP_CONCURRENCY: int = Field(1, ge=1)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors(cls, v: str | list) -> list:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance - created once per process."""
    return Settings()
