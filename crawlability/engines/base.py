"""
Type contracts shared by all crawlability engines.

Design principles:
- Records are built once per analysis and frozen afterwards
- Python attributes are snake_case, serialized JSON is camelCase
- Engines never raise for bad input data; problems become fields
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    """Frozen model serialized with camelCase keys."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


# ─────────────────────────────────────────────
# robots.txt
# ─────────────────────────────────────────────

class RobotsRule(RecordModel):
    """One User-agent block."""
    user_agent: str
    disallow: list[str] = Field(default_factory=list)
    allow: list[str] = Field(default_factory=list)
    crawl_delay: float | None = Field(default=None, ge=0)
    sitemap: list[str] | None = None


class RobotsTxtAnalysis(RecordModel):
    """Parsed robots.txt with the rule block selected for the evaluated agent."""
    exists: bool
    content: str
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    rules: list[RobotsRule] = Field(default_factory=list)
    sitemaps: list[str] = Field(default_factory=list)
    applicable_rules: RobotsRule = Field(default_factory=lambda: RobotsRule(user_agent="*"))
    url: str = ""


# ─────────────────────────────────────────────
# Sitemaps
# ─────────────────────────────────────────────

class SitemapUrl(RecordModel):
    """One <url> or <sitemap> entry."""
    loc: str
    lastmod: str | None = None
    changefreq: str | None = None
    priority: str | None = None
    is_sitemap: bool = False
    sitemap_source: str | None = None


class SitemapDetail(RecordModel):
    """Result of resolving a single sitemap document."""
    url: str
    is_valid: bool
    is_sitemap_index: bool = False
    urls: list[SitemapUrl] = Field(default_factory=list)
    error: str | None = None


class SitemapAnalysis(RecordModel):
    """Aggregate over a whole sitemap tree."""
    discovered: list[str] = Field(default_factory=list)
    valid: list[str] = Field(default_factory=list)
    invalid: list[str] = Field(default_factory=list)
    urls: list[SitemapUrl] = Field(default_factory=list)
    sitemaps: list[SitemapDetail] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# ─────────────────────────────────────────────
# Indexability
# ─────────────────────────────────────────────

class BlockingFactors(RecordModel):
    robots_txt: bool = False
    meta_robots: bool = False
    canonical: bool = False   # A canonical never blocks indexing
    nofollow: bool = False


class MetaRobots(RecordModel):
    noindex: bool = False
    nofollow: bool = False
    noarchive: bool = False
    nosnippet: bool = False


class IndexabilityResult(RecordModel):
    url: str
    is_indexable: bool
    blocking_factors: BlockingFactors = Field(default_factory=BlockingFactors)
    meta_robots: MetaRobots = Field(default_factory=MetaRobots)
    canonical_url: str | None = None
    recommendations: list[str] = Field(default_factory=list)


# ─────────────────────────────────────────────
# Scoring and top-level result
# ─────────────────────────────────────────────

class CrawlabilityScore(RecordModel):
    score: int = Field(ge=0, le=100)
    grade: str = "F"
    recommendations: list[str] = Field(default_factory=list)


class CrawlabilityResult(RecordModel):
    """The only object returned across the engine boundary."""
    url: str
    robots_txt: RobotsTxtAnalysis
    indexability: IndexabilityResult
    sitemaps: SitemapAnalysis
    overall_indexable: bool
    crawlability_score: int = Field(ge=0, le=100)
    grade: str = "F"
    recommendations: list[str] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None
    execution_time_ms: float = 0.0
