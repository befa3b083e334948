"""
Scoring Engine - combines robots.txt health, sitemap health and page
indexability into a single 0-100 crawlability score.

Scoring Model:
- Start at 100 and deduct fixed points per failed check
- Floor at 0
- Recommendations in a fixed order: robots.txt, sitemaps, indexability

The deduction weights and recommendation order are a stable contract:
stored results and the presentation layer depend on them.
"""

from __future__ import annotations

import structlog

from crawlability.engines.base import (
    CrawlabilityScore,
    IndexabilityResult,
    RobotsTxtAnalysis,
    SitemapAnalysis,
)

logger = structlog.get_logger(__name__)


# ─────────────────────────────────────────────
# Deductions
# ─────────────────────────────────────────────

MAX_SCORE = 100
PENALTY_ROBOTS_MISSING = 20
PENALTY_ROBOTS_INVALID = 30
PENALTY_NOT_INDEXABLE = 50
PENALTY_NO_VALID_SITEMAP = 10

ADD_ROBOTS_TXT = "Consider adding a robots.txt file to control crawler access"
FIX_ROBOTS_TXT = "Fix robots.txt syntax errors for proper crawler behavior"
ADD_SITEMAP = "Add an XML sitemap to help search engines discover your pages"
FIX_SITEMAPS = "Fix invalid sitemaps - ensure they return valid XML and are accessible"


def score_crawlability(
    robots_txt: RobotsTxtAnalysis,
    indexability: IndexabilityResult,
    sitemaps: SitemapAnalysis,
) -> CrawlabilityScore:
    """Deterministic point-deduction score with ordered recommendations."""
    score = MAX_SCORE
    recommendations: list[str] = []

    # ── robots.txt ─────────────────────────────────
    if not robots_txt.exists:
        score -= PENALTY_ROBOTS_MISSING
        recommendations.append(ADD_ROBOTS_TXT)
    elif not robots_txt.is_valid:
        score -= PENALTY_ROBOTS_INVALID
        recommendations.append(FIX_ROBOTS_TXT)

    # ── Sitemaps ───────────────────────────────────
    has_valid_sitemap = bool(sitemaps.valid)
    if not has_valid_sitemap:
        score -= PENALTY_NO_VALID_SITEMAP
    if not sitemaps.discovered:
        recommendations.append(ADD_SITEMAP)
    elif not has_valid_sitemap:
        recommendations.append(FIX_SITEMAPS)

    # ── Indexability ───────────────────────────────
    if not indexability.is_indexable:
        score -= PENALTY_NOT_INDEXABLE
    recommendations.extend(indexability.recommendations)

    score = max(0, score)
    logger.debug(
        "Crawlability scored",
        score=score,
        robots_exists=robots_txt.exists,
        robots_valid=robots_txt.is_valid,
        indexable=indexability.is_indexable,
        valid_sitemaps=len(sitemaps.valid),
    )
    return CrawlabilityScore(score=score, grade=calculate_grade(score), recommendations=recommendations)


def calculate_grade(score: float) -> str:
    """Convert numeric score to letter grade."""
    if score >= 90:
        return "A"
    elif score >= 80:
        return "B"
    elif score >= 65:
        return "C"
    elif score >= 50:
        return "D"
    return "F"
