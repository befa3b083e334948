"""
Crawlability API Routes

No business logic lives here.
Routes validate input, call the engines, return camelCase records.
"""

from __future__ import annotations

from typing import AsyncIterator

import httpx
import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, HttpUrl

from crawlability.core.config import get_settings
from crawlability.core.http import build_client
from crawlability.engines.base import CrawlabilityResult, RobotsTxtAnalysis, SitemapDetail
from crawlability.engines.crawlability.engine import CrawlabilityEngine
from crawlability.engines.robots.parser import RobotsTxtParser
from crawlability.engines.sitemap.resolver import SitemapResolver

logger = structlog.get_logger(__name__)
router = APIRouter()


# ─────────────────────────────────────────────
# Request Schemas
# ─────────────────────────────────────────────

class AnalyzeRequest(BaseModel):
    url: HttpUrl


class SitemapRequest(BaseModel):
    url: HttpUrl


class RobotsValidateRequest(BaseModel):
    content: str
    user_agent: str = Field(default="*", min_length=1)


# ─────────────────────────────────────────────
# Dependencies
# ─────────────────────────────────────────────

def get_engine() -> CrawlabilityEngine:
    return CrawlabilityEngine(get_settings())


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with build_client(get_settings()) as client:
        yield client


# ─────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────

@router.post("", response_model=CrawlabilityResult)
async def analyze(
    body: AnalyzeRequest,
    engine: CrawlabilityEngine = Depends(get_engine),
) -> CrawlabilityResult:
    """Full analysis: robots.txt, sitemap tree, page indexability and score."""
    result = await engine.execute(str(body.url))
    logger.info("Crawlability analysis served", url=result.url, score=result.crawlability_score)
    return result


@router.post("/sitemap", response_model=SitemapDetail)
async def fetch_sitemap(
    body: SitemapRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
) -> SitemapDetail:
    """Resolve a single sitemap document without following index entries."""
    resolver = SitemapResolver(client, get_settings())
    return await resolver.resolve(str(body.url))


@router.post("/robots", response_model=RobotsTxtAnalysis)
async def validate_robots(body: RobotsValidateRequest) -> RobotsTxtAnalysis:
    """Parse pasted robots.txt text; nothing is fetched."""
    return RobotsTxtParser.parse(body.content, body.user_agent)
