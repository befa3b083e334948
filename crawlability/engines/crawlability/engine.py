"""
Crawlability Engine - entry point of the analysis.

Flow:
1. Validate the URL (scheme + host)
2. Fetch and parse {scheme}://{host}/robots.txt once
3. In parallel: walk the declared sitemaps, inspect the page itself
4. Score and assemble the CrawlabilityResult

Nothing data-related escapes execute(): an unreachable host or a broken
robots.txt is a normal, scored result. Unexpected failures still return a
renderable result built from the stages that finished, with error set.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx
import structlog

from crawlability.core.config import Settings, get_settings
from crawlability.core.http import build_client
from crawlability.engines.base import (
    CrawlabilityResult,
    IndexabilityResult,
    RobotsTxtAnalysis,
    SitemapAnalysis,
)
from crawlability.engines.indexability.engine import IndexabilityInspector
from crawlability.engines.robots.parser import RobotsTxtParser, fetch_robots_txt
from crawlability.engines.scoring.engine import score_crawlability
from crawlability.engines.sitemap.crawler import SitemapTreeCrawler
from crawlability.engines.sitemap.resolver import SitemapResolver


@dataclass
class _Progress:
    """Stages completed so far; used to salvage a partial result."""
    robots_txt: RobotsTxtAnalysis | None = None
    sitemaps: SitemapAnalysis | None = None
    indexability: IndexabilityResult | None = None


def is_analyzable_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
        return parts.scheme in ("http", "https") and bool(parts.hostname)
    except ValueError:
        return False


class CrawlabilityEngine:
    """
    Runs a full crawlability analysis for one URL.

    The engine is stateless: every call opens its own HTTP client and
    visited set, and nothing survives the call except the returned result.
    """

    ENGINE_NAME = "crawlability"

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport
        self.logger = structlog.get_logger(self.__class__.__name__)

    async def execute(self, url: str) -> CrawlabilityResult:
        """
        Wrapper around run() that adds timing, logging, and error handling.
        Call this instead of run() directly.
        """
        with structlog.contextvars.bound_contextvars(engine=self.ENGINE_NAME, url=url):
            return await self._execute(url)

    async def _execute(self, url: str) -> CrawlabilityResult:
        start = time.perf_counter()
        self.logger.info("Engine starting")
        progress = _Progress()

        try:
            result = await self.run(url, progress)
            elapsed = (time.perf_counter() - start) * 1000
            self.logger.info(
                "Engine complete",
                score=result.crawlability_score,
                indexable=result.overall_indexable,
                elapsed_ms=round(elapsed, 2),
            )
            return result.model_copy(update={"execution_time_ms": elapsed})

        except Exception as exc:
            elapsed = (time.perf_counter() - start) * 1000
            self.logger.error(
                "Engine failed",
                error=str(exc),
                elapsed_ms=round(elapsed, 2),
                exc_info=True,
            )
            return self._failed_result(
                url,
                f"Analysis failed: {exc}",
                progress,
                execution_time_ms=elapsed,
            )

    async def run(self, url: str, progress: _Progress | None = None) -> CrawlabilityResult:
        progress = progress if progress is not None else _Progress()

        if not is_analyzable_url(url):
            self.logger.warning("Rejected URL without scheme or host")
            return self._failed_result(url, "Invalid URL: a fully-qualified http(s) URL is required", progress)

        async with build_client(self.settings, transport=self.transport) as client:
            fetched = await fetch_robots_txt(client, url, self.settings)
            robots_txt = RobotsTxtParser.parse(
                fetched.content,
                self.settings.ROBOTS_USER_AGENT,
                url=fetched.url,
            )
            progress.robots_txt = robots_txt

            crawler = SitemapTreeCrawler(SitemapResolver(client, self.settings), self.settings)
            inspector = IndexabilityInspector(client, self.settings)

            async def walk_sitemaps() -> SitemapAnalysis:
                progress.sitemaps = await crawler.crawl(robots_txt.sitemaps)
                return progress.sitemaps

            async def inspect_page() -> IndexabilityResult:
                progress.indexability = await inspector.inspect(url, robots_txt)
                return progress.indexability

            tasks = [asyncio.create_task(walk_sitemaps()), asyncio.create_task(inspect_page())]
            try:
                sitemaps, indexability = await asyncio.gather(*tasks)
            finally:
                # A failed stage must not leave its sibling running on a closed client
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)

        scored = score_crawlability(robots_txt, indexability, sitemaps)
        return CrawlabilityResult(
            url=url,
            robots_txt=robots_txt,
            indexability=indexability,
            sitemaps=sitemaps,
            overall_indexable=indexability.is_indexable,
            crawlability_score=scored.score,
            grade=scored.grade,
            recommendations=scored.recommendations,
        )

    @staticmethod
    def _failed_result(
        url: str,
        error: str,
        progress: _Progress,
        execution_time_ms: float = 0.0,
    ) -> CrawlabilityResult:
        """Score-0 result that still carries every finished stage."""
        robots_txt = progress.robots_txt or RobotsTxtAnalysis(exists=False, content="", is_valid=True)
        sitemaps = progress.sitemaps or SitemapAnalysis(discovered=list(robots_txt.sitemaps))
        indexability = progress.indexability or IndexabilityResult(url=url, is_indexable=False)

        recommendations = [f"Crawlability could not be determined: {error}"]
        recommendations.extend(indexability.recommendations)

        return CrawlabilityResult(
            url=url,
            robots_txt=robots_txt,
            indexability=indexability,
            sitemaps=sitemaps,
            overall_indexable=False,
            crawlability_score=0,
            grade="F",
            recommendations=recommendations,
            error=error,
            execution_time_ms=execution_time_ms,
        )


async def analyze_crawlability(
    url: str,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> CrawlabilityResult:
    """Analyze how well search-engine crawlers can discover and index url."""
    engine = CrawlabilityEngine(settings=settings, transport=transport)
    return await engine.execute(url)
