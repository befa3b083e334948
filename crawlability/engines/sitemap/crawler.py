"""
Sitemap Tree Crawler - expands sitemap indexes into a flat URL set.

Architecture:
- Explicit worklist of (url, depth) nodes instead of recursion
- One visited set for the whole walk (cycle detection)
- Depth limit per branch, global cap on accumulated page URLs
- Optional fan-out: up to `concurrency` nodes resolved at once
- A failing node never affects its siblings

State per node: unvisited -> fetching -> leaf | index | failed.
Index nodes push their children back onto the worklist as unvisited.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog

from crawlability.core.config import Settings, get_settings
from crawlability.engines.base import SitemapAnalysis, SitemapDetail, SitemapUrl
from crawlability.engines.sitemap.resolver import SitemapResolver

logger = structlog.get_logger(__name__)

CIRCULAR_REFERENCE = "Circular sitemap reference detected"


@dataclass
class SitemapNode:
    """A sitemap waiting on the worklist."""
    url: str
    depth: int


@dataclass
class _WalkState:
    """Mutable bookkeeping for one crawl() call."""
    visited: set[str] = field(default_factory=set)
    details: list[SitemapDetail] = field(default_factory=list)
    page_urls: list[SitemapUrl] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    cap_reached: bool = False
    skipped: int = 0


class SitemapTreeCrawler:
    """Walks a sitemap tree depth-first over an explicit worklist."""

    def __init__(
        self,
        resolver: SitemapResolver,
        settings: Settings | None = None,
        max_depth: int | None = None,
        max_total_urls: int | None = None,
        concurrency: int | None = None,
    ):
        settings = settings or get_settings()
        self.resolver = resolver
        self.max_depth = max_depth if max_depth is not None else settings.SITEMAP_MAX_DEPTH
        self.max_total_urls = (
            max_total_urls if max_total_urls is not None else settings.SITEMAP_MAX_TOTAL_URLS
        )
        self.concurrency = max(1, concurrency if concurrency is not None else settings.SITEMAP_CONCURRENCY)

    async def crawl(self, root_urls: list[str]) -> SitemapAnalysis:
        state = _WalkState()
        discovered = list(root_urls)

        # Roots go on the stack reversed so the first declared is walked first
        unique_roots = list(dict.fromkeys(url for url in root_urls if url))
        stack: list[SitemapNode] = [SitemapNode(url=url, depth=0) for url in reversed(unique_roots)]

        while stack:
            batch: list[SitemapNode] = []
            while stack and len(batch) < self.concurrency:
                node = stack.pop()
                if self._admit(node, state):
                    batch.append(node)

            if not batch:
                continue

            results = await asyncio.gather(
                *(self.resolver.resolve(node.url) for node in batch),
                return_exceptions=True,
            )

            children: list[SitemapNode] = []
            for node, result in zip(batch, results):
                detail = self._as_detail(node, result)
                children.extend(self._record(node, detail, state))

            pending = len(stack) + len(children)
            if pending and len(state.page_urls) >= self.max_total_urls:
                state.cap_reached = True
            if state.cap_reached:
                state.skipped += pending
                stack.clear()
                continue

            stack.extend(reversed(children))

        if state.cap_reached:
            state.errors.append(
                f"Total sitemap URL limit of {self.max_total_urls} reached; "
                f"skipped {state.skipped} sitemap(s)"
            )

        analysis = SitemapAnalysis(
            discovered=discovered,
            valid=[d.url for d in state.details if d.is_valid],
            invalid=[d.url for d in state.details if not d.is_valid],
            urls=state.page_urls,
            sitemaps=state.details,
            errors=state.errors,
        )
        logger.info(
            "Sitemap crawl complete",
            discovered=len(analysis.discovered),
            visited=len(analysis.sitemaps),
            valid=len(analysis.valid),
            invalid=len(analysis.invalid),
            urls=len(analysis.urls),
            errors=len(analysis.errors),
        )
        return analysis

    def _admit(self, node: SitemapNode, state: _WalkState) -> bool:
        """Cycle and depth checks run before a node is fetched."""
        if node.url in state.visited:
            state.errors.append(f"{node.url}: {CIRCULAR_REFERENCE}")
            logger.debug("Circular sitemap reference", url=node.url)
            return False

        if node.depth >= self.max_depth:
            state.errors.append(f"{node.url}: Maximum sitemap depth of {self.max_depth} exceeded")
            logger.warning("Sitemap depth exceeded", url=node.url, depth=node.depth)
            return False

        state.visited.add(node.url)
        return True

    @staticmethod
    def _as_detail(node: SitemapNode, result: SitemapDetail | BaseException) -> SitemapDetail:
        if isinstance(result, SitemapDetail):
            return result
        if not isinstance(result, Exception):
            raise result
        logger.error("Sitemap resolution crashed", url=node.url, error=str(result), exc_info=result)
        return SitemapDetail(url=node.url, is_valid=False, error=f"Unexpected error: {result}")

    def _record(self, node: SitemapNode, detail: SitemapDetail, state: _WalkState) -> list[SitemapNode]:
        """Fold a resolved node into the walk state and return its children."""
        state.details.append(detail)
        if detail.error:
            state.errors.append(f"{detail.url}: {detail.error}")

        if not detail.is_valid:
            return []

        if detail.is_sitemap_index:
            return [SitemapNode(url=entry.loc, depth=node.depth + 1) for entry in detail.urls]

        room = self.max_total_urls - len(state.page_urls)
        state.page_urls.extend(detail.urls[:room])
        if len(detail.urls) > room:
            state.cap_reached = True
            logger.warning("Sitemap URL limit reached", cap=self.max_total_urls, url=detail.url)
        return []
