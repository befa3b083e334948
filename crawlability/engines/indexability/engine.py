"""
Indexability Inspector

Fetches one page and decides whether a compliant search engine may index it:
- meta robots directives (noindex, nofollow, noarchive, nosnippet)
- X-Robots-Tag response header
- robots.txt Disallow rules for the evaluated user agent
- canonical link (reported, never blocking)
"""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlsplit

import httpx
import structlog
from bs4 import BeautifulSoup

from crawlability.core.config import Settings, get_settings
from crawlability.core.http import fetch
from crawlability.engines.base import (
    BlockingFactors,
    IndexabilityResult,
    MetaRobots,
    RobotsTxtAnalysis,
)
from crawlability.engines.robots.matcher import find_blocking_rule
from crawlability.engines.robots.parser import RobotsTxtParser, fetch_robots_txt

logger = structlog.get_logger(__name__)

_DIRECTIVE_SPLIT = re.compile(r"[\s,]+")
_AGENT_NAME = re.compile(r"[a-z][a-z0-9_.-]*", re.IGNORECASE)

# Known directive names; a name before a colon that is not one of these is an agent
HEADER_DIRECTIVES = frozenset({
    "all", "none", "noindex", "nofollow", "noarchive", "nosnippet", "notranslate",
    "noimageindex", "indexifembedded", "unavailable_after",
    "max-snippet", "max-image-preview", "max-video-preview",
})

MISSING_CANONICAL = "Missing canonical URL"
CANONICAL_MISMATCH = "Canonical URL differs from current URL - check for duplicate content"
NOINDEX = "Page has noindex meta robots tag - remove to allow indexing"
NOFOLLOW = "Page has nofollow - links from this page won't pass link equity"


def parse_directives(content: str) -> set[str]:
    """Split a robots directive list on commas and whitespace."""
    return {token for token in _DIRECTIVE_SPLIT.split(content.lower()) if token}


def header_directives(value: str, user_agent: str) -> set[str]:
    """
    Directives from an X-Robots-Tag value that apply to user_agent.

    `googlebot: noindex, nofollow` scopes every following directive to
    googlebot until the next agent prefix. `max-snippet:20` is a directive
    with a value, not an agent.
    """
    directives: set[str] = set()
    applies = True
    for part in value.split(","):
        name, sep, rest = part.partition(":")
        name = name.strip().lower()
        if sep and name not in HEADER_DIRECTIVES and _AGENT_NAME.fullmatch(name):
            applies = name == user_agent.lower()
            part = rest
        if applies:
            directives |= parse_directives(part)
    return directives


def normalize_for_comparison(url: str) -> str:
    return url.rstrip("/")


def page_path(url: str) -> str:
    """Path plus query, the part robots.txt rules are matched against."""
    parts = urlsplit(url)
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    return path


class IndexabilityInspector:
    """Inspects a single page for indexing signals."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings | None = None,
        user_agent: str | None = None,
    ):
        self.settings = settings or get_settings()
        self.client = client
        self.user_agent = user_agent or self.settings.ROBOTS_USER_AGENT

    async def inspect(self, url: str, robots: RobotsTxtAnalysis | None = None) -> IndexabilityResult:
        response = await fetch(
            self.client,
            url,
            timeout=self.settings.CRAWLER_REQUEST_TIMEOUT,
            max_bytes=self.settings.PAGE_MAX_BYTES,
        )

        if response.error:
            logger.info("Page fetch failed", url=url, error=response.error)
            return IndexabilityResult(
                url=url,
                is_indexable=False,
                recommendations=[f"Failed to analyze URL: {response.error}"],
            )
        if not response.ok:
            logger.info("Page returned error status", url=url, status=response.status_code)
            return IndexabilityResult(
                url=url,
                is_indexable=False,
                recommendations=[f"HTTP {response.status_code} error - page not accessible"],
            )

        if robots is None:
            fetched = await fetch_robots_txt(self.client, url, self.settings)
            robots = RobotsTxtParser.parse(fetched.content, self.user_agent, url=fetched.url)

        try:
            directives, canonical_href = self._extract_page_signals(response.content, response.content_type)
        except Exception as e:
            logger.warning("HTML parse error", url=url, error=str(e))
            return IndexabilityResult(
                url=url,
                is_indexable=False,
                recommendations=[f"Failed to analyze URL: {e}"],
            )

        directives |= header_directives(response.headers.get("x-robots-tag", ""), self.user_agent)
        if "none" in directives:
            directives |= {"noindex", "nofollow"}

        meta_robots = MetaRobots(
            noindex="noindex" in directives,
            nofollow="nofollow" in directives,
            noarchive="noarchive" in directives,
            nosnippet="nosnippet" in directives,
        )

        blocking_rule = self._blocking_rule(url, robots)
        robots_blocked = blocking_rule is not None

        canonical_url = urljoin(url, canonical_href) if canonical_href else None

        recommendations: list[str] = []
        if robots_blocked:
            recommendations.append(
                f'URL is blocked by robots.txt rule "{blocking_rule}" - remove it from the disallow rules'
            )
        if meta_robots.noindex:
            recommendations.append(NOINDEX)
        recommendations.extend(self._canonical_issues(canonical_url, url))
        if meta_robots.nofollow:
            recommendations.append(NOFOLLOW)

        result = IndexabilityResult(
            url=url,
            is_indexable=not meta_robots.noindex and not robots_blocked,
            blocking_factors=BlockingFactors(
                robots_txt=robots_blocked,
                meta_robots=meta_robots.noindex,
                canonical=False,
                nofollow=meta_robots.nofollow,
            ),
            meta_robots=meta_robots,
            canonical_url=canonical_url,
            recommendations=recommendations,
        )
        logger.info(
            "Indexability inspected",
            url=url,
            indexable=result.is_indexable,
            robots_blocked=robots_blocked,
            noindex=meta_robots.noindex,
        )
        return result

    def _blocking_rule(self, url: str, robots: RobotsTxtAnalysis) -> str | None:
        if not robots.exists:
            return None  # No robots.txt means no restrictions
        rules = RobotsTxtParser.select_rules(robots.rules, self.user_agent)
        return find_blocking_rule(rules, page_path(url))

    @staticmethod
    def _extract_page_signals(content: bytes, content_type: str) -> tuple[set[str], str | None]:
        """Meta robots directives and the raw canonical href."""
        if content_type and "html" not in content_type.lower():
            return set(), None

        soup = BeautifulSoup(content, "lxml")

        directives: set[str] = set()
        for tag in soup.find_all("meta", attrs={"name": re.compile(r"^\s*robots\s*$", re.IGNORECASE)}):
            directives |= parse_directives(tag.get("content") or "")

        canonical_href = None
        canonical = soup.find("link", rel="canonical")
        if canonical and canonical.get("href"):
            canonical_href = canonical["href"].strip() or None

        return directives, canonical_href

    @staticmethod
    def _canonical_issues(canonical_url: str | None, url: str) -> list[str]:
        if not canonical_url:
            return [MISSING_CANONICAL]
        if normalize_for_comparison(canonical_url) != normalize_for_comparison(url):
            return [CANONICAL_MISMATCH]
        return []
