"""
robots.txt fetching and parsing.

The parser is lenient the way real crawlers are: malformed lines are
reported in errors and skipped, never raised.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from urllib.parse import urlsplit

import httpx
import structlog

from crawlability.core.config import Settings, get_settings
from crawlability.core.http import fetch
from crawlability.engines.base import RobotsRule, RobotsTxtAnalysis

logger = structlog.get_logger(__name__)

KNOWN_DIRECTIVES = ("user-agent", "disallow", "allow", "crawl-delay", "sitemap")

# A # opens a comment at the start of a value or after whitespace; inside a URL it is a fragment
_INLINE_COMMENT = re.compile(r"(?:^|\s)#.*")


@dataclass
class RobotsFetch:
    """Raw robots.txt download."""
    url: str
    exists: bool
    content: str = ""
    status_code: int = 0
    error: str | None = None


@dataclass
class _RuleBuilder:
    user_agent: str
    disallow: list[str] = field(default_factory=list)
    allow: list[str] = field(default_factory=list)
    crawl_delay: float | None = None
    sitemap: list[str] | None = None

    def build(self) -> RobotsRule:
        return RobotsRule(
            user_agent=self.user_agent,
            disallow=list(self.disallow),
            allow=list(self.allow),
            crawl_delay=self.crawl_delay,
            sitemap=list(self.sitemap) if self.sitemap is not None else None,
        )


def robots_url_for(site_url: str) -> str:
    """Derive {scheme}://{host}/robots.txt from any URL on the site."""
    parts = urlsplit(site_url)
    return f"{parts.scheme}://{parts.netloc}/robots.txt"


async def fetch_robots_txt(
    client: httpx.AsyncClient,
    site_url: str,
    settings: Settings | None = None,
) -> RobotsFetch:
    """
    Download robots.txt for the site hosting site_url.

    Anything but a 2xx response (404, 5xx, timeout, DNS failure) is
    reported as a missing file.
    """
    settings = settings or get_settings()
    robots_url = robots_url_for(site_url)

    result = await fetch(
        client,
        robots_url,
        timeout=settings.CRAWLER_REQUEST_TIMEOUT,
        max_bytes=settings.ROBOTS_MAX_BYTES,
    )
    if not result.ok:
        logger.info(
            "robots.txt not available",
            url=robots_url,
            status=result.status_code,
            error=result.error,
        )
        return RobotsFetch(
            url=robots_url,
            exists=False,
            status_code=result.status_code,
            error=result.error,
        )

    content = result.content.decode("utf-8", errors="replace").lstrip("\ufeff")
    return RobotsFetch(url=robots_url, exists=True, content=content, status_code=result.status_code)


class RobotsTxtParser:
    """Turns robots.txt text into per-agent rule blocks."""

    @classmethod
    def parse(cls, content: str, user_agent: str = "*", url: str = "") -> RobotsTxtAnalysis:
        errors: list[str] = []
        rules: list[RobotsRule] = []
        sitemaps: list[str] = []
        current: _RuleBuilder | None = None

        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue

            if ":" not in line:
                errors.append(f"Invalid line format: {line}")
                continue

            directive, _, value = line.partition(":")
            directive = directive.strip().lower()
            value = cls._strip_comment(value)

            if directive not in KNOWN_DIRECTIVES:
                errors.append(f"Unknown directive: {directive}")
                continue

            if directive == "user-agent":
                if current is not None:
                    rules.append(current.build())
                current = _RuleBuilder(user_agent=value)

            elif directive == "sitemap":
                sitemaps.append(value)
                if current is not None:
                    if current.sitemap is None:
                        current.sitemap = []
                    current.sitemap.append(value)

            elif current is None:
                # Rules before any User-agent line are ignored by real crawlers
                continue

            elif directive == "disallow":
                current.disallow.append(value)

            elif directive == "allow":
                current.allow.append(value)

            elif directive == "crawl-delay":
                delay = cls._parse_delay(value)
                if delay is None:
                    errors.append(f"Invalid crawl-delay value: {value}")
                else:
                    current.crawl_delay = delay

        if current is not None:
            rules.append(current.build())

        if not rules and content.strip():
            errors.append("No valid user-agent rules found")

        return RobotsTxtAnalysis(
            exists=bool(content.strip()),
            content=content,
            is_valid=not errors,
            errors=errors,
            rules=rules,
            sitemaps=sitemaps,
            applicable_rules=cls.select_rules(rules, user_agent),
            url=url,
        )

    @staticmethod
    def select_rules(rules: list[RobotsRule], user_agent: str) -> RobotsRule:
        """Exact agent match, else the * block, else an empty rule set."""
        for rule in rules:
            if rule.user_agent == user_agent:
                return rule
        for rule in rules:
            if rule.user_agent == "*":
                return rule
        return RobotsRule(user_agent="*")

    @staticmethod
    def _strip_comment(value: str) -> str:
        return _INLINE_COMMENT.sub("", value, count=1).strip()

    @staticmethod
    def _parse_delay(value: str) -> float | None:
        try:
            delay = float(value)
        except ValueError:
            return None
        if not math.isfinite(delay) or delay < 0:
            return None
        return delay
