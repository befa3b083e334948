"""
Sitemap Node Resolver - fetches and parses exactly one sitemap document.

Pipeline for a node:
    fetch -> content-type check -> gunzip (if gzip) -> XML parse -> extract

Every step returns a value or an error string; resolve() turns the first
error into an invalid SitemapDetail. Children of a sitemap index are
returned as entries, never followed here.
"""

from __future__ import annotations

import zlib
from dataclasses import dataclass, field
from urllib.parse import urlsplit

import httpx
import structlog
from lxml import etree

from crawlability.core.config import Settings, get_settings
from crawlability.core.http import FetchResult, fetch
from crawlability.engines.base import SitemapDetail, SitemapUrl

logger = structlog.get_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


@dataclass
class _ParseOutcome:
    """Typed result of turning sitemap bytes into entries."""
    is_index: bool = False
    entries: list[SitemapUrl] = field(default_factory=list)
    truncated: bool = False
    error: str | None = None


def _local_name(element: etree._Element) -> str:
    return etree.QName(element).localname


def _child_text(element: etree._Element, name: str) -> str | None:
    for child in element.iterchildren(tag=etree.Element):
        if _local_name(child) == name:
            text = (child.text or "").strip()
            return text or None
    return None


def is_acceptable_content_type(content_type: str, url: str) -> bool:
    """Sitemaps may be served as XML, text, or gzip."""
    ct = content_type.lower()
    if "xml" in ct or "text" in ct or "gzip" in ct:
        return True
    # Plenty of servers send .xml.gz files as a generic binary download
    return "octet-stream" in ct and urlsplit(url).path.lower().endswith(".gz")


def gunzip(data: bytes, max_bytes: int) -> tuple[bytes | None, str | None]:
    """Decompress a gzip body without letting it grow past max_bytes."""
    decompressor = zlib.decompressobj(wbits=16 + zlib.MAX_WBITS)
    try:
        output = decompressor.decompress(data, max_bytes)
    except zlib.error as e:
        return None, f"Failed to decompress gzip sitemap: {e}"

    if decompressor.unconsumed_tail:
        return None, f"Sitemap exceeds {max_bytes} bytes when decompressed"
    if not decompressor.eof:
        return None, "Failed to decompress gzip sitemap: truncated gzip stream"
    return output, None


def parse_sitemap_xml(body: bytes, source_url: str, max_entries: int) -> _ParseOutcome:
    """Parse sitemap bytes into entries for a <urlset> or <sitemapindex>."""
    parser = etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
        recover=False,
    )
    try:
        root = etree.fromstring(body.lstrip(), parser)
    except (etree.XMLSyntaxError, ValueError) as e:
        return _ParseOutcome(error=f"Invalid XML: {e}")

    root_name = _local_name(root)
    if root_name == "sitemapindex":
        is_index, entry_tag = True, "sitemap"
    elif root_name == "urlset":
        is_index, entry_tag = False, "url"
    else:
        return _ParseOutcome(error="Not a valid sitemap format")

    outcome = _ParseOutcome(is_index=is_index)
    for element in root.iterchildren(tag=etree.Element):
        if _local_name(element) != entry_tag:
            continue

        loc = _child_text(element, "loc")
        if not loc:
            continue

        if len(outcome.entries) >= max_entries:
            outcome.truncated = True
            break

        if is_index:
            entry = SitemapUrl(
                loc=loc,
                lastmod=_child_text(element, "lastmod"),
                is_sitemap=True,
                sitemap_source=source_url,
            )
        else:
            entry = SitemapUrl(
                loc=loc,
                lastmod=_child_text(element, "lastmod"),
                changefreq=_child_text(element, "changefreq"),
                priority=_child_text(element, "priority"),
                is_sitemap=False,
                sitemap_source=source_url,
            )
        outcome.entries.append(entry)

    return outcome


class SitemapResolver:
    """Resolves a single sitemap URL into a SitemapDetail."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings | None = None,
        timeout: float | None = None,
        max_bytes: int | None = None,
        max_urls: int | None = None,
    ):
        settings = settings or get_settings()
        self.client = client
        self.timeout = timeout if timeout is not None else settings.CRAWLER_REQUEST_TIMEOUT
        self.max_bytes = max_bytes if max_bytes is not None else settings.SITEMAP_MAX_BYTES
        self.max_urls = max_urls if max_urls is not None else settings.SITEMAP_MAX_URLS_PER_SITEMAP

    async def resolve(self, url: str) -> SitemapDetail:
        response = await fetch(self.client, url, timeout=self.timeout, max_bytes=self.max_bytes)
        detail = self._build_detail(url, response)
        logger.debug(
            "Sitemap resolved",
            url=url,
            valid=detail.is_valid,
            index=detail.is_sitemap_index,
            entries=len(detail.urls),
            error=detail.error,
        )
        return detail

    def _build_detail(self, url: str, response: FetchResult) -> SitemapDetail:
        if response.error:
            return self._failed(url, response.error)
        if not response.ok:
            return self._failed(url, f"HTTP {response.status_code}")
        if response.truncated:
            return self._failed(url, f"Sitemap exceeds {self.max_bytes} bytes")

        content_type = response.content_type
        if not is_acceptable_content_type(content_type, url):
            return self._failed(url, f"Invalid content type: {content_type}")

        body = response.content
        if body[:2] == GZIP_MAGIC:
            body, error = gunzip(body, self.max_bytes)
            if error:
                return self._failed(url, error)

        outcome = parse_sitemap_xml(body, url, self.max_urls)
        if outcome.error:
            return self._failed(url, outcome.error)

        error = None
        if outcome.truncated:
            error = (
                f"Sitemap contains more than {self.max_urls} entries; "
                f"only the first {self.max_urls} were read"
            )
            logger.warning("Sitemap truncated", url=url, cap=self.max_urls)

        return SitemapDetail(
            url=url,
            is_valid=True,
            is_sitemap_index=outcome.is_index,
            urls=outcome.entries,
            error=error,
        )

    @staticmethod
    def _failed(url: str, error: str) -> SitemapDetail:
        return SitemapDetail(url=url, is_valid=False, error=error)
