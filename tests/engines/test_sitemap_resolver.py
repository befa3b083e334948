"""
Tests for resolving single sitemap documents.
"""

import gzip

import httpx
import pytest

from crawlability.engines.sitemap.resolver import (
    SitemapResolver,
    gunzip,
    is_acceptable_content_type,
    parse_sitemap_xml,
)

SITEMAP_URL = "https://example.com/sitemap.xml"


# ─────────────────────────────────────────────
# Pure helpers
# ─────────────────────────────────────────────

class TestContentType:

    @pytest.mark.parametrize("content_type", [
        "application/xml",
        "text/xml; charset=utf-8",
        "text/plain",
        "application/x-gzip",
        "application/gzip",
    ])
    def test_accepted(self, content_type):
        assert is_acceptable_content_type(content_type, SITEMAP_URL)

    def test_octet_stream_only_for_gz(self):
        assert is_acceptable_content_type("application/octet-stream", "https://example.com/s.xml.gz")
        assert not is_acceptable_content_type("application/octet-stream", SITEMAP_URL)

    def test_html_rejected(self):
        assert not is_acceptable_content_type("application/json", SITEMAP_URL)
        assert not is_acceptable_content_type("", SITEMAP_URL)


class TestGunzip:

    def test_decompresses(self):
        data, error = gunzip(gzip.compress(b"<urlset/>"), 1000)
        assert error is None
        assert data == b"<urlset/>"

    def test_corrupt_stream(self):
        data, error = gunzip(b"\x1f\x8bnot really gzip", 1000)
        assert data is None
        assert error.startswith("Failed to decompress gzip sitemap")

    def test_truncated_stream(self):
        compressed = gzip.compress(b"x" * 10_000)
        data, error = gunzip(compressed[: len(compressed) // 2], 100_000)
        assert data is None
        assert error == "Failed to decompress gzip sitemap: truncated gzip stream"

    def test_decompression_bomb_capped(self):
        data, error = gunzip(gzip.compress(b"0" * 100_000), 1_000)
        assert data is None
        assert error == "Sitemap exceeds 1000 bytes when decompressed"


class TestParseSitemapXml:

    def test_urlset(self, xml):
        outcome = parse_sitemap_xml(xml.urlset("https://example.com/a", "https://example.com/b").encode(), SITEMAP_URL, 10)
        assert outcome.error is None
        assert not outcome.is_index
        assert [e.loc for e in outcome.entries] == ["https://example.com/a", "https://example.com/b"]
        assert all(e.sitemap_source == SITEMAP_URL for e in outcome.entries)
        assert not any(e.is_sitemap for e in outcome.entries)

    def test_index(self, xml):
        outcome = parse_sitemap_xml(xml.index("https://example.com/s1.xml").encode(), SITEMAP_URL, 10)
        assert outcome.is_index
        assert outcome.entries[0].is_sitemap
        assert outcome.entries[0].loc == "https://example.com/s1.xml"

    def test_optional_fields(self):
        body = (
            b'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"><url>'
            b"<loc> https://example.com/a </loc><lastmod>2024-01-01</lastmod>"
            b"<changefreq>daily</changefreq><priority>0.8</priority>"
            b"</url></urlset>"
        )
        entry = parse_sitemap_xml(body, SITEMAP_URL, 10).entries[0]
        assert entry.loc == "https://example.com/a"
        assert entry.lastmod == "2024-01-01"
        assert entry.changefreq == "daily"
        assert entry.priority == "0.8"

    def test_entries_without_loc_dropped(self):
        body = b"<urlset><url><lastmod>2024</lastmod></url><url><loc>https://example.com/a</loc></url></urlset>"
        outcome = parse_sitemap_xml(body, SITEMAP_URL, 10)
        assert [e.loc for e in outcome.entries] == ["https://example.com/a"]

    def test_invalid_xml(self):
        outcome = parse_sitemap_xml(b"<urlset><url>", SITEMAP_URL, 10)
        assert outcome.error.startswith("Invalid XML")

    def test_unknown_root(self):
        outcome = parse_sitemap_xml(b"<rss><channel/></rss>", SITEMAP_URL, 10)
        assert outcome.error == "Not a valid sitemap format"

    def test_entities_not_expanded(self):
        body = (
            b'<?xml version="1.0"?><!DOCTYPE urlset [<!ENTITY x SYSTEM "file:///etc/passwd">]>'
            b"<urlset><url><loc>&x;</loc></url></urlset>"
        )
        outcome = parse_sitemap_xml(body, SITEMAP_URL, 10)
        assert all("root:" not in e.loc for e in outcome.entries)

    def test_truncates_at_cap(self, xml):
        locs = [f"https://example.com/{i}" for i in range(5)]
        outcome = parse_sitemap_xml(xml.urlset(*locs).encode(), SITEMAP_URL, 3)
        assert outcome.truncated
        assert len(outcome.entries) == 3


# ─────────────────────────────────────────────
# Resolver
# ─────────────────────────────────────────────

class TestSitemapResolver:

    @pytest.mark.asyncio
    async def test_resolves_leaf(self, site, settings, xml):
        site.add(SITEMAP_URL, xml.urlset("https://example.com/a"), content_type="application/xml")
        async with site.client(settings) as client:
            detail = await SitemapResolver(client, settings).resolve(SITEMAP_URL)
        assert detail.is_valid
        assert not detail.is_sitemap_index
        assert detail.error is None
        assert [u.loc for u in detail.urls] == ["https://example.com/a"]

    @pytest.mark.asyncio
    async def test_resolves_gzip_by_magic_bytes(self, site, settings, xml):
        url = "https://example.com/sitemap.xml.gz"
        body = gzip.compress(xml.urlset("https://example.com/a", "https://example.com/b").encode())
        site.add(url, body, content_type="application/octet-stream")
        async with site.client(settings) as client:
            detail = await SitemapResolver(client, settings).resolve(url)
        assert detail.is_valid
        assert len(detail.urls) == 2

    @pytest.mark.asyncio
    async def test_http_error(self, site, settings):
        site.add(SITEMAP_URL, "oops", status=500)
        async with site.client(settings) as client:
            detail = await SitemapResolver(client, settings).resolve(SITEMAP_URL)
        assert not detail.is_valid
        assert detail.error == "HTTP 500"

    @pytest.mark.asyncio
    async def test_wrong_content_type(self, site, settings, xml):
        site.add(SITEMAP_URL, xml.urlset("https://example.com/a"), content_type="application/json")
        async with site.client(settings) as client:
            detail = await SitemapResolver(client, settings).resolve(SITEMAP_URL)
        assert not detail.is_valid
        assert detail.error == "Invalid content type: application/json"

    @pytest.mark.asyncio
    async def test_oversized_body(self, site, settings, xml):
        site.add(SITEMAP_URL, xml.urlset("https://example.com/a"), content_type="application/xml")
        async with site.client(settings) as client:
            detail = await SitemapResolver(client, settings, max_bytes=20).resolve(SITEMAP_URL)
        assert not detail.is_valid
        assert detail.error == "Sitemap exceeds 20 bytes"

    @pytest.mark.asyncio
    async def test_timeout(self, site, settings):
        site.fail(SITEMAP_URL, httpx.ConnectTimeout("slow"))
        async with site.client(settings) as client:
            detail = await SitemapResolver(client, settings, timeout=3).resolve(SITEMAP_URL)
        assert not detail.is_valid
        assert detail.error == "Request timed out after 3s"

    @pytest.mark.asyncio
    async def test_large_leaf_truncated_but_valid(self, site, settings):
        body = (
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            + "".join(f"<url><loc>https://example.com/p{i}</loc></url>" for i in range(150_000))
            + "</urlset>"
        )
        site.add(SITEMAP_URL, body, content_type="application/xml")
        async with site.client(settings) as client:
            detail = await SitemapResolver(client, settings).resolve(SITEMAP_URL)
        assert detail.is_valid
        assert len(detail.urls) == settings.SITEMAP_MAX_URLS_PER_SITEMAP
        assert "only the first 100000 were read" in detail.error
