"""
Shared fixtures.

FakeSite serves canned responses through httpx.MockTransport so no test
touches the network. Unknown URLs answer 404.
"""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest

from crawlability.core.config import Settings
from crawlability.core.http import build_client


class FakeSite:

    def __init__(self):
        self.responses: dict[str, httpx.Response | Exception] = {}
        self.requested: list[str] = []

    def add(
        self,
        url: str,
        body: str | bytes = b"",
        status: int = 200,
        content_type: str | None = "text/plain",
        headers: dict[str, str] | None = None,
    ) -> None:
        all_headers = dict(headers or {})
        if content_type is not None:
            all_headers["content-type"] = content_type
        content = body.encode() if isinstance(body, str) else body
        self.responses[url] = httpx.Response(status, content=content, headers=all_headers)

    def fail(self, url: str, exc: Exception) -> None:
        self.responses[url] = exc

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        response = self.responses.get(url)
        if response is None:
            return httpx.Response(404, content=b"not found")
        if isinstance(response, Exception):
            raise response
        return httpx.Response(
            response.status_code,
            content=response.content,
            headers=response.headers,
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, settings: Settings) -> httpx.AsyncClient:
        return build_client(settings, transport=self.transport)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


def urlset(*locs: str) -> str:
    entries = "".join(f"<url><loc>{loc}</loc></url>" for loc in locs)
    return f'<?xml version="1.0" encoding="UTF-8"?><urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</urlset>'


def sitemap_index(*locs: str) -> str:
    entries = "".join(f"<sitemap><loc>{loc}</loc></sitemap>" for loc in locs)
    return f'<?xml version="1.0" encoding="UTF-8"?><sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</sitemapindex>'


@pytest.fixture
def xml() -> SimpleNamespace:
    """Builders for sitemap documents."""
    return SimpleNamespace(urlset=urlset, index=sitemap_index)
