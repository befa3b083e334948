"""
HTTP fetch capability shared by every network-bound component.

One AsyncClient is opened per analysis and closed when it finishes.
fetch() never raises for network reasons: timeouts, transport failures
and oversized bodies come back as a FetchResult carrying an error string.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import structlog

from crawlability.core.config import Settings, get_settings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a single GET request."""
    url: str
    final_url: str
    status_code: int = 0
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes = b""
    truncated: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


def build_client(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the per-analysis HTTP client."""
    settings = settings or get_settings()
    headers = {
        "User-Agent": settings.CRAWLER_USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,text/plain;q=0.8,*/*;q=0.5",
        "Accept-Language": "en-US,en;q=0.9",
    }
    return httpx.AsyncClient(
        headers=headers,
        follow_redirects=True,
        max_redirects=5,
        timeout=settings.CRAWLER_REQUEST_TIMEOUT,
        transport=transport,
    )


async def fetch(
    client: httpx.AsyncClient,
    url: str,
    timeout: float,
    max_bytes: int,
) -> FetchResult:
    """
    GET a URL, reading at most max_bytes of (decoded) body.

    Bodies of non-2xx responses are not read. When the body is larger
    than max_bytes the first max_bytes are kept and truncated is set.
    """
    try:
        async with client.stream("GET", url, timeout=timeout) as response:
            headers = {k.lower(): v for k, v in response.headers.items()}
            if not 200 <= response.status_code < 300:
                return FetchResult(
                    url=url,
                    final_url=str(response.url),
                    status_code=response.status_code,
                    headers=headers,
                )

            chunks: list[bytes] = []
            size = 0
            truncated = False
            async for chunk in response.aiter_bytes():
                if size + len(chunk) > max_bytes:
                    chunks.append(chunk[: max_bytes - size])
                    truncated = True
                    break
                chunks.append(chunk)
                size += len(chunk)

            return FetchResult(
                url=url,
                final_url=str(response.url),
                status_code=response.status_code,
                headers=headers,
                content=b"".join(chunks),
                truncated=truncated,
            )

    except httpx.TimeoutException:
        logger.debug("Fetch timed out", url=url, timeout=timeout)
        return FetchResult(url=url, final_url=url, error=f"Request timed out after {timeout:g}s")
    except httpx.InvalidURL as e:
        return FetchResult(url=url, final_url=url, error=f"Invalid URL: {e}")
    except httpx.HTTPError as e:
        logger.debug("Fetch failed", url=url, error=str(e))
        return FetchResult(url=url, final_url=url, error=f"Request failed: {e}")
