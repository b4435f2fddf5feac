import asyncio
import logging
from contextlib import asynccontextmanager
from typing import NamedTuple

import httpx

from secprobe.core.config import settings
from secprobe.core.errors import FetchError

logger = logging.getLogger(__name__)

TIMEOUT = httpx.Timeout(settings.http_timeout, connect=settings.connect_timeout)
HEADERS = {
    "User-Agent": settings.user_agent,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


class UrlResolution(NamedTuple):
    url: str
    upgraded: bool
    reason: str


@asynccontextmanager
async def client_for(**overrides):
    options = dict(
        timeout=TIMEOUT,
        headers=HEADERS,
        follow_redirects=True,
        max_redirects=settings.max_redirects,
        http2=True,
        verify=settings.verify_tls,
    )
    options.update(overrides)
    async with httpx.AsyncClient(**options) as client:
        yield client


async def resolve_optimal_url(client: httpx.AsyncClient, url: str) -> UrlResolution:
    """
    Prefer HTTPS: when given http://, probe the https:// twin with a short HEAD
    and switch to it if it answers 2xx/3xx. Never raises; any failure keeps
    the original URL.
    """
    if url.lower().startswith("https://"):
        return UrlResolution(url, False, "Already HTTPS")

    https_url = "https://" + url.split("://", 1)[1] if "://" in url else "https://" + url
    logger.info("Testing HTTPS availability for %s", https_url)
    try:
        r = await asyncio.wait_for(
            client.head(https_url, timeout=settings.upgrade_timeout),
            timeout=settings.upgrade_timeout,
        )
    except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
        logger.warning("HTTPS unavailable for %s, keeping HTTP: %r", https_url, e)
        return UrlResolution(url, False, f"HTTPS unavailable: {e!r}")

    if 200 <= r.status_code < 400:
        logger.info("HTTPS available for %s (status %s), upgrading", https_url, r.status_code)
        return UrlResolution(https_url, True, f"HTTPS available (status {r.status_code})")
    logger.warning("HTTPS answered %s for %s, keeping HTTP", r.status_code, https_url)
    return UrlResolution(url, False, f"HTTPS responded with {r.status_code}")


async def fetch(client: httpx.AsyncClient, url: str) -> httpx.Response:
    """
    GET the page (not HEAD: some security headers only come with full
    responses). 4xx is accepted, 5xx and transport errors raise FetchError.
    """
    logger.debug("HTTP GET %s", url)
    try:
        # httpx timeouts apply per read; this bounds the whole request
        r = await asyncio.wait_for(client.get(url), timeout=settings.http_timeout)
    except httpx.TooManyRedirects as e:
        raise FetchError(f"Too many redirects fetching {url}", url=url) from e
    except (httpx.TimeoutException, asyncio.TimeoutError) as e:
        raise FetchError(f"Timed out fetching {url}", url=url) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise FetchError(f"Could not fetch {url}: {e!r}", url=url) from e

    if r.status_code >= 500:
        raise FetchError(
            f"GET {url} failed: {r.status_code} {r.reason_phrase}".rstrip(), url=url
        )
    logger.debug("HTTP GET %s - status %s", url, r.status_code)
    return r
