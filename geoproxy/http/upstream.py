import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import httpx

from geoproxy.caching.keys import cache_control


logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"

# Hop-by-hop headers (RFC 2616) plus framing headers that no longer match the
# buffered, already-decoded body, and cookies a shared cache must not replay.
DROPPED_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "content-length",
    "content-encoding",
    "set-cookie",
}


class UpstreamUnavailable(Exception):
    """Upstream timed out or could not be reached."""


@dataclass(frozen=True)
class UpstreamResult:
    status: int
    headers: Dict[str, str]
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


async def fetch_upstream(client: httpx.AsyncClient, url: str, timeout_seconds: float) -> UpstreamResult:
    """Single bounded GET; no retries.

    wait_for cancels the in-flight request once the bound passes, so nothing
    scheduled by this call outlives it.
    """
    try:
        r = await asyncio.wait_for(
            client.get(
                url,
                headers={"Accept": "application/json"},
                timeout=httpx.Timeout(timeout_seconds),
            ),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError as e:
        logger.error("Upstream timeout after %.1fs for %s", timeout_seconds, url)
        raise UpstreamUnavailable("timeout") from e
    except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
        logger.error("Upstream request failed for %s: %s", url, e)
        raise UpstreamUnavailable(str(e)) from e

    return UpstreamResult(status=r.status_code, headers=dict(r.headers.items()), body=r.content)


def normalize_headers(upstream_headers: Mapping[str, str], ttl_seconds: int) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for name, value in upstream_headers.items():
        name_lower = name.lower()
        if name_lower in DROPPED_HEADERS:
            continue
        out[name_lower] = value
    out["content-type"] = JSON_CONTENT_TYPE
    out["cache-control"] = cache_control(ttl_seconds)
    return out


http_client: Optional[httpx.AsyncClient] = None


async def init_http_client(timeout_seconds: float) -> None:
    global http_client
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds), follow_redirects=True)


async def close_http_client() -> None:
    global http_client
    if http_client is not None:
        await http_client.aclose()
        http_client = None


def get_http_client() -> httpx.AsyncClient:
    if http_client is None:
        raise RuntimeError("HTTP client not initialized")
    return http_client
