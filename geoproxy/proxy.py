import json
import logging
import time
from typing import Any, Callable, Optional

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response

from geoproxy.cache import CachedResponse, CacheStore, get_cache_store
from geoproxy.caching.keys import cache_key
from geoproxy.cors import with_cors
from geoproxy.datasets import merge_params, select_dataset, upstream_for, upstream_url
from geoproxy.http.upstream import (
    JSON_CONTENT_TYPE,
    UpstreamUnavailable,
    fetch_upstream,
    get_http_client,
    normalize_headers,
)
from geoproxy.settings import Settings, get_settings


logger = logging.getLogger(__name__)

router = APIRouter()

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

UPSTREAM_ERROR_BODY = json.dumps({"error": "upstream_timeout_or_network"}).encode("utf-8")

Schedule = Callable[..., Any]


def method_not_allowed(method: str, path: str, settings: Settings, origin: Optional[str]) -> Response:
    logger.info("%s %s -> 405", method, path)
    return with_cors(
        Response(content="Method Not Allowed", status_code=405, media_type="text/plain"),
        settings.cors_origins,
        origin,
    )


async def handle(
    method: str,
    path: str,
    query: str,
    origin: Optional[str],
    settings: Settings,
    cache_store: CacheStore,
    client: httpx.AsyncClient,
    schedule: Schedule,
) -> Response:
    """Proxy one request to the upstream selected by ``path``.

    ``schedule(fn, *args)`` runs ``fn`` after the response has been sent;
    it carries the cache write on a 2xx miss.
    """
    allow = settings.cors_origins

    if method == "OPTIONS":
        return with_cors(Response(status_code=204), allow, origin)

    if method != "GET":
        return method_not_allowed(method, path, settings, origin)

    kind = select_dataset(path, settings)
    base = upstream_for(settings, kind)
    url = upstream_url(base or "", merge_params(query, kind))
    key = cache_key(url)

    cached = await cache_store.lookup(key)
    if cached is not None:
        logger.info("GET %s [%s] cache=hit", path, kind.value)
        return with_cors(
            Response(content=cached.body, status_code=cached.status, headers=cached.headers),
            allow,
            origin,
        )

    t0 = time.time()
    try:
        result = await fetch_upstream(client, url, settings.upstream_timeout_seconds)
    except UpstreamUnavailable:
        logger.info("GET %s [%s] cache=error t_ms=%d", path, kind.value, int((time.time() - t0) * 1000))
        return with_cors(
            Response(content=UPSTREAM_ERROR_BODY, status_code=504, media_type=JSON_CONTENT_TYPE),
            allow,
            origin,
        )

    headers = normalize_headers(result.headers, settings.cache_ttl_seconds)

    if result.ok:
        entry = CachedResponse(status=result.status, headers=headers, body=result.body)
        schedule(cache_store.store, key, entry, settings.cache_ttl_seconds)
        outcome = "miss"
    else:
        outcome = "bypass"

    logger.info(
        "GET %s [%s] cache=%s upstream=%d t_ms=%d",
        path,
        kind.value,
        outcome,
        result.status,
        int((time.time() - t0) * 1000),
    )
    return with_cors(
        Response(content=result.body, status_code=result.status, headers=headers),
        allow,
        origin,
    )


@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def proxy_all(
    request: Request,
    background: BackgroundTasks,
    settings: Settings = Depends(get_settings),
    cache_store: CacheStore = Depends(get_cache_store),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> Response:
    return await handle(
        method=request.method,
        path=request.url.path,
        query=request.url.query,
        origin=request.headers.get("origin"),
        settings=settings,
        cache_store=cache_store,
        client=client,
        schedule=background.add_task,
    )
