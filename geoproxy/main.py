import logging

from fastapi import FastAPI, Request, Response
from fastapi.exception_handlers import http_exception_handler
from starlette.exceptions import HTTPException as StarletteHTTPException

from geoproxy.cache import close_cache, init_cache
from geoproxy.http.upstream import close_http_client, init_http_client
from geoproxy.proxy import method_not_allowed, router as proxy_router
from geoproxy.settings import S, get_settings


logger = logging.getLogger(__name__)


# ----------------------------
# App
# ----------------------------

app = FastAPI(title="ArcGIS Edge Proxy", version="1.0.0")

app.include_router(proxy_router)


@app.exception_handler(StarletteHTTPException)
async def http_exception(request: Request, exc: StarletteHTTPException) -> Response:
    # Methods outside the route's list are rejected by the router itself.
    if exc.status_code == 405:
        settings = request.app.dependency_overrides.get(get_settings, get_settings)()
        return method_not_allowed(request.method, request.url.path, settings, request.headers.get("origin"))
    return await http_exception_handler(request, exc)


# ----------------------------
# Startup / shutdown
# ----------------------------

@app.on_event("startup")
async def startup() -> None:
    logging.basicConfig(
        level=S.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    S.validate()

    await init_http_client(S.upstream_timeout_seconds)
    await init_cache(S)

    logger.info("CORS config: %s", {"cors_origins": list(S.cors_origins)})
    logger.info(
        "Upstreams: %s (ttl=%ss, timeout=%ss)",
        {"flood": S.upstream_flood, "water": S.upstream_water},
        S.cache_ttl_seconds,
        S.upstream_timeout_seconds,
    )


@app.on_event("shutdown")
async def shutdown() -> None:
    await close_http_client()
    await close_cache()
