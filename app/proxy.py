from __future__ import annotations

import logging
from urllib.parse import urlsplit

import httpx
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, Response

from app.settings import Settings
from ingest.fetch import DIRECT_TIMEOUT


logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_S_MAXAGE = 300

# Suffix match on the upstream host; first hit wins.
CACHE_TIERS = (
    ("open-meteo.com", 600),
    ("geonet.org.nz", 120),
    ("alerts.metservice.com", 300),
    ("rnz.co.nz", 600),
    ("scoop.co.nz", 600),
    ("stuff.co.nz", 600),
)


def host_allowed(host: str, allowlist: list[str]) -> bool:
    host = host.lower()
    return any(host == allowed or host.endswith(f".{allowed}") for allowed in allowlist)


def s_maxage_for(host: str) -> int:
    host = host.lower()
    for suffix, seconds in CACHE_TIERS:
        if host == suffix or host.endswith(f".{suffix}"):
            return seconds
    return DEFAULT_S_MAXAGE


def cache_control_for(host: str) -> str:
    return (
        f"public, max-age=60, s-maxage={s_maxage_for(host)}, "
        "stale-while-revalidate=60"
    )


@router.get("/api/proxy")
async def relay(request: Request, url: str | None = Query(default=None)) -> Response:
    if not url:
        return JSONResponse({"error": "missing_url"}, status_code=400)
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return JSONResponse({"error": "invalid_url"}, status_code=400)

    settings: Settings = request.app.state.settings
    if not host_allowed(parts.hostname, settings.allowed_proxy_hosts()):
        logger.info("relay refused host %s", parts.hostname)
        return JSONResponse({"error": "host_not_allowed"}, status_code=403)

    client: httpx.AsyncClient = request.app.state.client
    try:
        upstream = await client.get(
            url,
            headers={"User-Agent": settings.user_agent},
            timeout=DIRECT_TIMEOUT,
        )
    except httpx.HTTPError as e:
        logger.warning("relay fetch of %s failed: %s", url, e.__class__.__name__)
        return JSONResponse({"error": "upstream_failed"}, status_code=502)

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type=upstream.headers.get("content-type", "application/octet-stream"),
        headers={"Cache-Control": cache_control_for(parts.hostname)},
    )
