from __future__ import annotations

import json

import httpx

from ingest.errors import DirectFetchError, UnexpectedShapeError


DIRECT_TIMEOUT = httpx.Timeout(connect=5.0, read=15.0, write=5.0, pool=5.0)


async def fetch(
    client: httpx.AsyncClient,
    *,
    url: str,
    user_agent: str,
    params: dict[str, str | int | float] | None = None,
    accept: str = "application/json, application/geo+json, */*",
) -> tuple[int, bytes]:
    headers = {"User-Agent": user_agent, "Accept": accept}
    try:
        response = await client.get(
            url, params=params, headers=headers, timeout=DIRECT_TIMEOUT
        )
    except httpx.TimeoutException as e:
        raise DirectFetchError(url, "timeout") from e
    except httpx.RequestError as e:
        raise DirectFetchError(url, f"request_error:{e.__class__.__name__}") from e

    if response.status_code != 200:
        raise DirectFetchError(
            url, f"HTTP {response.status_code}", status_code=response.status_code
        )
    return response.status_code, response.content


async def fetch_json(
    client: httpx.AsyncClient,
    *,
    url: str,
    user_agent: str,
    params: dict[str, str | int | float] | None = None,
) -> dict:
    _, content = await fetch(client, url=url, user_agent=user_agent, params=params)
    try:
        doc = json.loads(content)
    except json.JSONDecodeError as e:
        raise DirectFetchError(url, "invalid JSON") from e
    if not isinstance(doc, dict):
        raise UnexpectedShapeError(f"expected a JSON object from {url}")
    return doc
