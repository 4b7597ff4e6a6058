from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import quote

import httpx


logger = logging.getLogger(__name__)

FEED_MARKERS = ("<item>", "<entry>")
FEED_ACCEPT = "application/rss+xml, application/xml, text/xml"


@dataclass(frozen=True)
class ProxyEndpoint:
    name: str
    prefix: str
    encode_target: bool

    def build_url(self, target_url: str) -> str:
        if self.encode_target:
            return self.prefix + quote(target_url, safe="")
        return self.prefix + target_url


DEFAULT_PROXIES: tuple[ProxyEndpoint, ...] = (
    ProxyEndpoint("allorigins", "https://api.allorigins.win/raw?url=", True),
    ProxyEndpoint("corsproxy", "https://corsproxy.io/?", True),
    ProxyEndpoint("codetabs", "https://api.codetabs.com/v1/proxy/?quest=", False),
    ProxyEndpoint("thingproxy", "https://thingproxy.freeboard.io/fetch/", False),
)


def looks_like_feed(text: str, markers: tuple[str, ...] = FEED_MARKERS) -> bool:
    return any(marker in text for marker in markers)


class ProxyFetcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        proxies: tuple[ProxyEndpoint, ...] = DEFAULT_PROXIES,
        timeout_seconds: float = 8.0,
        user_agent: str | None = None,
    ) -> None:
        self._client = client
        self.proxies = proxies
        self.timeout_seconds = timeout_seconds
        self._headers = {"Accept": FEED_ACCEPT}
        if user_agent:
            self._headers["User-Agent"] = user_agent

    async def _attempt(
        self, proxy: ProxyEndpoint, target_url: str, markers: tuple[str, ...]
    ) -> str | None:
        response = await asyncio.wait_for(
            self._client.get(
                proxy.build_url(target_url),
                headers=self._headers,
                timeout=httpx.Timeout(self.timeout_seconds),
            ),
            timeout=self.timeout_seconds,
        )
        if not response.is_success:
            logger.info(
                "proxy %s returned HTTP %s for %s",
                proxy.name,
                response.status_code,
                target_url,
            )
            return None
        text = response.text
        if not text or not looks_like_feed(text, markers):
            logger.info("proxy %s returned no feed for %s", proxy.name, target_url)
            return None
        return text

    async def fetch(
        self, target_url: str, *, markers: tuple[str, ...] = FEED_MARKERS
    ) -> str | None:
        text, _ = await self.fetch_via(target_url, markers=markers)
        return text

    async def fetch_via(
        self, target_url: str, *, markers: tuple[str, ...] = FEED_MARKERS
    ) -> tuple[str | None, str | None]:
        for proxy in self.proxies:
            try:
                text = await self._attempt(proxy, target_url, markers)
            except (asyncio.TimeoutError, httpx.TimeoutException):
                logger.info("proxy %s timed out, trying next", proxy.name)
                continue
            except httpx.HTTPError as e:
                logger.info(
                    "proxy %s failed: %s, trying next", proxy.name, e.__class__.__name__
                )
                continue
            if text is not None:
                logger.info("feed %s fetched via %s", target_url, proxy.name)
                return text, proxy.name
        logger.warning("all proxies failed for %s", target_url)
        return None, None


def proxies_with_relay(relay_url: str | None) -> tuple[ProxyEndpoint, ...]:
    if not relay_url:
        return DEFAULT_PROXIES
    sep = "&" if "?" in relay_url else "?"
    relay = ProxyEndpoint("relay", f"{relay_url}{sep}url=", True)
    return (relay, *DEFAULT_PROXIES)
