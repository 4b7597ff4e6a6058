from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

import httpx

from classify.classifiers import TopicClassifier
from health.health import HealthRegistry
from ingest.errors import SourceError, UnexpectedShapeError
from ingest.feed_packs import FeedPackEntry
from ingest.fetch import fetch_json
from ingest.models import WARNINGS_PAGE_URL, ClassifiedItem, FeedItem, WarningAlert
from ingest.parsers.cap import parse_cap_alert, parse_cap_feed, warnings_fallback
from ingest.parsers.rss import parse_feed_items
from ingest.parsers.sniff import FeedFormat, sniff_format
from ingest.proxies import FEED_MARKERS, ProxyFetcher
from normalize.normalize import normalize_text, parse_timestamp, utc_now_iso


logger = logging.getLogger(__name__)

DIRECT_LINK_SOURCE = "Direct Link"
CAP_MARKERS = (*FEED_MARKERS, "<alert")

_OLDEST = datetime.min.replace(tzinfo=UTC)

PlaceholderFn = Callable[[], list[ClassifiedItem]]


def _direct_link(
    title: str, link: str, description: str, icon: str, topic: str
) -> ClassifiedItem:
    return ClassifiedItem(
        title=title,
        link=link,
        description=description,
        pub_date=utc_now_iso(),
        source=DIRECT_LINK_SOURCE,
        source_icon=icon,
        topic=topic,
        is_fallback=True,
    )


def incident_direct_links() -> list[ClassifiedItem]:
    return [
        _direct_link(
            "NZ Police News",
            "https://www.police.govt.nz/news",
            "Latest news and incident reports from NZ Police",
            "👮",
            "incident",
        ),
        _direct_link(
            "Fire and Emergency NZ",
            "https://www.fireandemergency.nz/incidents-and-news/",
            "Current fire incidents and emergency callouts",
            "🚒",
            "incident",
        ),
        _direct_link(
            "MetService Warnings",
            WARNINGS_PAGE_URL,
            "Current weather warnings for New Zealand",
            "⚠️",
            "incident",
        ),
        _direct_link(
            "NZTA Traffic Updates",
            "https://www.journeys.nzta.govt.nz/",
            "Road closures and traffic incidents",
            "🚗",
            "incident",
        ),
        _direct_link(
            "GeoNet Recent Quakes",
            "https://www.geonet.org.nz/earthquake/weak",
            "Latest earthquake activity in New Zealand",
            "🌋",
            "incident",
        ),
    ]


def crime_direct_links() -> list[ClassifiedItem]:
    return [
        _direct_link(
            "NZ Police News",
            "https://www.police.govt.nz/news",
            "Latest news and crime reports from NZ Police",
            "👮",
            "crime",
        ),
        _direct_link(
            "Stuff Crime News",
            "https://www.stuff.co.nz/national/crime",
            "Crime news from across New Zealand",
            "📰",
            "crime",
        ),
        _direct_link(
            "RNZ Crime & Courts",
            "https://www.rnz.co.nz/news/crime",
            "Crime and court news from RNZ",
            "📻",
            "crime",
        ),
    ]


def fire_direct_links() -> list[ClassifiedItem]:
    return [
        _direct_link(
            "Fire and Emergency NZ Incidents",
            "https://www.fireandemergency.nz/incidents-and-news/incident-reports/",
            "Current fire incidents and emergency callouts across New Zealand",
            "🚒",
            "fire",
        ),
        _direct_link(
            "FENZ News & Updates",
            "https://www.fireandemergency.nz/incidents-and-news/",
            "Latest news from Fire and Emergency New Zealand",
            "🔥",
            "fire",
        ),
        _direct_link(
            "Stuff Fire News",
            "https://www.stuff.co.nz/national",
            "Fire news from across New Zealand",
            "📰",
            "fire",
        ),
    ]


def item_time(item: FeedItem | ClassifiedItem) -> datetime | None:
    return parse_timestamp(item.pub_date)


def sort_by_recency(items: list[ClassifiedItem]) -> list[ClassifiedItem]:
    return sorted(items, key=lambda i: item_time(i) or _OLDEST, reverse=True)


def parse_news(raw: str) -> list[FeedItem]:
    match sniff_format(raw):
        case FeedFormat.RSS | FeedFormat.ATOM:
            return parse_feed_items(raw)
        case FeedFormat.CAP_ALERT:
            logger.warning("news source returned a CAP alert, ignoring")
            return []
        case FeedFormat.UNKNOWN:
            logger.warning("news source returned an unrecognised document")
            return []


def parse_warnings(raw: str) -> list[WarningAlert]:
    match sniff_format(raw):
        case FeedFormat.CAP_ALERT:
            return parse_cap_alert(raw)
        case FeedFormat.RSS | FeedFormat.ATOM | FeedFormat.UNKNOWN:
            return parse_cap_feed(raw)


def parse_geonet_news(doc: dict) -> list[FeedItem]:
    feed = doc.get("feed", [])
    if not isinstance(feed, list):
        raise UnexpectedShapeError("GeoNet news feed is not a list")
    items: list[FeedItem] = []
    for record in feed:
        if not isinstance(record, dict):
            continue
        items.append(
            FeedItem(
                title=normalize_text(record.get("title")) or "No title",
                link=str(record.get("link") or "#"),
                description=normalize_text(record.get("summary")),
                pub_date=str(record.get("published") or ""),
            )
        )
    return items


class TopicAggregator:
    def __init__(
        self,
        *,
        topic: str,
        classifier: TopicClassifier,
        sources: list[FeedPackEntry],
        cap: int,
        placeholders: PlaceholderFn,
        fetcher: ProxyFetcher,
        client: httpx.AsyncClient,
        user_agent: str,
        health: HealthRegistry | None = None,
    ) -> None:
        self.topic = topic
        self.classifier = classifier
        self.sources = sources
        self.cap = cap
        self.placeholders = placeholders
        self._fetcher = fetcher
        self._client = client
        self._user_agent = user_agent
        self._health = health

    async def _fetch_source(self, source: FeedPackEntry) -> tuple[list[FeedItem], str]:
        if source.source_type == "geonet_news":
            doc = await fetch_json(
                self._client, url=source.url, user_agent=self._user_agent
            )
            return parse_geonet_news(doc), "direct"

        text, via = await self._fetcher.fetch_via(source.url)
        if text is None or via is None:
            raise SourceError("no proxy returned a feed")
        return parse_news(text), via

    def _record_error(self, source: FeedPackEntry, error: str) -> None:
        if self._health is not None:
            self._health.record_fetch_error(
                source_id=source.source_id,
                name=source.name,
                topic=self.topic,
                error=error,
            )

    async def _collect_source(self, source: FeedPackEntry) -> list[ClassifiedItem]:
        try:
            items, via = await self._fetch_source(source)
        except SourceError as e:
            logger.warning("%s source %s failed: %s", self.topic, source.source_id, e)
            self._record_error(source, str(e))
            return []
        except Exception as e:
            logger.exception("%s source %s crashed", self.topic, source.source_id)
            self._record_error(source, e.__class__.__name__)
            return []

        kept = self.classifier.filter(items)
        logger.debug(
            "%s source %s: %d of %d items kept",
            self.topic,
            source.source_id,
            len(kept),
            len(items),
        )
        if self._health is not None:
            self._health.record_fetch_success(
                source_id=source.source_id,
                name=source.name,
                topic=self.topic,
                item_count=len(kept),
                via=via,
            )
        return [
            ClassifiedItem.from_feed_item(
                item, source=source.name, source_icon=source.icon, topic=self.topic
            )
            for item in kept
        ]

    async def collect(self) -> list[ClassifiedItem]:
        batches = await asyncio.gather(
            *(self._collect_source(source) for source in self.sources)
        )
        merged = [item for batch in batches for item in batch]
        if not merged:
            return self.placeholders()
        return sort_by_recency(merged)[: self.cap]


class WarningsAggregator:
    source_id = "metservice_cap"
    name = "MetService"

    def __init__(
        self, *, url: str, fetcher: ProxyFetcher, health: HealthRegistry | None = None
    ) -> None:
        self.url = url
        self._fetcher = fetcher
        self._health = health

    async def collect(self) -> list[WarningAlert]:
        text, via = await self._fetcher.fetch_via(self.url, markers=CAP_MARKERS)
        if text is None:
            if self._health is not None:
                self._health.record_fetch_error(
                    source_id=self.source_id,
                    name=self.name,
                    topic="warning",
                    error="no proxy returned a feed",
                )
            return warnings_fallback()

        alerts = parse_warnings(text)
        if self._health is not None:
            self._health.record_fetch_success(
                source_id=self.source_id,
                name=self.name,
                topic="warning",
                item_count=len(alerts),
                via=via,
            )
        return alerts
