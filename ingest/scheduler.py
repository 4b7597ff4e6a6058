from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from datetime import datetime, timedelta
from functools import partial

import httpx

from app.settings import Settings
from classify.classifiers import CRIME, FIRE, INCIDENT, TopicClassifier
from geo.regions import locate_item
from health.health import HealthRegistry
from ingest.aggregators import (
    PlaceholderFn,
    TopicAggregator,
    WarningsAggregator,
    crime_direct_links,
    fire_direct_links,
    incident_direct_links,
    item_time,
)
from ingest.errors import DirectFetchError, SourceError, UnexpectedShapeError
from ingest.feed_packs import FeedPackEntry, load_feed_pack_entries, sources_for_topic
from ingest.geonet import (
    QUAKES_PAGE_URL,
    VOLCANOES_PAGE_URL,
    fetch_quakes,
    fetch_volcanoes,
    quake_time,
    summarize_quake,
)
from ingest.models import (
    WARNINGS_PAGE_URL,
    ClassifiedItem,
    EventType,
    MostRecentEvent,
    TopicResult,
)
from ingest.proxies import ProxyFetcher, proxies_with_relay
from ingest.recency import RecencyTracker
from ingest.weather import WEATHER_PAGE_URL, fetch_all_city_weather
from normalize.normalize import parse_timestamp, utc_now, utc_now_iso
from realtime.bus import Event, EventBus


logger = logging.getLogger(__name__)

TOPICS = ("warnings", "earthquakes", "volcanoes", "weather", "incidents", "crime", "fire")

TOPIC_LINKS = {
    "warnings": WARNINGS_PAGE_URL,
    "earthquakes": QUAKES_PAGE_URL,
    "volcanoes": VOLCANOES_PAGE_URL,
    "weather": WEATHER_PAGE_URL,
}

NEWS_CAPS = {"incidents": 20, "crime": 25, "fire": 20}

LoadResult = tuple[TopicResult, MostRecentEvent | None]
Loader = Callable[[], Awaitable[LoadResult]]


class TopicRunner:
    """Calls `tick` every `interval_seconds` until stopped.

    Exceptions from a tick are logged and the loop keeps going.
    """

    def __init__(
        self, name: str, interval_seconds: float, tick: Callable[[], Awaitable[object]]
    ) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self._tick = tick
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"topic:{self.name}")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self._tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("%s tick failed", self.name)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task


def _item_payload(item: ClassifiedItem, *, default_to_centre: bool = False) -> dict:
    payload = item.to_dict()
    payload["regions"] = locate_item(item, default_to_centre=default_to_centre)
    return payload


def _latest_item(items: list[ClassifiedItem]) -> tuple[ClassifiedItem, datetime] | None:
    latest: tuple[ClassifiedItem, datetime] | None = None
    for item in items:
        if item.is_fallback:
            continue
        dt = item_time(item)
        if dt is None:
            continue
        if latest is None or dt > latest[1]:
            latest = (item, dt)
    return latest


class HazardMonitor:
    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        *,
        bus: EventBus | None = None,
        health: HealthRegistry | None = None,
        fetcher: ProxyFetcher | None = None,
        packs: dict[str, list[FeedPackEntry]] | None = None,
    ) -> None:
        self.settings = settings
        self.bus = bus
        self.health = health if health is not None else HealthRegistry()
        self._client = client
        self._fetcher = fetcher or ProxyFetcher(
            client,
            proxies=proxies_with_relay(settings.self_proxy_url),
            timeout_seconds=settings.proxy_timeout_seconds,
            user_agent=settings.user_agent,
        )
        if packs is None:
            packs = load_feed_pack_entries(settings.feeds_dir)

        self._warnings = WarningsAggregator(
            url=settings.metservice_cap_url, fetcher=self._fetcher, health=self.health
        )
        self._news = {
            "incidents": self._news_aggregator(
                packs, "incidents", INCIDENT, incident_direct_links
            ),
            "crime": self._news_aggregator(packs, "crime", CRIME, crime_direct_links),
            "fire": self._news_aggregator(packs, "fire", FIRE, fire_direct_links),
        }
        self._loaders: dict[str, Loader] = {
            "warnings": self._load_warnings,
            "earthquakes": self._load_earthquakes,
            "volcanoes": self._load_volcanoes,
            "weather": self._load_weather,
            "incidents": partial(self._load_news, "incidents", "incident"),
            "crime": partial(self._load_news, "crime", "crime"),
            "fire": partial(self._load_news, "fire", None),
        }

        self._results: dict[str, TopicResult] = {t: TopicResult(topic=t) for t in TOPICS}
        self._latest: dict[str, MostRecentEvent | None] = {t: None for t in TOPICS}
        self._locks = {t: asyncio.Lock() for t in TOPICS}
        self._cycle_lock = asyncio.Lock()
        self._cycle_task: asyncio.Task[bool] | None = None
        self._tracker = RecencyTracker()
        self._runners: list[TopicRunner] = []

    def _news_aggregator(
        self,
        packs: dict[str, list[FeedPackEntry]],
        topic: str,
        classifier: TopicClassifier,
        placeholders: PlaceholderFn,
    ) -> TopicAggregator:
        return TopicAggregator(
            topic=classifier.name,
            classifier=classifier,
            sources=sources_for_topic(packs, classifier.name),
            cap=NEWS_CAPS[topic],
            placeholders=placeholders,
            fetcher=self._fetcher,
            client=self._client,
            user_agent=self.settings.user_agent,
            health=self.health,
        )

    def _in_window(self, dt: datetime | None, now: datetime) -> bool:
        if dt is None:
            return False
        return dt >= now - timedelta(hours=self.settings.time_window_hours)

    async def _load_warnings(self) -> LoadResult:
        alerts = await self._warnings.collect()
        now = utc_now()
        recent = [a for a in alerts if self._in_window(item_time(a), now)]
        if not recent:
            return TopicResult(topic="warnings", status="empty"), None

        status = "fallback" if all(a.is_fallback for a in recent) else "ok"
        result = TopicResult(
            topic="warnings",
            status=status,
            items=[_item_payload(a, default_to_centre=True) for a in recent],
            link=WARNINGS_PAGE_URL if status == "fallback" else None,
        )
        latest = _latest_item(recent)
        if latest is None:
            return result, None
        return result, MostRecentEvent(type="warning", data=latest[0], time=latest[1])

    async def _load_earthquakes(self) -> LoadResult:
        features = await fetch_quakes(
            self._client,
            base_url=self.settings.geonet_base_url,
            user_agent=self.settings.user_agent,
            mmi=self.settings.quake_mmi,
        )
        now = utc_now()
        quakes = [summarize_quake(f) for f in features if self._in_window(quake_time(f), now)]
        if not quakes:
            return TopicResult(topic="earthquakes", status="empty"), None

        result = TopicResult(topic="earthquakes", status="ok", items=quakes)
        newest = quakes[0]
        newest_time = parse_timestamp(str(newest.get("time") or ""))
        if newest_time is None:
            return result, None
        return result, MostRecentEvent(type="earthquake", data=newest, time=newest_time)

    async def _load_volcanoes(self) -> LoadResult:
        volcanoes = await fetch_volcanoes(
            self._client,
            base_url=self.settings.geonet_base_url,
            user_agent=self.settings.user_agent,
        )
        status = "ok" if volcanoes else "empty"
        return TopicResult(topic="volcanoes", status=status, items=volcanoes), None

    async def _load_weather(self) -> LoadResult:
        cities = await fetch_all_city_weather(
            self._client,
            base_url=self.settings.open_meteo_base_url,
            user_agent=self.settings.user_agent,
        )
        status = "ok" if cities else "empty"
        return TopicResult(topic="weather", status=status, items=cities), None

    async def _load_news(self, topic: str, event_type: EventType | None) -> LoadResult:
        aggregator = self._news[topic]
        items = await aggregator.collect()
        now = utc_now()
        recent = [i for i in items if self._in_window(item_time(i), now)]
        if not recent:
            recent = aggregator.placeholders()

        if all(i.is_fallback for i in recent):
            return (
                TopicResult(
                    topic=topic,
                    status="fallback",
                    items=[_item_payload(i) for i in recent],
                ),
                None,
            )

        result = TopicResult(
            topic=topic, status="ok", items=[_item_payload(i) for i in recent]
        )
        latest = _latest_item(recent)
        if event_type is None or latest is None:
            return result, None
        return result, MostRecentEvent(type=event_type, data=latest[0], time=latest[1])

    async def _run_loader(self, topic: str) -> LoadResult:
        try:
            return await self._loaders[topic]()
        except UnexpectedShapeError as e:
            logger.warning("%s returned an unexpected shape: %s", topic, e)
            message = "data unavailable"
        except DirectFetchError as e:
            logger.warning("%s fetch failed (%s): %s", topic, e.url, e)
            message = f"{topic} unavailable: {e}"
        except SourceError as e:
            logger.warning("%s source failed: %s", topic, e)
            message = f"{topic} unavailable: {e}"
        except Exception:
            logger.exception("%s loader crashed", topic)
            message = "data unavailable"
        result = TopicResult(
            topic=topic, status="error", error=message, link=TOPIC_LINKS.get(topic)
        )
        return result, None

    async def refresh_topic(
        self, topic: str, *, tracker: RecencyTracker | None = None
    ) -> bool:
        """Reload one topic. Returns False when it was already in flight."""
        if topic not in self._loaders:
            raise KeyError(topic)

        lock = self._locks[topic]
        if lock.locked():
            logger.debug("%s refresh already in flight, skipping", topic)
            if tracker is not None:
                # The cycle tracker must see what the in-flight load produces.
                async with lock:
                    pass
                if self._latest[topic] is not None:
                    tracker.consider(self._latest[topic])
            return False

        async with lock:
            result, latest = await self._run_loader(topic)
            result.updated_at = utc_now_iso()
            self._results[topic] = result
            if result.status != "error":
                self._latest[topic] = latest

        await self._publish(
            "topic.updated",
            {
                "topic": topic,
                "status": result.status,
                "count": len(result.items),
                "updated_at": result.updated_at,
            },
        )

        if latest is None:
            return True
        if tracker is not None:
            tracker.consider(latest)
        elif self._tracker.consider(latest):
            await self._publish_most_recent()
        return True

    @property
    def refresh_in_progress(self) -> bool:
        if self._cycle_lock.locked():
            return True
        return self._cycle_task is not None and not self._cycle_task.done()

    async def refresh_all(self) -> bool:
        """Run one full cycle. Returns False when a cycle is already running."""
        if self._cycle_lock.locked():
            logger.info("refresh already in progress, skipping")
            return False

        async with self._cycle_lock:
            tracker = RecencyTracker()
            await asyncio.gather(*(self.refresh_topic(t, tracker=tracker) for t in TOPICS))
            self._tracker = tracker
        await self._publish_most_recent()
        return True

    def request_refresh(self) -> bool:
        """Start a full cycle in the background unless one is running."""
        if self.refresh_in_progress:
            return False
        self._cycle_task = asyncio.create_task(self.refresh_all(), name="refresh-all")
        return True

    async def start(self) -> None:
        await self.refresh_all()
        intervals = self.settings.refresh_intervals()
        self._runners = [
            TopicRunner(topic, intervals[topic], partial(self.refresh_topic, topic))
            for topic in TOPICS
        ]
        for runner in self._runners:
            runner.start()
        logger.info("hazard monitor started with %d topics", len(self._runners))

    async def stop(self) -> None:
        for runner in self._runners:
            await runner.stop()
        self._runners = []
        task = self._cycle_task
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        logger.info("hazard monitor stopped")

    def topic_result(self, topic: str) -> TopicResult | None:
        return self._results.get(topic)

    def most_recent(self) -> MostRecentEvent | None:
        return self._tracker.current()

    def current_snapshot(self) -> dict:
        event = self._tracker.current()
        return {
            "topics": {t: self._results[t].to_dict() for t in TOPICS},
            "most_recent": event.to_dict() if event is not None else None,
            "refreshing": self.refresh_in_progress,
            "generated_at": utc_now_iso(),
        }

    async def _publish(self, event_type: str, data: dict) -> None:
        if self.bus is not None:
            await self.bus.publish(Event(type=event_type, data=data))

    async def _publish_most_recent(self) -> None:
        event = self._tracker.current()
        await self._publish(
            "most_recent.updated", {"most_recent": event.to_dict() if event else None}
        )
