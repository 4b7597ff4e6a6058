import logging
from pathlib import Path

import httpx
import pytest

from classify.classifiers import CRIME, INCIDENT
from health.health import HealthRegistry
from ingest.aggregators import (
    DIRECT_LINK_SOURCE,
    TopicAggregator,
    WarningsAggregator,
    crime_direct_links,
    incident_direct_links,
    parse_geonet_news,
    parse_news,
    sort_by_recency,
)
from ingest.errors import UnexpectedShapeError
from ingest.feed_packs import FeedPackEntry
from ingest.models import ClassifiedItem
from ingest.proxies import ProxyEndpoint, ProxyFetcher


FIXTURES = Path(__file__).resolve().parent / "fixtures"
DIRECT = (ProxyEndpoint("direct", "", False),)

GEONET_NEWS = {
    "feed": [
        {
            "title": "Earthquake shakes Wellington",
            "link": "https://www.geonet.org.nz/news/1",
            "summary": "A moderate earthquake was felt across the lower North Island.",
            "published": "2025-01-06T02:00:00Z",
        }
    ]
}


def _source(source_id: str, url: str, source_type: str = "rss") -> FeedPackEntry:
    return FeedPackEntry(
        pack_id="test",
        source_id=source_id,
        name=source_id.upper(),
        icon="📰",
        source_type=source_type,
        url=url,
        topics=("incident", "crime"),
        enabled=True,
    )


def _handler(request: httpx.Request) -> httpx.Response:
    host = request.url.host
    if host == "www.rnz.co.nz":
        return httpx.Response(200, text=(FIXTURES / "rnz.rss.xml").read_text("utf-8"))
    if host == "www.scoop.co.nz":
        return httpx.Response(200, text=(FIXTURES / "scoop.atom.xml").read_text("utf-8"))
    if host == "api.geonet.org.nz":
        return httpx.Response(200, json=GEONET_NEWS)
    if host == "alerts.metservice.com":
        return httpx.Response(200, text=(FIXTURES / "cap_alert.xml").read_text("utf-8"))
    return httpx.Response(500, text="upstream down")


def _aggregator(
    client: httpx.AsyncClient,
    sources: list[FeedPackEntry],
    health: HealthRegistry | None = None,
    *,
    classifier=INCIDENT,
    cap: int = 20,
    placeholders=incident_direct_links,
) -> TopicAggregator:
    return TopicAggregator(
        topic=classifier.name,
        classifier=classifier,
        sources=sources,
        cap=cap,
        placeholders=placeholders,
        fetcher=ProxyFetcher(client, proxies=DIRECT),
        client=client,
        user_agent="nz-hazard-monitor/test",
        health=health,
    )


def test_sort_by_recency_puts_unparseable_last() -> None:
    items = [
        ClassifiedItem(title="undated", link="#", description="", pub_date="soon"),
        ClassifiedItem(
            title="old", link="#", description="", pub_date="2025-01-05T00:00:00Z"
        ),
        ClassifiedItem(
            title="new", link="#", description="", pub_date="Mon, 06 Jan 2025 10:00:00 +1300"
        ),
        ClassifiedItem(title="blank", link="#", description=""),
    ]
    assert [i.title for i in sort_by_recency(items)] == ["new", "old", "undated", "blank"]


@pytest.mark.asyncio
async def test_incidents_merge_sorted_across_sources() -> None:
    health = HealthRegistry()
    sources = [
        _source("rnz", "https://www.rnz.co.nz/rss/national.xml"),
        _source("scoop", "https://www.scoop.co.nz/rss/top-stories.xml"),
    ]
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        items = await _aggregator(client, sources, health).collect()

    assert [i.title for i in items] == [
        "Flooding forces evacuations in Gisborne",
        "Man arrested after Auckland robbery",
        "Crash closes State Highway 1 near Taupo",
        "Firefighters battle scrub fire near Christchurch",
        "Slip blocks coast road",
    ]
    assert items[-1].pub_date == ""
    assert all(i.topic == "incident" for i in items)
    assert {i.source for i in items} == {"RNZ", "SCOOP"}
    assert not any(i.is_fallback for i in items)
    assert {r["source_id"]: r["via"] for r in health.snapshot()} == {
        "rnz": "direct",
        "scoop": "direct",
    }


@pytest.mark.asyncio
async def test_failing_source_does_not_affect_siblings() -> None:
    health = HealthRegistry()
    sources = [
        _source("stuff", "https://www.stuff.co.nz/rss"),
        _source("rnz", "https://www.rnz.co.nz/rss/national.xml"),
    ]
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        items = await _aggregator(client, sources, health, classifier=CRIME, cap=25).collect()

    assert [i.title for i in items] == ["Man arrested after Auckland robbery"]
    rows = {r["source_id"]: r for r in health.snapshot()}
    assert rows["stuff"]["consecutive_failures"] == 1
    assert rows["rnz"]["last_item_count"] == 1


@pytest.mark.asyncio
async def test_crashing_source_is_recorded_and_siblings_kept(
    caplog: pytest.LogCaptureFixture,
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "www.stuff.co.nz":
            raise RuntimeError("transport blew up")
        return _handler(request)

    health = HealthRegistry()
    sources = [
        _source("stuff", "https://www.stuff.co.nz/rss"),
        _source("rnz", "https://www.rnz.co.nz/rss/national.xml"),
    ]
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        items = await _aggregator(client, sources, health, classifier=CRIME, cap=25).collect()

    assert [i.title for i in items] == ["Man arrested after Auckland robbery"]
    rows = {r["source_id"]: r for r in health.snapshot()}
    assert rows["stuff"]["consecutive_failures"] == 1
    assert rows["stuff"]["last_error"] == "RuntimeError"
    assert rows["rnz"]["consecutive_failures"] == 0
    assert "source stuff crashed" in caplog.text


@pytest.mark.asyncio
async def test_all_sources_empty_gives_direct_links() -> None:
    sources = [_source("stuff", "https://www.stuff.co.nz/rss")]
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        items = await _aggregator(client, sources).collect()

    titles = [i.title for i in items]
    assert "NZ Police News" in titles
    assert titles == [i.title for i in incident_direct_links()]
    assert all(i.is_fallback and i.source == DIRECT_LINK_SOURCE for i in items)


@pytest.mark.asyncio
async def test_cap_limits_output() -> None:
    entries = "".join(
        f"<item><title>Police arrest man in Auckland {n}</title>"
        f"<link>https://www.rnz.co.nz/{n}</link>"
        f"<description>Charged overnight.</description>"
        f"<pubDate>Mon, 06 Jan 2025 {n % 24:02d}:00:00 +1300</pubDate></item>"
        for n in range(30)
    )
    feed = f'<?xml version="1.0"?><rss version="2.0"><channel>{entries}</channel></rss>'

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=feed)

    sources = [_source("rnz", "https://www.rnz.co.nz/rss/national.xml")]
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        items = await _aggregator(
            client, sources, classifier=CRIME, cap=25, placeholders=crime_direct_links
        ).collect()

    assert len(items) == 25


@pytest.mark.asyncio
async def test_geonet_news_source_is_fetched_directly() -> None:
    sources = [_source("geonet_news", "https://api.geonet.org.nz/news/geonet", "geonet_news")]
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        items = await _aggregator(client, sources).collect()

    assert [i.title for i in items] == ["Earthquake shakes Wellington"]
    assert items[0].source == "GEONET_NEWS"


def test_parse_geonet_news_rejects_non_list() -> None:
    with pytest.raises(UnexpectedShapeError):
        parse_geonet_news({"feed": {"title": "x"}})


def test_parse_news_ignores_cap_documents(caplog: pytest.LogCaptureFixture) -> None:
    raw = (FIXTURES / "cap_alert.xml").read_text("utf-8")
    with caplog.at_level(logging.WARNING):
        assert parse_news(raw) == []
    assert "CAP alert" in caplog.text


@pytest.mark.asyncio
async def test_warnings_parse_single_cap_alert() -> None:
    health = HealthRegistry()
    async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as client:
        aggregator = WarningsAggregator(
            url="https://alerts.metservice.com/cap/rss",
            fetcher=ProxyFetcher(client, proxies=DIRECT),
            health=health,
        )
        alerts = await aggregator.collect()

    assert len(alerts) == 1
    assert alerts[0].severity == "high"
    assert health.snapshot()[0]["via"] == "direct"


@pytest.mark.asyncio
async def test_warnings_fetch_failure_gives_placeholder() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        aggregator = WarningsAggregator(
            url="https://alerts.metservice.com/cap/rss",
            fetcher=ProxyFetcher(client, proxies=DIRECT),
        )
        alerts = await aggregator.collect()

    assert len(alerts) == 1
    assert alerts[0].is_fallback is True
    assert alerts[0].severity == "medium"
