import httpx
import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.proxy import cache_control_for, host_allowed
from app.settings import Settings
from health.health import HealthRegistry
from ingest.feed_packs import FeedPackEntry
from ingest.scheduler import HazardMonitor


ALLOWLIST = Settings().allowed_proxy_hosts()


class _RefreshStub:
    def __init__(self, accept: bool) -> None:
        self.accept = accept

    def request_refresh(self) -> bool:
        return self.accept


def _upstream(request: httpx.Request) -> httpx.Response:
    if request.url.host == "www.stuff.co.nz":
        raise httpx.ConnectError("refused", request=request)
    return httpx.Response(
        200, json={"type": "FeatureCollection", "features": []},
        headers={"content-type": "application/json"},
    )


@pytest.fixture()
def client() -> TestClient:
    settings = Settings()
    upstream = httpx.AsyncClient(transport=httpx.MockTransport(_upstream))
    health = HealthRegistry()
    health.record_fetch_error(
        source_id="stuff", name="Stuff", topic="crime", error="no proxy returned a feed"
    )
    app.state.settings = settings
    app.state.client = upstream
    app.state.health = health
    app.state.monitor = HazardMonitor(
        settings, upstream, health=health, packs={"news": [_entry()]}
    )
    return TestClient(app)


def _entry() -> FeedPackEntry:
    return FeedPackEntry(
        pack_id="news",
        source_id="stuff",
        name="Stuff",
        icon="📰",
        source_type="rss",
        url="https://www.stuff.co.nz/rss",
        topics=("crime",),
        enabled=True,
    )


def test_host_allowlist_matches_subdomains_only() -> None:
    assert host_allowed("api.geonet.org.nz", ALLOWLIST)
    assert host_allowed("API.GEONET.ORG.NZ", ALLOWLIST)
    assert not host_allowed("evilapi.geonet.org.nz.example.com", ALLOWLIST)
    assert not host_allowed("example.com", ALLOWLIST)


def test_cache_tiers() -> None:
    assert "s-maxage=600" in cache_control_for("api.open-meteo.com")
    assert "s-maxage=120" in cache_control_for("api.geonet.org.nz")
    assert "s-maxage=300" in cache_control_for("alerts.metservice.com")
    assert "s-maxage=600" in cache_control_for("www.rnz.co.nz")
    assert "s-maxage=300" in cache_control_for("api.metservice.com")


def test_proxy_requires_url(client: TestClient) -> None:
    res = client.get("/api/proxy")
    assert res.status_code == 400
    res = client.get("/api/proxy", params={"url": "ftp://api.geonet.org.nz/quake"})
    assert res.status_code == 400


def test_proxy_rejects_unlisted_host(client: TestClient) -> None:
    res = client.get("/api/proxy", params={"url": "https://example.com/feed.xml"})
    assert res.status_code == 403
    assert res.json() == {"error": "host_not_allowed"}


def test_proxy_relays_with_cache_headers(client: TestClient) -> None:
    res = client.get("/api/proxy", params={"url": "https://api.geonet.org.nz/quake?MMI=2"})
    assert res.status_code == 200
    assert res.json()["type"] == "FeatureCollection"
    assert res.headers["cache-control"] == (
        "public, max-age=60, s-maxage=120, stale-while-revalidate=60"
    )


def test_proxy_upstream_failure_is_502(client: TestClient) -> None:
    res = client.get("/api/proxy", params={"url": "https://www.stuff.co.nz/rss"})
    assert res.status_code == 502


def test_snapshot_and_topic_routes(client: TestClient) -> None:
    res = client.get("/api/snapshot")
    assert res.status_code == 200
    assert res.json()["topics"]["earthquakes"]["status"] == "pending"

    res = client.get("/api/topics/crime")
    assert res.status_code == 200
    assert res.json()["topic"] == "crime"

    res = client.get("/api/topics/tides")
    assert res.status_code == 404
    assert res.json() == {"error": "not_found"}

    res = client.get("/api/most-recent")
    assert res.status_code == 200
    assert res.json() is None


def test_sources_route_reports_health(client: TestClient) -> None:
    res = client.get("/api/sources")
    assert res.status_code == 200
    [row] = res.json()
    assert row["source_id"] == "stuff"
    assert row["consecutive_failures"] == 1


def test_refresh_route_status_codes(client: TestClient) -> None:
    app.state.monitor = _RefreshStub(accept=True)
    res = client.post("/api/refresh")
    assert res.status_code == 202
    assert res.json() == {"started": True}

    app.state.monitor = _RefreshStub(accept=False)
    res = client.post("/api/refresh")
    assert res.status_code == 409
    assert res.json() == {"started": False}
