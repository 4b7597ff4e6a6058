from __future__ import annotations

from datetime import UTC, datetime

import httpx

from ingest.fetch import fetch
from ingest.parsers.geojson import parse_geojson
from normalize.normalize import parse_timestamp


QUAKES_PAGE_URL = "https://www.geonet.org.nz/earthquake"
VOLCANOES_PAGE_URL = "https://www.geonet.org.nz/volcano"

VOLCANIC_LEVEL_TEXT = {
    0: "No volcanic unrest",
    1: "Minor volcanic unrest",
    2: "Moderate to heightened volcanic unrest",
    3: "Minor volcanic eruption",
    4: "Moderate volcanic eruption",
    5: "Major volcanic eruption",
}

_DEPTH_COLORS = {
    "deep": "#9b59b6",
    "intermediate": "#e74c3c",
    "shallow": "#ff6b6b",
}

VOLCANO_COORDS: dict[str, tuple[float, float]] = {
    "ruapehu": (-39.28, 175.57),
    "tongariro": (-39.13, 175.64),
    "ngauruhoe": (-39.16, 175.63),
    "whiteisland": (-37.52, 177.18),
    "taranaki": (-39.30, 174.06),
    "taupo": (-38.82, 175.90),
    "okataina": (-38.12, 176.50),
    "aucklandvolcanicfield": (-36.90, 174.87),
}

_VOLCANO_COLORS = ((3, "#ff6b6b"), (2, "#ff9f43"), (1, "#ffd93d"))
_OLDEST = datetime.min.replace(tzinfo=UTC)


def quake_severity(magnitude: float) -> str:
    if magnitude >= 5:
        return "high"
    if magnitude >= 4:
        return "medium"
    return "low"


def depth_tier(depth_km: float) -> str:
    if depth_km > 100:
        return "deep"
    if depth_km > 50:
        return "intermediate"
    return "shallow"


def quake_time(feature: dict) -> datetime:
    props = feature.get("properties") or {}
    return parse_timestamp(str(props.get("time") or "")) or _OLDEST


def _as_float(value: object, default: float = 0.0) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return default


def summarize_quake(feature: dict) -> dict:
    props = feature.get("properties") or {}
    coords = (feature.get("geometry") or {}).get("coordinates") or [0, 0, 0]
    lon = _as_float(coords[0] if len(coords) > 0 else None)
    lat = _as_float(coords[1] if len(coords) > 1 else None)
    depth = _as_float(coords[2] if len(coords) > 2 else props.get("depth"))
    magnitude = _as_float(props.get("magnitude"))
    tier = depth_tier(depth)
    return {
        "public_id": props.get("publicID"),
        "time": props.get("time"),
        "magnitude": magnitude,
        "depth_km": depth,
        "mmi": props.get("mmi"),
        "locality": props.get("locality") or "New Zealand",
        "lat": lat,
        "lon": lon,
        "severity": quake_severity(magnitude),
        "depth_tier": tier,
        "marker_color": _DEPTH_COLORS[tier],
    }


def volcano_location(feature: dict) -> tuple[float | None, float | None]:
    coords = (feature.get("geometry") or {}).get("coordinates") or []
    if len(coords) >= 2:
        lon, lat = coords[0], coords[1]
        numeric = (int, float)
        if isinstance(lat, numeric) and isinstance(lon, numeric):
            if not isinstance(lat, bool) and not isinstance(lon, bool):
                return float(lat), float(lon)
    volcano_id = str((feature.get("properties") or {}).get("volcanoID") or "").lower()
    return VOLCANO_COORDS.get(volcano_id, (None, None))


def summarize_volcano(feature: dict) -> dict:
    props = feature.get("properties") or {}
    lat, lon = volcano_location(feature)
    level = props.get("level")
    level = level if isinstance(level, int) and not isinstance(level, bool) else -1
    color = "#6bcf63"
    for threshold, level_color in _VOLCANO_COLORS:
        if level >= threshold:
            color = level_color
            break
    return {
        "volcano_id": props.get("volcanoID"),
        "title": props.get("volcanoTitle"),
        "level": level,
        "level_text": VOLCANIC_LEVEL_TEXT.get(level, "Unknown"),
        "activity": props.get("activity"),
        "hazards": props.get("hazards"),
        "lat": lat,
        "lon": lon,
        "marker_color": color,
    }


async def fetch_quakes(
    client: httpx.AsyncClient, *, base_url: str, user_agent: str, mmi: int
) -> list[dict]:
    url = f"{base_url.rstrip('/')}/quake"
    _, content = await fetch(
        client, url=url, user_agent=user_agent, params={"MMI": mmi}
    )
    features = parse_geojson(content)
    features.sort(key=quake_time, reverse=True)
    return features


async def fetch_volcanoes(
    client: httpx.AsyncClient, *, base_url: str, user_agent: str
) -> list[dict]:
    url = f"{base_url.rstrip('/')}/volcano/val"
    _, content = await fetch(client, url=url, user_agent=user_agent)
    features = parse_geojson(content)
    volcanoes = [summarize_volcano(f) for f in features]
    volcanoes.sort(key=lambda v: v["level"], reverse=True)
    return volcanoes
