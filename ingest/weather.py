from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from ingest.errors import DirectFetchError, SourceError
from ingest.fetch import fetch_json


logger = logging.getLogger(__name__)

WEATHER_PAGE_URL = "https://www.metservice.com/national"

CURRENT_FIELDS = (
    "temperature_2m,relative_humidity_2m,apparent_temperature,precipitation,"
    "weather_code,wind_speed_10m,wind_gusts_10m"
)
DAILY_FIELDS = (
    "temperature_2m_max,temperature_2m_min,precipitation_sum,"
    "precipitation_probability_max,wind_speed_10m_max,weather_code"
)

WEATHER_CODES = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm + slight hail",
    99: "Thunderstorm + heavy hail",
}


@dataclass(frozen=True)
class City:
    name: str
    lat: float
    lon: float


CITIES: tuple[City, ...] = (
    City("Auckland", -36.85, 174.76),
    City("Wellington", -41.29, 174.78),
    City("Christchurch", -43.53, 172.64),
    City("Queenstown", -45.03, 168.66),
)


def _number(value: object) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return 0.0


def is_extreme(current: dict) -> bool:
    temp = _number(current.get("temperature_2m"))
    gusts = _number(current.get("wind_gusts_10m"))
    precipitation = _number(current.get("precipitation"))
    code = int(_number(current.get("weather_code")))
    return gusts > 80 or temp > 30 or temp < 0 or precipitation > 10 or code >= 95


def summarize_city(city: City, doc: dict) -> dict:
    current = doc.get("current")
    if not isinstance(current, dict):
        current = {}
    code = current.get("weather_code")
    return {
        "city": city.name,
        "lat": city.lat,
        "lon": city.lon,
        "current": current,
        "daily": doc.get("daily") if isinstance(doc.get("daily"), dict) else {},
        "description": WEATHER_CODES.get(code, "Unknown")
        if isinstance(code, int)
        else "Unknown",
        "is_extreme": is_extreme(current) if current else False,
    }


async def fetch_city_weather(
    client: httpx.AsyncClient, city: City, *, base_url: str, user_agent: str
) -> dict:
    doc = await fetch_json(
        client,
        url=f"{base_url.rstrip('/')}/forecast",
        user_agent=user_agent,
        params={
            "latitude": city.lat,
            "longitude": city.lon,
            "current": CURRENT_FIELDS,
            "daily": DAILY_FIELDS,
            "timezone": "Pacific/Auckland",
            "forecast_days": 3,
        },
    )
    return summarize_city(city, doc)


async def fetch_all_city_weather(
    client: httpx.AsyncClient,
    *,
    base_url: str,
    user_agent: str,
    cities: tuple[City, ...] = CITIES,
) -> list[dict]:
    async def one(city: City) -> dict | None:
        try:
            return await fetch_city_weather(
                client, city, base_url=base_url, user_agent=user_agent
            )
        except SourceError as e:
            logger.warning("weather for %s failed: %s", city.name, e)
            return None

    results = await asyncio.gather(*(one(city) for city in cities))
    weather = [r for r in results if r is not None]
    if cities and not weather:
        raise DirectFetchError(base_url, "weather unavailable for every city")
    return weather
