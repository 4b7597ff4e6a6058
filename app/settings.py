from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PROXY_ALLOWLIST = ",".join(
    [
        "api.open-meteo.com",
        "api.geonet.org.nz",
        "alerts.metservice.com",
        "api.metservice.com",
        "www.rnz.co.nz",
        "www.scoop.co.nz",
        "www.stuff.co.nz",
    ]
)


def split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    user_agent: str = Field(
        default="nz-hazard-monitor/0.1", validation_alias="USER_AGENT"
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    proxy_timeout_seconds: float = Field(
        default=8.0, validation_alias="PROXY_TIMEOUT_SECONDS"
    )
    self_proxy_url: str | None = Field(default=None, validation_alias="SELF_PROXY_URL")
    proxy_allowlist: str = Field(
        default=DEFAULT_PROXY_ALLOWLIST, validation_alias="PROXY_ALLOWLIST"
    )

    geonet_base_url: str = Field(
        default="https://api.geonet.org.nz", validation_alias="GEONET_BASE_URL"
    )
    open_meteo_base_url: str = Field(
        default="https://api.open-meteo.com/v1", validation_alias="OPEN_METEO_BASE_URL"
    )
    metservice_cap_url: str = Field(
        default="https://alerts.metservice.com/cap/rss",
        validation_alias="METSERVICE_CAP_URL",
    )
    quake_mmi: int = Field(default=2, validation_alias="QUAKE_MMI")
    time_window_hours: int = Field(default=24, validation_alias="TIME_WINDOW_HOURS")

    refresh_warnings_seconds: int = Field(
        default=300, validation_alias="REFRESH_WARNINGS_SECONDS"
    )
    refresh_earthquakes_seconds: int = Field(
        default=300, validation_alias="REFRESH_EARTHQUAKES_SECONDS"
    )
    refresh_volcanoes_seconds: int = Field(
        default=300, validation_alias="REFRESH_VOLCANOES_SECONDS"
    )
    refresh_weather_seconds: int = Field(
        default=300, validation_alias="REFRESH_WEATHER_SECONDS"
    )
    refresh_incidents_seconds: int = Field(
        default=300, validation_alias="REFRESH_INCIDENTS_SECONDS"
    )
    refresh_crime_seconds: int = Field(
        default=300, validation_alias="REFRESH_CRIME_SECONDS"
    )
    refresh_fire_seconds: int = Field(default=300, validation_alias="REFRESH_FIRE_SECONDS")

    feeds_dir: Path = Field(
        default=Path(__file__).resolve().parents[1] / "feeds",
        validation_alias="FEEDS_DIR",
    )

    def refresh_intervals(self) -> dict[str, int]:
        return {
            "warnings": self.refresh_warnings_seconds,
            "earthquakes": self.refresh_earthquakes_seconds,
            "volcanoes": self.refresh_volcanoes_seconds,
            "weather": self.refresh_weather_seconds,
            "incidents": self.refresh_incidents_seconds,
            "crime": self.refresh_crime_seconds,
            "fire": self.refresh_fire_seconds,
        }

    def allowed_proxy_hosts(self) -> list[str]:
        return [host.lower() for host in split_csv(self.proxy_allowlist)]
