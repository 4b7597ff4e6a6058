from __future__ import annotations

from dataclasses import asdict, dataclass

from normalize.normalize import utc_now_iso


@dataclass
class SourceHealth:
    source_id: str
    name: str
    topic: str
    last_fetch_at: str | None = None
    last_success_at: str | None = None
    last_error_at: str | None = None
    last_error: str | None = None
    last_item_count: int = 0
    via: str | None = None
    consecutive_failures: int = 0
    success_count: int = 0
    error_count: int = 0


class HealthRegistry:
    def __init__(self) -> None:
        self._sources: dict[tuple[str, str], SourceHealth] = {}

    def _get(self, source_id: str, name: str, topic: str) -> SourceHealth:
        key = (topic, source_id)
        health = self._sources.get(key)
        if health is None:
            health = SourceHealth(source_id=source_id, name=name, topic=topic)
            self._sources[key] = health
        return health

    def record_fetch_success(
        self,
        *,
        source_id: str,
        name: str,
        topic: str,
        item_count: int,
        via: str | None = None,
    ) -> None:
        now_iso = utc_now_iso()
        health = self._get(source_id, name, topic)
        health.last_fetch_at = now_iso
        health.last_success_at = now_iso
        health.last_item_count = item_count
        health.via = via
        health.consecutive_failures = 0
        health.last_error = None
        health.last_error_at = None
        health.success_count += 1

    def record_fetch_error(
        self, *, source_id: str, name: str, topic: str, error: str
    ) -> int:
        now_iso = utc_now_iso()
        health = self._get(source_id, name, topic)
        health.last_fetch_at = now_iso
        health.last_error_at = now_iso
        health.last_error = error
        health.consecutive_failures += 1
        health.error_count += 1
        return health.consecutive_failures

    def snapshot(self) -> list[dict]:
        return [
            asdict(h)
            for h in sorted(self._sources.values(), key=lambda h: (h.topic, h.name))
        ]
