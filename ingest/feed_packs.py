from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


SOURCE_TYPES = ("rss", "geonet_news")


@dataclass(frozen=True)
class FeedPackEntry:
    pack_id: str
    source_id: str
    name: str
    icon: str
    source_type: str
    url: str
    topics: tuple[str, ...]
    enabled: bool


def load_feed_pack_entries(feeds_dir: Path) -> dict[str, list[FeedPackEntry]]:
    packs: dict[str, list[FeedPackEntry]] = {}
    if not feeds_dir.exists():
        return packs

    for path in sorted(feeds_dir.glob("*.yaml")):
        pack_id = path.stem
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        if raw is None:
            packs[pack_id] = []
            continue
        if not isinstance(raw, list):
            raise ValueError(f"invalid feed pack: {path}")

        entries: list[FeedPackEntry] = []
        for entry in raw:
            if not isinstance(entry, dict):
                raise ValueError(f"invalid feed entry in: {path}")
            source_type = str(entry.get("type") or "rss")
            if source_type not in SOURCE_TYPES:
                raise ValueError(f"unknown source type {source_type!r} in: {path}")
            entries.append(
                FeedPackEntry(
                    pack_id=pack_id,
                    source_id=str(entry["id"]),
                    name=str(entry["name"]),
                    icon=str(entry.get("icon") or ""),
                    source_type=source_type,
                    url=str(entry["url"]),
                    topics=tuple(str(t) for t in (entry.get("topics") or [])),
                    enabled=bool(entry.get("enabled", True)),
                )
            )

        packs[pack_id] = entries

    return packs


def sources_for_topic(
    packs: dict[str, list[FeedPackEntry]], topic: str
) -> list[FeedPackEntry]:
    return [
        entry
        for pack_id in sorted(packs)
        for entry in packs[pack_id]
        if entry.enabled and topic in entry.topics
    ]
