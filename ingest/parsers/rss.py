from __future__ import annotations

import logging

import feedparser

from ingest.models import FeedItem
from normalize.normalize import normalize_text


logger = logging.getLogger(__name__)


def _first_text(*values: object) -> str:
    for value in values:
        if value and str(value).strip():
            return str(value)
    return ""


def parse_feed_items(raw: str) -> list[FeedItem]:
    parsed = feedparser.parse(raw.encode("utf-8"))
    if parsed.get("bozo") and not parsed.entries:
        logger.warning("unparseable feed: %s", parsed.get("bozo_exception"))
        return []

    items: list[FeedItem] = []
    for entry in parsed.entries:
        content = None
        if "content" in entry and entry["content"]:
            content = entry["content"][0].get("value")

        category = ""
        tags = entry.get("tags") or []
        if tags:
            category = str(tags[0].get("term") or "")

        items.append(
            FeedItem(
                title=normalize_text(entry.get("title")) or "No title",
                link=str(entry.get("link") or "#"),
                description=normalize_text(
                    _first_text(entry.get("description"), entry.get("summary"), content)
                ),
                pub_date=_first_text(
                    entry.get("published"), entry.get("updated")
                ).strip(),
                category=category,
            )
        )
    return items
