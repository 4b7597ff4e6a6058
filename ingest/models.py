from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal

from normalize.normalize import to_iso


Severity = Literal["low", "medium", "high"]
EventType = Literal["warning", "earthquake", "incident", "crime"]

WARNINGS_PAGE_URL = "https://www.metservice.com/warnings/home"


@dataclass(frozen=True)
class FeedItem:
    title: str
    link: str
    description: str
    pub_date: str = ""
    category: str = ""


@dataclass(frozen=True)
class ClassifiedItem:
    title: str
    link: str
    description: str
    pub_date: str = ""
    category: str = ""
    source: str = ""
    source_icon: str = ""
    topic: str = ""
    severity: Severity | None = None
    event_type: str | None = None
    is_fallback: bool = False

    @classmethod
    def from_feed_item(
        cls, item: FeedItem, *, source: str, source_icon: str = "", topic: str = ""
    ) -> ClassifiedItem:
        return cls(
            title=item.title,
            link=item.link,
            description=item.description,
            pub_date=item.pub_date,
            category=item.category,
            source=source,
            source_icon=source_icon,
            topic=topic,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# CAP-derived items carry severity and event_type; the placeholder sets is_fallback.
WarningAlert = ClassifiedItem


@dataclass(frozen=True)
class MostRecentEvent:
    type: EventType
    data: ClassifiedItem | dict
    time: datetime

    def to_dict(self) -> dict[str, Any]:
        data = self.data.to_dict() if isinstance(self.data, ClassifiedItem) else self.data
        return {
            "type": self.type,
            "data": data,
            "time": to_iso(self.time),
        }


@dataclass
class TopicResult:
    topic: str
    status: Literal["ok", "fallback", "empty", "error", "pending"] = "pending"
    items: list[Any] = field(default_factory=list)
    error: str | None = None
    link: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
