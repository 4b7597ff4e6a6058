from __future__ import annotations

import html
import re
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime


_HTML_TAG_RE = re.compile(r"</?[A-Za-z!?][^>]*>", flags=re.UNICODE)
_WS_RE = re.compile(r"\s+", flags=re.UNICODE)
_MAX_UNESCAPE_PASSES = 4


def normalize_text(raw: str | None) -> str:
    if not raw:
        return ""

    text = str(raw)
    # Feeds often double-escape markup, so strip and decode until nothing changes.
    for _ in range(_MAX_UNESCAPE_PASSES):
        stripped = _HTML_TAG_RE.sub(" ", text)
        decoded = html.unescape(stripped)
        if decoded == text:
            break
        text = decoded
    text = _HTML_TAG_RE.sub(" ", text)
    text = text.replace("<", " ").replace(">", " ")
    return _WS_RE.sub(" ", text).strip()


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    ts = value.strip()
    if not ts:
        return None

    dt: datetime | None = None
    try:
        dt = datetime.fromisoformat(
            ts.removesuffix("Z") + "+00:00" if ts.endswith("Z") else ts
        )
    except ValueError:
        try:
            dt = parsedate_to_datetime(ts)
        except (TypeError, ValueError, IndexError):
            return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(tz=UTC)


def to_iso(dt: datetime) -> str:
    return dt.astimezone(tz=UTC).isoformat().replace("+00:00", "Z")


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def utc_now_iso() -> str:
    return to_iso(utc_now())
