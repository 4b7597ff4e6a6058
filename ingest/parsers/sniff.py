from __future__ import annotations

import re
from enum import Enum


class FeedFormat(Enum):
    CAP_ALERT = "cap_alert"
    RSS = "rss"
    ATOM = "atom"
    UNKNOWN = "unknown"


_PROLOG_RE = re.compile(r"^\ufeff?\s*(?:<\?xml[^>]*\?>\s*)?(?:<!--.*?-->\s*)*", re.DOTALL)
_CAP_ROOT_RE = re.compile(r"<(?:[\w.-]+:)?alert[\s>]")
_ITEM_RE = re.compile(r"<(?:[\w.-]+:)?item[\s>]")
_ENTRY_RE = re.compile(r"<(?:[\w.-]+:)?entry[\s>]")


def sniff_format(raw: str) -> FeedFormat:
    body = _PROLOG_RE.sub("", raw, count=1)
    if _CAP_ROOT_RE.match(body):
        return FeedFormat.CAP_ALERT
    if _ITEM_RE.search(body):
        return FeedFormat.RSS
    if _ENTRY_RE.search(body):
        return FeedFormat.ATOM
    return FeedFormat.UNKNOWN
