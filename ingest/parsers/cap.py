from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

from ingest.models import WARNINGS_PAGE_URL, WarningAlert
from normalize.normalize import normalize_text, utc_now_iso


logger = logging.getLogger(__name__)

METSERVICE_SOURCE = "MetService"

_EVENT_TYPES: list[tuple[str, str]] = [
    ("rain", "Heavy Rain"),
    ("wind", "Strong Wind"),
    ("snow", "Snow"),
    ("thunder", "Thunderstorm"),
    ("flood", "Flood"),
    ("fire", "Fire Weather"),
    ("cyclone", "Cyclone"),
]


def warnings_fallback() -> list[WarningAlert]:
    return [
        WarningAlert(
            title="View Current Weather Warnings",
            description=(
                "Click to see all active MetService warnings, watches and "
                "advisories for New Zealand"
            ),
            link=WARNINGS_PAGE_URL,
            pub_date=utc_now_iso(),
            source=METSERVICE_SOURCE,
            topic="warning",
            severity="medium",
            event_type="Weather Warnings",
            is_fallback=True,
        )
    ]


def _text(el: ET.Element | None, tag: str) -> str:
    if el is None:
        return ""
    return (el.findtext(f"{{*}}{tag}") or "").strip()


def cap_severity(raw: str) -> str:
    severity = raw.lower()
    # CAP's own scale is Extreme/Severe/Moderate/Minor/Unknown.
    if "high" in severity or "severe" in severity or "extreme" in severity:
        return "high"
    if "moderate" in severity:
        return "medium"
    return "low"


def parse_cap_alert(raw: str) -> list[WarningAlert]:
    try:
        root = ET.fromstring(raw.strip().encode("utf-8"))
    except ET.ParseError as e:
        logger.warning("malformed CAP alert: %s", e)
        return warnings_fallback()

    if root.tag.endswith("alert"):
        alert = root
    else:
        alert = root.find(".//{*}alert")
    if alert is None:
        return warnings_fallback()

    info = alert.find("{*}info")
    event = _text(info, "event") or "Weather Alert"
    severity = (_text(info, "severity") or "Unknown").lower()
    urgency = _text(info, "urgency")
    certainty = _text(info, "certainty")
    onset = _text(info, "onset")
    expires = _text(info, "expires")
    headline = _text(info, "headline")
    description = normalize_text(_text(info, "description"))
    sender = _text(info, "senderName") or _text(alert, "sender")
    sent = _text(alert, "sent")
    identifier = _text(alert, "identifier")

    parts = [
        description,
        f"Urgency: {urgency}" if urgency else "",
        f"Certainty: {certainty}" if certainty else "",
        f"Onset: {onset}" if onset else "",
        f"Expires: {expires}" if expires else "",
        f"Issued by: {sender}" if sender else "",
        f"ID: {identifier}" if identifier else "",
    ]

    title = normalize_text(headline or event)
    return [
        WarningAlert(
            title=f"{title} ({severity[:1].upper()}{severity[1:]})",
            link=WARNINGS_PAGE_URL,
            description=" | ".join(p for p in parts if p),
            pub_date=sent,
            source=METSERVICE_SOURCE,
            topic="warning",
            severity=cap_severity(severity),
            event_type=event,
        )
    ]


def infer_severity(text: str) -> str:
    lowered = text.lower()
    if "red" in lowered or "warning" in lowered or "severe" in lowered:
        return "high"
    if "orange" in lowered or "watch" in lowered:
        return "medium"
    return "low"


def infer_event_type(text: str) -> str:
    lowered = text.lower()
    for keyword, event_type in _EVENT_TYPES:
        if keyword in lowered:
            return event_type
    return "Weather Alert"


def parse_cap_feed(raw: str) -> list[WarningAlert]:
    try:
        root = ET.fromstring(raw.strip().encode("utf-8"))
    except ET.ParseError as e:
        logger.warning("malformed CAP feed: %s", e)
        return []

    alerts: list[WarningAlert] = []
    for entry in root.iter():
        if entry.tag.rsplit("}", 1)[-1] not in ("entry", "item"):
            continue
        title = normalize_text(_text(entry, "title"))
        if not title:
            continue
        summary = _text(entry, "summary") or _text(entry, "description")
        updated = _text(entry, "updated") or _text(entry, "pubDate")

        text = title + summary
        alerts.append(
            WarningAlert(
                title=title,
                link=WARNINGS_PAGE_URL,
                description=normalize_text(summary),
                pub_date=updated,
                source=METSERVICE_SOURCE,
                topic="warning",
                severity=infer_severity(text),
                event_type=infer_event_type(text),
            )
        )
    return alerts
