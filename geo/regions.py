from __future__ import annotations

from classify.classifiers import item_text
from ingest.models import ClassifiedItem


NZ_CENTRE: tuple[float, float] = (-40.9, 174.9)

REGION_COORDS: dict[str, tuple[float, float]] = {
    "northland": (-35.5, 173.8),
    "auckland": (-36.85, 174.76),
    "waikato": (-37.8, 175.3),
    "bay of plenty": (-37.8, 176.5),
    "tauranga": (-37.69, 176.17),
    "mount maunganui": (-37.64, 176.18),
    "papamoa": (-37.72, 176.28),
    "pāpāmoa": (-37.72, 176.28),
    "welcome bay": (-37.73, 176.12),
    "tairua": (-36.99, 175.85),
    "rotorua": (-38.14, 176.25),
    "gisborne": (-38.66, 178.02),
    "east coast": (-38.5, 177.8),
    "hawkes bay": (-39.5, 176.9),
    "hawke's bay": (-39.5, 176.9),
    "napier": (-39.49, 176.92),
    "hastings": (-39.64, 176.85),
    "taranaki": (-39.3, 174.0),
    "new plymouth": (-39.06, 174.08),
    "manawatu": (-40.3, 175.6),
    "palmerston north": (-40.35, 175.61),
    "whanganui": (-39.9, 175.0),
    "wellington": (-41.29, 174.78),
    "lower hutt": (-41.21, 174.91),
    "upper hutt": (-41.12, 175.07),
    "wairarapa": (-41.2, 175.5),
    "masterton": (-40.96, 175.66),
    "nelson": (-41.27, 173.28),
    "marlborough": (-41.5, 173.9),
    "blenheim": (-41.51, 173.95),
    "west coast": (-42.5, 171.2),
    "greymouth": (-42.45, 171.21),
    "canterbury": (-43.53, 172.64),
    "christchurch": (-43.53, 172.64),
    "timaru": (-44.40, 171.25),
    "otago": (-45.0, 169.5),
    "dunedin": (-45.87, 170.50),
    "queenstown": (-45.03, 168.66),
    "southland": (-46.1, 168.3),
    "invercargill": (-46.41, 168.35),
    "fiordland": (-45.4, 167.7),
    "central plateau": (-39.2, 175.5),
    "coromandel": (-36.8, 175.5),
    "taupo": (-38.7, 176.1),
    "hamilton": (-37.79, 175.28),
    "whangarei": (-35.73, 174.32),
}


def match_regions(text: str) -> list[tuple[str, float, float]]:
    lowered = text.casefold()
    return [
        (name, lat, lon)
        for name, (lat, lon) in REGION_COORDS.items()
        if name in lowered
    ]


def locate_item(
    item: ClassifiedItem, *, default_to_centre: bool = False
) -> list[dict]:
    matches = match_regions(item_text(item))
    if not matches and default_to_centre:
        matches = [("New Zealand", NZ_CENTRE[0], NZ_CENTRE[1])]
    return [{"region": name, "lat": lat, "lon": lon} for name, lat, lon in matches]
