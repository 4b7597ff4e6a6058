from __future__ import annotations

from dataclasses import dataclass

from ingest.models import ClassifiedItem, FeedItem


NZ_KEYWORDS: tuple[str, ...] = (
    "new zealand", "nz", "aotearoa",
    "auckland", "wellington", "christchurch", "hamilton", "tauranga",
    "dunedin", "palmerston north", "napier", "nelson", "rotorua",
    "new plymouth", "whangarei", "invercargill", "whanganui", "gisborne",
    "hastings", "timaru", "blenheim", "greymouth", "queenstown",
    "northland", "waikato", "bay of plenty", "hawkes bay", "hawke's bay",
    "taranaki", "manawatu", "wairarapa", "marlborough", "canterbury",
    "otago", "southland", "west coast", "fiordland", "coromandel",
    "mount maunganui", "papamoa", "tairua", "thames", "whitianga",
    "hauraki gulf", "hauraki", "waiheke", "great barrier", "rangitoto",
    "taupo", "masterton", "lower hutt", "upper hutt", "porirua",
    "kapiti", "levin", "feilding", "whakatane", "opotiki", "kawerau",
    "te puke", "katikati", "oamaru", "ashburton", "rangiora", "kaikoura",
    "picton", "motueka", "richmond", "westport", "hokitika", "reefton",
    "waimate", "gore", "balclutha", "alexandra", "cromwell", "wanaka",
    "te anau", "kaikohe", "kerikeri", "paihia", "dargaville", "kaitaia",
    "state highway", "sh1", "sh2", "sh3", "sh4", "sh5", "sh6",
    "north island", "south island", "stewart island",
    "kiwi", "maori", "māori", "iwi", "te reo", "waiheke",
)

EXCLUSION_KEYWORDS: tuple[str, ...] = (
    # sports
    "rugby", "cricket", "netball", "basketball", "football", "soccer",
    "all blacks", "black caps", "silver ferns", "breakers", "warriors",
    "nbl", "super rugby", "anb", "phoenix", "chiefs", "blues", "hurricanes",
    "crusaders", "highlanders", "sport", "match", "game", "tournament",
    "championship", "league", "cup final", "semifinal", "quarter-final",
    "played", "scored", "goal", "try", "wicket", "batting", "bowling",
    "coach", "player", "team", "fixture", "season", "halftime", "overtime",
    "36ers", "nba", "afl", "nrl", "a-league",
    # entertainment
    "movie", "film", "album", "concert", "tour", "festival", "music",
    "celebrity", "actor", "actress", "singer", "band", "award",
    "grammy", "oscar", "emmy", "tv show", "reality tv", "streaming",
    # lifestyle and business
    "recipe", "restaurant", "review", "travel", "holiday", "vacation",
    "stock market", "shares", "investment", "property market", "real estate",
    "fashion", "beauty", "wellness", "fitness", "diet",
    # routine politics
    "election", "poll", "campaign", "candidate", "parliament", "mp ",
    "minister", "coalition", "opposition", "policy", "bill passed",
)

INCIDENT_KEYWORDS: tuple[str, ...] = (
    "incident", "emergency", "crash", "accident",
    "police", "rescue", "storm", "flood", "warning",
    "alert", "earthquake", "tsunami", "weather", "road closure",
    "missing", "serious", "death", "fatality", "injury",
    "landslide", "slip", "landslip", "evacuate", "evacuation",
    "cyclone", "tornado", "severe", "damage", "power outage",
    "road closed", "highway closed", "state highway", "trapped",
    "civil defence", "search and rescue", "metservice",
    "outbreak", "disease", "pandemic", "epidemic", "virus", "covid", "measles",
    "flooding", "heavy rain", "strong wind", "snowstorm", "blizzard",
    "hailstorm", "thunderstorm", "lightning strike", "wild weather",
    "fire", "blaze", "wildfire", "bushfire", "scrub fire", "house fire",
    "structure fire", "vegetation fire", "forest fire", "firefighters",
    "fenz", "fire and emergency", "arson", "flames", "burning",
    "fire crews", "fire brigade", "inferno",
)

CRIME_KEYWORDS: tuple[str, ...] = (
    "crime", "criminal", "arrest", "arrested", "charged", "court",
    "police", "robbery", "burglary", "theft", "stolen", "steal",
    "assault", "attack", "violent", "violence", "stabbing", "stabbed",
    "shooting", "shot", "gunshot", "firearm", "weapon",
    "homicide", "murder", "manslaughter", "death", "killed", "killing",
    "drugs", "meth", "methamphetamine", "cannabis", "cocaine", "drug bust",
    "fraud", "scam", "scammer", "swindle", "money laundering",
    "gang", "gangs", "organised crime", "syndicate",
    "protest", "protests", "protester", "protesters", "demonstration",
    "riot", "rioting", "unrest", "civil unrest",
    "occupation", "blockade", "disruption",
    "threatening", "threat", "intimidation", "harassment",
    "kidnapping", "abduction", "hostage",
    "arson", "vandalism", "graffiti", "property damage",
    "domestic violence", "family harm", "restraining order",
    "sexual assault", "indecent", "offending",
    "wanted", "fugitive", "manhunt", "on the run",
)

FIRE_KEYWORDS: tuple[str, ...] = (
    "fire", "fires", "blaze", "blazing", "burning", "burnt", "burned",
    "wildfire", "wildfires", "bushfire", "bush fire", "scrub fire",
    "house fire", "building fire", "structure fire", "factory fire",
    "car fire", "vehicle fire", "truck fire",
    "forest fire", "grass fire", "vegetation fire",
    "flames", "inferno", "engulfed", "gutted",
    "fire crews", "firefighters", "fire brigade", "fire service",
    "fire emergency", "fenz", "fire and emergency",
    "smoke", "evacuation", "evacuated",
    "arson", "deliberately lit", "suspicious fire",
)


def item_text(item: FeedItem | ClassifiedItem) -> str:
    return f"{item.title or ''} {item.description or ''}".lower()


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def is_nz_related(item: FeedItem | ClassifiedItem) -> bool:
    return _contains_any(item_text(item), NZ_KEYWORDS)


def should_exclude(text: str) -> bool:
    return _contains_any(text.lower(), EXCLUSION_KEYWORDS)


@dataclass(frozen=True)
class TopicClassifier:
    name: str
    keywords: tuple[str, ...]

    def has_topic_keyword(self, item: FeedItem | ClassifiedItem) -> bool:
        return _contains_any(item_text(item), self.keywords)

    def matches(self, item: FeedItem | ClassifiedItem) -> bool:
        return (
            self.has_topic_keyword(item)
            and is_nz_related(item)
            and not should_exclude(item_text(item))
        )

    def filter(self, items: list[FeedItem]) -> list[FeedItem]:
        return [item for item in items if self.matches(item)]


INCIDENT = TopicClassifier(name="incident", keywords=INCIDENT_KEYWORDS)
CRIME = TopicClassifier(name="crime", keywords=CRIME_KEYWORDS)
FIRE = TopicClassifier(name="fire", keywords=FIRE_KEYWORDS)

CLASSIFIERS: dict[str, TopicClassifier] = {
    c.name: c for c in (INCIDENT, CRIME, FIRE)
}


def classify(item: FeedItem | ClassifiedItem) -> list[str]:
    return [name for name, c in CLASSIFIERS.items() if c.matches(item)]
