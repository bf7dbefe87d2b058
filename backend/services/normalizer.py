"""
Normalizer: maps heterogeneous raw records onto the canonical Place.

Pure functions of their input plus `NormalizerOptions`; no I/O. Each raw
record kind (generic scrape, takeout feature, provider details) has its own
mapping function.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from domain.models import (
    Category,
    ExternalLink,
    GalleryImage,
    GeoPoint,
    Location,
    OpeningHours,
    OpeningPeriod,
    Place,
    PlaceDetails,
    RawOpeningHours,
    RawRecord,
    ScrapedData,
    ScrapedRecord,
    TakeoutFeature,
)
from services.text import slugify

logger = logging.getLogger(__name__)

PROVIDER_SOURCE = "google-places-api"
GOOGLE_MAPS_LINK_NAME = "Google Maps"

# Source vocabulary token -> canonical category.
CATEGORY_MAPPING: Dict[str, Category] = {
    # Beer
    "brewery": Category("brewery", "Brewery"),
    "beer_garden": Category("beer-garden", "Beer garden"),
    "pub": Category("pub", "Pub"),
    "bar": Category("pub", "Pub"),
    "sports_bar": Category("pub", "Pub"),
    # Coffee
    "cafe": Category("cafe", "Cafe"),
    "coffee_shop": Category("cafe", "Cafe"),
    "coffee": Category("cafe", "Cafe"),
    "roaster": Category("roaster", "Roaster"),
    # Food
    "bakery": Category("bakery", "Bakery"),
    "restaurant": Category("restaurant", "Restaurant"),
    "bistro": Category("bistro", "Bistro"),
    "meal_takeaway": Category("bistro", "Bistro"),
}

# Provider "types" vocabulary -> canonical category.
PROVIDER_TYPE_MAPPING: Dict[str, Category] = {
    "bar": Category("pub", "Pub"),
    "night_club": Category("pub", "Pub"),
    "brewery": Category("brewery", "Brewery"),
    "cafe": Category("cafe", "Cafe"),
    "coffee_shop": Category("cafe", "Cafe"),
    "bakery": Category("bakery", "Bakery"),
    "restaurant": Category("restaurant", "Restaurant"),
    "meal_takeaway": Category("bistro", "Bistro"),
    "food": Category("restaurant", "Restaurant"),
}

PRICE_LEVELS: Dict[int, str] = {
    0: "low",
    1: "low",
    2: "average",
    3: "high",
    4: "very-high",
}

PRICE_SYMBOLS: Dict[str, str] = {
    "$": "low",
    "$$": "average",
    "$$$": "high",
    "$$$$": "very-high",
}

DAY_NORMALIZATION: Dict[str, str] = {
    "mon": "monday",
    "monday": "monday",
    "tue": "tuesday",
    "tues": "tuesday",
    "tuesday": "tuesday",
    "wed": "wednesday",
    "wednesday": "wednesday",
    "thu": "thursday",
    "thur": "thursday",
    "thurs": "thursday",
    "thursday": "thursday",
    "fri": "friday",
    "friday": "friday",
    "sat": "saturday",
    "saturday": "saturday",
    "sun": "sunday",
    "sunday": "sunday",
}

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
# Provider weekday index (0 = Sunday) -> day name.
PROVIDER_DAYS = {0: "sunday", 1: "monday", 2: "tuesday", 3: "wednesday", 4: "thursday", 5: "friday", 6: "saturday"}

SOURCE_DISPLAY_NAMES = {
    "google-maps": "Google Maps",
    "tripadvisor": "TripAdvisor",
    PROVIDER_SOURCE: "Google Maps",
}

DOMAIN_KEYWORDS = (
    ("beer", re.compile(r"brew|beer|pub|bar|tap|ale|lager|craft|hops", re.IGNORECASE)),
    ("coffee", re.compile(r"coffee|café|cafe|espresso|roast|latte|cappuccino|barista", re.IGNORECASE)),
    ("vino", re.compile(r"wine|vino|vineyard|winery|sommelier", re.IGNORECASE)),
)

_PHONE_DISALLOWED = re.compile(r"[^\d\s\-()+]")


def map_price(level: Union[int, str, None]) -> Optional[str]:
    """Map a numeric level (0-4) or a symbolic tier ("$".."$$$$") to a price tier."""
    if level is None or isinstance(level, bool):
        return None
    if isinstance(level, int):
        return PRICE_LEVELS.get(level)
    if isinstance(level, float) and level.is_integer():
        return PRICE_LEVELS.get(int(level))
    if isinstance(level, str):
        token = level.strip()
        if token in PRICE_SYMBOLS:
            return PRICE_SYMBOLS[token]
        if token.isdigit():
            return PRICE_LEVELS.get(int(token))
    return None


def normalize_day(day: str) -> str:
    """Expand weekday abbreviations; unknown names come back lowercased."""
    lowered = (day or "").strip().lower()
    return DAY_NORMALIZATION.get(lowered, lowered)


def map_categories(tokens: Optional[Iterable[str]], table: Dict[str, Category] = CATEGORY_MAPPING) -> List[Category]:
    """Translate source tokens into canonical categories, deduplicated by value."""
    if not tokens:
        return []
    result: List[Category] = []
    seen: set[str] = set()
    for token in tokens:
        if not isinstance(token, str):
            continue
        key = re.sub(r"\s+", "_", token.strip().lower())
        mapped = table.get(key)
        if mapped and mapped.value not in seen:
            result.append(Category(mapped.value, mapped.label))
            seen.add(mapped.value)
    return result


def merge_categories(existing: Sequence[Category], extra: Sequence[Category]) -> List[Category]:
    merged = list(existing)
    seen = {c.value for c in merged}
    for cat in extra:
        if cat.value not in seen:
            merged.append(cat)
            seen.add(cat.value)
    return merged


def detect_domains(name: str, categories: Optional[Iterable[str]] = None) -> List[str]:
    """Guess the site verticals from keywords; never returns an empty list."""
    text = " ".join([name or "", *(c for c in (categories or []) if isinstance(c, str))])
    domains = [domain for domain, pattern in DOMAIN_KEYWORDS if pattern.search(text)]
    return domains or ["guide"]


def normalize_phone(phone: str) -> str:
    return _PHONE_DISALLOWED.sub("", phone).strip()


def format_source_name(source: str) -> str:
    return SOURCE_DISPLAY_NAMES.get(source, source)


def _format_hhmm(value: Optional[str]) -> Optional[str]:
    if not value or len(value) != 4 or not value.isdigit():
        return None
    return f"{value[:2]}:{value[2:]}"


def opening_hours_from_periods(periods: Sequence[OpeningPeriod]) -> List[OpeningHours]:
    """
    Convert provider periods into one entry per weekday (Monday first).

    Multiple periods on the same day collapse into the first opening and the
    last closing time. A lone "0000" opening without a close means open 24h.
    Weekdays missing from a non-empty period list are closed.
    """
    if not periods:
        return []

    if len(periods) == 1 and periods[0].open_time == "0000" and not periods[0].close_time:
        return [OpeningHours(day=day, open_time="00:00", close_time="23:59") for day in WEEKDAYS]

    by_day: Dict[str, OpeningHours] = {}
    for period in periods:
        day = PROVIDER_DAYS.get(period.open_day)
        if day is None:
            continue
        open_time = _format_hhmm(period.open_time)
        close_time = _format_hhmm(period.close_time) if period.close_time else "23:59"
        entry = by_day.get(day)
        if entry is None:
            by_day[day] = OpeningHours(day=day, open_time=open_time, close_time=close_time)
        else:
            entry.close_time = close_time

    return [by_day.get(day) or OpeningHours(day=day, closed=True) for day in WEEKDAYS]


@dataclass
class NormalizerOptions:
    """Options for normalizing raw records."""
    domain: Optional[str] = None
    default_category: Optional[str] = None
    include_raw_data: bool = False
    slug_generator: Optional[Callable[[str], str]] = None


class DataNormalizer:
    """Converts raw records of any known kind into canonical Places."""

    def __init__(self, options: Optional[NormalizerOptions] = None):
        self.options = options or NormalizerOptions()

    def normalize(self, raw: RawRecord) -> Place:
        if isinstance(raw, ScrapedRecord):
            return self._from_scrape(raw)
        if isinstance(raw, TakeoutFeature):
            return self._from_takeout(raw)
        if isinstance(raw, PlaceDetails):
            return self._from_provider(raw)
        raise TypeError(f"Unsupported raw record type: {type(raw).__name__}")

    def normalize_all(self, raws: Iterable[RawRecord]) -> List[Place]:
        return [self.normalize(raw) for raw in raws]

    def to_ndjson(self, raws: Iterable[RawRecord]) -> str:
        return "\n".join(
            json.dumps(place.to_document(), ensure_ascii=False) for place in self.normalize_all(raws)
        )

    # -- helpers ---------------------------------------------------------

    def slug_for(self, name: str) -> str:
        if self.options.slug_generator:
            return self.options.slug_generator(name)
        return slugify(name)

    def _domains_for(self, name: str, tokens: Optional[Iterable[str]] = None) -> List[str]:
        if self.options.domain:
            return [self.options.domain]
        return detect_domains(name, tokens)

    def _categories_for(self, tokens: Optional[Iterable[str]], table: Dict[str, Category]) -> List[Category]:
        categories = map_categories(tokens, table)
        if not categories and self.options.default_category:
            categories = map_categories([self.options.default_category])
        return categories

    def _opening_hours(self, hours: Sequence[RawOpeningHours]) -> List[OpeningHours]:
        result: List[OpeningHours] = []
        seen_days: set[str] = set()
        for h in hours:
            day = normalize_day(h.day)
            if day in seen_days:
                logger.debug("Dropping repeated opening hours entry for %s", day)
                continue
            seen_days.add(day)
            result.append(OpeningHours(day=day, open_time=h.open, close_time=h.close, closed=h.closed))
        return result

    # -- per-kind mapping --------------------------------------------------

    def _from_scrape(self, raw: ScrapedRecord) -> Place:
        place = Place(
            name=raw.name,
            slug=self.slug_for(raw.name),
            domains=self._domains_for(raw.name, raw.categories),
            categories=self._categories_for(raw.categories, CATEGORY_MAPPING),
        )

        # Zero is treated as "absent" for either axis.
        if raw.latitude and raw.longitude:
            place.location = Location(
                geopoint=GeoPoint(lat=float(raw.latitude), lng=float(raw.longitude)),
                address=raw.address,
            )
        elif raw.address:
            place.location = Location(address=raw.address)

        place.price = map_price(raw.price_level)
        if raw.phone:
            place.phone = normalize_phone(raw.phone)
        if raw.website:
            place.website = raw.website
        if raw.opening_hours:
            place.opening_hours = self._opening_hours(raw.opening_hours)
        if raw.photos:
            place.gallery = [GalleryImage(url=url) for url in raw.photos]
        if raw.source_url:
            place.external_links = [ExternalLink(name=format_source_name(raw.source), url=raw.source_url)]
        if self.options.include_raw_data:
            place.scraped_data = ScrapedData(
                source=raw.source,
                source_id=raw.source_id,
                source_url=raw.source_url,
                rating=raw.rating,
                review_count=raw.review_count,
                scraped_at=raw.scraped_at,
            )
        return place

    def _from_takeout(self, raw: TakeoutFeature) -> Place:
        name = raw.title or ""
        place = Place(
            name=name,
            slug=self.slug_for(name),
            domains=self._domains_for(name),
            categories=self._categories_for(None, CATEGORY_MAPPING),
        )
        if raw.has_coordinates:
            place.location = Location(
                geopoint=GeoPoint(lat=raw.latitude, lng=raw.longitude),
                address=raw.address,
            )
        elif raw.address:
            place.location = Location(address=raw.address)
        if raw.google_maps_url:
            place.external_links = [ExternalLink(name=GOOGLE_MAPS_LINK_NAME, url=raw.google_maps_url)]
        if self.options.include_raw_data:
            place.scraped_data = ScrapedData(
                source="google-takeout",
                source_url=raw.google_maps_url,
                scraped_at=datetime.now(timezone.utc),
            )
        return place

    def _from_provider(self, raw: PlaceDetails) -> Place:
        place = Place(
            name=raw.name,
            slug=self.slug_for(raw.name),
            domains=self._domains_for(raw.name, raw.types),
            categories=self._categories_for(raw.types, PROVIDER_TYPE_MAPPING),
        )
        if raw.lat is not None and raw.lng is not None:
            place.location = Location(geopoint=GeoPoint(lat=raw.lat, lng=raw.lng), address=raw.formatted_address)
        elif raw.formatted_address:
            place.location = Location(address=raw.formatted_address)
        place.price = map_price(raw.price_level)
        phone = raw.international_phone_number or raw.formatted_phone_number
        if phone:
            place.phone = phone
        if raw.website:
            place.website = raw.website
        place.opening_hours = opening_hours_from_periods(raw.opening_periods)
        if raw.url:
            place.external_links = [ExternalLink(name=GOOGLE_MAPS_LINK_NAME, url=raw.url)]
        place.scraped_data = ScrapedData(
            source=PROVIDER_SOURCE,
            source_id=raw.place_id,
            source_url=raw.url,
            rating=raw.rating,
            review_count=raw.user_ratings_total,
            scraped_at=datetime.now(timezone.utc),
        )
        return place


def normalize_places(raws: Iterable[RawRecord], options: Optional[NormalizerOptions] = None) -> List[Place]:
    """Convenience function to normalize raw records."""
    return DataNormalizer(options).normalize_all(raws)


def places_to_ndjson(raws: Iterable[RawRecord], options: Optional[NormalizerOptions] = None) -> str:
    """Convenience function to normalize raw records straight to NDJSON."""
    return DataNormalizer(options).to_ndjson(raws)
