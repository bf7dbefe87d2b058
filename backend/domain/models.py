"""
Core domain models for the venue reconciliation pipeline.
These are framework-agnostic and can be used across all services.

A `Place` is the canonical record every stage consumes and returns. It
converts to and from the store's document JSON (camelCase keys, `_type`
markers) via `to_document` / `from_document`.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Union


class Domain(str, Enum):
    """Site verticals a place can be displayed on."""
    BEER = "beer"
    COFFEE = "coffee"
    VINO = "vino"
    GUIDE = "guide"


class PriceTier(str, Enum):
    LOW = "low"
    AVERAGE = "average"
    HIGH = "high"
    VERY_HIGH = "very-high"


VALID_DOMAINS = [d.value for d in Domain]
VALID_PRICE_TIERS = [p.value for p in PriceTier]

PLACE_TYPE = "place"


@dataclass
class Category:
    value: str
    label: str

    def to_dict(self) -> Dict[str, str]:
        return {"value": self.value, "label": self.label}


@dataclass
class GeoPoint:
    lat: float
    lng: float

    @property
    def is_null_island(self) -> bool:
        return self.lat == 0 and self.lng == 0

    @property
    def in_range(self) -> bool:
        return -90 <= self.lat <= 90 and -180 <= self.lng <= 180


@dataclass
class Location:
    geopoint: Optional[GeoPoint] = None
    address: Optional[str] = None


@dataclass
class OpeningHours:
    """One weekday entry; `day` is a lowercase English weekday name."""
    day: str
    open_time: Optional[str] = None  # "HH:MM"
    close_time: Optional[str] = None
    closed: Optional[bool] = None


@dataclass
class GalleryImage:
    url: str


@dataclass
class ExternalLink:
    name: str
    url: str


@dataclass
class ScrapedData:
    """Provenance of the record; never required for validity."""
    source: str
    scraped_at: datetime
    source_id: Optional[str] = None
    source_url: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "source": self.source,
            "sourceId": self.source_id,
            "sourceUrl": self.source_url,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "scrapedAt": _iso(self.scraped_at),
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScrapedData":
        return cls(
            source=str(data.get("source") or ""),
            scraped_at=_parse_datetime(data.get("scrapedAt")),
            source_id=data.get("sourceId"),
            source_url=data.get("sourceUrl"),
            rating=data.get("rating"),
            review_count=data.get("reviewCount"),
        )


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now(timezone.utc)


def _require_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    return float(value)


def _require_list(doc: Mapping[str, Any], field_name: str) -> List[Any]:
    value = doc.get(field_name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be an array")
    return value


@dataclass
class Place:
    """
    Canonical venue record.

    Created by the normalizer, marked by the deduplicator (`duplicate_of`),
    filled in by the enricher, persisted by the uploader.
    """
    name: str
    slug: str
    domains: List[str] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    location: Optional[Location] = None
    price: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    opening_hours: List[OpeningHours] = field(default_factory=list)
    gallery: List[GalleryImage] = field(default_factory=list)
    external_links: List[ExternalLink] = field(default_factory=list)
    scraped_data: Optional[ScrapedData] = None
    doc_id: Optional[str] = None
    # In-memory only, never serialized.
    duplicate_of: Optional[str] = field(default=None, compare=False)

    @property
    def geopoint(self) -> Optional[GeoPoint]:
        return self.location.geopoint if self.location else None

    @property
    def has_usable_geopoint(self) -> bool:
        gp = self.geopoint
        return gp is not None and not gp.is_null_island and gp.in_range

    def to_document(self, document_id: Optional[str] = None) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"_type": PLACE_TYPE}
        doc_id = document_id or self.doc_id
        if doc_id:
            doc["_id"] = doc_id
        doc["name"] = self.name
        doc["slug"] = {"_type": "slug", "current": self.slug}
        if self.domains:
            doc["domains"] = list(self.domains)
        if self.categories:
            doc["categories"] = [c.to_dict() for c in self.categories]
        if self.location and (self.location.geopoint or self.location.address):
            loc: Dict[str, Any] = {"_type": "geolocation"}
            if self.location.geopoint:
                loc["geopoint"] = {
                    "_type": "geopoint",
                    "lat": self.location.geopoint.lat,
                    "lng": self.location.geopoint.lng,
                }
            if self.location.address:
                loc["address"] = self.location.address
            doc["location"] = loc
        for key, value in (("price", self.price), ("phone", self.phone), ("website", self.website)):
            if value:
                doc[key] = value
        if self.opening_hours:
            hours = []
            for idx, h in enumerate(self.opening_hours):
                entry = {
                    "_key": f"hours_{idx}",
                    "day": h.day,
                    "openTime": h.open_time,
                    "closeTime": h.close_time,
                    "closed": h.closed,
                }
                hours.append({k: v for k, v in entry.items() if v is not None})
            doc["openingHours"] = hours
        if self.gallery:
            doc["gallery"] = [{"_type": "image", "url": g.url} for g in self.gallery]
        if self.external_links:
            doc["externalLinks"] = [{"name": l.name, "url": l.url} for l in self.external_links]
        if self.scraped_data:
            doc["scrapedData"] = self.scraped_data.to_dict()
        return doc

    @classmethod
    def from_document(cls, doc: Any) -> "Place":
        """
        Build a Place from a store document.

        Raises ValueError when the document is not an object, carries
        coordinates that are not numbers, or has a non-array list field. Semantic problems (bad slug,
        unknown domain, out-of-range coordinates) are left for the validator.
        """
        if not isinstance(doc, Mapping):
            raise ValueError(f"Place document must be a JSON object, got {type(doc).__name__}")

        slug = doc.get("slug")
        slug_current = slug.get("current") if isinstance(slug, Mapping) else slug

        location = None
        raw_loc = doc.get("location")
        if isinstance(raw_loc, Mapping):
            geopoint = None
            raw_gp = raw_loc.get("geopoint")
            if isinstance(raw_gp, Mapping):
                geopoint = GeoPoint(
                    lat=_require_number(raw_gp.get("lat"), "location.geopoint.lat"),
                    lng=_require_number(raw_gp.get("lng"), "location.geopoint.lng"),
                )
            location = Location(geopoint=geopoint, address=raw_loc.get("address"))

        categories = [
            Category(value=str(c.get("value", "")), label=str(c.get("label", "")))
            for c in _require_list(doc, "categories")
            if isinstance(c, Mapping)
        ]
        hours = [
            OpeningHours(
                day=str(h.get("day", "")),
                open_time=h.get("openTime"),
                close_time=h.get("closeTime"),
                closed=h.get("closed"),
            )
            for h in _require_list(doc, "openingHours")
            if isinstance(h, Mapping)
        ]
        gallery = [
            GalleryImage(url=str(g["url"]))
            for g in _require_list(doc, "gallery")
            if isinstance(g, Mapping) and g.get("url")
        ]
        links = [
            ExternalLink(name=str(l.get("name", "")), url=str(l["url"]))
            for l in _require_list(doc, "externalLinks")
            if isinstance(l, Mapping) and l.get("url")
        ]
        raw_scraped = doc.get("scrapedData")
        scraped = ScrapedData.from_dict(raw_scraped) if isinstance(raw_scraped, Mapping) else None

        return cls(
            name=doc.get("name") if isinstance(doc.get("name"), str) else "",
            slug=slug_current if isinstance(slug_current, str) else "",
            domains=[str(d) for d in _require_list(doc, "domains")],
            categories=categories,
            location=location,
            price=doc.get("price"),
            phone=doc.get("phone"),
            website=doc.get("website"),
            opening_hours=hours,
            gallery=gallery,
            external_links=links,
            scraped_data=scraped,
            doc_id=doc.get("_id"),
        )


# ---------------------------------------------------------------------------
# Raw record shapes accepted by the normalizer (tagged union).
# ---------------------------------------------------------------------------


@dataclass
class RawOpeningHours:
    day: str
    open: Optional[str] = None
    close: Optional[str] = None
    closed: Optional[bool] = None
    raw_text: Optional[str] = None


@dataclass
class ScrapedRecord:
    """Generic scraped venue as produced by the browser-automation layer."""
    kind: ClassVar[str] = "scrape"

    name: str
    source: str
    scraped_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    price_level: Optional[Union[int, str]] = None
    categories: List[str] = field(default_factory=list)
    phone: Optional[str] = None
    website: Optional[str] = None
    opening_hours: List[RawOpeningHours] = field(default_factory=list)
    photos: List[str] = field(default_factory=list)
    source_id: Optional[str] = None
    source_url: Optional[str] = None
    raw_data: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str):
            raise ValueError("ScrapedRecord.name must be a string")
        if not self.source:
            raise ValueError("ScrapedRecord.source is required")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScrapedRecord":
        hours = [
            RawOpeningHours(
                day=str(h.get("day", "")),
                open=h.get("open"),
                close=h.get("close"),
                closed=h.get("closed"),
                raw_text=h.get("rawText"),
            )
            for h in data.get("openingHours") or []
            if isinstance(h, Mapping)
        ]
        return cls(
            name=data.get("name"),  # type: ignore[arg-type]
            source=data.get("source") or "",
            scraped_at=_parse_datetime(data.get("scrapedAt")),
            address=data.get("address"),
            city=data.get("city"),
            region=data.get("region"),
            country=data.get("country"),
            country_code=data.get("countryCode"),
            postal_code=data.get("postalCode"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            rating=data.get("rating"),
            review_count=data.get("reviewCount"),
            price_level=data.get("priceLevel"),
            categories=list(data.get("categories") or []),
            phone=data.get("phone"),
            website=data.get("website"),
            opening_hours=hours,
            photos=list(data.get("photos") or []),
            source_id=data.get("sourceId"),
            source_url=data.get("sourceUrl"),
            raw_data=data.get("rawData"),
        )


@dataclass
class TakeoutFeature:
    """A single feature of a saved-places GeoJSON export."""
    kind: ClassVar[str] = "takeout"

    title: Optional[str]
    longitude: float = 0.0
    latitude: float = 0.0
    google_maps_url: Optional[str] = None
    address: Optional[str] = None
    country_code: Optional[str] = None
    published: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return not (self.latitude == 0 and self.longitude == 0)

    @classmethod
    def from_feature(cls, feature: Mapping[str, Any]) -> "TakeoutFeature":
        if not isinstance(feature, Mapping):
            raise ValueError("Feature must be an object")
        geometry = feature.get("geometry") or {}
        coords = geometry.get("coordinates") if isinstance(geometry, Mapping) else None
        if not isinstance(coords, (list, tuple)) or len(coords) < 2:
            raise ValueError("Feature geometry must carry [lng, lat] coordinates")
        lng = _require_number(coords[0], "coordinates[0]")
        lat = _require_number(coords[1], "coordinates[1]")
        props = feature.get("properties") or {}
        location = props.get("Location") or {}
        return cls(
            title=props.get("Title") or None,
            longitude=lng,
            latitude=lat,
            google_maps_url=props.get("Google Maps URL"),
            address=location.get("Address"),
            country_code=location.get("Country Code"),
            published=props.get("Published"),
        )


@dataclass
class OpeningPeriod:
    """Provider opening period; `day` 0 = Sunday, times are 24h "HHMM"."""
    open_day: int
    open_time: str
    close_day: Optional[int] = None
    close_time: Optional[str] = None


@dataclass
class PlaceDetails:
    """Details result from the place-information provider."""
    kind: ClassVar[str] = "provider"

    place_id: str
    name: str = ""
    formatted_address: Optional[str] = None
    formatted_phone_number: Optional[str] = None
    international_phone_number: Optional[str] = None
    website: Optional[str] = None
    url: Optional[str] = None
    price_level: Optional[int] = None
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    types: List[str] = field(default_factory=list)
    opening_periods: List[OpeningPeriod] = field(default_factory=list)
    lat: Optional[float] = None
    lng: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.place_id:
            raise ValueError("PlaceDetails.place_id is required")

    @classmethod
    def from_api(cls, result: Mapping[str, Any]) -> "PlaceDetails":
        periods: List[OpeningPeriod] = []
        opening = result.get("opening_hours") or {}
        for period in opening.get("periods") or []:
            open_part = period.get("open") or {}
            if "day" not in open_part or "time" not in open_part:
                continue
            close_part = period.get("close") or {}
            periods.append(
                OpeningPeriod(
                    open_day=int(open_part["day"]),
                    open_time=str(open_part["time"]),
                    close_day=close_part.get("day"),
                    close_time=close_part.get("time"),
                )
            )
        location = (result.get("geometry") or {}).get("location") or {}
        return cls(
            place_id=str(result.get("place_id") or ""),
            name=result.get("name") or "",
            formatted_address=result.get("formatted_address"),
            formatted_phone_number=result.get("formatted_phone_number"),
            international_phone_number=result.get("international_phone_number"),
            website=result.get("website"),
            url=result.get("url"),
            price_level=result.get("price_level"),
            rating=result.get("rating"),
            user_ratings_total=result.get("user_ratings_total"),
            types=list(result.get("types") or []),
            opening_periods=periods,
            lat=location.get("lat"),
            lng=location.get("lng"),
        )

    def to_api(self) -> Dict[str, Any]:
        """Inverse of `from_api`, used when caching details."""
        data: Dict[str, Any] = {
            "place_id": self.place_id,
            "name": self.name,
            "formatted_address": self.formatted_address,
            "formatted_phone_number": self.formatted_phone_number,
            "international_phone_number": self.international_phone_number,
            "website": self.website,
            "url": self.url,
            "price_level": self.price_level,
            "rating": self.rating,
            "user_ratings_total": self.user_ratings_total,
            "types": list(self.types),
        }
        if self.opening_periods:
            periods = []
            for p in self.opening_periods:
                period: Dict[str, Any] = {"open": {"day": p.open_day, "time": p.open_time}}
                if p.close_time is not None:
                    period["close"] = {"day": p.close_day, "time": p.close_time}
                periods.append(period)
            data["opening_hours"] = {"periods": periods}
        if self.lat is not None and self.lng is not None:
            data["geometry"] = {"location": {"lat": self.lat, "lng": self.lng}}
        return {k: v for k, v in data.items() if v is not None}


RawRecord = Union[ScrapedRecord, TakeoutFeature, PlaceDetails]

RAW_RECORD_KINDS = {
    ScrapedRecord.kind: ScrapedRecord.from_dict,
    TakeoutFeature.kind: TakeoutFeature.from_feature,
    PlaceDetails.kind: PlaceDetails.from_api,
}


def raw_record_from_dict(data: Mapping[str, Any]) -> RawRecord:
    """
    Build the matching raw record for a loosely-typed dict.

    An explicit "kind" key wins; otherwise the shape decides. Unknown shapes
    raise ValueError instead of producing a record with silently absent fields.
    """
    if not isinstance(data, Mapping):
        raise ValueError(f"Raw record must be an object, got {type(data).__name__}")
    kind = data.get("kind")
    if kind is None:
        if data.get("type") == "Feature":
            kind = TakeoutFeature.kind
        elif data.get("place_id"):
            kind = PlaceDetails.kind
        elif "name" in data and data.get("source"):
            kind = ScrapedRecord.kind
    factory = RAW_RECORD_KINDS.get(kind) if isinstance(kind, str) else None
    if factory is None:
        raise ValueError(f"Unrecognized raw record shape (kind={kind!r}, keys={sorted(data)})")
    return factory(data)
