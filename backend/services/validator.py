"""
Validation of place documents before they are written to the store.

Errors block the upload; warnings are advisory. Every check runs on every
record, so a single pass reports everything that is wrong with it.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Sequence, Union
from urllib.parse import urlparse

from domain.models import PLACE_TYPE, VALID_DOMAINS, VALID_PRICE_TIERS, Place
from services.text import SLUG_MAX_LENGTH

logger = logging.getLogger(__name__)

VALID_CATEGORIES = [
    "brewery", "beer-garden", "pub", "taproom",
    "cafe", "roaster", "bakery",
    "restaurant", "bistro", "bar",
    "winery", "wine-bar",
]

NAME_WARN_LENGTH = 200

_SLUG_RE = re.compile(r"^[a-z0-9-]+$")
_PHONE_RE = re.compile(r"^[+\d\s()-]+$")


@dataclass
class PlaceValidation:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class ValidatedPlace:
    place: Any
    validation: PlaceValidation


@dataclass
class BatchValidation:
    valid: bool
    valid_count: int
    invalid_count: int
    results: List[ValidatedPlace] = field(default_factory=list)


@dataclass
class LineError:
    line: int
    error: str


@dataclass
class StreamValidation:
    valid: bool
    line_errors: List[LineError] = field(default_factory=list)
    record_count: int = 0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_valid_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def _check_name(doc: Mapping[str, Any], errors: List[str], warnings: List[str]) -> None:
    name = doc.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("Missing or empty name")
    elif len(name) > NAME_WARN_LENGTH:
        warnings.append(f"Name is unusually long (>{NAME_WARN_LENGTH} characters)")


def _check_slug(doc: Mapping[str, Any], errors: List[str]) -> None:
    slug = doc.get("slug")
    current = slug.get("current") if isinstance(slug, Mapping) else None
    if not current or not isinstance(current, str):
        errors.append("Missing slug.current")
        return
    if not _SLUG_RE.match(current):
        errors.append("Invalid slug format (only lowercase letters, numbers, and hyphens allowed)")
    if len(current) > SLUG_MAX_LENGTH:
        errors.append(f"Slug too long (max {SLUG_MAX_LENGTH} characters)")


def _check_domains(doc: Mapping[str, Any], errors: List[str]) -> None:
    domains = doc.get("domains")
    if not isinstance(domains, list) or not domains:
        errors.append("Missing or empty domains array")
        return
    invalid = [str(d) for d in domains if d not in VALID_DOMAINS]
    if invalid:
        errors.append(f"Invalid domains: {', '.join(invalid)}. Valid: {', '.join(VALID_DOMAINS)}")


def _check_location(doc: Mapping[str, Any], errors: List[str], warnings: List[str]) -> None:
    location = doc.get("location")
    geopoint = location.get("geopoint") if isinstance(location, Mapping) else None
    if not isinstance(geopoint, Mapping):
        warnings.append("Missing location.geopoint (place will not appear on map)")
        return

    lat = geopoint.get("lat")
    lng = geopoint.get("lng")
    if not _is_number(lat) or not -90 <= lat <= 90:
        errors.append(f"Invalid latitude: {lat} (must be between -90 and 90)")
    if not _is_number(lng) or not -180 <= lng <= 180:
        errors.append(f"Invalid longitude: {lng} (must be between -180 and 180)")
    if _is_number(lat) and _is_number(lng) and lat == 0 and lng == 0:
        warnings.append("Coordinates are [0, 0] (null island) - likely missing data")


def _check_opening_hours(doc: Mapping[str, Any], errors: List[str]) -> None:
    hours = doc.get("openingHours")
    if hours is None:
        return
    if not isinstance(hours, list):
        errors.append("openingHours must be an array")
        return
    seen: set[str] = set()
    repeated: List[str] = []
    for entry in hours:
        if not isinstance(entry, Mapping):
            continue
        day = entry.get("day")
        if not isinstance(day, str):
            continue
        if day in seen and day not in repeated:
            repeated.append(day)
        seen.add(day)
    if repeated:
        errors.append(f"Duplicate opening hours day: {', '.join(str(d) for d in repeated)}")


def _check_optional_fields(doc: Mapping[str, Any], warnings: List[str]) -> None:
    categories = doc.get("categories")
    if isinstance(categories, list):
        unknown = [
            str(c.get("value"))
            for c in categories
            if isinstance(c, Mapping) and c.get("value") not in VALID_CATEGORIES
        ]
        if unknown:
            warnings.append(f"Unknown categories: {', '.join(unknown)}")

    website = doc.get("website")
    if website and (not isinstance(website, str) or not _is_valid_url(website)):
        warnings.append(f"Invalid website URL: {website}")

    phone = doc.get("phone")
    if phone and (not isinstance(phone, str) or not _PHONE_RE.match(phone)):
        warnings.append(f"Phone number may have invalid format: {phone}")

    price = doc.get("price")
    if price and price not in VALID_PRICE_TIERS:
        warnings.append(f"Unknown price level: {price}")


def validate_place(place: Union[Place, Mapping[str, Any]]) -> PlaceValidation:
    """Validate a single place (a Place or its document form)."""
    doc = place.to_document() if isinstance(place, Place) else place
    errors: List[str] = []
    warnings: List[str] = []

    if not isinstance(doc, Mapping):
        return PlaceValidation(valid=False, errors=["Place document must be a JSON object"])

    if doc.get("_type") != PLACE_TYPE:
        errors.append('Invalid or missing _type (must be "place")')
    _check_name(doc, errors, warnings)
    _check_slug(doc, errors)
    _check_domains(doc, errors)
    _check_location(doc, errors, warnings)
    _check_opening_hours(doc, errors)
    _check_optional_fields(doc, warnings)

    return PlaceValidation(valid=not errors, errors=errors, warnings=warnings)


def validate_places(places: Sequence[Union[Place, Mapping[str, Any]]]) -> BatchValidation:
    results = [ValidatedPlace(place=p, validation=validate_place(p)) for p in places]
    valid_count = sum(1 for r in results if r.validation.valid)
    invalid_count = len(results) - valid_count
    if invalid_count:
        logger.info("Validation: %d valid, %d invalid", valid_count, invalid_count)
    return BatchValidation(
        valid=invalid_count == 0,
        valid_count=valid_count,
        invalid_count=invalid_count,
        results=results,
    )


def validate_ndjson_content(content: str) -> StreamValidation:
    """
    Validate an NDJSON stream without building Places.

    Line numbers are the physical 1-based line numbers of the input; blank
    lines are skipped but still counted.
    """
    line_errors: List[LineError] = []
    seen_ids: set[str] = set()
    record_count = 0

    for line_number, line in enumerate(content.split("\n"), start=1):
        if not line.strip():
            continue
        record_count += 1
        try:
            doc = json.loads(line)
        except json.JSONDecodeError as exc:
            line_errors.append(LineError(line=line_number, error=f"Invalid JSON: {exc.msg}"))
            continue

        if isinstance(doc, Mapping):
            doc_id = doc.get("_id")
            if isinstance(doc_id, str) and doc_id:
                if doc_id in seen_ids:
                    line_errors.append(LineError(line=line_number, error=f"Duplicate _id: {doc_id}"))
                seen_ids.add(doc_id)

        for error in validate_place(doc).errors:
            line_errors.append(LineError(line=line_number, error=error))

    return StreamValidation(valid=not line_errors, line_errors=line_errors, record_count=record_count)
