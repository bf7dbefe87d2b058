"""
Proximity + name-similarity deduplication.

Two places are duplicates when they lie within `threshold_meters` of each
other (great-circle distance) and their names are similar. Places without a
usable geopoint can never be matched and always come back as unique.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from domain.models import PLACE_TYPE, Place
from services.geo import bounding_box, haversine_m
from services.text import normalize_name

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_METERS = 50.0
# Fuzzy edit-distance matching only applies to short names.
FUZZY_NAME_MAX_LENGTH = 20

NEARBY_PLACES_QUERY = (
    f'*[_type == "{PLACE_TYPE}" && defined(location.geopoint)'
    " && location.geopoint.lat > $minLat && location.geopoint.lat < $maxLat"
    " && location.geopoint.lng > $minLng && location.geopoint.lng < $maxLng]"
    ' {_id, name, "lat": location.geopoint.lat, "lng": location.geopoint.lng}'
)


@dataclass
class DuplicateMatch:
    place: Place
    matched_against: str
    matched_name: str
    distance_m: float


@dataclass
class DeduplicationResult:
    unique: List[Place] = field(default_factory=list)
    duplicates: List[DuplicateMatch] = field(default_factory=list)


@dataclass
class ExistingPlace:
    """A store document close to a candidate place."""
    id: str
    name: str
    distance_m: float


def names_are_similar(name1: str, name2: str) -> bool:
    """
    Fuzzy venue-name comparison.

    Equal after normalization, one containing the other, or (for short names)
    within a small Levenshtein distance.
    """
    norm1 = normalize_name(name1)
    norm2 = normalize_name(name2)

    if not norm1 or not norm2:
        # Names without latin alphanumerics only match when identical.
        stripped = (name1 or "").strip().lower()
        return bool(stripped) and stripped == (name2 or "").strip().lower()

    if norm1 == norm2:
        return True
    if norm1 in norm2 or norm2 in norm1:
        return True
    if len(norm1) < FUZZY_NAME_MAX_LENGTH and len(norm2) < FUZZY_NAME_MAX_LENGTH:
        max_dist = min(3, min(len(norm1), len(norm2)) // 3)
        if Levenshtein.distance(norm1, norm2, score_cutoff=max_dist) <= max_dist:
            return True
    return False


def _place_key(place: Place) -> str:
    return place.doc_id or place.slug or "unknown"


def deduplicate_within_batch(
    places: Sequence[Place],
    threshold_meters: float = DEFAULT_THRESHOLD_METERS,
) -> DeduplicationResult:
    """
    Split a batch into unique places and duplicates of earlier entries.

    Each place is compared against the places already accepted as unique;
    among qualifying matches the closest wins (first on ties). Duplicates get
    `duplicate_of` set to the matched place's id or slug.
    """
    result = DeduplicationResult()
    seen: List[Tuple[Place, float, float]] = []

    for place in places:
        if not place.has_usable_geopoint:
            result.unique.append(place)
            continue

        lat, lng = place.geopoint.lat, place.geopoint.lng
        best: Optional[Tuple[Place, float]] = None
        for other, other_lat, other_lng in seen:
            distance = haversine_m(lat, lng, other_lat, other_lng)
            if distance > threshold_meters or not names_are_similar(place.name, other.name):
                continue
            if best is None or distance < best[1]:
                best = (other, distance)

        if best is None:
            result.unique.append(place)
            seen.append((place, lat, lng))
            continue

        other, distance = best
        place.duplicate_of = _place_key(other)
        result.duplicates.append(
            DuplicateMatch(
                place=place,
                matched_against=place.duplicate_of,
                matched_name=other.name,
                distance_m=distance,
            )
        )
        logger.debug("Duplicate in batch: %r ~ %r (%.1f m)", place.name, other.name, distance)

    if result.duplicates:
        logger.info(
            "Batch deduplication: %d unique, %d duplicates", len(result.unique), len(result.duplicates)
        )
    return result


def find_existing_place(
    client: Any,
    lat: float,
    lng: float,
    name: str,
    threshold_meters: float = DEFAULT_THRESHOLD_METERS,
) -> Optional[ExistingPlace]:
    """
    Look up a stored place near (lat, lng) with a similar name.

    The store is queried with a padded bounding box; candidates are then
    filtered by exact distance and name similarity. The closest match wins.
    """
    box = bounding_box(lat, lng, threshold_meters)
    params: Dict[str, float] = {
        "minLat": box.min_lat,
        "maxLat": box.max_lat,
        "minLng": box.min_lng,
        "maxLng": box.max_lng,
    }
    candidates = client.fetch(NEARBY_PLACES_QUERY, params) or []

    best: Optional[ExistingPlace] = None
    for candidate in candidates:
        c_lat, c_lng = candidate.get("lat"), candidate.get("lng")
        if not isinstance(c_lat, (int, float)) or not isinstance(c_lng, (int, float)):
            continue
        distance = haversine_m(lat, lng, c_lat, c_lng)
        c_name = candidate.get("name") or ""
        if distance > threshold_meters or not names_are_similar(name, c_name):
            continue
        if best is None or distance < best.distance_m:
            best = ExistingPlace(id=str(candidate.get("_id")), name=c_name, distance_m=distance)
    return best


def deduplicate_against_store(
    places: Sequence[Place],
    client: Any,
    threshold_meters: float = DEFAULT_THRESHOLD_METERS,
) -> DeduplicationResult:
    """Split places into those new to the store and those already stored."""
    result = DeduplicationResult()
    for place in places:
        if not place.has_usable_geopoint:
            result.unique.append(place)
            continue

        existing = find_existing_place(
            client, place.geopoint.lat, place.geopoint.lng, place.name, threshold_meters
        )
        if existing is None:
            result.unique.append(place)
            continue

        place.duplicate_of = existing.id
        result.duplicates.append(
            DuplicateMatch(
                place=place,
                matched_against=existing.id,
                matched_name=existing.name,
                distance_m=existing.distance_m,
            )
        )
        logger.info("Already in store: %r matches %s (%.1f m)", place.name, existing.id, existing.distance_m)
    return result
