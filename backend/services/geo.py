"""Great-circle distance helpers used by deduplication and store lookups."""

from __future__ import annotations

import math
from dataclasses import dataclass

EARTH_RADIUS_M = 6_371_000.0
# Rough metres per degree of latitude, used only for query bounding boxes.
METERS_PER_DEGREE = 111_000.0


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat < lat < self.max_lat and self.min_lng < lng < self.max_lng


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Compute distance in meters between two lat/lng points."""
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def bounding_box(lat: float, lng: float, threshold_m: float) -> BoundingBox:
    """
    Square box around a point, padded to twice the threshold.

    Only a pre-filter for store queries; exact filtering uses haversine_m.
    """
    delta = (threshold_m / METERS_PER_DEGREE) * 2
    return BoundingBox(
        min_lat=lat - delta,
        max_lat=lat + delta,
        min_lng=lng - delta,
        max_lng=lng + delta,
    )

