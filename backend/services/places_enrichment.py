"""
Fill in missing venue details (address, phone, hours, ...) from the places provider.

Every record is checked for a usable name and geopoint before any provider
call is made, so incomplete records cost no quota. Eligible records are then
looked up one at a time: nearby search on the name, then a details fetch.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence

from domain.models import ExternalLink, Location, Place, PlaceDetails, ScrapedData
from services.normalizer import (
    GOOGLE_MAPS_LINK_NAME,
    PROVIDER_SOURCE,
    PROVIDER_TYPE_MAPPING,
    map_categories,
    map_price,
    merge_categories,
    opening_hours_from_periods,
)
from services.rate_limiter import RateLimiter
from settings import settings

logger = logging.getLogger(__name__)

NEARBY_RADIUS_M = 100.0
CANCELLED_REASON = "Enrichment cancelled"

ProgressCallback = Callable[[int, int, str], None]


@dataclass
class EnrichmentError:
    place: str
    error: str


@dataclass
class EnrichmentResult:
    places: List[Place] = field(default_factory=list)
    enriched_count: int = 0
    skipped_count: int = 0
    errors: List[EnrichmentError] = field(default_factory=list)


def eligibility_problem(place: Place) -> Optional[str]:
    """Reason a place cannot be looked up, or None when it can."""
    if not place.name or not place.name.strip():
        return "Missing name"
    gp = place.geopoint
    if gp is None:
        return "Missing coordinates"
    if gp.is_null_island:
        return "Invalid coordinates (0,0)"
    if not gp.in_range:
        return f"Invalid coordinate range ({gp.lat}, {gp.lng})"
    return None


def merge_details(place: Place, details: PlaceDetails, now: Optional[datetime] = None) -> Place:
    """Return a copy of `place` with every field the provider supplied applied."""
    merged = copy.deepcopy(place)

    if details.formatted_address:
        if merged.location is None:
            merged.location = Location()
        merged.location.address = details.formatted_address

    phone = details.formatted_phone_number or details.international_phone_number
    if phone:
        merged.phone = phone
    if details.website:
        merged.website = details.website

    price = map_price(details.price_level)
    if price:
        merged.price = price

    mapped = map_categories(details.types, PROVIDER_TYPE_MAPPING)
    if mapped:
        merged.categories = merge_categories(merged.categories, mapped)

    hours = opening_hours_from_periods(details.opening_periods)
    if hours:
        merged.opening_hours = hours

    if details.url and all(link.url != details.url for link in merged.external_links):
        merged.external_links.append(ExternalLink(name=GOOGLE_MAPS_LINK_NAME, url=details.url))

    merged.scraped_data = ScrapedData(
        source=PROVIDER_SOURCE,
        source_id=details.place_id,
        source_url=details.url,
        rating=details.rating,
        review_count=details.user_ratings_total,
        scraped_at=now or datetime.now(timezone.utc),
    )
    return merged


class PlacesEnricher:
    def __init__(
        self,
        client: Any,
        rate_limiter: Optional[RateLimiter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.rate_limiter = rate_limiter or RateLimiter.from_ms(settings.ENRICH_RATE_LIMIT_MS)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _enrich_one(self, place: Place) -> Place:
        gp = place.geopoint
        # Takes the first nearby hit; the provider's keyword ranking is trusted.
        match = self.client.find_nearby(gp.lat, gp.lng, place.name, NEARBY_RADIUS_M)
        if match is None:
            raise LookupError("Place not found in Google Places")
        logger.debug("Nearby match for %r: %r (%s)", place.name, match.name, match.place_id)
        details = self.client.get_details(match.place_id)
        if details is None:
            raise LookupError("Could not fetch place details")
        return merge_details(place, details, now=self._clock())

    def enrich(
        self,
        places: Sequence[Place],
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> EnrichmentResult:
        """
        Enrich places in input order. Every input appears exactly once in the
        output; skipped and failed records come back unchanged.
        """
        result = EnrichmentResult()
        problems = [eligibility_problem(p) for p in places]
        total_eligible = sum(1 for p in problems if p is None)

        skipped = len(problems) - total_eligible
        if skipped:
            logger.warning("Skipping %d places with incomplete data", skipped)

        position = 0
        cancelled = False
        for place, problem in zip(places, problems):
            if problem is not None:
                logger.warning("Skipping %r: %s", place.name or "Unnamed", problem)
                self._skip(result, place, problem)
                continue

            if not cancelled and should_stop is not None and should_stop():
                logger.warning("Enrichment cancelled after %d of %d places", position, total_eligible)
                cancelled = True
            if cancelled:
                self._skip(result, place, CANCELLED_REASON)
                continue

            position += 1
            if on_progress:
                on_progress(position, total_eligible, place.name)

            self.rate_limiter.wait()
            try:
                enriched = self._enrich_one(place)
            except Exception as exc:
                logger.warning("Enrichment failed for %r: %s", place.name, exc)
                self._skip(result, place, str(exc))
                continue
            finally:
                # The interval counts from the end of the attempt.
                self.rate_limiter.mark()
            result.places.append(enriched)
            result.enriched_count += 1

        logger.info(
            "Enrichment finished: %d enriched, %d skipped", result.enriched_count, result.skipped_count
        )
        return result

    @staticmethod
    def _skip(result: EnrichmentResult, place: Place, reason: str) -> None:
        result.places.append(place)
        result.skipped_count += 1
        result.errors.append(EnrichmentError(place=place.name or "Unnamed", error=reason))


def enrich_places(
    places: Sequence[Place],
    client: Any,
    rate_limit_ms: Optional[float] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> EnrichmentResult:
    """Convenience wrapper building a PlacesEnricher with a fixed delay."""
    interval = settings.ENRICH_RATE_LIMIT_MS if rate_limit_ms is None else rate_limit_ms
    enricher = PlacesEnricher(client, rate_limiter=RateLimiter.from_ms(interval))
    return enricher.enrich(places, on_progress=on_progress)
