"""
Place sources: interchangeable strategies producing Places.

Callers pick a source and use it only through the `PlaceSource` protocol;
sources share no base class.
"""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Tuple, Union
from urllib.parse import parse_qs, urlparse

from domain.models import Place
from services.normalizer import DataNormalizer, NormalizerOptions
from services.places_client import GooglePlacesClient
from services.places_types import PlaceResult, SearchPage
from services.rate_limiter import RateLimiter
from services.takeout import ConvertOptions, convert_takeout_file
from services.text import slugify
from settings import settings

logger = logging.getLogger(__name__)

MAX_SEARCH_PAGES = 3
# The provider rejects a next_page_token used too soon after it is issued.
NEXT_PAGE_DELAY_S = 2.0

_PLACE_ID_PATH = re.compile(r"place_id[:=]([A-Za-z0-9_-]+)")


@dataclass
class ScrapeOptions:
    query: Optional[str] = None
    location: Optional[Tuple[float, float]] = None
    radius_m: float = 5000.0
    place_type: Optional[str] = None
    domain: Optional[str] = None
    max_results: int = 60


@dataclass
class ScrapeResult:
    source: str
    places: List[Place] = field(default_factory=list)
    total_found: int = 0
    errors: List[str] = field(default_factory=list)
    scraped_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: int = 0


class PlaceSource(Protocol):
    name: str

    def scrape(self, options: ScrapeOptions) -> ScrapeResult:
        ...

    def scrape_detail(self, url: str) -> Optional[Place]:
        ...


class TakeoutFileSource:
    """Places from a saved-places GeoJSON export on disk."""

    name = "google-takeout"

    def __init__(self, path: Union[str, Path], convert_options: Optional[ConvertOptions] = None):
        self.path = Path(path)
        self.convert_options = convert_options

    def scrape(self, options: ScrapeOptions) -> ScrapeResult:
        started = time.monotonic()
        convert_options = self.convert_options or ConvertOptions()
        if options.domain and not convert_options.domain:
            convert_options = ConvertOptions(
                domain=options.domain,
                default_category=convert_options.default_category,
                require_coordinates=convert_options.require_coordinates,
            )
        converted = convert_takeout_file(self.path, convert_options)
        places = converted.places[: options.max_results] if options.max_results else converted.places
        return ScrapeResult(
            source=self.name,
            places=places,
            total_found=len(converted.places) + converted.skipped,
            errors=list(converted.errors),
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    def scrape_detail(self, url: str) -> Optional[Place]:
        return None


def extract_place_id(url: str) -> Optional[str]:
    """Pull a provider place id out of a maps URL (query string or path)."""
    parsed = urlparse(url)
    for key in ("place_id", "query_place_id"):
        values = parse_qs(parsed.query).get(key)
        if values and values[0]:
            return values[0]
    match = _PLACE_ID_PATH.search(url)
    return match.group(1) if match else None


class PlacesSearchSource:
    """Places from provider text search (query) or nearby search (location)."""

    name = "google-places-api"

    def __init__(
        self,
        client: GooglePlacesClient,
        rate_limiter: Optional[RateLimiter] = None,
        page_delay_s: float = NEXT_PAGE_DELAY_S,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.rate_limiter = rate_limiter or RateLimiter.from_ms(settings.SEARCH_RATE_LIMIT_MS)
        self.page_delay_s = page_delay_s
        self._sleep = sleep

    def _search(self, options: ScrapeOptions, page_token: Optional[str]) -> SearchPage:
        if options.query:
            return self.client.text_search(options.query, page_token=page_token)
        lat, lng = options.location  # type: ignore[misc]
        return self.client.nearby_search(
            lat, lng, options.radius_m, place_type=options.place_type, page_token=page_token
        )

    def _collect_results(self, options: ScrapeOptions) -> List[PlaceResult]:
        results: List[PlaceResult] = []
        page_token: Optional[str] = None
        for page_num in range(MAX_SEARCH_PAGES):
            if page_num and page_token:
                self._sleep(self.page_delay_s)
            page = self._search(options, page_token)
            results.extend(page.results)
            page_token = page.next_page_token
            if len(results) >= options.max_results or not page_token:
                break
        return results

    def scrape(self, options: ScrapeOptions) -> ScrapeResult:
        """
        Search, then fetch details for each distinct hit.

        Raises ValueError without a query or location and PlacesProviderError
        when the search itself fails; per-result failures are collected.
        """
        if not options.query and not options.location:
            raise ValueError("Either query or location is required")

        started = time.monotonic()
        results = self._collect_results(options)
        result = ScrapeResult(source=self.name, total_found=len(results))

        normalizer = DataNormalizer(NormalizerOptions(domain=options.domain))
        slug_counts: Dict[str, int] = {}
        seen_ids: set[str] = set()

        for item in results[: options.max_results]:
            if not item.place_id or item.place_id in seen_ids:
                continue
            seen_ids.add(item.place_id)

            self.rate_limiter.wait()
            try:
                details = self.client.get_details(item.place_id)
            except Exception as exc:
                logger.warning("Details fetch failed for %s: %s", item.place_id, exc)
                result.errors.append(f"{item.place_id}: {exc}")
                continue
            finally:
                self.rate_limiter.mark()
            if details is None:
                result.errors.append(f"{item.place_id}: Could not fetch details")
                continue

            place = normalizer.normalize(details)
            base = place.slug or slugify(details.name)
            count = slug_counts.get(base, 0)
            if count:
                place.slug = f"{base}-{count}"
            slug_counts[base] = count + 1
            result.places.append(place)

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Search found %d results, converted %d places (%d errors)",
            result.total_found,
            len(result.places),
            len(result.errors),
        )
        return result

    def scrape_detail(self, url: str) -> Optional[Place]:
        place_id = extract_place_id(url)
        if not place_id:
            logger.warning("No place id found in %s", url)
            return None
        details = self.client.get_details(place_id)
        if details is None:
            return None
        return DataNormalizer().normalize(details)
