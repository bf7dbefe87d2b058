"""
Google Places web-service client (nearby search, text search, details).

Only the JSON endpoints the pipeline needs are wrapped. Calls are sequential;
spacing between them is the caller's job (see services.rate_limiter).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from domain.models import PlaceDetails
from services.places_cache_sqlite import PlacesCache
from services.places_types import PlaceResult, SearchPage
from settings import resolve_places_api_key, settings

PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"
PROVIDER = "google"
DEFAULT_NEARBY_RADIUS_M = 100.0

DETAILS_FIELDS = ",".join(
    [
        "place_id",
        "name",
        "formatted_address",
        "formatted_phone_number",
        "international_phone_number",
        "website",
        "url",
        "price_level",
        "rating",
        "user_ratings_total",
        "types",
        "opening_hours",
        "geometry",
    ]
)

_SEARCH_OK = ("OK", "ZERO_RESULTS")


class PlacesProviderError(Exception):
    """The provider answered a search with a non-success status."""

    def __init__(self, status: str, message: str = ""):
        self.status = status
        self.message = message
        super().__init__(f"Places API error: {status}" + (f" - {message}" if message else ""))


class GooglePlacesClient:
    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        cache: Optional[PlacesCache] = None,
        base_url: str = PLACES_BASE_URL,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        query = dict(params)
        query["key"] = self.api_key
        resp = self.session.get(f"{self.base_url}/{endpoint}/json", params=query, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        self.logger.debug("Places %s -> status=%s", endpoint, data.get("status"))
        return data

    def find_nearby(
        self,
        lat: float,
        lng: float,
        keyword: str,
        radius_m: float = DEFAULT_NEARBY_RADIUS_M,
    ) -> Optional[PlaceResult]:
        """First nearby result matching the keyword, or None."""
        data = self._get(
            "nearbysearch",
            {"location": f"{lat},{lng}", "radius": str(int(radius_m)), "keyword": keyword},
        )
        results = data.get("results") or []
        if data.get("status") != "OK" or not results:
            return None
        return PlaceResult.from_api(results[0])

    def get_details(self, place_id: str) -> Optional[PlaceDetails]:
        if self.cache is not None:
            cached = self.cache.get_details(PROVIDER, place_id)
            if cached is not None:
                return cached

        data = self._get("details", {"place_id": place_id, "fields": DETAILS_FIELDS})
        result = data.get("result")
        if data.get("status") != "OK" or not result:
            return None
        details = PlaceDetails.from_api(result)
        if self.cache is not None:
            self.cache.put_details(PROVIDER, details)
        return details

    def _search_page(self, endpoint: str, params: Dict[str, Any]) -> SearchPage:
        data = self._get(endpoint, params)
        status = data.get("status")
        if status not in _SEARCH_OK:
            raise PlacesProviderError(str(status), data.get("error_message") or "")
        return SearchPage(
            results=[PlaceResult.from_api(item) for item in data.get("results") or []],
            next_page_token=data.get("next_page_token"),
        )

    def text_search(self, query: str, page_token: Optional[str] = None) -> SearchPage:
        params: Dict[str, Any] = {"query": query}
        if page_token:
            params["pagetoken"] = page_token
        return self._search_page("textsearch", params)

    def nearby_search(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        place_type: Optional[str] = None,
        page_token: Optional[str] = None,
    ) -> SearchPage:
        params: Dict[str, Any] = {"location": f"{lat},{lng}", "radius": str(int(radius_m))}
        if place_type:
            params["type"] = place_type
        if page_token:
            params["pagetoken"] = page_token
        return self._search_page("nearbysearch", params)


def make_places_client(api_key: Optional[str] = None) -> GooglePlacesClient:
    """Build a client from the environment; raises ConfigurationError without a key."""
    key = api_key or resolve_places_api_key()
    cache = PlacesCache(settings.PLACES_CACHE_PATH) if settings.PLACES_CACHE_ENABLED else None
    return GooglePlacesClient(key, cache=cache)
