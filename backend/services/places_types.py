from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class PlaceResult:
    place_id: str  # provider-specific place id
    name: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    types: List[str] = field(default_factory=list)
    formatted_address: Optional[str] = None
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    raw: Optional[Dict[str, Any]] = None

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "PlaceResult":
        location = (item.get("geometry") or {}).get("location") or {}
        return cls(
            place_id=str(item.get("place_id") or ""),
            name=item.get("name") or "",
            lat=location.get("lat"),
            lng=location.get("lng"),
            types=list(item.get("types") or []),
            formatted_address=item.get("formatted_address") or item.get("vicinity"),
            rating=item.get("rating"),
            user_ratings_total=item.get("user_ratings_total"),
            raw=item,
        )


@dataclass
class SearchPage:
    results: List[PlaceResult]
    next_page_token: Optional[str] = None
