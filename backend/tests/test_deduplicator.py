from domain.models import GeoPoint, Location, Place
from services.deduplicator import (
    NEARBY_PLACES_QUERY,
    deduplicate_against_store,
    deduplicate_within_batch,
    find_existing_place,
    names_are_similar,
)
from services.geo import haversine_m

OLD_TOWN = (50.0875, 14.4213)
CASTLE = (50.0911, 14.4018)


def make_place(name, lat=None, lng=None, slug=None):
    location = Location(geopoint=GeoPoint(lat, lng)) if lat is not None else None
    return Place(name=name, slug=slug or name.lower().replace(" ", "-"), domains=["coffee"], location=location)


class FakeStore:
    def __init__(self, rows):
        self.rows = rows
        self.calls = []

    def fetch(self, query, params):
        self.calls.append((query, params))
        return [
            r for r in self.rows
            if params["minLat"] < r["lat"] < params["maxLat"] and params["minLng"] < r["lng"] < params["maxLng"]
        ]


def test_prague_distance_and_threshold():
    distance = haversine_m(*OLD_TOWN, *CASTLE)
    assert 1000 < distance < 2000

    a = make_place("Prague Spot", *OLD_TOWN)
    b = make_place("Prague Spot", *CASTLE)
    assert deduplicate_within_batch([a, b], threshold_meters=50).duplicates == []

    a = make_place("Prague Spot", *OLD_TOWN)
    b = make_place("Prague Spot", *CASTLE)
    assert len(deduplicate_within_batch([a, b], threshold_meters=2000).duplicates) == 1


def test_coffee_shop_duplicates_and_distant_place():
    first = make_place("Coffee Shop A", 50.0875, 14.4213)
    second = make_place("Coffee Shop A", 50.0876, 14.4214)
    far = make_place("Different Place", 51.5, 0.0)

    result = deduplicate_within_batch([first, second, far])

    assert [p.name for p in result.unique] == ["Coffee Shop A", "Different Place"]
    assert len(result.duplicates) == 1
    match = result.duplicates[0]
    assert match.place is second
    assert match.matched_against == "coffee-shop-a"
    assert 10 <= match.distance_m <= 15
    assert second.duplicate_of == "coffee-shop-a"
    assert far.duplicate_of is None


def test_empty_and_single_batch():
    empty = deduplicate_within_batch([])
    assert empty.unique == []
    assert empty.duplicates == []

    only = make_place("Solo", 50.0, 14.0)
    single = deduplicate_within_batch([only])
    assert single.unique == [only]
    assert single.duplicates == []


def test_places_without_usable_geopoint_are_unique():
    places = [
        make_place("Coffee Shop A"),
        make_place("Coffee Shop A", 0.0, 0.0),
        make_place("Coffee Shop A", 0.0, 0.0),
    ]
    result = deduplicate_within_batch(places)
    assert len(result.unique) == 3
    assert result.duplicates == []


def test_closest_match_wins():
    # ~143 m apart, so both stay unique at a 100 m threshold.
    near = make_place("Cafe Nero", 50.0, 14.0, slug="near")
    nearer = make_place("Cafe Nero Old Town", 50.0, 14.0020, slug="nearer")
    candidate = make_place("Cafe Nero", 50.0, 14.0012)
    result = deduplicate_within_batch([near, nearer, candidate], threshold_meters=100)
    assert [p.slug for p in result.unique] == ["near", "nearer"]
    assert len(result.duplicates) == 1
    assert result.duplicates[0].matched_against == "nearer"


def test_names_are_similar_rules():
    assert names_are_similar("Café Müller", "cafe muller")
    assert names_are_similar("Starbucks", "Starbucks Reserve Roastery")
    assert names_are_similar("Kavarna Slavia", "Kavarna Slavie")
    assert not names_are_similar("Blue Bottle", "Red Rooster")
    assert not names_are_similar("カフェ", "バー")
    assert names_are_similar("カフェ", "カフェ")


def test_find_existing_place_uses_bounding_box_and_filters():
    store = FakeStore(
        [
            {"_id": "coffee-slavia", "name": "Kavárna Slavia", "lat": 50.0815, "lng": 14.4134},
            {"_id": "coffee-other", "name": "Something Else", "lat": 50.0815, "lng": 14.4134},
        ]
    )
    existing = find_existing_place(store, 50.0816, 14.4135, "Kavarna Slavia", 50)
    assert existing is not None
    assert existing.id == "coffee-slavia"
    assert existing.distance_m < 50

    query, params = store.calls[0]
    assert query == NEARBY_PLACES_QUERY
    assert params["minLat"] < 50.0816 < params["maxLat"]
    assert round(params["maxLat"] - 50.0816, 6) == round(50 / 111000 * 2, 6)


def test_find_existing_place_none_when_nothing_close():
    store = FakeStore([{"_id": "x", "name": "Kavarna Slavia", "lat": 50.09, "lng": 14.42}])
    assert find_existing_place(store, 50.0816, 14.4135, "Kavarna Slavia", 50) is None


def test_deduplicate_against_store():
    store = FakeStore([{"_id": "coffee-slavia", "name": "Kavarna Slavia", "lat": 50.0815, "lng": 14.4134}])
    known = make_place("Kavarna Slavia", 50.0816, 14.4135)
    new = make_place("Brand New Cafe", 50.0816, 14.4135)
    no_coords = make_place("Nowhere")

    result = deduplicate_against_store([known, new, no_coords], store, 50)

    assert [p.name for p in result.unique] == ["Brand New Cafe", "Nowhere"]
    assert result.duplicates[0].matched_against == "coffee-slavia"
    assert known.duplicate_of == "coffee-slavia"
    assert len(store.calls) == 2
