from domain.models import OpeningPeriod, PlaceDetails
from services.places_cache_sqlite import PlacesCache


class Clock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def make_details():
    return PlaceDetails(
        place_id="pid-1",
        name="Pivovar",
        website="https://pivovar.cz",
        types=["bar"],
        opening_periods=[OpeningPeriod(open_day=0, open_time="0000")],
        lat=50.0,
        lng=14.0,
    )


def test_round_trip(tmp_path):
    cache = PlacesCache(str(tmp_path / "cache.sqlite"))
    cache.put_details("google", make_details())
    assert cache.get_details("google", "pid-1") == make_details()
    assert cache.get_details("google", "other") is None
    assert cache.get_details("osm", "pid-1") is None


def test_expired_entry_is_ignored(tmp_path):
    clock = Clock()
    cache = PlacesCache(str(tmp_path / "cache.sqlite"), default_ttl_seconds=60, clock=clock)
    cache.put_details("google", make_details())
    clock.now += 30
    assert cache.get_details("google", "pid-1") is not None
    clock.now += 60
    assert cache.get_details("google", "pid-1") is None


def test_put_replaces_existing_entry(tmp_path):
    cache = PlacesCache(str(tmp_path / "cache.sqlite"))
    cache.put_details("google", make_details())
    updated = make_details()
    updated.name = "Pivovar Nový"
    cache.put_details("google", updated)
    assert cache.get_details("google", "pid-1").name == "Pivovar Nový"
