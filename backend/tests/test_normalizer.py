import re

import pytest

from domain.models import OpeningPeriod, PlaceDetails, RawOpeningHours, ScrapedRecord, TakeoutFeature
from services.normalizer import (
    DataNormalizer,
    NormalizerOptions,
    detect_domains,
    map_price,
    normalize_day,
    normalize_places,
    opening_hours_from_periods,
)
from services.text import slugify

SLUG_RE = re.compile(r"^[a-z0-9-]{0,100}$")


@pytest.mark.parametrize(
    "name",
    ["", "Café Müller", "  --Pivovar U Fleků!!--  ", "ß∂ƒ©˙∆˚¬", "x" * 150, "a-" * 80, "Kávovar & Co. (Praha 2)"],
)
def test_slugify_format_and_idempotent(name):
    slug = slugify(name)
    assert SLUG_RE.match(slug)
    assert slugify(slug) == slug


def test_slugify_strips_diacritics():
    assert slugify("Café Müller") == "cafe-muller"
    assert slugify("Pivovar U Fleků") == "pivovar-u-fleku"


def test_slugify_truncation_does_not_leave_trailing_hyphen():
    name = "a" * 99 + " b"
    slug = slugify(name)
    assert len(slug) <= 100
    assert not slug.endswith("-")


def test_price_mapping_total_and_consistent():
    tiers = {"low", "average", "high", "very-high"}
    for level, symbol in [(1, "$"), (2, "$$"), (3, "$$$"), (4, "$$$$")]:
        assert map_price(level) in tiers
        assert map_price(level) == map_price(symbol)
    assert map_price(0) == "low"
    assert map_price("2") == "average"
    assert map_price(7) is None
    assert map_price("cheap") is None
    assert map_price(None) is None


def test_normalize_day_abbreviations():
    assert normalize_day("Mon") == "monday"
    assert normalize_day("TUES") == "tuesday"
    assert normalize_day("thurs") == "thursday"
    assert normalize_day("Holiday") == "holiday"


def test_detect_domains_keywords_and_fallback():
    assert detect_domains("Craft Beer Bar") == ["beer"]
    assert detect_domains("Espresso Lab") == ["coffee"]
    assert detect_domains("Wine & Beer House") == ["beer", "vino"]
    assert detect_domains("City Museum") == ["guide"]


def test_normalize_scraped_record_full():
    raw = ScrapedRecord(
        name="Café Lounge",
        source="google-maps",
        latitude=50.08,
        longitude=14.42,
        address="Plaská 615/5, Praha",
        categories=["Coffee Shop", "bakery", "unknown thing"],
        price_level="$$",
        phone="+420 257 404 020 (ext. 1)",
        website="https://cafe-lounge.cz",
        opening_hours=[
            RawOpeningHours(day="Mon", open="08:00", close="20:00"),
            RawOpeningHours(day="monday", open="09:00", close="18:00"),
            RawOpeningHours(day="Sun", closed=True),
        ],
        photos=["https://img.example/1.jpg"],
        source_url="https://maps.google.com/?cid=1",
    )
    place = DataNormalizer(NormalizerOptions(domain="coffee")).normalize(raw)

    assert place.slug == "cafe-lounge"
    assert place.domains == ["coffee"]
    assert [c.value for c in place.categories] == ["cafe", "bakery"]
    assert place.geopoint.lat == 50.08
    assert place.location.address == "Plaská 615/5, Praha"
    assert place.price == "average"
    assert place.phone == "+420 257 404 020 ( 1)"
    assert [h.day for h in place.opening_hours] == ["monday", "sunday"]
    assert place.opening_hours[0].open_time == "08:00"
    assert place.opening_hours[1].closed is True
    assert place.gallery[0].url == "https://img.example/1.jpg"
    assert place.external_links[0].name == "Google Maps"
    assert place.scraped_data is None


def test_normalize_scraped_record_keeps_raw_data_when_asked():
    raw = ScrapedRecord(name="Beer Spot", source="tripadvisor", source_id="t-1", rating=4.5, review_count=12)
    place = DataNormalizer(NormalizerOptions(include_raw_data=True)).normalize(raw)
    assert place.scraped_data.source == "tripadvisor"
    assert place.scraped_data.source_id == "t-1"
    assert place.scraped_data.rating == 4.5
    assert place.domains == ["beer"]
    assert place.location is None


def test_default_category_used_only_when_nothing_maps():
    normalizer = DataNormalizer(NormalizerOptions(default_category="brewery"))
    unmapped = normalizer.normalize(ScrapedRecord(name="X", source="s", categories=["museum"]))
    mapped = normalizer.normalize(ScrapedRecord(name="Y", source="s", categories=["pub"]))
    assert [c.value for c in unmapped.categories] == ["brewery"]
    assert [c.value for c in mapped.categories] == ["pub"]


def test_custom_slug_generator():
    normalizer = DataNormalizer(NormalizerOptions(slug_generator=lambda name: "fixed"))
    assert normalizer.normalize(ScrapedRecord(name="Anything", source="s")).slug == "fixed"


def test_normalize_takeout_feature_without_coordinates():
    feature = TakeoutFeature(title="Lost Brewery", longitude=0.0, latitude=0.0, address="Somewhere 1")
    place = DataNormalizer().normalize(feature)
    assert place.geopoint is None
    assert place.location.address == "Somewhere 1"
    assert place.domains == ["beer"]


def test_normalize_provider_details():
    details = PlaceDetails(
        place_id="abc",
        name="Kavárna Místo",
        formatted_address="Praha 1",
        formatted_phone_number="222 333 444",
        website="https://misto.cz",
        url="https://maps.google.com/?cid=9",
        price_level=3,
        rating=4.7,
        user_ratings_total=321,
        types=["cafe", "food", "establishment"],
        lat=50.1,
        lng=14.4,
    )
    place = DataNormalizer(NormalizerOptions(domain="coffee")).normalize(details)
    assert [c.value for c in place.categories] == ["cafe", "restaurant"]
    assert place.price == "high"
    assert place.phone == "222 333 444"
    assert place.scraped_data.source == "google-places-api"
    assert place.scraped_data.source_id == "abc"
    assert place.scraped_data.review_count == 321
    assert place.external_links[0].url == "https://maps.google.com/?cid=9"


def test_opening_hours_from_periods_collapse_and_closed_days():
    periods = [
        OpeningPeriod(open_day=1, open_time="0900", close_day=1, close_time="1200"),
        OpeningPeriod(open_day=1, open_time="1300", close_day=1, close_time="1800"),
        OpeningPeriod(open_day=5, open_time="1000", close_day=5, close_time="2200"),
    ]
    hours = {h.day: h for h in opening_hours_from_periods(periods)}
    assert len(hours) == 7
    assert (hours["monday"].open_time, hours["monday"].close_time) == ("09:00", "18:00")
    assert hours["friday"].close_time == "22:00"
    assert hours["sunday"].closed is True
    assert hours["tuesday"].closed is True


def test_opening_hours_always_open():
    hours = opening_hours_from_periods([OpeningPeriod(open_day=0, open_time="0000")])
    assert len(hours) == 7
    assert all(h.open_time == "00:00" and h.close_time == "23:59" for h in hours)


def test_opening_hours_empty_periods():
    assert opening_hours_from_periods([]) == []


def test_normalize_places_and_ndjson_helpers():
    raws = [ScrapedRecord(name="A Pub", source="s"), ScrapedRecord(name="B Cafe", source="s")]
    places = normalize_places(raws)
    assert [p.name for p in places] == ["A Pub", "B Cafe"]
    text = DataNormalizer().to_ndjson(raws)
    assert len(text.split("\n")) == 2


def test_unsupported_record_type_raises():
    with pytest.raises(TypeError):
        DataNormalizer().normalize({"name": "dict"})  # type: ignore[arg-type]
