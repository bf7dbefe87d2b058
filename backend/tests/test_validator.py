import json

import pytest

from domain.models import Category, GeoPoint, Location, OpeningHours, Place
from services.validator import validate_ndjson_content, validate_place, validate_places


def make_doc(**overrides):
    doc = {
        "_type": "place",
        "name": "Café Lounge",
        "slug": {"_type": "slug", "current": "cafe-lounge"},
        "domains": ["coffee"],
        "location": {"_type": "geolocation", "geopoint": {"_type": "geopoint", "lat": 50.08, "lng": 14.40}},
    }
    doc.update(overrides)
    return doc


def coordinate_errors(result):
    return [e for e in result.errors if "latitude" in e or "longitude" in e]


def test_valid_document_has_no_errors_or_warnings():
    result = validate_place(make_doc())
    assert result.valid
    assert result.errors == []
    assert result.warnings == []


def test_valid_place_object():
    place = Place(
        name="Pivovar",
        slug="pivovar",
        domains=["beer"],
        categories=[Category("brewery", "Brewery")],
        location=Location(geopoint=GeoPoint(50.0, 14.0)),
    )
    assert validate_place(place).valid


@pytest.mark.parametrize("lat,lng", [(-90, -180), (90, 180), (0.5, 0), (45.1, -122.6)])
def test_valid_coordinates_report_no_coordinate_error(lat, lng):
    geopoint = {"_type": "geopoint", "lat": lat, "lng": lng}
    result = validate_place(make_doc(location={"geopoint": geopoint}))
    assert coordinate_errors(result) == []


@pytest.mark.parametrize(
    "lat,lng,expected",
    [(91, 10, 1), (10, 181, 1), (-91, -181, 2), ("50", 14, 1), (None, None, 2)],
)
def test_one_coordinate_error_per_bad_axis(lat, lng, expected):
    result = validate_place(make_doc(location={"geopoint": {"lat": lat, "lng": lng}}))
    assert len(coordinate_errors(result)) == expected
    assert not result.valid


def test_required_field_errors_are_all_reported():
    doc = {"_type": "venue", "name": "  ", "slug": {"current": "Bad Slug!"}, "domains": ["beer", "tea"]}
    result = validate_place(doc)
    assert 'Invalid or missing _type (must be "place")' in result.errors
    assert "Missing or empty name" in result.errors
    assert any(e.startswith("Invalid slug format") for e in result.errors)
    assert any(e.startswith("Invalid domains: tea") for e in result.errors)
    assert "Missing location.geopoint (place will not appear on map)" in result.warnings


def test_missing_slug_and_domains():
    result = validate_place(make_doc(slug=None, domains=[]))
    assert "Missing slug.current" in result.errors
    assert "Missing or empty domains array" in result.errors


def test_slug_too_long():
    result = validate_place(make_doc(slug={"current": "a" * 101}))
    assert "Slug too long (max 100 characters)" in result.errors


def test_duplicate_opening_hours_day_is_an_error():
    place = Place(
        name="Cafe",
        slug="cafe",
        domains=["coffee"],
        location=Location(geopoint=GeoPoint(50.0, 14.0)),
        opening_hours=[OpeningHours("monday", "08:00", "12:00"), OpeningHours("monday", "13:00", "18:00")],
    )
    result = validate_place(place)
    assert not result.valid
    assert any("Duplicate opening hours day: monday" in e for e in result.errors)


def test_warnings_do_not_invalidate():
    doc = make_doc(
        name="N" * 201,
        location={"geopoint": {"lat": 0, "lng": 0}},
        categories=[{"value": "museum", "label": "Museum"}],
        website="not a url",
        phone="call us",
        price="cheap",
    )
    result = validate_place(doc)
    assert result.valid
    assert "Name is unusually long (>200 characters)" in result.warnings
    assert "Coordinates are [0, 0] (null island) - likely missing data" in result.warnings
    assert "Unknown categories: museum" in result.warnings
    assert "Invalid website URL: not a url" in result.warnings
    assert "Phone number may have invalid format: call us" in result.warnings
    assert "Unknown price level: cheap" in result.warnings


def test_validate_places_counts():
    batch = validate_places([make_doc(), make_doc(name=""), make_doc()])
    assert not batch.valid
    assert batch.valid_count == 2
    assert batch.invalid_count == 1
    assert len(batch.results) == 3


def test_ndjson_content_reports_physical_line_numbers():
    lines = [
        json.dumps(make_doc(_id="coffee-a")),
        "",
        "{not json",
        json.dumps(make_doc(_id="coffee-a")),
        json.dumps(make_doc(_id="coffee-b", name="")),
    ]
    result = validate_ndjson_content("\n".join(lines))
    assert not result.valid
    assert result.record_count == 4
    by_line = {(e.line, e.error.split(":")[0]) for e in result.line_errors}
    assert (3, "Invalid JSON") in by_line
    assert (4, "Duplicate _id") in by_line
    assert any(e.line == 5 and e.error == "Missing or empty name" for e in result.line_errors)


def test_ndjson_content_valid_stream():
    content = "\n".join(json.dumps(make_doc(_id=f"coffee-{i}")) for i in range(3)) + "\n"
    result = validate_ndjson_content(content)
    assert result.valid
    assert result.record_count == 3


def test_non_array_opening_hours_is_reported_and_stream_continues():
    lines = [json.dumps(make_doc(openingHours=5)), json.dumps(make_doc(name=""))]
    result = validate_ndjson_content("\n".join(lines))
    assert not result.valid
    assert result.record_count == 2
    assert [(e.line, e.error) for e in result.line_errors] == [
        (1, "openingHours must be an array"),
        (2, "Missing or empty name"),
    ]
