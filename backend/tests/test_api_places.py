import json

from fastapi.testclient import TestClient

from api.main import app

client = TestClient(app)


def place_doc(name, slug, lat, lng):
    return {
        "_type": "place",
        "name": name,
        "slug": {"_type": "slug", "current": slug},
        "domains": ["beer"],
        "location": {"geopoint": {"_type": "geopoint", "lat": lat, "lng": lng}},
    }


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


def test_normalize_mixed_records():
    payload = {
        "records": [
            {"name": "Craft Beer Corner", "source": "google-maps", "latitude": 50.1, "longitude": 14.4},
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [14.5, 50.2]},
                "properties": {"Title": "Kavárna Nula"},
            },
        ]
    }
    resp = client.post("/places/normalize", json=payload)
    assert resp.status_code == 200
    docs = resp.json()["documents"]
    assert [d["slug"]["current"] for d in docs] == ["craft-beer-corner", "kavarna-nula"]
    assert docs[0]["domains"] == ["beer"]


def test_normalize_rejects_unknown_record():
    resp = client.post("/places/normalize", json={"records": [{"foo": "bar"}]})
    assert resp.status_code == 422
    assert "records[0]" in resp.json()["detail"]


def test_validate_reports_line_errors():
    body = "\n".join([json.dumps(place_doc("A", "a", 50.0, 14.0)), "{nope", json.dumps({"_type": "place"})])
    resp = client.post("/places/validate", content=body.encode("utf-8"))
    assert resp.status_code == 200
    data = resp.json()
    assert data["valid"] is False
    assert data["record_count"] == 3
    lines = {e["line"] for e in data["line_errors"]}
    assert 2 in lines and 3 in lines and 1 not in lines


def test_deduplicate_endpoint():
    docs = [
        place_doc("Pivnice Sever", "pivnice-sever", 50.0, 14.0),
        place_doc("Pivnice Sever", "pivnice-sever-2", 50.0001, 14.0),
        place_doc("Other Pub", "other-pub", 50.1, 14.0),
    ]
    resp = client.post("/places/deduplicate", json={"documents": docs})
    assert resp.status_code == 200
    data = resp.json()
    assert len(data["unique"]) == 2
    assert data["duplicates"][0]["slug"] == "pivnice-sever-2"
    assert data["duplicates"][0]["matched_against"] == "pivnice-sever"


def test_validate_survives_wrongly_typed_field():
    body = "\n".join([json.dumps(dict(place_doc("A", "a", 50.0, 14.0), openingHours=5)), json.dumps({"_type": "place"})])
    resp = client.post("/places/validate", content=body.encode("utf-8"))
    assert resp.status_code == 200
    errors = resp.json()["line_errors"]
    assert {"line": 1, "error": "openingHours must be an array"} in errors
    assert any(e["line"] == 2 for e in errors)


def test_deduplicate_honors_zero_threshold():
    docs = [
        place_doc("Pivnice Sever", "pivnice-sever", 50.0, 14.0),
        place_doc("Pivnice Sever", "pivnice-sever-2", 50.0001, 14.0),
    ]
    resp = client.post("/places/deduplicate", json={"documents": docs, "threshold_meters": 0})
    assert resp.status_code == 200
    assert len(resp.json()["unique"]) == 2
    assert resp.json()["duplicates"] == []
