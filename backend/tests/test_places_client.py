from unittest.mock import MagicMock

import pytest

from services.places_cache_sqlite import PlacesCache
from services.places_client import GooglePlacesClient, PlacesProviderError


class DummyResponse:
    def __init__(self, json_data, status_code=200):
        self._json = json_data
        self.status_code = status_code

    def raise_for_status(self):
        return None

    def json(self):
        return self._json


DETAILS_RESULT = {
    "place_id": "pid-1",
    "name": "Kavárna Slavia",
    "formatted_address": "Smetanovo nábř. 1012/2, Praha",
    "types": ["cafe"],
    "geometry": {"location": {"lat": 50.0815, "lng": 14.4134}},
    "opening_hours": {"periods": [{"open": {"day": 1, "time": "0800"}, "close": {"day": 1, "time": "2200"}}]},
}


def make_client(responses, cache=None):
    session = MagicMock()
    session.get.side_effect = [DummyResponse(r) for r in responses]
    return GooglePlacesClient("test-key", session=session, cache=cache), session


def test_find_nearby_returns_first_result():
    client, session = make_client(
        [{"status": "OK", "results": [{"place_id": "a", "name": "First"}, {"place_id": "b", "name": "Second"}]}]
    )
    match = client.find_nearby(50.08, 14.41, "Slavia")
    assert match.place_id == "a"

    url = session.get.call_args.args[0]
    params = session.get.call_args.kwargs["params"]
    assert url.endswith("/nearbysearch/json")
    assert params["location"] == "50.08,14.41"
    assert params["radius"] == "100"
    assert params["keyword"] == "Slavia"
    assert params["key"] == "test-key"


@pytest.mark.parametrize("payload", [{"status": "ZERO_RESULTS", "results": []}, {"status": "REQUEST_DENIED"}])
def test_find_nearby_none_when_not_ok(payload):
    client, _ = make_client([payload])
    assert client.find_nearby(50.08, 14.41, "Slavia") is None


def test_get_details_parses_result():
    client, session = make_client([{"status": "OK", "result": DETAILS_RESULT}])
    details = client.get_details("pid-1")
    assert details.name == "Kavárna Slavia"
    assert details.lat == 50.0815
    assert details.opening_periods[0].open_time == "0800"
    assert "opening_hours" in session.get.call_args.kwargs["params"]["fields"]


def test_get_details_none_when_not_ok():
    client, _ = make_client([{"status": "NOT_FOUND"}])
    assert client.get_details("missing") is None


def test_get_details_uses_cache(tmp_path):
    cache = PlacesCache(str(tmp_path / "places.sqlite"))
    client, session = make_client([{"status": "OK", "result": DETAILS_RESULT}], cache=cache)

    first = client.get_details("pid-1")
    second = client.get_details("pid-1")

    assert session.get.call_count == 1
    assert second == first


def test_text_search_pagination_token_and_error():
    client, session = make_client(
        [
            {"status": "OK", "results": [{"place_id": "a", "name": "A"}], "next_page_token": "tok"},
            {"status": "OVER_QUERY_LIMIT", "error_message": "slow down"},
        ]
    )
    page = client.text_search("coffee prague")
    assert page.next_page_token == "tok"
    assert page.results[0].place_id == "a"

    with pytest.raises(PlacesProviderError) as excinfo:
        client.text_search("coffee prague", page_token="tok")
    assert excinfo.value.status == "OVER_QUERY_LIMIT"
    assert session.get.call_args.kwargs["params"]["pagetoken"] == "tok"


def test_nearby_search_zero_results_is_empty_page():
    client, session = make_client([{"status": "ZERO_RESULTS", "results": []}])
    page = client.nearby_search(50.0, 14.0, 5000, place_type="cafe")
    assert page.results == []
    assert page.next_page_token is None
    assert session.get.call_args.kwargs["params"]["type"] == "cafe"
