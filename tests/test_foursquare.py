import pytest

from afritable.models import PriceRange
from afritable.vendors.base import ErrorKind, UsageCounter
from afritable.vendors.foursquare import FoursquareAdapter
from conftest import FIXED_NOW, FakeStore
from test_google_places import DummyResponse, DummySession


@pytest.fixture
def session():
    return DummySession()


@pytest.fixture
def adapter(settings, session):
    return FoursquareAdapter(settings, UsageCounter(FakeStore(), clock=lambda: FIXED_NOW), session=session)


def test_search_builds_params_and_normalises_rating(adapter, session):
    session.response = DummyResponse(
        payload={
            "results": [
                {
                    "fsq_id": "fsq-1",
                    "name": "Blue Nile",
                    "location": {"formatted_address": "123 Main St, Atlanta, GA 30303", "locality": "Atlanta"},
                    "geocodes": {"main": {"latitude": 33.75, "longitude": -84.39}},
                    "rating": 8.8,
                    "price": 3,
                    "photos": [{"prefix": "https://fastly.4sqi.net/img/general/", "suffix": "/a.jpg"}],
                    "hours": {"regular": [{"day": 1, "open": "1100", "close": "2200"}]},
                }
            ]
        }
    )

    result = adapter.search("Ghanaian restaurant", "33.749,-84.388", 16090)

    assert result.success is True
    record = result.data[0]
    assert record.rating == 4.4
    assert record.price_range is PriceRange.EXPENSIVE
    assert record.photos[0].url == "https://fastly.4sqi.net/img/general/original/a.jpg"
    assert record.hours["monday"].open == "11:00"
    assert record.hours["sunday"].closed is True

    url, params, headers, _ = session.calls[0]
    assert url.endswith("/places/search")
    assert params["ll"] == "33.749,-84.388"
    assert params["categories"] == "13000"
    assert params["limit"] == 50
    assert "fsq_id" in params["fields"]
    assert headers["Authorization"] == "fsq-key"


def test_search_with_free_text_uses_near(adapter, session):
    session.response = DummyResponse(payload={"results": []})

    adapter.search("Kenyan restaurant", "Seattle, WA", 1000)

    assert session.calls[0][1]["near"] == "Seattle, WA"


def test_message_payload_is_provider_error(adapter, session):
    session.response = DummyResponse(payload={"message": "Invalid request token."})

    result = adapter.get_details("fsq-1")

    assert result.error_kind is ErrorKind.PROVIDER_ERROR
    assert result.error == "Invalid request token."
    assert session.calls[0][0].endswith("/places/fsq-1")
