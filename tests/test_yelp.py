import pytest

from afritable.models import PriceRange
from afritable.vendors.base import ErrorKind, UsageCounter
from afritable.vendors.yelp import YelpAdapter
from conftest import FIXED_NOW, FakeStore
from test_google_places import DummyResponse, DummySession


@pytest.fixture
def session():
    return DummySession()


@pytest.fixture
def usage_store():
    return FakeStore()


@pytest.fixture
def adapter(settings, usage_store, session):
    return YelpAdapter(settings, UsageCounter(usage_store, clock=lambda: FIXED_NOW), session=session)


def test_search_with_coordinates_uses_latitude_longitude(adapter, session):
    session.response = DummyResponse(
        payload={
            "businesses": [
                {
                    "id": "yelp-1",
                    "name": "Blue Nile",
                    "location": {
                        "display_address": ["123 Main St", "Atlanta, GA 30303"],
                        "city": "Atlanta",
                        "state": "GA",
                        "zip_code": "30303",
                    },
                    "coordinates": {"latitude": 33.75, "longitude": -84.39},
                    "display_phone": "(404) 555-0100",
                    "price": "$$",
                    "rating": 4.5,
                    "review_count": 80,
                    "categories": [{"title": "Ethiopian"}],
                }
            ]
        }
    )

    result = adapter.search("Ethiopian restaurant", "33.749,-84.388", 60000)

    assert result.success is True
    record = result.data[0]
    assert record.address == "123 Main St, Atlanta, GA 30303"
    assert record.price_range is PriceRange.MODERATE
    assert record.cuisine == "Ethiopian"

    url, params, headers, _ = session.calls[0]
    assert url.endswith("/businesses/search")
    assert params["latitude"] == pytest.approx(33.749)
    assert params["longitude"] == pytest.approx(-84.388)
    assert "location" not in params
    assert params["radius"] == 40000
    assert params["limit"] == 50
    assert params["categories"] == "restaurants"
    assert headers["Authorization"] == "Bearer yelp-key"


def test_search_with_free_text_location(adapter, session):
    session.response = DummyResponse(payload={"businesses": []})

    adapter.search("Nigerian restaurant", "Houston, TX, USA", 1000)

    _, params, _, _ = session.calls[0]
    assert params["location"] == "Houston, TX, USA"
    assert "latitude" not in params


def test_details_reads_hours_and_photos(adapter, session):
    session.response = DummyResponse(
        payload={
            "id": "yelp-1",
            "name": "Blue Nile",
            "photos": ["https://s3-media.yelpcdn.com/bphoto/a/o.jpg"],
            "hours": [{"open": [{"day": 0, "start": "1100", "end": "2200"}]}],
        }
    )

    result = adapter.get_details("yelp-1")

    assert result.success is True
    assert result.data.photos[0].url.endswith("o.jpg")
    assert result.data.hours["monday"].open == "11:00"
    assert result.data.hours["tuesday"].closed is True
    assert session.calls[0][0].endswith("/businesses/yelp-1")


def test_provider_error_description_is_surfaced(adapter, session, usage_store):
    session.response = DummyResponse(
        status_code=400,
        payload={"error": {"code": "VALIDATION_ERROR", "description": "radius too large"}},
    )

    result = adapter.search("African restaurant", "Atlanta", 1000)

    assert result.error_kind is ErrorKind.PROVIDER_ERROR
    assert result.error == "radius too large"
    assert usage_store.usage[("YELP", "business-search", FIXED_NOW.date())] == 0
