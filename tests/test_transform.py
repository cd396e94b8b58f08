import pytest

from afritable.etl import transform
from afritable.models import DayHours, PriceRange, Provider, SourcePhoto, SourceRecord


def test_parse_address_components():
    components = [
        {"long_name": "Atlanta", "short_name": "Atlanta", "types": ["locality", "political"]},
        {"long_name": "Georgia", "short_name": "GA", "types": ["administrative_area_level_1"]},
        {"long_name": "30303", "short_name": "30303", "types": ["postal_code"]},
        {"long_name": "United States", "short_name": "US", "types": ["country"]},
    ]

    parsed = transform.parse_address_components(components)

    assert parsed == {"city": "Atlanta", "state": "GA", "zip_code": "30303", "country": "US"}
    assert transform.parse_address_components([])["city"] is None


@pytest.mark.parametrize(
    "address, expected",
    [
        ("123 Main St, Atlanta, GA 30303, USA", ("123 Main St", "Atlanta", "GA", "30303")),
        ("Suite 200, 123 Main St, Atlanta, GA 30303", ("Suite 200, 123 Main St", "Atlanta", "GA", "30303")),
        ("55 Elm Ave, Houston, TX", ("55 Elm Ave", "Houston", "TX", "")),
        ("Somewhere, Springfield", ("Somewhere", "Springfield", "", "")),
    ],
)
def test_parse_formatted_address_is_anchored_from_the_end(address, expected):
    parsed = transform.parse_formatted_address(address)

    assert (parsed["street"], parsed["city"], parsed["state"], parsed["zip_code"]) == expected


def test_price_mappings():
    assert transform.google_price_range(0) is PriceRange.BUDGET
    assert transform.google_price_range(1) is PriceRange.MODERATE
    assert transform.google_price_range(2) is PriceRange.EXPENSIVE
    assert transform.google_price_range(4) is PriceRange.VERY_EXPENSIVE
    assert transform.google_price_range(None) is PriceRange.MODERATE
    assert transform.yelp_price_range("$") is PriceRange.BUDGET
    assert transform.yelp_price_range("$$$$") is PriceRange.VERY_EXPENSIVE
    assert transform.yelp_price_range(None) is None
    assert transform.foursquare_price_range(2) is PriceRange.MODERATE
    assert transform.foursquare_price_range("x") is None


def test_normalize_rating_clamps_and_rounds():
    assert transform.normalize_rating(4.44) == 4.4
    assert transform.normalize_rating(7) == 5.0
    assert transform.normalize_rating(-1) == 0.0
    assert transform.normalize_rating(9.0, scale=10.0) == 4.5
    assert transform.normalize_rating("n/a") is None


def test_parse_google_hours_handles_closed_and_all_day():
    hours = transform.parse_google_hours(
        ["Monday: Closed", "Tuesday: Open 24 hours", "Wednesday: 11:00 AM – 9:00 PM"]
    )

    assert hours["monday"] == DayHours(closed=True)
    assert hours["tuesday"] == DayHours("00:00", "23:59")
    assert hours["wednesday"] == DayHours("11:00 AM", "9:00 PM")
    assert hours["sunday"] == DayHours()
    assert transform.parse_google_hours(None) is None


def test_yelp_and_foursquare_day_numbering():
    yelp = transform.parse_yelp_hours([{"day": 6, "start": "1000", "end": "1800"}])
    foursquare = transform.parse_foursquare_hours([{"day": 7, "open": "1000", "close": "1800"}])

    assert yelp["sunday"] == DayHours("10:00", "18:00")
    assert foursquare["sunday"] == DayHours("10:00", "18:00")
    assert yelp["monday"].closed is True


def _record(name, address, provider=Provider.GOOGLE, external_id="x"):
    return SourceRecord(provider=provider, external_id=external_id, name=name, address=address)


def test_deduplicate_keeps_first_and_is_idempotent():
    records = [
        _record("Blue Nile", "123 Main St", Provider.GOOGLE, "g1"),
        _record("  blue nile ", "123 MAIN ST ", Provider.YELP, "y1"),
        _record("Blue Nile", "9 Side St", Provider.FOURSQUARE, "f1"),
    ]

    once = transform.deduplicate(records)
    twice = transform.deduplicate(once)

    assert [record.external_id for record in once] == ["g1", "f1"]
    assert twice == once


def test_to_restaurant_record_sets_provider_id_and_defaults():
    source = SourceRecord(
        provider=Provider.YELP,
        external_id="yelp-1",
        name="Blue Nile",
        address="123 Main St, Atlanta, GA 30303",
        latitude=33.75,
        longitude=-84.39,
        photos=[SourcePhoto(url="https://img/1.jpg")],
    )

    record = transform.to_restaurant_record(source)

    assert record.yelp_business_id == "yelp-1"
    assert record.google_place_id is None
    assert record.city == "Atlanta"
    assert record.state == "GA"
    assert record.price_range is PriceRange.MODERATE
    assert record.main_image == "https://img/1.jpg"
    assert record.data_source == "yelp"
