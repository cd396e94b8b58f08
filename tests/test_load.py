from afritable.etl import load
from afritable.models import PhotoSource, Provider, RestaurantRecord, SourcePhoto, SourceRecord
from conftest import FIXED_NOW, FakeStore


def _google(**overrides):
    values = dict(
        provider=Provider.GOOGLE,
        external_id="g-1",
        name="Blue Nile",
        address="123 Main St, Atlanta, GA 30303",
        latitude=33.75,
        longitude=-84.39,
        phone="(404) 555-0199",
        website="https://bluenile.example.org",
        rating=4.5,
        review_count=210,
    )
    values.update(overrides)
    return SourceRecord(**values)


def test_creates_new_restaurant_with_defaults():
    store = FakeStore()
    record = _google(photos=[SourcePhoto(url="https://img/1.jpg"), SourcePhoto(url="https://img/2.jpg")])

    outcome = load.upsert_restaurant(store, record, now=FIXED_NOW)

    assert outcome == load.CREATED
    created = store.records["1"]
    assert created.google_place_id == "g-1"
    assert created.cuisine == "African"
    assert created.data_source == "GOOGLE"
    assert created.is_verified is False
    assert created.city == "Atlanta"
    assert created.last_updated == FIXED_NOW
    assert created.main_image == "https://img/1.jpg"
    assert [photo.is_primary for photo in created.photos] == [True, False]
    assert all(photo.source is PhotoSource.GOOGLE for photo in created.photos)


def test_created_cuisine_keeps_provider_category():
    store = FakeStore()

    load.upsert_restaurant(store, _google(provider=Provider.YELP, external_id="y-1", cuisine="Ethiopian"))

    created = store.records["1"]
    assert created.cuisine == "Ethiopian"
    assert created.yelp_business_id == "y-1"
    assert created.data_source == "YELP"


def test_matches_on_external_id_and_keeps_populated_fields():
    existing = RestaurantRecord(
        name="Blue Nile",
        google_place_id="g-1",
        address="500 Other Rd",
        phone="(404) 555-0100",
        rating=3.9,
        review_count=10,
    )
    store = FakeStore([existing])

    outcome = load.upsert_restaurant(store, _google(), now=FIXED_NOW)

    assert outcome == load.UPDATED
    stored = store.records["1"]
    assert stored.phone == "(404) 555-0100"
    assert stored.address == "500 Other Rd"
    assert stored.website == "https://bluenile.example.org"
    assert stored.rating == 4.5
    assert stored.review_count == 210
    assert stored.latitude == 33.75
    assert stored.last_updated == FIXED_NOW
    assert len(store.records) == 1


def test_matches_on_name_and_address_and_links_external_id():
    existing = RestaurantRecord(
        name="Blue Nile",
        yelp_business_id="y-1",
        address="123 Main St, Atlanta, GA 30303",
    )
    store = FakeStore([existing])

    outcome = load.upsert_restaurant(store, _google())

    assert outcome == load.UPDATED
    assert store.records["1"].google_place_id == "g-1"
    assert store.records["1"].yelp_business_id == "y-1"


def test_matches_on_name_and_coordinates():
    existing = RestaurantRecord(name="Blue Nile", address="", latitude=33.75, longitude=-84.39)
    store = FakeStore([existing])

    outcome = load.upsert_restaurant(store, _google(address="123 Main Street"))

    assert outcome == load.UPDATED
    assert store.records["1"].address == "123 Main Street"


def test_invalid_phone_is_replaced_by_valid_one():
    existing = RestaurantRecord(name="Blue Nile", google_place_id="g-1", phone="555-CALL")

    changes = load.merge_changes(existing, _google())

    assert changes["phone"] == "(404) 555-0199"


def test_force_update_overwrites_populated_fields():
    existing = RestaurantRecord(
        name="Blue Nile",
        google_place_id="g-1",
        address="500 Other Rd",
        phone="(404) 555-0100",
        latitude=1.0,
        longitude=2.0,
    )

    kept = load.merge_changes(existing, _google())
    forced = load.merge_changes(existing, _google(), force_update=True)

    assert "phone" not in kept and "address" not in kept and "latitude" not in kept
    assert forced["phone"] == "(404) 555-0199"
    assert forced["address"] == "123 Main St, Atlanta, GA 30303"
    assert (forced["latitude"], forced["longitude"]) == (33.75, -84.39)


def test_missing_rating_is_not_cleared():
    existing = RestaurantRecord(name="Blue Nile", google_place_id="g-1", rating=4.1, review_count=12)

    changes = load.merge_changes(existing, _google(rating=None, review_count=None))

    assert "rating" not in changes
    assert "review_count" not in changes
