"""Upsert collected provider records into the restaurant store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from afritable.core.photos import PROVIDER_PHOTO_SOURCES
from afritable.core.validation import is_valid_phone, is_valid_website
from afritable.etl.transform import parse_formatted_address, to_restaurant_record
from afritable.models import PhotoAsset, Provider, RestaurantRecord, SourceRecord

logger = logging.getLogger(__name__)

DEFAULT_CUISINE = "African"
CREATED = "created"
UPDATED = "updated"

_EXTERNAL_ID_FIELDS = {
    Provider.GOOGLE: "google_place_id",
    Provider.YELP: "yelp_business_id",
    Provider.FOURSQUARE: "foursquare_id",
}
_MERGED_FIELDS = ("phone", "website", "address", "city", "state", "zip_code", "cuisine", "price_range")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def find_existing(store: Any, record: SourceRecord) -> Optional[RestaurantRecord]:
    """Match on external id, then exact name + address, then exact name + coordinates."""
    field_name = _EXTERNAL_ID_FIELDS[record.provider]
    if record.external_id:
        match = store.find_by_external_ids(**{field_name: record.external_id})
        if match is not None:
            return match
    if record.name and record.address:
        match = store.find_by_name_and_address(record.name, record.address)
        if match is not None:
            return match
    if record.name and record.latitude and record.longitude:
        return store.find_by_name_and_coordinates(record.name, record.latitude, record.longitude)
    return None


def _better(field_name: str, current: Any, candidate: Any) -> bool:
    if _blank(candidate):
        return False
    if _blank(current):
        return True
    if field_name == "phone":
        return not is_valid_phone(current) and is_valid_phone(candidate)
    if field_name == "website":
        return not is_valid_website(current) and is_valid_website(candidate)
    return False


def merge_changes(existing: RestaurantRecord, record: SourceRecord, force_update: bool = False) -> Dict[str, Any]:
    """Changes to apply to ``existing``. Populated fields are kept unless forced or strictly improved."""
    candidates = {field_name: getattr(record, field_name) for field_name in _MERGED_FIELDS}
    if record.address and not (record.city and record.state):
        parsed = parse_formatted_address(record.address)
        candidates["city"] = candidates["city"] or parsed["city"] or None
        candidates["state"] = candidates["state"] or parsed["state"] or None
        candidates["zip_code"] = candidates["zip_code"] or parsed["zip_code"] or None

    changes: Dict[str, Any] = {}
    for field_name, candidate in candidates.items():
        current = getattr(existing, field_name)
        if _blank(candidate) or candidate == current:
            continue
        if force_update or _better(field_name, current, candidate):
            changes[field_name] = candidate

    if (force_update or not existing.latitude or not existing.longitude) and record.latitude and record.longitude:
        if (record.latitude, record.longitude) != (existing.latitude, existing.longitude):
            changes["latitude"] = record.latitude
            changes["longitude"] = record.longitude
    if record.hours and (force_update or not any(day.is_set() for day in existing.hours.values())):
        changes["hours"] = record.hours
    if record.photos and (force_update or not existing.main_image):
        changes["main_image"] = record.photos[0].url

    field_name = _EXTERNAL_ID_FIELDS[record.provider]
    if record.external_id and not getattr(existing, field_name):
        changes[field_name] = record.external_id

    if record.rating is not None:
        changes["rating"] = record.rating
    if record.review_count is not None:
        changes["review_count"] = record.review_count
    return changes


def upsert_restaurant(
    store: Any,
    record: SourceRecord,
    *,
    force_update: bool = False,
    now: Optional[datetime] = None,
) -> str:
    """Insert or merge one provider record. Returns ``"created"`` or ``"updated"``."""
    now = now or datetime.now(timezone.utc)
    existing = find_existing(store, record)
    if existing is not None:
        changes = merge_changes(existing, record, force_update)
        changes["last_updated"] = now
        store.update_restaurant(existing.id, changes)
        logger.debug("Updated %s (%s) fields=%s", existing.id, record.name, sorted(changes))
        return UPDATED

    restaurant = to_restaurant_record(record)
    restaurant.cuisine = restaurant.cuisine or DEFAULT_CUISINE
    restaurant.data_source = record.provider.value.upper()
    restaurant.is_verified = False
    restaurant.last_updated = now
    restaurant.photos = _source_photos(record)
    restaurant_id = store.create_restaurant(restaurant)
    logger.debug("Created %s (%s) from %s", restaurant_id, record.name, record.provider.value)
    return CREATED


def _source_photos(record: SourceRecord) -> List[PhotoAsset]:
    return [
        PhotoAsset(url=photo.url, source=PROVIDER_PHOTO_SOURCES[record.provider], caption=photo.caption, verified=True)
        for photo in record.photos
    ]
