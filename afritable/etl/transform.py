"""Utilities for transforming provider responses into restaurant records."""

import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from afritable.models import (
    WEEKDAYS,
    DayHours,
    PriceRange,
    Provider,
    RestaurantRecord,
    SourcePhoto,
    SourceRecord,
    empty_week,
)

logger = logging.getLogger(__name__)

_COUNTRY_SUFFIXES = {"usa", "us", "united states", "united states of america"}
_STATE_ZIP_RE = re.compile(r"^(?P<state>[A-Za-z][A-Za-z .]*?)\s+(?P<zip>\d{5}(?:-\d{4})?)$|^(?P<abbr>[A-Z]{2})$")
_TIME_RANGE_RE = re.compile(r"^\s*([^–\-]+?)\s*[–\-]\s*(.+?)\s*$")

_GOOGLE_PRICE_LEVELS = {
    0: PriceRange.BUDGET,
    1: PriceRange.MODERATE,
    2: PriceRange.EXPENSIVE,
    3: PriceRange.VERY_EXPENSIVE,
    4: PriceRange.VERY_EXPENSIVE,
}
_TIERS = (PriceRange.BUDGET, PriceRange.MODERATE, PriceRange.EXPENSIVE, PriceRange.VERY_EXPENSIVE)


def parse_address_components(address_components: Iterable[Dict[str, Any]]) -> Dict[str, Optional[str]]:
    """Pull city/state/zip/country out of structured Google address components."""
    parsed: Dict[str, Optional[str]] = {"city": None, "state": None, "zip_code": None, "country": None}
    for component in address_components or []:
        types = set(component.get("types", []))
        if "locality" in types or ("administrative_area_level_2" in types and not parsed["city"]):
            parsed["city"] = component.get("long_name")
        if "administrative_area_level_1" in types:
            parsed["state"] = component.get("short_name") or component.get("long_name")
        if "postal_code" in types:
            parsed["zip_code"] = component.get("long_name")
        if "country" in types:
            parsed["country"] = component.get("short_name") or component.get("long_name")
    return parsed


def parse_formatted_address(address: Optional[str]) -> Dict[str, str]:
    """Split a one-line address from the right: ``street, city, STATE ZIP[, country]``."""
    result = {"street": "", "city": "", "state": "", "zip_code": ""}
    parts = [part.strip() for part in (address or "").split(",") if part.strip()]
    if parts and parts[-1].lower() in _COUNTRY_SUFFIXES:
        parts = parts[:-1]
    if not parts:
        return result

    match = _STATE_ZIP_RE.match(parts[-1]) if len(parts) > 1 else None
    if match:
        result["state"] = (match.group("state") or match.group("abbr")).strip()
        result["zip_code"] = match.group("zip") or ""
        parts = parts[:-1]
    if len(parts) > 1:
        result["city"] = parts[-1]
        parts = parts[:-1]
    result["street"] = ", ".join(parts)
    return result


def google_price_range(level: Any) -> PriceRange:
    try:
        return _GOOGLE_PRICE_LEVELS.get(int(level), PriceRange.MODERATE)
    except (TypeError, ValueError):
        return PriceRange.MODERATE


def yelp_price_range(price: Optional[str]) -> Optional[PriceRange]:
    if not price:
        return None
    count = price.strip().count("$")
    if count < 1:
        return None
    return _TIERS[min(count, 4) - 1]


def foursquare_price_range(price: Any) -> Optional[PriceRange]:
    try:
        tier = int(price)
    except (TypeError, ValueError):
        return None
    if tier < 1:
        return None
    return _TIERS[min(tier, 4) - 1]


def normalize_rating(value: Any, scale: float = 5.0) -> Optional[float]:
    """Round to one decimal on a 0-5 scale; ``scale`` is the provider's maximum."""
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return None
    if scale != 5.0:
        rating = rating * 5.0 / scale
    return round(min(max(rating, 0.0), 5.0), 1)


def _hhmm(value: Any) -> str:
    text = str(value or "").strip()
    if len(text) == 4 and text.isdigit():
        return f"{text[:2]}:{text[2:]}"
    return text


def parse_google_hours(weekday_text: Optional[List[str]]) -> Optional[Dict[str, DayHours]]:
    """Parse ``["Monday: 11:00 AM – 10:00 PM", "Tuesday: Closed", ...]``."""
    if not weekday_text:
        return None
    hours = empty_week()
    for line in weekday_text:
        day, _, value = line.partition(":")
        day_key = day.strip().lower()
        if day_key not in hours:
            continue
        value = value.strip()
        if value.lower() == "closed":
            hours[day_key] = DayHours(closed=True)
        elif "24 hours" in value.lower():
            hours[day_key] = DayHours(open="00:00", close="23:59")
        else:
            match = _TIME_RANGE_RE.match(value)
            if match:
                hours[day_key] = DayHours(open=match.group(1), close=match.group(2))
    return hours


def parse_yelp_hours(open_entries: Optional[List[Dict[str, Any]]]) -> Optional[Dict[str, DayHours]]:
    """Yelp numbers days from 0 (Monday) and sends times as ``"1100"``."""
    if not open_entries:
        return None
    hours = {day: DayHours(closed=True) for day in WEEKDAYS}
    for entry in open_entries:
        try:
            day = WEEKDAYS[int(entry.get("day"))]
        except (TypeError, ValueError, IndexError):
            continue
        hours[day] = DayHours(open=_hhmm(entry.get("start")), close=_hhmm(entry.get("end")))
    return hours


def parse_foursquare_hours(regular: Optional[List[Dict[str, Any]]]) -> Optional[Dict[str, DayHours]]:
    """Foursquare numbers days from 1 (Monday) to 7 (Sunday)."""
    if not regular:
        return None
    hours = {day: DayHours(closed=True) for day in WEEKDAYS}
    for entry in regular:
        try:
            day = WEEKDAYS[int(entry.get("day")) - 1]
        except (TypeError, ValueError, IndexError):
            continue
        hours[day] = DayHours(open=_hhmm(entry.get("open")), close=_hhmm(entry.get("close")))
    return hours


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    try:
        if value is None:
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def google_to_source_record(
    result: Dict[str, Any],
    photo_url: Optional[Callable[[str], str]] = None,
) -> SourceRecord:
    geometry = result.get("geometry", {}).get("location", {})
    address = result.get("formatted_address") or result.get("vicinity") or ""
    structured = parse_address_components(result.get("address_components", []))
    fallback = parse_formatted_address(address)

    photos: List[SourcePhoto] = []
    if photo_url:
        for photo in result.get("photos") or []:
            reference = photo.get("photo_reference")
            if not reference:
                continue
            attributions = photo.get("html_attributions") or []
            photos.append(
                SourcePhoto(
                    url=photo_url(reference),
                    caption=re.sub(r"<[^>]+>", "", attributions[0]) if attributions else None,
                    width=_safe_int(photo.get("width")),
                    height=_safe_int(photo.get("height")),
                )
            )

    price_level = result.get("price_level")
    return SourceRecord(
        provider=Provider.GOOGLE,
        external_id=result.get("place_id") or "",
        name=(result.get("name") or "").strip(),
        address=address.strip(),
        city=structured["city"] or fallback["city"],
        state=structured["state"] or fallback["state"],
        zip_code=structured["zip_code"] or fallback["zip_code"],
        country=structured["country"] or "US",
        latitude=_safe_float(geometry.get("lat")),
        longitude=_safe_float(geometry.get("lng")),
        phone=_strip_or_none(result.get("formatted_phone_number") or result.get("international_phone_number")),
        website=_strip_or_none(result.get("website")),
        rating=normalize_rating(result.get("rating")),
        review_count=_safe_int(result.get("user_ratings_total")),
        price_range=google_price_range(price_level) if price_level is not None else None,
        photos=photos,
        hours=parse_google_hours((result.get("opening_hours") or {}).get("weekday_text")),
        raw_snapshot=result,
    )


def yelp_to_source_record(business: Dict[str, Any]) -> SourceRecord:
    location = business.get("location") or {}
    coordinates = business.get("coordinates") or {}
    display_address = location.get("display_address") or []
    address = ", ".join(display_address) if display_address else location.get("address1") or ""
    categories = business.get("categories") or []
    hours_blocks = business.get("hours") or []

    return SourceRecord(
        provider=Provider.YELP,
        external_id=business.get("id") or "",
        name=(business.get("name") or "").strip(),
        address=address.strip(),
        city=location.get("city") or "",
        state=location.get("state") or "",
        zip_code=location.get("zip_code") or "",
        country=location.get("country") or "US",
        latitude=_safe_float(coordinates.get("latitude")),
        longitude=_safe_float(coordinates.get("longitude")),
        phone=_strip_or_none(business.get("display_phone") or business.get("phone")),
        rating=normalize_rating(business.get("rating")),
        review_count=_safe_int(business.get("review_count")),
        price_range=yelp_price_range(business.get("price")),
        cuisine=categories[0].get("title") if categories else None,
        photos=[SourcePhoto(url=url) for url in business.get("photos") or [] if url],
        hours=parse_yelp_hours(hours_blocks[0].get("open") if hours_blocks else None),
        raw_snapshot=business,
    )


def foursquare_to_source_record(place: Dict[str, Any]) -> SourceRecord:
    location = place.get("location") or {}
    geocode = (place.get("geocodes") or {}).get("main") or {}
    categories = place.get("categories") or []
    address = location.get("formatted_address") or location.get("address") or ""

    photos = []
    for photo in place.get("photos") or []:
        prefix, suffix = photo.get("prefix"), photo.get("suffix")
        if prefix and suffix:
            photos.append(
                SourcePhoto(
                    url=f"{prefix}original{suffix}",
                    width=_safe_int(photo.get("width")),
                    height=_safe_int(photo.get("height")),
                )
            )

    return SourceRecord(
        provider=Provider.FOURSQUARE,
        external_id=place.get("fsq_id") or "",
        name=(place.get("name") or "").strip(),
        address=address.strip(),
        city=location.get("locality") or "",
        state=location.get("region") or "",
        zip_code=location.get("postcode") or "",
        country=location.get("country") or "US",
        latitude=_safe_float(geocode.get("latitude")),
        longitude=_safe_float(geocode.get("longitude")),
        phone=_strip_or_none(place.get("tel")),
        website=_strip_or_none(place.get("website")),
        rating=normalize_rating(place.get("rating"), scale=10.0),
        price_range=foursquare_price_range(place.get("price")),
        cuisine=categories[0].get("name") if categories else None,
        photos=photos,
        hours=parse_foursquare_hours((place.get("hours") or {}).get("regular")),
        raw_snapshot=place,
    )


def dedupe_key(record: SourceRecord) -> Tuple[str, str]:
    return (record.name or "").lower().strip(), (record.address or "").lower().strip()


def deduplicate(records: Iterable[SourceRecord]) -> List[SourceRecord]:
    """Keep the first record seen for each (name, address) key."""
    seen = set()
    unique: List[SourceRecord] = []
    for record in records:
        key = dedupe_key(record)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def to_restaurant_record(record: SourceRecord) -> RestaurantRecord:
    """Build a new canonical record from a single provider view."""
    external = {
        Provider.GOOGLE: "google_place_id",
        Provider.YELP: "yelp_business_id",
        Provider.FOURSQUARE: "foursquare_id",
    }
    fallback = parse_formatted_address(record.address)
    restaurant = RestaurantRecord(
        name=record.name,
        address=record.address,
        city=record.city or fallback["city"],
        state=record.state or fallback["state"],
        zip_code=record.zip_code or fallback["zip_code"],
        country=record.country or "US",
        latitude=record.latitude or 0.0,
        longitude=record.longitude or 0.0,
        phone=record.phone,
        website=record.website,
        cuisine=record.cuisine,
        price_range=record.price_range or PriceRange.MODERATE,
        rating=record.rating or 0.0,
        review_count=record.review_count or 0,
        main_image=record.photos[0].url if record.photos else None,
        hours=record.hours or empty_week(),
        data_source=record.provider.value,
    )
    setattr(restaurant, external[record.provider], record.external_id or None)
    return restaurant
