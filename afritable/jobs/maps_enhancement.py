"""Worker entrypoint that fills missing contact details and photos from Google Maps listings."""

from __future__ import annotations

import argparse
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from afritable.core.config import ConfigError, get_settings
from afritable.core.db import PostgresRestaurantStore
from afritable.core.maps_scraper import (
    MAX_LISTING_PHOTOS,
    build_maps_scraper,
    is_placeholder_phone,
    is_placeholder_website,
)
from afritable.models import PhotoAsset, PhotoSource, RawMapsData, RestaurantRecord

logger = logging.getLogger(__name__)

LISTING_DELAY_SECONDS = 2.0
DEFAULT_LIMIT = 10
PHOTO_CAPTION = "Photo from Google Maps"


@dataclass
class MapsEnhancementResult:
    processed: int = 0
    enhanced: int = 0
    not_found: int = 0
    purged: int = 0
    errors: List[str] = field(default_factory=list)


def needs_listing_data(record: RestaurantRecord) -> bool:
    """Missing phone, website or photos, or carrying placeholder contact data."""
    return (
        not record.phone
        or not record.website
        or not record.photos
        or is_placeholder_phone(record.phone)
        or is_placeholder_website(record.website)
    )


def listing_query(record: RestaurantRecord) -> str:
    location = record.address or " ".join(filter(None, [record.city, record.state]))
    return " ".join(filter(None, [record.name, location])).strip()


def listing_changes(record: RestaurantRecord, data: RawMapsData) -> Dict[str, Any]:
    """Purge placeholder contacts, then fill blanks from the listing. Populated fields are never overwritten."""
    changes: Dict[str, Any] = {}
    phone = record.phone
    website = record.website
    if phone and is_placeholder_phone(phone):
        changes["phone"] = None
        phone = None
    if website and is_placeholder_website(website):
        changes["website"] = None
        website = None

    if data.found:
        if data.phone and not phone:
            changes["phone"] = data.phone
        if data.website and not website:
            changes["website"] = data.website
        if data.rating:
            changes["rating"] = data.rating
        if data.review_count:
            changes["review_count"] = data.review_count
        if data.photos and not record.main_image:
            changes["main_image"] = data.photos[0]
    return changes


def listing_photos(data: RawMapsData) -> List[PhotoAsset]:
    return [
        PhotoAsset(url=url, source=PhotoSource.GOOGLE, caption=PHOTO_CAPTION)
        for url in data.photos[:MAX_LISTING_PHOTOS]
    ]


def run_maps_enhancement(
    store: Any,
    scraper: Any,
    *,
    limit: int = DEFAULT_LIMIT,
    restaurant_ids: Optional[Sequence[str]] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Optional[Callable[[], datetime]] = None,
) -> MapsEnhancementResult:
    clock = clock or (lambda: datetime.now(timezone.utc))
    records = store.list_restaurants(restaurant_ids=restaurant_ids)
    candidates = [record for record in records if needs_listing_data(record)]
    if limit:
        candidates = candidates[:limit]
    logger.info("Found %d restaurants needing Maps listing data", len(candidates))

    result = MapsEnhancementResult()
    for index, record in enumerate(candidates):
        if index:
            sleep(LISTING_DELAY_SECONDS)
        result.processed += 1
        query = listing_query(record)
        try:
            data = scraper.scrape_listing(query)
            changes = listing_changes(record, data)
            if is_placeholder_phone(record.phone) or is_placeholder_website(record.website):
                result.purged += 1
            changes["last_updated"] = clock()
            store.update_restaurant(record.id, changes)
            if data.found and data.photos and not record.photos:
                store.replace_photos(record.id, listing_photos(data))
        except Exception as exc:  # noqa: BLE001
            logger.error("Maps enhancement failed for %s: %s", record.id, exc)
            result.errors.append(f"Restaurant {record.id}: {exc}")
            continue

        if data.found:
            result.enhanced += 1
            logger.info(
                "Enhanced %s phone=%s website=%s photos=%d",
                record.name,
                "yes" if data.phone else "no",
                "yes" if data.website else "no",
                len(data.photos),
            )
        else:
            result.not_found += 1
            logger.warning("Could not find %r on Google Maps", query)

    logger.info(
        "Maps enhancement completed: processed=%d enhanced=%d not_found=%d purged=%d errors=%d",
        result.processed,
        result.enhanced,
        result.not_found,
        result.purged,
        len(result.errors),
    )
    return result


def _parse_cli_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fill restaurant contact data from Google Maps listings.")
    parser.add_argument("--limit", type=int, default=DEFAULT_LIMIT, help="Maximum restaurants to process (0 = all)")
    parser.add_argument("--restaurant-id", dest="restaurant_ids", action="append", help="Restaurant id (repeatable)")
    parser.add_argument("--backend", choices=("browser", "serpapi"), default=None, help="Listing backend")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = _parse_cli_args(argv)
    try:
        settings = get_settings()
        scraper = build_maps_scraper(settings, args.backend)
        run_maps_enhancement(
            PostgresRestaurantStore(settings),
            scraper,
            limit=args.limit,
            restaurant_ids=args.restaurant_ids,
        )
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # noqa: BLE001
        logger.error("Maps enhancement failed: %s", exc, exc_info=True)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
