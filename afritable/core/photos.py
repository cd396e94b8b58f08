"""Collect, classify and rank restaurant photos from every available source."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from afritable.core.extensions import CapabilityStatus, SocialPhotoSource, UnavailableSocialPhotoSource
from afritable.etl.classify import (
    classify_photo_type,
    estimate_photo_quality,
    is_culturally_relevant,
    photo_tags,
    quality_tier,
)
from afritable.models import (
    PROVIDER_ORDER,
    PhotoAsset,
    PhotoCollectionResult,
    PhotoQuality,
    PhotoSource,
    PhotoType,
    Provider,
    RestaurantRecord,
    ScrapedRestaurantData,
    SourceRecord,
)

logger = logging.getLogger(__name__)

PHOTOS_PER_SOURCE = 10
MAX_PHOTOS = 25
PROVIDER_PHOTO_SOURCES = {
    Provider.GOOGLE: PhotoSource.GOOGLE,
    Provider.YELP: PhotoSource.YELP,
    Provider.FOURSQUARE: PhotoSource.FOURSQUARE,
}


def default_social_sources() -> List[SocialPhotoSource]:
    return [
        UnavailableSocialPhotoSource("instagram photos", PhotoSource.INSTAGRAM),
        UnavailableSocialPhotoSource("facebook photos", PhotoSource.MANUAL),
    ]


def _is_cultural(photo: PhotoAsset) -> bool:
    return photo.cultural_context is not None


def prioritize_photos(photos: Sequence[PhotoAsset], limit: int = MAX_PHOTOS) -> List[PhotoAsset]:
    """Dedupe on (url, type) then stable-sort FOOD, HIGH, verified, cultural first."""
    seen = set()
    unique: List[PhotoAsset] = []
    for photo in photos:
        key = (photo.url, photo.type)
        if key in seen:
            continue
        seen.add(key)
        unique.append(photo)

    ranked = sorted(
        unique,
        key=lambda photo: (
            photo.type is not PhotoType.FOOD,
            photo.quality is not PhotoQuality.HIGH,
            not photo.verified,
            not _is_cultural(photo),
        ),
    )
    return ranked[:limit]


class PhotoEnhancementService:
    def __init__(
        self,
        adapters: Dict[Provider, Any],
        scraper: Optional[Any] = None,
        social_sources: Optional[List[SocialPhotoSource]] = None,
    ) -> None:
        self.adapters = adapters
        self.scraper = scraper
        self.social_sources = social_sources if social_sources is not None else default_social_sources()

    def _build_photo(
        self,
        restaurant: RestaurantRecord,
        url: str,
        source: PhotoSource,
        *,
        caption: Optional[str] = None,
        alt: Optional[str] = None,
        verified: bool,
    ) -> PhotoAsset:
        tags = photo_tags(caption, alt, url)
        scores = estimate_photo_quality(url, " ".join(filter(None, [caption, alt])), restaurant.cuisine)
        cultural = is_culturally_relevant(tags, restaurant.cuisine)
        return PhotoAsset(
            url=url,
            source=source,
            type=classify_photo_type(caption, alt, url),
            quality=quality_tier(scores),
            caption=caption or alt or None,
            verified=verified,
            tags=tags,
            cultural_context=(restaurant.cuisine or "traditional") if cultural else None,
        )

    def _fetch_sources(self, restaurant: RestaurantRecord) -> List[SourceRecord]:
        fetched: List[SourceRecord] = []
        external_ids = restaurant.external_ids()
        for provider in PROVIDER_ORDER:
            external_id = external_ids.get(provider)
            adapter = self.adapters.get(provider)
            if not external_id or adapter is None:
                continue
            result = adapter.get_details(external_id)
            if not result.success:
                logger.info("No %s photos for %s: %s", provider.value, restaurant.id, result.error)
                continue
            fetched.append(result.data)
        return fetched

    def _from_providers(
        self,
        restaurant: RestaurantRecord,
        sources: Optional[List[SourceRecord]],
    ) -> List[PhotoAsset]:
        if sources is None:
            sources = self._fetch_sources(restaurant)
        photos: List[PhotoAsset] = []
        for source in sorted(sources, key=lambda item: PROVIDER_ORDER.index(item.provider)):
            for source_photo in source.photos[:PHOTOS_PER_SOURCE]:
                photos.append(
                    self._build_photo(
                        restaurant,
                        source_photo.url,
                        PROVIDER_PHOTO_SOURCES[source.provider],
                        caption=source_photo.caption,
                        verified=True,
                    )
                )
        return photos

    def _from_website(
        self,
        restaurant: RestaurantRecord,
        scraped: Optional[ScrapedRestaurantData],
    ) -> List[PhotoAsset]:
        if scraped is None:
            if self.scraper is None or not restaurant.website:
                return []
            scraped = self.scraper.scrape_website(restaurant.website)
        return [
            self._build_photo(
                restaurant,
                photo.url,
                PhotoSource.WEBSITE,
                caption=photo.caption,
                alt=photo.alt,
                verified=False,
            )
            for photo in scraped.photos[:PHOTOS_PER_SOURCE]
        ]

    def _from_social(self, restaurant: RestaurantRecord) -> List[PhotoAsset]:
        photos: List[PhotoAsset] = []
        for source in self.social_sources:
            result = source.fetch_photos(restaurant)
            if result.status is CapabilityStatus.NOT_IMPLEMENTED:
                logger.debug("Skipping %s: %s", source.name, result.detail)
                continue
            if not result.ok:
                logger.warning("%s failed for %s: %s", source.name, restaurant.id, result.detail)
                continue
            for social in (result.value or [])[:PHOTOS_PER_SOURCE]:
                photos.append(
                    self._build_photo(restaurant, social.url, source.source, caption=social.caption, verified=False)
                )
        return photos

    def collect_all_photos(
        self,
        restaurant: RestaurantRecord,
        scraped: Optional[ScrapedRestaurantData] = None,
        sources: Optional[List[SourceRecord]] = None,
    ) -> PhotoCollectionResult:
        """Gather, filter and rank photos. Provider details already fetched can be passed as ``sources``."""
        candidates = (
            self._from_providers(restaurant, sources)
            + self._from_website(restaurant, scraped)
            + self._from_social(restaurant)
        )
        kept = [
            photo
            for photo in candidates
            if photo.quality is not PhotoQuality.LOW or _is_cultural(photo)
        ]
        ranked = prioritize_photos(kept)

        sources: List[PhotoSource] = []
        for photo in candidates:
            if photo.source not in sources:
                sources.append(photo.source)

        result = PhotoCollectionResult(
            photos=ranked,
            total_collected=len(candidates),
            high_quality_count=sum(1 for photo in ranked if photo.quality is PhotoQuality.HIGH),
            food_photo_count=sum(1 for photo in ranked if photo.type is PhotoType.FOOD),
            sources=sources,
        )
        logger.info(
            "Collected %d photos for %s (kept=%d high=%d food=%d)",
            result.total_collected,
            restaurant.id,
            len(ranked),
            result.high_quality_count,
            result.food_photo_count,
        )
        return result
