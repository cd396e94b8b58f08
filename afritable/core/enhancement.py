"""Per-restaurant enhancement: verify against providers, merge, enrich, score and persist."""

from __future__ import annotations

import copy
import logging
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from afritable.core.extensions import (
    CapabilityResult,
    CapabilityStatus,
    CulturalContextProvider,
    DietaryOptionsProvider,
    DiscrepancyDetector,
    KeywordDietaryOptionsProvider,
)
from afritable.core.validation import BusinessValidation, has_hours, is_valid_phone, is_valid_website, validate_business
from afritable.models import (
    PROVIDER_ORDER,
    Discrepancy,
    EnhancedRestaurantData,
    PhotoCollectionResult,
    PhotoQuality,
    PhotoType,
    Provider,
    RestaurantRecord,
    ScrapedRestaurantData,
    SourceRecord,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

FIELD_CONFIDENCE = {
    "name": 0.8,
    "phone": 0.7,
    "address": 0.8,
    "website": 0.7,
    "price_range": 0.6,
    "hours": 0.6,
}
COMPARED_FIELDS = tuple(FIELD_CONFIDENCE)
LOW_CONFIDENCE_THRESHOLD = 0.7
MIN_DESCRIPTION_LENGTH = 50
QUALITY_EVENT = ("DATA_ENHANCEMENT", "enhance_restaurant")

_TIME_12H_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*([ap])\.?m\.?$", re.IGNORECASE)


def _normalize_time(value: str) -> str:
    text = (value or "").strip().replace("\u202f", " ")
    match = _TIME_12H_RE.match(text)
    if not match:
        return text.lower()
    hour = int(match.group(1)) % 12
    if match.group(3).lower() == "p":
        hour += 12
    return f"{hour:02d}:{match.group(2)}"


def comparison_key(field_name: str, value: Any) -> Any:
    """Normalised form used to decide whether two providers agree on a field."""
    if field_name == "phone":
        digits = re.sub(r"\D", "", value)
        return digits[1:] if len(digits) == 11 and digits.startswith("1") else digits
    if field_name == "website":
        text = re.sub(r"^https?://", "", value.strip().lower())
        return re.sub(r"^www\.", "", text).rstrip("/")
    if field_name in ("address", "name"):
        return " ".join(re.sub(r"[.,#]", " ", value).lower().split())
    if field_name == "price_range":
        return getattr(value, "value", value)
    if field_name == "hours":
        return tuple(
            (day, _normalize_time(entry.open), _normalize_time(entry.close), entry.closed)
            for day, entry in sorted(value.items())
        )
    return value


def _field_value(record: SourceRecord, field_name: str) -> Any:
    value = getattr(record, field_name)
    if field_name == "hours":
        return value if has_hours(value) else None
    if isinstance(value, str):
        return value.strip() or None
    return value


def resolve_field(field_name: str, sources: List[SourceRecord]) -> Tuple[Any, Optional[Provider], Optional[Discrepancy]]:
    """Majority vote over the non-null provider values; ties go to the earliest provider."""
    present = [(record.provider, _field_value(record, field_name)) for record in sources]
    present = [(provider, value) for provider, value in present if value is not None]
    if not present:
        return None, None, None
    if len(present) == 1:
        return present[0][1], present[0][0], None

    keys = [comparison_key(field_name, value) for _, value in present]
    counts = Counter(keys)
    if len(counts) == 1:
        return present[0][1], present[0][0], None

    best = max(counts.values())
    winner_index = next(index for index, key in enumerate(keys) if counts[key] == best)
    winner_provider, winner_value = present[winner_index]

    consulted = {record.provider.value: None for record in sources}
    consulted.update({provider.value: value for provider, value in present})
    all_providers = {provider.value: consulted.get(provider.value) for provider in PROVIDER_ORDER}
    discrepancy = Discrepancy(
        field=field_name,
        sources=all_providers,
        resolution=winner_value,
        confidence=FIELD_CONFIDENCE[field_name],
    )
    return winner_value, winner_provider, discrepancy


def calculate_quality_score(
    validation: BusinessValidation,
    photos: PhotoCollectionResult,
    merged: RestaurantRecord,
    scraped: Optional[ScrapedRestaurantData],
    discrepancies: List[Discrepancy],
) -> float:
    score = 0
    if validation.phone_valid:
        score += 20
    if validation.address_valid:
        score += 20

    high = sum(1 for photo in photos.photos if photo.quality is PhotoQuality.HIGH)
    food = sum(1 for photo in photos.photos if photo.type is PhotoType.FOOD)
    score += min(25, high * 5 + food * 3)

    scraped_description = scraped.description if scraped else ""
    for present in (
        merged.phone,
        merged.address,
        merged.website,
        merged.description or scraped_description,
        merged.cuisine,
    ):
        if present:
            score += 4

    if not discrepancies:
        score += 15
    else:
        low_confidence = sum(1 for item in discrepancies if item.confidence <= LOW_CONFIDENCE_THRESHOLD)
        score += max(0, 15 - 3 * low_confidence)

    return round(score / 100, 2)


def verification_status_for(score: float) -> VerificationStatus:
    if score > 0.8:
        return VerificationStatus.VERIFIED
    if score > 0.6:
        return VerificationStatus.PENDING
    return VerificationStatus.FLAGGED


def _blank(value: Any) -> bool:
    if isinstance(value, dict):
        return not has_hours(value)
    return value is None or (isinstance(value, str) and not value.strip())


class DataEnhancementService:
    def __init__(
        self,
        store: Any,
        adapters: Dict[Provider, Any],
        *,
        photo_service: Optional[Any] = None,
        scraper: Optional[Any] = None,
        cultural_context: Optional[CulturalContextProvider] = None,
        dietary_options: Optional[DietaryOptionsProvider] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.adapters = adapters
        self.photo_service = photo_service
        self.scraper = scraper
        self.cultural_context = cultural_context or CulturalContextProvider()
        self.dietary_options = dietary_options or KeywordDietaryOptionsProvider()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _run_step(self, result: EnhancedRestaurantData, name: str, func: Callable[[], Any], default: Any = None) -> Any:
        try:
            return func()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Enhancement step %s failed for %s", name, result.restaurant_id)
            result.errors.append(f"{name}: {exc}")
            return default

    def fetch_sources(self, record: RestaurantRecord) -> List[SourceRecord]:
        sources: List[SourceRecord] = []
        for provider, external_id in record.external_ids().items():
            adapter = self.adapters.get(provider)
            if not external_id or adapter is None:
                continue
            response = adapter.get_details(external_id)
            if response.success:
                sources.append(response.data)
            else:
                logger.info(
                    "%s details unavailable for %s: %s (%s)",
                    provider.value,
                    record.id,
                    response.error,
                    response.error_kind,
                )
        sources.sort(key=lambda source: PROVIDER_ORDER.index(source.provider))
        return sources

    def verify_sources(
        self, record: RestaurantRecord
    ) -> Tuple[List[SourceRecord], Dict[str, Tuple[Any, Provider]], List[Discrepancy]]:
        """Compare every provider's view of ``record`` and resolve each field."""
        sources = self.fetch_sources(record)
        resolved: Dict[str, Tuple[Any, Provider]] = {}
        discrepancies: List[Discrepancy] = []
        for field_name in COMPARED_FIELDS:
            value, provider, discrepancy = resolve_field(field_name, sources)
            if value is not None:
                resolved[field_name] = (value, provider)
            if discrepancy is not None:
                discrepancies.append(discrepancy)
        return sources, resolved, discrepancies

    @staticmethod
    def _should_replace(field_name: str, current: Any, candidate: Any, force_update: bool) -> bool:
        if _blank(candidate):
            return False
        if _blank(current) or force_update:
            return True
        if field_name == "phone":
            return not is_valid_phone(current) and is_valid_phone(candidate)
        if field_name == "website":
            return not is_valid_website(current) and is_valid_website(candidate)
        return False

    def _apply_sources(
        self,
        merged: RestaurantRecord,
        sources: List[SourceRecord],
        resolved: Dict[str, Tuple[Any, Provider]],
        force_update: bool,
    ) -> None:
        by_provider = {source.provider: source for source in sources}
        for field_name, (value, provider) in resolved.items():
            if field_name == "name" and not force_update:
                continue
            if not self._should_replace(field_name, getattr(merged, field_name), value, force_update):
                continue
            setattr(merged, field_name, copy.deepcopy(value))
            if field_name == "address":
                origin = by_provider[provider]
                for attr in ("city", "state", "zip_code"):
                    if getattr(origin, attr):
                        setattr(merged, attr, getattr(origin, attr))
                if origin.latitude and origin.longitude:
                    merged.latitude, merged.longitude = origin.latitude, origin.longitude

        if not merged.latitude or not merged.longitude:
            for source in sources:
                if source.latitude and source.longitude:
                    merged.latitude, merged.longitude = source.latitude, source.longitude
                    break
        if _blank(merged.cuisine):
            merged.cuisine = next((source.cuisine for source in sources if source.cuisine), merged.cuisine)

    def _scrape(self, merged: RestaurantRecord) -> Optional[ScrapedRestaurantData]:
        if self.scraper is None or not merged.website:
            return None
        scraped = self.scraper.scrape_website(merged.website)
        if not scraped.is_useful():
            logger.info("Website scrape for %s yielded no menu or social data; discarding", merged.id)
            return None
        return scraped

    def _apply_scraped(self, merged: RestaurantRecord, scraped: ScrapedRestaurantData, force_update: bool) -> None:
        description = scraped.description or ""
        if len(description) > MIN_DESCRIPTION_LENGTH and (
            force_update or len(description) > len(merged.description or "")
        ):
            merged.description = description
        contact = scraped.contact_info
        if self._should_replace("phone", merged.phone, contact.phone, False):
            merged.phone = contact.phone
        if _blank(merged.email) and contact.email:
            merged.email = contact.email
        if _blank(merged.hours) and has_hours(scraped.business_hours):
            merged.hours = copy.deepcopy(scraped.business_hours)
        if merged.price_range is None and scraped.pricing.average_price > 0:
            merged.price_range = scraped.pricing.price_range

    def enhance_restaurant_data(
        self,
        restaurant_id: str,
        *,
        force_update: bool = False,
        include_photos: bool = True,
        include_scraping: bool = True,
        include_verification: bool = True,
    ) -> Optional[EnhancedRestaurantData]:
        record = self.store.find_by_id(restaurant_id)
        if record is None:
            logger.warning("Restaurant %s not found; nothing to enhance", restaurant_id)
            return None

        logger.info("Enhancing restaurant %s (%s)", restaurant_id, record.name)
        merged = copy.deepcopy(record)
        result = EnhancedRestaurantData(restaurant_id=str(restaurant_id), original=record, merged=merged)

        fetched_sources: Optional[List[SourceRecord]] = None
        if include_verification:
            verified = self._run_step(result, "verification", lambda: self.verify_sources(record), None)
            if verified is not None:
                sources, resolved, result.discrepancies = verified
                fetched_sources = sources
                self._run_step(
                    result,
                    "merge",
                    lambda: self._apply_sources(merged, sources, resolved, force_update),
                )

        if include_scraping:
            result.scraped = self._run_step(result, "scraping", lambda: self._scrape(merged))
            if result.scraped is not None:
                self._run_step(
                    result,
                    "scrape-merge",
                    lambda: self._apply_scraped(merged, result.scraped, force_update),
                )

        if include_photos and self.photo_service is not None:
            result.photos = self._run_step(
                result,
                "photos",
                lambda: self.photo_service.collect_all_photos(merged, result.scraped, fetched_sources),
                PhotoCollectionResult(),
            )

        result.validation = self._run_step(
            result,
            "validation",
            lambda: validate_business(merged),
            BusinessValidation(False, False, False, False),
        )

        dietary = self._run_step(
            result,
            "dietary-options",
            lambda: self.dietary_options.detect(merged, result.scraped),
            CapabilityResult(status=CapabilityStatus.FAILED),
        )
        if dietary.ok:
            result.dietary_options = dietary.value or []
        cultural = self._run_step(
            result,
            "cultural-context",
            lambda: self.cultural_context.describe(merged),
            CapabilityResult(status=CapabilityStatus.FAILED),
        )
        if cultural.ok:
            result.cultural_context = cultural.value

        result.quality_score = calculate_quality_score(
            result.validation, result.photos, merged, result.scraped, result.discrepancies
        )
        result.verification_status = verification_status_for(result.quality_score)

        result.persisted = bool(self._run_step(result, "persist", lambda: self._persist(result, force_update), False))
        logger.info(
            "Enhanced %s: score=%.2f status=%s discrepancies=%d photos=%d errors=%d",
            restaurant_id,
            result.quality_score,
            result.verification_status.value,
            len(result.discrepancies),
            len(result.photos.photos),
            len(result.errors),
        )
        return result

    def _persist(self, result: EnhancedRestaurantData, force_update: bool) -> bool:
        original, merged = result.original, result.merged
        changes: Dict[str, Any] = {}
        for field_name in (
            "name",
            "phone",
            "website",
            "email",
            "address",
            "city",
            "state",
            "zip_code",
            "latitude",
            "longitude",
            "description",
            "cuisine",
            "price_range",
        ):
            if getattr(merged, field_name) != getattr(original, field_name):
                changes[field_name] = getattr(merged, field_name)
        if merged.hours != original.hours:
            changes["hours"] = merged.hours

        photos = result.photos.photos
        if photos and (force_update or not original.main_image):
            changes["main_image"] = photos[0].url
        if result.verification_status is VerificationStatus.VERIFIED and not original.is_verified:
            changes["is_verified"] = True
        changes["last_updated"] = self._clock()

        self.store.update_restaurant(result.restaurant_id, changes)
        if photos:
            self.store.replace_photos(result.restaurant_id, photos)

        try:
            self.store.increment_api_usage(*QUALITY_EVENT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not record quality event for %s: %s", result.restaurant_id, exc)
        logger.info(
            "quality_event restaurant=%s score=%.2f status=%s updated=%s",
            result.restaurant_id,
            result.quality_score,
            result.verification_status.value,
            sorted(changes),
        )
        return True


class SourceDiscrepancyDetector(DiscrepancyDetector):
    """Uses the enhancement layer's cross-provider comparison to find conflicts."""

    def __init__(self, service: DataEnhancementService) -> None:
        self.service = service

    def detect(self, restaurant: RestaurantRecord) -> CapabilityResult[List[Any]]:
        _, _, discrepancies = self.service.verify_sources(restaurant)
        return CapabilityResult(status=CapabilityStatus.OK, value=discrepancies)
