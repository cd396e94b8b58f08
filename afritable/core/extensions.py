"""Optional enrichment capabilities.

Each capability answers with a :class:`CapabilityResult`. A capability that has
no working backend returns ``NOT_IMPLEMENTED`` so callers can tell "nothing
found" apart from "never looked".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

from afritable.etl.classify import classify_dietary
from afritable.models import PhotoSource, RestaurantRecord, ScrapedRestaurantData

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CapabilityStatus(str, Enum):
    OK = "OK"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    FAILED = "FAILED"


@dataclass(slots=True)
class CapabilityResult(Generic[T]):
    status: CapabilityStatus
    value: Optional[T] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is CapabilityStatus.OK

    @classmethod
    def not_implemented(cls, name: str) -> "CapabilityResult[T]":
        return cls(status=CapabilityStatus.NOT_IMPLEMENTED, detail=f"{name} is not available")


@dataclass(slots=True)
class SocialPhoto:
    url: str
    caption: Optional[str] = None
    tags: List[str] = field(default_factory=list)


class SocialPhotoSource:
    """Photos published on a social platform for a restaurant."""

    source: PhotoSource = PhotoSource.INSTAGRAM
    name = "social photos"

    def fetch_photos(self, restaurant: RestaurantRecord) -> CapabilityResult[List[SocialPhoto]]:
        raise NotImplementedError


class UnavailableSocialPhotoSource(SocialPhotoSource):
    def __init__(self, name: str, source: PhotoSource = PhotoSource.INSTAGRAM) -> None:
        self.name = name
        self.source = source

    def fetch_photos(self, restaurant: RestaurantRecord) -> CapabilityResult[List[SocialPhoto]]:
        return CapabilityResult.not_implemented(self.name)


class CulturalContextProvider:
    def describe(self, restaurant: RestaurantRecord) -> CapabilityResult[str]:
        return CapabilityResult.not_implemented("cultural context")


class DietaryOptionsProvider:
    def detect(
        self,
        restaurant: RestaurantRecord,
        scraped: Optional[ScrapedRestaurantData],
    ) -> CapabilityResult[List[str]]:
        return CapabilityResult.not_implemented("dietary options")


class KeywordDietaryOptionsProvider(DietaryOptionsProvider):
    """Union of menu item dietary tags and keywords found in the description."""

    def detect(
        self,
        restaurant: RestaurantRecord,
        scraped: Optional[ScrapedRestaurantData],
    ) -> CapabilityResult[List[str]]:
        found: List[str] = []
        texts = [restaurant.description or ""]
        if scraped is not None:
            texts.append(scraped.description)
            for item in scraped.menu_items:
                found.extend(item.dietary_info)
        for text in texts:
            found.extend(classify_dietary(text))
        ordered = list(dict.fromkeys(found))
        return CapabilityResult(status=CapabilityStatus.OK, value=ordered)


class DiscrepancyDetector:
    """Decides whether a stored record disagrees with its external sources."""

    def detect(self, restaurant: RestaurantRecord) -> CapabilityResult[List[Any]]:
        return CapabilityResult.not_implemented("discrepancy detection")
