"""Core data models shared by the Afritable collection and enrichment pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class PriceRange(str, Enum):
    BUDGET = "BUDGET"
    MODERATE = "MODERATE"
    EXPENSIVE = "EXPENSIVE"
    VERY_EXPENSIVE = "VERY_EXPENSIVE"


class Provider(str, Enum):
    GOOGLE = "google"
    YELP = "yelp"
    FOURSQUARE = "foursquare"


PROVIDER_ORDER = (Provider.GOOGLE, Provider.YELP, Provider.FOURSQUARE)


class PhotoSource(str, Enum):
    GOOGLE = "GOOGLE"
    YELP = "YELP"
    FOURSQUARE = "FOURSQUARE"
    WEBSITE = "WEBSITE"
    INSTAGRAM = "INSTAGRAM"
    MANUAL = "MANUAL"


class PhotoType(str, Enum):
    FOOD = "FOOD"
    INTERIOR = "INTERIOR"
    EXTERIOR = "EXTERIOR"
    MENU = "MENU"
    CHEF = "CHEF"
    OTHER = "OTHER"


class PhotoQuality(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class IssueType(str, Enum):
    MISSING_DATA = "MISSING_DATA"
    INACCURATE_DATA = "INACCURATE_DATA"
    LOW_QUALITY_PHOTOS = "LOW_QUALITY_PHOTOS"
    OUTDATED_INFO = "OUTDATED_INFO"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"


class Severity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class VerificationStatus(str, Enum):
    VERIFIED = "VERIFIED"
    PENDING = "PENDING"
    FLAGGED = "FLAGGED"


@dataclass(slots=True)
class DayHours:
    open: str = ""
    close: str = ""
    closed: bool = False

    def is_set(self) -> bool:
        return bool(self.open or self.close)


def empty_week() -> Dict[str, DayHours]:
    return {day: DayHours() for day in WEEKDAYS}


@dataclass(slots=True)
class PhotoAsset:
    """A photo attached to a restaurant, as stored and as ranked by the photo service."""

    url: str
    source: PhotoSource
    type: PhotoType = PhotoType.OTHER
    quality: PhotoQuality = PhotoQuality.MEDIUM
    is_primary: bool = False
    caption: Optional[str] = None
    verified: bool = False
    tags: List[str] = field(default_factory=list)
    cultural_context: Optional[str] = None


@dataclass(slots=True)
class SourcePhoto:
    url: str
    caption: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(slots=True)
class RestaurantRecord:
    """Canonical restaurant entity as persisted in the store."""

    name: str
    id: Optional[str] = None
    google_place_id: Optional[str] = None
    yelp_business_id: Optional[str] = None
    foursquare_id: Optional[str] = None
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "US"
    latitude: float = 0.0
    longitude: float = 0.0
    phone: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    description: Optional[str] = None
    cuisine: Optional[str] = None
    price_range: Optional[PriceRange] = None
    rating: float = 0.0
    review_count: int = 0
    main_image: Optional[str] = None
    hours: Dict[str, DayHours] = field(default_factory=empty_week)
    last_updated: Optional[datetime] = None
    is_verified: bool = False
    is_active: bool = True
    data_source: Optional[str] = None
    photos: List[PhotoAsset] = field(default_factory=list)

    def external_ids(self) -> Dict[Provider, Optional[str]]:
        return {
            Provider.GOOGLE: self.google_place_id,
            Provider.YELP: self.yelp_business_id,
            Provider.FOURSQUARE: self.foursquare_id,
        }

    def has_external_id(self) -> bool:
        return any(self.external_ids().values())


@dataclass(slots=True)
class SourceRecord:
    """One provider's view of a place; transient and never persisted directly."""

    provider: Provider
    external_id: str
    name: str
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "US"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    price_range: Optional[PriceRange] = None
    cuisine: Optional[str] = None
    photos: List[SourcePhoto] = field(default_factory=list)
    hours: Optional[Dict[str, DayHours]] = None
    metro_area: Optional[str] = None
    region: Optional[str] = None
    raw_snapshot: Optional[Dict[str, Any]] = field(default=None, repr=False)


@dataclass(slots=True)
class Discrepancy:
    field: str
    sources: Dict[str, Any]
    resolution: Any
    confidence: float


@dataclass(slots=True)
class QualityIssue:
    type: IssueType
    severity: Severity
    field: str
    description: str
    suggested_action: str


@dataclass(slots=True)
class QualityMetrics:
    restaurant_id: str
    completeness_score: float
    accuracy_score: float
    photo_quality_score: float
    verification_score: float
    overall_score: float
    last_assessed: datetime
    issues: List[QualityIssue] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass(slots=True)
class IssueSummary:
    type: str
    count: int
    percentage: int


@dataclass(slots=True)
class DataMonitoringReport:
    total_restaurants: int
    average_quality_score: float
    restaurants_needing_attention: int
    data_completeness: float
    photo_quality: float
    verified: int
    pending: int
    flagged: int
    top_issues: List[IssueSummary] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass(slots=True)
class MenuItem:
    name: str
    description: str = ""
    price: str = ""
    category: str = "Main"
    dietary_info: List[str] = field(default_factory=list)
    is_popular: bool = False
    ingredients: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ScrapedPhoto:
    url: str
    alt: str = ""
    caption: str = ""
    type: PhotoType = PhotoType.OTHER


@dataclass(slots=True)
class PricingInfo:
    price_range: PriceRange = PriceRange.MODERATE
    average_price: float = 0.0
    currency: str = "USD"


@dataclass(slots=True)
class ContactInfo:
    phone: str = ""
    email: str = ""


@dataclass(slots=True)
class ScrapedReview:
    text: str
    rating: Optional[float] = None
    author: str = ""


@dataclass(slots=True)
class ScrapedRestaurantData:
    """Everything a single website scrape produced; empty values when nothing was found."""

    menu_items: List[MenuItem] = field(default_factory=list)
    social_media: Dict[str, str] = field(default_factory=dict)
    business_hours: Dict[str, DayHours] = field(default_factory=empty_week)
    photos: List[ScrapedPhoto] = field(default_factory=list)
    description: str = ""
    specialties: List[str] = field(default_factory=list)
    pricing: PricingInfo = field(default_factory=PricingInfo)
    contact_info: ContactInfo = field(default_factory=ContactInfo)
    reviews: List[ScrapedReview] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "ScrapedRestaurantData":
        return cls()

    def is_useful(self) -> bool:
        return bool(self.menu_items) or bool(self.social_media)


@dataclass(slots=True)
class RawMapsData:
    query: str
    found: bool = False
    name: str = ""
    phone: str = ""
    website: str = ""
    address: str = ""
    rating: Optional[float] = None
    review_count: Optional[int] = None
    photos: List[str] = field(default_factory=list)
    raw_snapshot: Optional[Dict[str, Any]] = field(default=None, repr=False)

    @classmethod
    def empty(cls, query: str) -> "RawMapsData":
        return cls(query=query)


@dataclass(slots=True)
class PhotoCollectionResult:
    photos: List[PhotoAsset] = field(default_factory=list)
    total_collected: int = 0
    high_quality_count: int = 0
    food_photo_count: int = 0
    sources: List[PhotoSource] = field(default_factory=list)


@dataclass(slots=True)
class EnhancedRestaurantData:
    """Outcome of one per-restaurant enhancement run."""

    restaurant_id: str
    original: RestaurantRecord
    merged: RestaurantRecord
    discrepancies: List[Discrepancy] = field(default_factory=list)
    photos: PhotoCollectionResult = field(default_factory=PhotoCollectionResult)
    scraped: Optional[ScrapedRestaurantData] = None
    validation: Optional[Any] = None
    dietary_options: List[str] = field(default_factory=list)
    cultural_context: Optional[str] = None
    quality_score: float = 0.0
    verification_status: VerificationStatus = VerificationStatus.FLAGGED
    errors: List[str] = field(default_factory=list)
    persisted: bool = False
