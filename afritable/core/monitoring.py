"""Data quality scoring for single restaurants and the whole fleet."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional

from afritable.core.extensions import CapabilityStatus, DiscrepancyDetector
from afritable.core.validation import (
    has_hours,
    is_image_url,
    is_valid_address,
    is_valid_email,
    is_valid_phone,
    is_valid_website,
)
from afritable.models import (
    DataMonitoringReport,
    IssueSummary,
    IssueType,
    QualityIssue,
    QualityMetrics,
    RestaurantRecord,
    Severity,
)

logger = logging.getLogger(__name__)

STALE_AFTER = timedelta(days=30)
ATTENTION_THRESHOLD = 0.7
MIN_DESCRIPTION_LENGTH = 50
MIN_PHOTOS = 3
REQUIRED_FIELD_POINTS = 8
OPTIONAL_FIELD_POINTS = 2
REQUIRED_FIELDS = (
    "name",
    "address",
    "city",
    "state",
    "zip_code",
    "phone",
    "website",
    "cuisine",
    "description",
    "coordinates",
)
OPTIONAL_FIELDS = ("email", "price_range", "rating", "review_count", "main_image")
MAX_COMPLETENESS = len(REQUIRED_FIELDS) * REQUIRED_FIELD_POINTS + len(OPTIONAL_FIELDS) * OPTIONAL_FIELD_POINTS
TOP_ISSUES = 10

ACTION_COLLECT_PHONE = "Collect phone number from business website or API sources"
ACTION_FIND_WEBSITE = "Search for restaurant website online"
ACTION_WRITE_DESCRIPTION = "Write a detailed description of the restaurant, its cuisine and atmosphere"
ACTION_COLLECT_PHOTOS = "Collect photos from Google Places, Yelp, Foursquare or the restaurant website"
ACTION_MORE_PHOTOS = "Add more high-quality food and interior photos"
ACTION_REFRESH = "Refresh data from API sources and verify current information"


class RestaurantNotFoundError(LookupError):
    """Raised when a restaurant id does not exist in the store."""


def _present(record: RestaurantRecord, field_name: str) -> bool:
    if field_name == "coordinates":
        return bool(record.latitude) and bool(record.longitude)
    value = getattr(record, field_name)
    if isinstance(value, str):
        return bool(value.strip())
    return bool(value)


def completeness_score(record: RestaurantRecord) -> float:
    points = sum(REQUIRED_FIELD_POINTS for name in REQUIRED_FIELDS if _present(record, name))
    points += sum(OPTIONAL_FIELD_POINTS for name in OPTIONAL_FIELDS if _present(record, name))
    return round(points / MAX_COMPLETENESS, 4)


def accuracy_score(record: RestaurantRecord) -> float:
    checks = (
        is_valid_phone(record.phone),
        is_valid_address(record.address, record.latitude, record.longitude),
        is_valid_website(record.website),
        is_valid_email(record.email),
        has_hours(record.hours),
    )
    return sum(20 for passed in checks if passed) / 100


def photo_quality_score(record: RestaurantRecord) -> float:
    if not record.photos:
        return 0.0
    points = 0
    for photo in record.photos:
        if is_image_url(photo.url):
            points += 5
        if photo.caption and photo.caption.strip():
            points += 3
        if photo.is_primary:
            points += 2
    return round(min(1.0, points / (len(record.photos) * 10)), 4)


def verification_score(record: RestaurantRecord) -> float:
    points = sum(25 for value in record.external_ids().values() if value)
    if record.is_verified:
        points += 25
    return points / 100


def identify_issues(record: RestaurantRecord, now: datetime) -> List[QualityIssue]:
    issues: List[QualityIssue] = []
    if not _present(record, "phone"):
        issues.append(
            QualityIssue(IssueType.MISSING_DATA, Severity.HIGH, "phone", "Phone number is missing", ACTION_COLLECT_PHONE)
        )
    if not _present(record, "website"):
        issues.append(
            QualityIssue(IssueType.MISSING_DATA, Severity.MEDIUM, "website", "Website is missing", ACTION_FIND_WEBSITE)
        )
    if len((record.description or "").strip()) < MIN_DESCRIPTION_LENGTH:
        issues.append(
            QualityIssue(
                IssueType.MISSING_DATA,
                Severity.MEDIUM,
                "description",
                "Description is missing or too short",
                ACTION_WRITE_DESCRIPTION,
            )
        )
    if not record.photos:
        issues.append(
            QualityIssue(IssueType.LOW_QUALITY_PHOTOS, Severity.HIGH, "photos", "No photos available", ACTION_COLLECT_PHOTOS)
        )
    elif len(record.photos) < MIN_PHOTOS:
        issues.append(
            QualityIssue(
                IssueType.LOW_QUALITY_PHOTOS,
                Severity.MEDIUM,
                "photos",
                f"Only {len(record.photos)} photo(s) available",
                ACTION_MORE_PHOTOS,
            )
        )
    if record.last_updated is not None and now - _aware(record.last_updated) > STALE_AFTER:
        issues.append(
            QualityIssue(
                IssueType.OUTDATED_INFO,
                Severity.MEDIUM,
                "last_updated",
                "Data has not been updated in over 30 days",
                ACTION_REFRESH,
            )
        )
    return issues


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def restaurant_recommendations(metrics: QualityMetrics, record: RestaurantRecord) -> List[str]:
    recommendations: List[str] = []
    if metrics.completeness_score < 0.8:
        recommendations.append("Complete missing restaurant information")
    if metrics.photo_quality_score < 0.6:
        recommendations.append("Add more high-quality photos with captions")
    if not record.is_verified:
        recommendations.append("Verify restaurant details with the business owner")
    if any(issue.severity is Severity.HIGH for issue in metrics.issues):
        recommendations.append("Resolve high-priority data issues first")
    return recommendations


class DataMonitoringService:
    def __init__(
        self,
        store: Any,
        *,
        detector: Optional[DiscrepancyDetector] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.detector = detector or DiscrepancyDetector()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def assess(self, record: RestaurantRecord, now: Optional[datetime] = None) -> QualityMetrics:
        now = now or self._clock()
        completeness = completeness_score(record)
        accuracy = accuracy_score(record)
        photo_quality = photo_quality_score(record)
        verification = verification_score(record)
        metrics = QualityMetrics(
            restaurant_id=str(record.id),
            completeness_score=completeness,
            accuracy_score=accuracy,
            photo_quality_score=photo_quality,
            verification_score=verification,
            overall_score=round((completeness + accuracy + photo_quality + verification) / 4, 4),
            last_assessed=now,
            issues=identify_issues(record, now),
        )
        metrics.recommendations = restaurant_recommendations(metrics, record)
        return metrics

    def assess_restaurant_data_quality(self, restaurant_id: str) -> QualityMetrics:
        record = self.store.find_by_id(restaurant_id)
        if record is None:
            raise RestaurantNotFoundError(f"Restaurant {restaurant_id} not found")
        return self.assess(record)

    def generate_data_monitoring_report(self) -> DataMonitoringReport:
        now = self._clock()
        assessed: List[QualityMetrics] = []
        unverified = 0
        for record in self.store.list_restaurants():
            try:
                assessed.append(self.assess(record, now))
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to assess restaurant %s: %s", record.id, exc)
                continue
            if not record.is_verified:
                unverified += 1

        total = len(assessed)
        if not total:
            logger.info("No restaurants to report on")
            return DataMonitoringReport(
                total_restaurants=0,
                average_quality_score=0.0,
                restaurants_needing_attention=0,
                data_completeness=0.0,
                photo_quality=0.0,
                verified=0,
                pending=0,
                flagged=0,
            )

        verified = sum(1 for metrics in assessed if metrics.verification_score >= 0.8)
        pending = sum(1 for metrics in assessed if 0.6 <= metrics.verification_score < 0.8)
        flagged = total - verified - pending

        issue_counts: Counter = Counter()
        for metrics in assessed:
            issue_counts.update({f"{issue.type.value}_{issue.severity.value}" for issue in metrics.issues})
        top_issues = [
            IssueSummary(type=key, count=count, percentage=round(count / total * 100))
            for key, count in issue_counts.most_common(TOP_ISSUES)
        ]

        report = DataMonitoringReport(
            total_restaurants=total,
            average_quality_score=round(sum(m.overall_score for m in assessed) / total, 2),
            restaurants_needing_attention=sum(1 for m in assessed if m.overall_score < ATTENTION_THRESHOLD),
            data_completeness=round(sum(m.completeness_score for m in assessed) / total, 2),
            photo_quality=round(sum(m.photo_quality_score for m in assessed) / total, 2),
            verified=verified,
            pending=pending,
            flagged=flagged,
            top_issues=top_issues,
        )
        report.recommendations = self._global_recommendations(report, unverified)
        logger.info(
            "Monitoring report: total=%d average=%.2f attention=%d",
            report.total_restaurants,
            report.average_quality_score,
            report.restaurants_needing_attention,
        )
        return report

    @staticmethod
    def _global_recommendations(report: DataMonitoringReport, unverified: int) -> List[str]:
        recommendations: List[str] = []
        if report.data_completeness < 0.8:
            recommendations.append("Prioritize filling missing phone numbers, websites and descriptions")
        if report.photo_quality < 0.6:
            recommendations.append("Run photo enhancement to improve photo coverage and quality")
        if report.total_restaurants and unverified / report.total_restaurants > 0.3:
            recommendations.append("Link more restaurants to external sources and verify them with owners")
        return recommendations

    def identify_outdated_restaurants(self, now: Optional[datetime] = None) -> List[str]:
        cutoff = (now or self._clock()) - STALE_AFTER
        try:
            outdated = self.store.find_updated_before(cutoff)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to look up outdated restaurants: %s", exc)
            return []
        logger.info("Found %d restaurants not updated since %s", len(outdated), cutoff.isoformat())
        return outdated

    def flag_data_discrepancies(self) -> int:
        """Clear ``is_verified`` on restaurants whose sources disagree. Returns how many were flagged."""
        flagged = 0
        for record in self.store.list_with_external_ids():
            try:
                result = self.detector.detect(record)
            except Exception as exc:  # noqa: BLE001
                logger.error("Discrepancy check failed for %s: %s", record.id, exc)
                continue
            if result.status is CapabilityStatus.NOT_IMPLEMENTED:
                logger.info("Discrepancy detection unavailable (%s); nothing flagged", result.detail)
                return 0
            if not result.ok or not result.value:
                continue
            try:
                self.store.update_restaurant(record.id, {"is_verified": False, "last_updated": self._clock()})
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to flag restaurant %s: %s", record.id, exc)
                continue
            flagged += 1
            logger.info("Flagged restaurant %s with %d discrepancies", record.id, len(result.value))
        logger.info("Discrepancy sweep flagged %d restaurants", flagged)
        return flagged
