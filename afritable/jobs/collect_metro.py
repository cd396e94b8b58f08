"""CLI job that sweeps metro areas across all providers and persists the results."""

import argparse
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from afritable.core.config import ConfigError, get_settings
from afritable.core.services import build_services
from afritable.data.metro_areas import METRO_AREAS, SEARCH_TERMS, MetroArea, get_metro_area
from afritable.etl.load import CREATED, upsert_restaurant
from afritable.etl.transform import deduplicate
from afritable.models import PROVIDER_ORDER, Provider, SourceRecord
from afritable.vendors.base import ErrorKind

logger = logging.getLogger(__name__)

TERM_DELAY_SECONDS = 1.0
REGION_DELAY_SECONDS = 2.0
METRO_DELAY_SECONDS = 5.0
MIN_RESULTS_PER_METRO = 50
MIN_TOTAL_RESULTS = 1000

# Failures that repeat for every call and are already logged by the adapter.
_QUIET_ERRORS = (ErrorKind.NOT_CONFIGURED, ErrorKind.QUOTA_EXCEEDED)


@dataclass
class CollectionReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    total_found: int = 0
    unique: int = 0
    created: int = 0
    updated: int = 0
    per_metro: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "total_found": self.total_found,
            "unique": self.unique,
            "created": self.created,
            "updated": self.updated,
            "per_metro": dict(self.per_metro),
            "errors": list(self.errors),
            "recommendations": list(self.recommendations),
        }


class MetroCollectionJob:
    def __init__(
        self,
        store: Any,
        adapters: Dict[Provider, Any],
        *,
        metros: Optional[Sequence[MetroArea]] = None,
        search_terms: Sequence[str] = SEARCH_TERMS,
        use_regions: bool = True,
        force_update: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.adapters = adapters
        self.metros = list(metros) if metros is not None else list(METRO_AREAS)
        self.search_terms = list(search_terms)
        self.use_regions = use_regions
        self.force_update = force_update
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _areas(self, metro: MetroArea) -> List[Tuple[str, str, int]]:
        if self.use_regions and metro.regions:
            return [(region.id, region.location, region.radius_meters) for region in metro.regions]
        return [(metro.id, metro.location, metro.radius_meters)]

    def _search_area(
        self,
        metro: MetroArea,
        area_id: str,
        location: str,
        radius: int,
        report: CollectionReport,
    ) -> List[SourceRecord]:
        found: List[SourceRecord] = []
        for index, term in enumerate(self.search_terms):
            if index:
                self._sleep(TERM_DELAY_SECONDS)
            logger.info("Searching %r in %s/%s", term, metro.id, area_id)
            for provider in PROVIDER_ORDER:
                adapter = self.adapters.get(provider)
                if adapter is None:
                    continue
                result = adapter.search(term, location, radius)
                if not result.success:
                    if result.error_kind not in _QUIET_ERRORS:
                        report.errors.append(f"{metro.id}/{area_id} {provider.value} {term!r}: {result.error}")
                    continue
                for record in result.data or []:
                    record.metro_area = metro.id
                    record.region = area_id
                    found.append(record)
        return found

    def _collect(self, report: CollectionReport) -> List[SourceRecord]:
        collected: List[SourceRecord] = []
        for metro_index, metro in enumerate(self.metros):
            if metro_index:
                self._sleep(METRO_DELAY_SECONDS)
            logger.info("Collecting metro %s (%s)", metro.id, metro.display_name)
            metro_count = 0
            for area_index, (area_id, location, radius) in enumerate(self._areas(metro)):
                if area_index:
                    self._sleep(REGION_DELAY_SECONDS)
                try:
                    records = self._search_area(metro, area_id, location, radius, report)
                except Exception as exc:  # noqa: BLE001
                    logger.exception("Collection failed for %s/%s", metro.id, area_id)
                    report.errors.append(f"{metro.id}/{area_id}: {exc}")
                    continue
                metro_count += len(records)
                collected.extend(records)
            report.per_metro[metro.id] = metro_count
            logger.info("Metro %s yielded %d records", metro.id, metro_count)
        return collected

    def _persist(self, records: Iterable[SourceRecord], report: CollectionReport) -> None:
        now = self._clock()
        for record in records:
            try:
                outcome = upsert_restaurant(self.store, record, force_update=self.force_update, now=now)
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to store %s (%s): %s", record.name, record.provider.value, exc)
                report.errors.append(f"store {record.provider.value}:{record.external_id}: {exc}")
                continue
            if outcome == CREATED:
                report.created += 1
            else:
                report.updated += 1

    def _recommendations(self, report: CollectionReport) -> List[str]:
        recommendations: List[str] = []
        sparse = [metro_id for metro_id, count in report.per_metro.items() if count < MIN_RESULTS_PER_METRO]
        if sparse:
            recommendations.append(f"Consider additional searches for: {', '.join(sparse)}")
        if report.errors:
            recommendations.append(f"Review {len(report.errors)} collection errors and retry failed searches")
        if report.total_found < MIN_TOTAL_RESULTS:
            recommendations.append("Consider expanding search terms or adding more metro areas")
        return recommendations

    def run(self) -> CollectionReport:
        report = CollectionReport(started_at=self._clock())
        logger.info(
            "Starting %s collection: metros=%d terms=%d",
            "regional" if self.use_regions else "quick",
            len(self.metros),
            len(self.search_terms),
        )
        collected = self._collect(report)
        report.total_found = len(collected)
        unique = deduplicate(collected)
        report.unique = len(unique)
        self._persist(unique, report)
        report.recommendations = self._recommendations(report)
        report.finished_at = self._clock()
        logger.info(
            "Collection finished: found=%d unique=%d created=%d updated=%d errors=%d",
            report.total_found,
            report.unique,
            report.created,
            report.updated,
            len(report.errors),
        )
        for recommendation in report.recommendations:
            logger.info("Recommendation: %s", recommendation)
        return report


def resolve_metros(metro_ids: Optional[Sequence[str]]) -> List[MetroArea]:
    if not metro_ids:
        return list(METRO_AREAS)
    metros = []
    for metro_id in metro_ids:
        metro = get_metro_area(metro_id)
        if metro is None:
            raise ValueError(f"Unknown metro area: {metro_id}")
        metros.append(metro)
    return metros


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect restaurants for metro areas from all providers")
    parser.add_argument("--metro", dest="metros", action="append", help="Metro area id (repeatable)")
    parser.add_argument("--term", dest="terms", action="append", help="Search term (repeatable)")
    parser.add_argument("--quick", action="store_true", help="Search metro centres only, skipping regions")
    parser.add_argument("--force-update", action="store_true", help="Overwrite populated fields")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)

    try:
        services = build_services(get_settings())
        job = MetroCollectionJob(
            services.store,
            services.adapters,
            metros=resolve_metros(args.metros),
            search_terms=args.terms or SEARCH_TERMS,
            use_regions=not args.quick,
            force_update=args.force_update,
        )
        job.run()
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Metro collection failed: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
