"""CLI job that runs per-restaurant enhancement over the store in settle-all batches."""

import argparse
import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from afritable.core.config import ConfigError, get_settings
from afritable.core.services import build_services
from afritable.models import EnhancedRestaurantData, RestaurantRecord

logger = logging.getLogger(__name__)

BATCH_DELAY_SECONDS = 2.0
RECENTLY_UPDATED = timedelta(days=7)
SUCCESS_RATE_TARGET = 0.8
REPORT_EVENT = ("DATA_ENHANCEMENT", "batch_report")


@dataclass
class EnhancementOptions:
    restaurant_ids: Optional[List[str]] = None
    batch_size: int = 10
    skip_existing: bool = False
    force_update: bool = False
    include_photos: bool = True
    include_scraping: bool = True
    include_validation: bool = True


@dataclass
class EnhancementRunResult:
    total: int = 0
    enhanced: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    scores: Dict[str, float] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "enhanced": self.enhanced,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": list(self.errors),
            "scores": dict(self.scores),
            "recommendations": list(self.recommendations),
        }


def build_recommendations(result: EnhancementRunResult) -> List[str]:
    recommendations: List[str] = []
    if result.failed:
        recommendations.append(f"Review {result.failed} failed enhancements and retry with different parameters")
    if result.skipped:
        recommendations.append(f"Consider running enhancement for {result.skipped} skipped restaurants")
    if result.total and result.enhanced / result.total < SUCCESS_RATE_TARGET:
        recommendations.append(
            "Success rate is below 80%. Consider adjusting enhancement parameters or fixing API issues"
        )
    return recommendations


class RestaurantEnhancementJob:
    def __init__(
        self,
        store: Any,
        enhancement: Any,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.enhancement = enhancement
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def select_restaurants(self, options: EnhancementOptions) -> List[RestaurantRecord]:
        """Active restaurants to process; ``skip_existing`` keeps unverified or week-old records only."""
        stale_before = None
        if options.skip_existing and not options.force_update:
            stale_before = self._clock() - RECENTLY_UPDATED
        return self.store.list_restaurants(restaurant_ids=options.restaurant_ids, stale_before=stale_before)

    def _enhance(self, record: RestaurantRecord, options: EnhancementOptions) -> Optional[EnhancedRestaurantData]:
        return self.enhancement.enhance_restaurant_data(
            str(record.id),
            force_update=options.force_update,
            include_photos=options.include_photos,
            include_scraping=options.include_scraping,
            include_verification=options.include_validation,
        )

    def _settle(
        self,
        batch: List[RestaurantRecord],
        futures: list,
        result: EnhancementRunResult,
    ) -> None:
        for record, future in zip(batch, futures):
            exc = future.exception()
            if exc is not None:
                result.failed += 1
                result.errors.append(f"Restaurant {record.id}: {exc}")
                continue
            outcome = future.result()
            if outcome is None or not outcome.persisted:
                result.skipped += 1
                if outcome is not None:
                    result.errors.extend(f"Restaurant {record.id}: {error}" for error in outcome.errors)
                continue
            result.enhanced += 1
            result.scores[str(record.id)] = outcome.quality_score

    def run(self, options: Optional[EnhancementOptions] = None) -> EnhancementRunResult:
        options = options or EnhancementOptions()
        batch_size = max(1, options.batch_size)
        restaurants = self.select_restaurants(options)
        result = EnhancementRunResult(total=len(restaurants))
        logger.info("Found %d restaurants to enhance", len(restaurants))

        batches = [restaurants[i : i + batch_size] for i in range(0, len(restaurants), batch_size)]
        with ThreadPoolExecutor(max_workers=batch_size, thread_name_prefix="enhance") as executor:
            for index, batch in enumerate(batches, start=1):
                logger.info("Processing batch %d/%d (%d restaurants)", index, len(batches), len(batch))
                futures = [executor.submit(self._enhance, record, options) for record in batch]
                wait(futures)
                self._settle(batch, futures, result)
                if index < len(batches):
                    self._sleep(BATCH_DELAY_SECONDS)

        result.recommendations = build_recommendations(result)
        try:
            self.store.increment_api_usage(*REPORT_EVENT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not record enhancement report: %s", exc)
        logger.info(
            "Enhancement finished: total=%d enhanced=%d skipped=%d failed=%d",
            result.total,
            result.enhanced,
            result.skipped,
            result.failed,
        )
        for recommendation in result.recommendations:
            logger.info("Recommendation: %s", recommendation)
        return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Enhance restaurant records from all sources")
    parser.add_argument("--restaurant-id", dest="restaurant_ids", action="append", help="Restaurant id (repeatable)")
    parser.add_argument("--batch-size", dest="batch_size", type=int, default=None, help="Restaurants per batch")
    parser.add_argument("--skip-existing", action="store_true", help="Only unverified or week-old records")
    parser.add_argument("--force-update", action="store_true", help="Process everything and overwrite fields")
    parser.add_argument("--no-photos", dest="include_photos", action="store_false")
    parser.add_argument("--no-scraping", dest="include_scraping", action="store_false")
    parser.add_argument("--no-validation", dest="include_validation", action="store_false")
    return parser


def options_from_args(args: argparse.Namespace, default_batch_size: int) -> EnhancementOptions:
    return EnhancementOptions(
        restaurant_ids=args.restaurant_ids,
        batch_size=args.batch_size or default_batch_size,
        skip_existing=args.skip_existing,
        force_update=args.force_update,
        include_photos=args.include_photos,
        include_scraping=args.include_scraping,
        include_validation=args.include_validation,
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
        services = build_services(settings)
        job = RestaurantEnhancementJob(services.store, services.enhancement)
        job.run(options_from_args(args, settings.enhance_batch_size))
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Restaurant enhancement failed: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
