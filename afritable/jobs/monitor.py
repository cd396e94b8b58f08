"""Long-running process that drives collection, quality checks and refreshes on a cron schedule."""

import argparse
import logging
import threading
from typing import Callable, Dict, Optional, Sequence

from afritable.core.config import ConfigError, get_settings
from afritable.core.scheduler import Scheduler
from afritable.core.services import Services, build_services
from afritable.jobs.collect_metro import MetroCollectionJob
from afritable.jobs.enhance_restaurants import EnhancementOptions, RestaurantEnhancementJob

logger = logging.getLogger(__name__)

QUICK_COLLECTION = "quick-collection"
DAILY_QUALITY = "daily-quality"
STALENESS_REFRESH = "staleness-refresh"
FULL_COLLECTION = "full-collection"

SCHEDULES = {
    QUICK_COLLECTION: "0 */6 * * *",
    DAILY_QUALITY: "0 2 * * *",
    STALENESS_REFRESH: "0 3 * * 0",
    FULL_COLLECTION: "0 4 * * 0",
}


def job_functions(services: Services) -> Dict[str, Callable[[], object]]:
    def quick_collection() -> object:
        return MetroCollectionJob(services.store, services.adapters, use_regions=False).run()

    def daily_quality() -> object:
        flagged = services.monitoring.flag_data_discrepancies()
        report = services.monitoring.generate_data_monitoring_report()
        logger.info(
            "Daily quality: flagged=%d total=%d average=%.2f",
            flagged,
            report.total_restaurants,
            report.average_quality_score,
        )
        return report

    def staleness_refresh() -> object:
        outdated = services.monitoring.identify_outdated_restaurants()
        if not outdated:
            logger.info("No outdated restaurants to refresh")
            return None
        options = EnhancementOptions(restaurant_ids=outdated, batch_size=services.settings.enhance_batch_size)
        return RestaurantEnhancementJob(services.store, services.enhancement).run(options)

    def full_collection() -> object:
        return MetroCollectionJob(services.store, services.adapters).run()

    return {
        QUICK_COLLECTION: quick_collection,
        DAILY_QUALITY: daily_quality,
        STALENESS_REFRESH: staleness_refresh,
        FULL_COLLECTION: full_collection,
    }


def build_scheduler(services: Services, scheduler: Optional[Scheduler] = None) -> Scheduler:
    scheduler = scheduler or Scheduler()
    for name, func in job_functions(services).items():
        scheduler.add_job(name, SCHEDULES[name], func)
    return scheduler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the Afritable data monitoring scheduler")
    parser.add_argument("--run", choices=sorted(SCHEDULES), help="Run one job immediately and exit")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)

    try:
        services = build_services(get_settings())
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc

    if args.run:
        try:
            job_functions(services)[args.run]()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Job %s failed: %s", args.run, exc)
            raise SystemExit(1) from exc
        finally:
            services.close()
        return

    scheduler = build_scheduler(services)
    scheduler.start()
    stop = threading.Event()
    try:
        stop.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down scheduler")
    finally:
        scheduler.stop()
        services.close()


if __name__ == "__main__":
    main()
