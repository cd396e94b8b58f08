from datetime import timedelta
from types import SimpleNamespace

from afritable.core.monitoring import DataMonitoringService
from afritable.core.scheduler import Scheduler
from afritable.jobs import monitor
from afritable.models import RestaurantRecord
from conftest import FIXED_NOW, FakeStore


class CountingEnhancement:
    def __init__(self):
        self.ids = []

    def enhance_restaurant_data(self, restaurant_id, **kwargs):
        self.ids.append(restaurant_id)
        return SimpleNamespace(persisted=True, quality_score=0.9, errors=[])


def _services(settings, records):
    store = FakeStore(records)
    return SimpleNamespace(
        settings=settings,
        store=store,
        adapters={},
        enhancement=CountingEnhancement(),
        monitoring=DataMonitoringService(store, clock=lambda: FIXED_NOW),
    )


def test_scheduler_registers_every_job(settings):
    scheduler = monitor.build_scheduler(_services(settings, []), Scheduler(clock=lambda: FIXED_NOW))

    assert {job.name: job.schedule.expression for job in scheduler.jobs} == monitor.SCHEDULES


def test_staleness_refresh_enhances_outdated_only(settings):
    services = _services(
        settings,
        [
            RestaurantRecord(name="Old", last_updated=FIXED_NOW - timedelta(days=40)),
            RestaurantRecord(name="Fresh", last_updated=FIXED_NOW),
        ],
    )

    result = monitor.job_functions(services)[monitor.STALENESS_REFRESH]()

    assert services.enhancement.ids == ["1"]
    assert result.enhanced == 1


def test_staleness_refresh_with_nothing_outdated(settings):
    services = _services(settings, [RestaurantRecord(name="Fresh", last_updated=FIXED_NOW)])

    assert monitor.job_functions(services)[monitor.STALENESS_REFRESH]() is None
    assert services.enhancement.ids == []


def test_daily_quality_returns_report(settings):
    services = _services(settings, [RestaurantRecord(name="Blue Nile", google_place_id="g-1")])

    report = monitor.job_functions(services)[monitor.DAILY_QUALITY]()

    assert report.total_restaurants == 1
    assert services.store.updates == []
