"""Builds the long-lived service graph once per process."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from afritable.core.config import Settings, get_settings
from afritable.core.db import PostgresRestaurantStore
from afritable.core.enhancement import DataEnhancementService, SourceDiscrepancyDetector
from afritable.core.monitoring import DataMonitoringService
from afritable.core.photos import PhotoEnhancementService
from afritable.core.tasks import TaskQueue
from afritable.core.web_scraper import WebScraper
from afritable.models import Provider
from afritable.vendors.base import UsageCounter
from afritable.vendors.foursquare import FoursquareAdapter
from afritable.vendors.google_places import GooglePlacesAdapter
from afritable.vendors.yelp import YelpAdapter

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: Any
    usage: UsageCounter
    adapters: Dict[Provider, Any]
    scraper: WebScraper
    photos: PhotoEnhancementService
    enhancement: DataEnhancementService
    monitoring: DataMonitoringService
    tasks: TaskQueue

    def close(self) -> None:
        self.tasks.shutdown(wait=False)
        self.scraper.close()


def build_adapters(settings: Settings, usage: UsageCounter) -> Dict[Provider, Any]:
    return {
        Provider.GOOGLE: GooglePlacesAdapter(settings, usage),
        Provider.YELP: YelpAdapter(settings, usage),
        Provider.FOURSQUARE: FoursquareAdapter(settings, usage),
    }


def build_services(settings: Optional[Settings] = None, store: Any = None) -> Services:
    settings = settings or get_settings()
    store = store if store is not None else PostgresRestaurantStore(settings)
    usage = UsageCounter(store)
    adapters = build_adapters(settings, usage)
    scraper = WebScraper(settings)
    photos = PhotoEnhancementService(adapters, scraper=scraper)
    enhancement = DataEnhancementService(store, adapters, photo_service=photos, scraper=scraper)
    detector = SourceDiscrepancyDetector(enhancement) if settings.monitoring_cross_check else None
    monitoring = DataMonitoringService(store, detector=detector)

    configured = [provider.value for provider, adapter in adapters.items() if adapter.is_configured]
    logger.info(
        "Services ready: providers=%s maps_backend=%s cross_check=%s",
        ",".join(configured) or "none",
        settings.maps_backend,
        settings.monitoring_cross_check,
    )
    return Services(
        settings=settings,
        store=store,
        usage=usage,
        adapters=adapters,
        scraper=scraper,
        photos=photos,
        enhancement=enhancement,
        monitoring=monitoring,
        tasks=TaskQueue(max_workers=settings.task_workers),
    )
