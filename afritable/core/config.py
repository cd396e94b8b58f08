"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

from afritable.models import Provider

logger = logging.getLogger(__name__)

DEFAULT_DAILY_LIMITS = {
    Provider.GOOGLE: 1000,
    Provider.YELP: 5000,
    Provider.FOURSQUARE: 1000,
}
MAPS_BACKENDS = ("browser", "serpapi")


class ConfigError(RuntimeError):
    """Raised when configuration values are missing or malformed."""


@dataclass(frozen=True)
class Settings:
    database_url: str = ""
    google_places_api_key: str = ""
    yelp_api_key: str = ""
    foursquare_api_key: str = ""
    google_places_daily_limit: int = DEFAULT_DAILY_LIMITS[Provider.GOOGLE]
    yelp_daily_limit: int = DEFAULT_DAILY_LIMITS[Provider.YELP]
    foursquare_daily_limit: int = DEFAULT_DAILY_LIMITS[Provider.FOURSQUARE]
    serpapi_api_key: str = ""
    maps_backend: str = "browser"
    request_timeout: int = 10
    worker_port: int = 9000
    task_workers: int = 4
    enhance_batch_size: int = 10
    db_pool_max: int = 0
    enrich_use_js_renderer: bool = False
    default_phone_region: Optional[str] = "US"
    monitoring_cross_check: bool = False

    def api_key(self, provider: Provider) -> str:
        return {
            Provider.GOOGLE: self.google_places_api_key,
            Provider.YELP: self.yelp_api_key,
            Provider.FOURSQUARE: self.foursquare_api_key,
        }[provider]

    def daily_limit(self, provider: Provider) -> int:
        return {
            Provider.GOOGLE: self.google_places_daily_limit,
            Provider.YELP: self.yelp_daily_limit,
            Provider.FOURSQUARE: self.foursquare_daily_limit,
        }[provider]


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{name} must not be negative")
    return value


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    google_key = os.getenv("GOOGLE_PLACES_API_KEY", "")
    yelp_key = os.getenv("YELP_API_KEY", "")
    foursquare_key = os.getenv("FOURSQUARE_API_KEY", "")
    serpapi_key = os.getenv("SERPAPI_API_KEY", "")
    maps_backend = os.getenv("MAPS_BACKEND", "browser").strip().lower() or "browser"
    if maps_backend not in MAPS_BACKENDS:
        raise ConfigError(f"MAPS_BACKEND must be one of {', '.join(MAPS_BACKENDS)}")
    default_phone_region_raw = os.getenv("DEFAULT_PHONE_REGION")
    default_phone_region = default_phone_region_raw.strip().upper() if default_phone_region_raw else "US"

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not google_key:
        logger.warning("GOOGLE_PLACES_API_KEY is not configured; Google Places requests will be skipped.")
    if not yelp_key:
        logger.warning("YELP_API_KEY is not configured; Yelp requests will be skipped.")
    if not foursquare_key:
        logger.warning("FOURSQUARE_API_KEY is not configured; Foursquare requests will be skipped.")
    if maps_backend == "serpapi" and not serpapi_key:
        logger.warning("SERPAPI_API_KEY is not configured; Maps listing lookups will fail.")

    return Settings(
        database_url=database_url,
        google_places_api_key=google_key,
        yelp_api_key=yelp_key,
        foursquare_api_key=foursquare_key,
        google_places_daily_limit=_get_int("GOOGLE_PLACES_DAILY_LIMIT", DEFAULT_DAILY_LIMITS[Provider.GOOGLE]),
        yelp_daily_limit=_get_int("YELP_DAILY_LIMIT", DEFAULT_DAILY_LIMITS[Provider.YELP]),
        foursquare_daily_limit=_get_int("FOURSQUARE_DAILY_LIMIT", DEFAULT_DAILY_LIMITS[Provider.FOURSQUARE]),
        serpapi_api_key=serpapi_key,
        maps_backend=maps_backend,
        request_timeout=_get_int("REQUEST_TIMEOUT", 10),
        worker_port=_get_int("WORKER_PORT", 9000),
        task_workers=max(1, _get_int("TASK_WORKERS", 4)),
        enhance_batch_size=max(1, _get_int("ENHANCE_BATCH_SIZE", 10)),
        db_pool_max=_get_int("DB_POOL_MAX", 0),
        enrich_use_js_renderer=_get_bool("ENRICH_USE_JS_RENDERER"),
        default_phone_region=default_phone_region,
        monitoring_cross_check=_get_bool("MONITORING_CROSS_CHECK"),
    )
