"""Shared plumbing for the restaurant data providers: results, quota and HTTP."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from afritable.core.config import Settings
from afritable.models import Provider

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROVIDER_LABELS = {
    Provider.GOOGLE: "Google Places",
    Provider.YELP: "Yelp",
    Provider.FOURSQUARE: "Foursquare",
}
USAGE_API_NAMES = {
    Provider.GOOGLE: "GOOGLE_PLACES",
    Provider.YELP: "YELP",
    Provider.FOURSQUARE: "FOURSQUARE",
}


class ErrorKind(str, Enum):
    NOT_CONFIGURED = "NOT_CONFIGURED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    HTTP_ERROR = "HTTP_ERROR"


@dataclass(slots=True)
class ApiResult(Generic[T]):
    """Outcome of a provider call. Adapters return these instead of raising."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, data: T) -> "ApiResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "ApiResult[T]":
        return cls(success=False, error=message, error_kind=kind)


class ProviderError(RuntimeError):
    """Raised inside an adapter when the provider answered 2xx but reported an error."""


def build_session(user_agent: str = "AfritableBot/1.0") -> requests.Session:
    session = requests.Session()
    retries = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=("GET",),
        raise_on_status=False,
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    session.headers.setdefault("User-Agent", user_agent)
    return session


class UsageCounter:
    """Daily per-(api, endpoint) request counter backed by the store."""

    def __init__(self, store: Any, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def today(self) -> date:
        return self._clock().date()

    def current(self, api_name: str, endpoint: str) -> int:
        return self.store.get_api_usage(api_name, endpoint, self.today())

    def has_capacity(self, api_name: str, endpoint: str, limit: int) -> bool:
        try:
            used = self.current(api_name, endpoint)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not read usage for %s/%s, allowing call: %s", api_name, endpoint, exc)
            return True
        return used < limit

    def record(self, api_name: str, endpoint: str) -> None:
        try:
            self.store.increment_api_usage(api_name, endpoint, self.today())
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to record usage for %s/%s: %s", api_name, endpoint, exc)


class SourceAdapter:
    """Base class: key check, quota gate, GET, usage increment and error mapping."""

    provider: Provider
    base_url: str

    def __init__(
        self,
        settings: Settings,
        usage: UsageCounter,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings
        self.usage = usage
        self.session = session or build_session()
        self.timeout = settings.request_timeout

    @property
    def label(self) -> str:
        return PROVIDER_LABELS[self.provider]

    @property
    def api_key(self) -> str:
        return self.settings.api_key(self.provider)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {}

    def _provider_error(self, payload: Any) -> Optional[str]:
        """Return the provider's error message for a 2xx payload, if it carries one."""
        return None

    def _error_message(self, response: Optional[requests.Response]) -> Optional[str]:
        if response is None:
            return None
        try:
            return self._provider_error(response.json())
        except ValueError:
            return None

    def _call(
        self,
        endpoint: str,
        path: str,
        params: Dict[str, Any],
        parse: Callable[[Any], T],
    ) -> ApiResult[T]:
        if not self.is_configured:
            return ApiResult.fail(ErrorKind.NOT_CONFIGURED, f"{self.label} API key not configured")

        api_name = USAGE_API_NAMES[self.provider]
        limit = self.settings.daily_limit(self.provider)
        if not self.usage.has_capacity(api_name, endpoint, limit):
            logger.warning("%s daily limit reached for %s (limit=%d)", self.label, endpoint, limit)
            return ApiResult.fail(ErrorKind.QUOTA_EXCEEDED, f"{self.label} API daily limit reached")

        try:
            response = self.session.get(
                f"{self.base_url}{path}",
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            message = self._error_message(exc.response)
            logger.error("%s %s failed: %s", self.label, endpoint, message or exc)
            if message:
                return ApiResult.fail(ErrorKind.PROVIDER_ERROR, message)
            return ApiResult.fail(ErrorKind.HTTP_ERROR, f"Failed to fetch data from {self.label}")
        except requests.RequestException as exc:
            logger.error("%s %s request error: %s", self.label, endpoint, exc)
            return ApiResult.fail(ErrorKind.HTTP_ERROR, f"Failed to fetch data from {self.label}")

        self.usage.record(api_name, endpoint)

        try:
            payload = response.json()
        except ValueError:
            logger.error("%s %s returned a non-JSON body", self.label, endpoint)
            return ApiResult.fail(ErrorKind.HTTP_ERROR, f"Failed to fetch data from {self.label}")

        message = self._provider_error(payload)
        if message:
            logger.error("%s %s reported an error: %s", self.label, endpoint, message)
            return ApiResult.fail(ErrorKind.PROVIDER_ERROR, message)

        try:
            return ApiResult.ok(parse(payload))
        except ProviderError as exc:
            return ApiResult.fail(ErrorKind.PROVIDER_ERROR, str(exc))


def split_lat_lng(location: str) -> Optional[tuple]:
    """Return ``(lat, lng)`` when ``location`` is a ``"lat,lng"`` pair."""
    parts = [part.strip() for part in (location or "").split(",")]
    if len(parts) != 2:
        return None
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        return None
