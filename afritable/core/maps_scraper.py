"""Google Maps listing lookups via a headless browser or SerpAPI."""

from __future__ import annotations

import logging
import random
import re
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from playwright.sync_api import sync_playwright
from serpapi import GoogleSearch

from afritable.core.config import ConfigError, Settings
from afritable.models import RawMapsData

logger = logging.getLogger(__name__)

RETRY_LIMIT = 2
RETRY_DELAY_SECONDS = 1.2
MAX_LISTING_PHOTOS = 3
MIN_PHONE_DIGITS = 10
MAPS_URL = "https://www.google.com/maps"
PLACEHOLDER_PHONES = {
    "0000000000",
    "1234567890",
    "5555555555",
    "5551234567",
    "9999999999",
}
PLACEHOLDER_WEBSITE_HINTS = ("example", "placeholder")

SEARCH_BOX_SELECTOR = "input#searchboxinput"
FIRST_RESULT_SELECTORS = ('[data-result-index="0"]', '[role="article"]')
NAME_SELECTORS = ("h1.DUwDvf", "h1")
PHONE_SELECTORS = (
    '[data-item-id^="phone"]',
    'button[data-tooltip="Copy phone number"]',
    '[aria-label^="Phone"]',
)
WEBSITE_SELECTORS = ('a[data-item-id="authority"]', 'a[aria-label^="Website"]')
ADDRESS_SELECTORS = ('button[data-item-id="address"]', '[aria-label^="Address"]')
RATING_SELECTORS = ('div.F7nice span[aria-hidden="true"]',)
REVIEW_COUNT_SELECTORS = ('div.F7nice span[aria-label*="review"]',)
PHOTO_SELECTOR = 'img[src*="googleusercontent.com"]'

_PHONE_CHARS_RE = re.compile(r"[^\d\-\+\(\)\s]")


def clean_phone(raw: Optional[str]) -> str:
    """Keep dialable characters only; drop short or placeholder numbers."""
    if not raw:
        return ""
    cleaned = _PHONE_CHARS_RE.sub("", raw).strip()
    digits = re.sub(r"\D", "", cleaned)
    if len(digits) < MIN_PHONE_DIGITS:
        return ""
    if digits in PLACEHOLDER_PHONES or digits[-10:] in PLACEHOLDER_PHONES:
        return ""
    return cleaned


def clean_website(raw: Optional[str]) -> str:
    if not raw:
        return ""
    website = raw.strip()
    if not website:
        return ""
    lowered = website.lower()
    if any(hint in lowered for hint in PLACEHOLDER_WEBSITE_HINTS):
        return ""
    if not lowered.startswith(("http://", "https://")):
        website = f"https://{website}"
    return website


def is_placeholder_phone(phone: Optional[str]) -> bool:
    return bool(phone) and not clean_phone(phone)


def is_placeholder_website(website: Optional[str]) -> bool:
    return bool(website) and not clean_website(website)


def _finalize(data: RawMapsData) -> RawMapsData:
    data.phone = clean_phone(data.phone)
    data.website = clean_website(data.website)
    data.photos = [url for url in data.photos if url][:MAX_LISTING_PHOTOS]
    return data


class BrowserMapsScraper:
    """Drive headless Chromium through the Maps search box and read the business panel."""

    def __init__(
        self,
        settings: Settings,
        *,
        playwright_factory: Callable[[], Any] = sync_playwright,
        settle_ms: int = 2500,
    ) -> None:
        self.settings = settings
        self._playwright_factory = playwright_factory
        self._timeout_ms = (settings.request_timeout or 10) * 3000
        self._settle_ms = settle_ms

    @staticmethod
    def _first_text(page, selectors: Iterable[str]) -> str:
        for selector in selectors:
            node = page.query_selector(selector)
            if not node:
                continue
            text = (node.get_attribute("aria-label") or node.inner_text() or "").strip()
            if text:
                return text
        return ""

    @staticmethod
    def _first_href(page, selectors: Iterable[str]) -> str:
        for selector in selectors:
            node = page.query_selector(selector)
            if node:
                href = node.get_attribute("href")
                if href:
                    return href.strip()
        return ""

    def _read_panel(self, page, query: str) -> RawMapsData:
        name = self._first_text(page, NAME_SELECTORS)
        if not name:
            return RawMapsData.empty(query)

        address = self._first_text(page, ADDRESS_SELECTORS)
        if address.lower().startswith("address:"):
            address = address.split(":", 1)[1].strip()

        photos: List[str] = []
        for image in page.query_selector_all(PHOTO_SELECTOR):
            src = image.get_attribute("src")
            if src and src not in photos:
                photos.append(src)
            if len(photos) >= MAX_LISTING_PHOTOS:
                break

        return RawMapsData(
            query=query,
            found=True,
            name=name,
            phone=self._first_text(page, PHONE_SELECTORS),
            website=self._first_href(page, WEBSITE_SELECTORS),
            address=address,
            rating=_safe_float(self._first_text(page, RATING_SELECTORS)),
            review_count=_safe_int(self._first_text(page, REVIEW_COUNT_SELECTORS)),
            photos=photos,
        )

    def scrape_listing(self, query: str) -> RawMapsData:
        if not query or not query.strip():
            return RawMapsData.empty(query or "")

        try:
            with self._playwright_factory() as playwright:
                browser = playwright.chromium.launch(headless=True)
                try:
                    page = browser.new_page()
                    page.goto(MAPS_URL, wait_until="domcontentloaded", timeout=self._timeout_ms)
                    page.fill(SEARCH_BOX_SELECTOR, query.strip())
                    page.keyboard.press("Enter")
                    page.wait_for_timeout(self._settle_ms)

                    for selector in FIRST_RESULT_SELECTORS:
                        result = page.query_selector(selector)
                        if result:
                            result.click()
                            page.wait_for_timeout(self._settle_ms)
                            break

                    data = self._read_panel(page, query)
                finally:
                    browser.close()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Maps browser lookup failed for %r: %s", query, exc)
            return RawMapsData.empty(query)

        if not data.found:
            logger.info("No Maps listing found for %r", query)
            return data
        return _finalize(data)


def build_serpapi_params(query: str, api_key: str, ll: Optional[str] = None) -> Dict[str, Any]:
    """Construct SerpAPI request parameters for the Google Maps engine."""
    if not query or not query.strip():
        raise ValueError("Query must be provided for SerpAPI lookups.")
    if not api_key:
        raise ConfigError("SERPAPI_API_KEY must be set to use the serpapi Maps backend.")

    params: Dict[str, Any] = {
        "engine": "google_maps",
        "q": query.strip(),
        "api_key": api_key,
        "type": "search",
    }
    if ll:
        params["ll"] = ll
    return params


def fetch_from_serpapi(params: Dict[str, Any], sleep: Callable[[float], None] = time.sleep) -> Dict[str, Any]:
    """Call SerpAPI Google Maps and return the raw JSON response with retry logic."""
    attempt = 0
    while True:
        attempt += 1
        try:
            logger.info("Calling SerpAPI (attempt %s) for query=%s", attempt, params.get("q"))
            data = GoogleSearch(params).get_dict()
            if not data:
                raise ValueError("SerpAPI returned an empty payload.")
            if "error" in data:
                raise RuntimeError(f"SerpAPI returned an error response: {data.get('error')}")
            return data
        except Exception as exc:  # noqa: BLE001
            logger.warning("SerpAPI request failed (attempt %s/%s): %s", attempt, RETRY_LIMIT + 1, exc)
            if attempt > RETRY_LIMIT:
                logger.error("SerpAPI request exhausted retries for query=%s", params.get("q"))
                raise
            sleep(RETRY_DELAY_SECONDS + random.uniform(0, 0.8))


def parse_serpapi_place(data: Optional[Dict[str, Any]], query: str) -> RawMapsData:
    """Take the single place result, or the first local result, as the listing."""
    if not data:
        return RawMapsData.empty(query)

    place = data.get("place_results")
    if isinstance(place, list):
        place = place[0] if place else None
    if not isinstance(place, dict):
        items = list(_extract_items(data))
        place = next((item for item in items if isinstance(item, dict)), None)
    if not place:
        logger.warning("SerpAPI response had no place for %r. keys=%s", query, list(data.keys())[:10])
        return RawMapsData.empty(query)

    name = (place.get("title") or place.get("name") or "").strip()
    if not name:
        return RawMapsData.empty(query)

    photos: List[str] = []
    thumbnail = place.get("thumbnail")
    if thumbnail:
        photos.append(thumbnail)
    for image in place.get("images") or []:
        url = image.get("thumbnail") if isinstance(image, dict) else None
        if url:
            photos.append(url)

    return RawMapsData(
        query=query,
        found=True,
        name=name,
        phone=_strip_or_none(place.get("phone")) or "",
        website=_strip_or_none(place.get("website")) or "",
        address=_strip_or_none(place.get("address")) or "",
        rating=_safe_float(place.get("rating")),
        review_count=_safe_int(place.get("reviews_count") or place.get("reviews")),
        photos=photos,
        raw_snapshot=place,
    )


def _extract_items(data: Dict[str, Any]) -> Iterable[Any]:
    """SerpAPI sometimes returns local_results as a list or nested dict."""
    local_results = data.get("local_results")
    if isinstance(local_results, list):
        return local_results
    if isinstance(local_results, dict):
        for maybe in (local_results.get("places"), local_results.get("results")):
            if isinstance(maybe, list):
                return maybe
    return []


class SerpApiMapsScraper:
    def __init__(self, settings: Settings, *, sleep: Callable[[float], None] = time.sleep) -> None:
        self.settings = settings
        self._sleep = sleep

    def scrape_listing(self, query: str) -> RawMapsData:
        try:
            params = build_serpapi_params(query, self.settings.serpapi_api_key)
            data = fetch_from_serpapi(params, sleep=self._sleep)
        except Exception as exc:  # noqa: BLE001
            logger.warning("SerpAPI Maps lookup failed for %r: %s", query, exc)
            return RawMapsData.empty(query or "")

        result = parse_serpapi_place(data, query)
        return _finalize(result) if result.found else result


def build_maps_scraper(settings: Settings, backend: Optional[str] = None):
    backend = (backend or settings.maps_backend or "browser").lower()
    if backend == "serpapi":
        return SerpApiMapsScraper(settings)
    if backend == "browser":
        return BrowserMapsScraper(settings)
    raise ConfigError(f"Unknown Maps backend: {backend}")


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(str(value).replace(",", "."))
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)

    if isinstance(value, str):
        digits = "".join(ch for ch in value if ch.isdigit())
        if digits:
            return int(digits)
    return None
