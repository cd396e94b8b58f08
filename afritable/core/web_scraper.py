"""Restaurant website scraping: menus, hours, photos, socials and contact details."""

from __future__ import annotations

import logging
import random
import re
from typing import Any, Callable, Dict, List, Optional, Set, Tuple
from urllib.parse import urljoin, urlparse, urlunparse

import phonenumbers
import requests
from bs4 import BeautifulSoup
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError, sync_playwright

from afritable.core.config import Settings
from afritable.etl.classify import classify_dietary, classify_photo_type, extract_ingredients, is_popular
from afritable.models import (
    WEEKDAYS,
    ContactInfo,
    DayHours,
    MenuItem,
    PriceRange,
    PricingInfo,
    ScrapedPhoto,
    ScrapedRestaurantData,
    ScrapedReview,
    empty_week,
)

logger = logging.getLogger(__name__)

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)
BASE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}
REQUEST_TIMEOUT = 10
SOCIAL_HOSTS = {
    "instagram": ("instagram.com", "instagr.am"),
    "facebook": ("facebook.com", "fb.com"),
    "twitter": ("twitter.com", "x.com"),
    "tiktok": ("tiktok.com",),
}
MENU_SELECTORS = (
    ".menu-item",
    ".menu-item-name",
    ".dish",
    ".food-item",
    ".menu-section .item",
    ".menu-category .item",
    "[class*='menu'][class*='item']",
    ".menu-list .item",
)
MENU_NAME_SELECTORS = ".name, .title, .item-name, h3, h4"
MENU_DESCRIPTION_SELECTORS = ".description, .details, .ingredients"
MENU_PRICE_SELECTORS = ".price, .cost, .amount"
HOURS_SELECTORS = (".hours", ".business-hours", ".opening-hours", ".schedule", "[class*='hour']", ".time")
DESCRIPTION_SELECTORS = (
    ".about",
    "#about",
    ".description",
    ".restaurant-description",
    ".intro",
    "meta[name='description']",
)
REVIEW_SELECTORS = (".review", ".testimonial", "[class*='review']")
PHOTO_SKIP_HINTS = ("logo", "icon", "sprite", "pixel", "avatar")
MAX_PHOTOS = 20
MAX_REVIEWS = 5
MIN_DESCRIPTION_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 500

TIME_PATTERN = r"(\d{1,2}:\d{2}\s*[ap]m)\s*[-–]\s*(\d{1,2}:\d{2}\s*[ap]m)"
EMAIL_REGEX = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
PHONE_CANDIDATE_REGEX = re.compile(r"\+?\d[\d\s().\-]{6,}")
PRICE_REGEX = re.compile(r"\$\s*(\d+(?:\.\d{1,2})?)")
_DAY_PATTERNS = {
    day: (
        re.compile(rf"\b{day[:3]}[a-z]*\.?[^\d\n]{{0,20}}?{TIME_PATTERN}", re.IGNORECASE),
        re.compile(rf"\b{day[:3]}[a-z]*\.?\s*:?\s*closed", re.IGNORECASE),
    )
    for day in WEEKDAYS
}


def render_page(
    url: str,
    timeout_ms: int,
    playwright_factory: Callable[[], Any] = sync_playwright,
) -> Tuple[str, str]:
    """Load ``url`` in a headless browser and return the final URL and rendered HTML.

    Every call starts and stops its own Playwright instance, so the function is safe to call
    from any worker thread.
    """
    with playwright_factory() as playwright:
        browser = playwright.chromium.launch(headless=True)
        try:
            page = browser.new_page(user_agent=random.choice(USER_AGENTS))
            page.goto(url, wait_until="networkidle", timeout=timeout_ms)
            return page.url, page.content()
        finally:
            browser.close()


def sanitize_website(raw_url: Optional[str]) -> Optional[str]:
    """Turn a stored website value into an absolute http(s) URL, or None when it cannot be one."""

    candidate = (raw_url or "").strip()
    if not candidate:
        return None
    if "://" not in candidate:
        candidate = f"https://{candidate}"

    parsed = urlparse(candidate)
    if parsed.scheme not in ("http", "https"):
        parsed = urlparse(f"https://{candidate.split('://', 1)[1]}")
    if "." not in parsed.netloc:
        return None
    return urlunparse(parsed._replace(path=parsed.path or "/", fragment=""))


def fetch_page(
    session: requests.Session,
    url: str,
    *,
    timeout: int = REQUEST_TIMEOUT,
) -> Optional[Tuple[str, BeautifulSoup]]:
    headers = dict(BASE_HEADERS, **{"User-Agent": random.choice(USER_AGENTS)})
    try:
        response = session.get(url, headers=headers, timeout=timeout, allow_redirects=True)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Could not fetch %s: %s", url, exc)
        return None

    content_type = response.headers.get("Content-Type", "").lower()
    if "html" not in content_type:
        logger.debug("%s is not a web page (content-type=%s)", url, content_type or "missing")
        return None
    return response.url, BeautifulSoup(response.text, "html.parser")


def extract_phones(text: str, default_region: Optional[str] = None) -> List[str]:
    """E.164 numbers found in ``text``, sorted."""

    found: Set[str] = set()
    for candidate in PHONE_CANDIDATE_REGEX.findall(text or ""):
        try:
            number = phonenumbers.parse(candidate.strip(), default_region)
        except phonenumbers.NumberParseException:
            continue
        if phonenumbers.is_possible_number(number):
            found.add(phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164))
    return sorted(found)


def _social_platform(host: str) -> Optional[str]:
    host = host.lower().split(":")[0]
    for platform, domains in SOCIAL_HOSTS.items():
        if any(host == domain or host.endswith(f".{domain}") for domain in domains):
            return platform
    return None


def extract_social_links(soup: BeautifulSoup, base_url: str) -> Dict[str, str]:
    """First profile link per platform. Links to a platform's home page are ignored."""

    links: Dict[str, str] = {}
    for anchor in soup.find_all("a", href=True):
        parsed = urlparse(urljoin(base_url, anchor["href"].strip()))
        platform = _social_platform(parsed.netloc)
        if platform is None or platform in links or not parsed.path.strip("/"):
            continue
        links[platform] = f"https://{parsed.netloc}{parsed.path.rstrip('/')}"
    return links


def _clip(text: str, limit: int = MAX_DESCRIPTION_LENGTH) -> str:
    text = re.sub(r"\s+", " ", text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit].rsplit(" ", 1)[0].rstrip(". ") + "..."


def _first_text(node, selectors: str) -> str:
    match = node.select_one(selectors)
    return match.get_text(" ", strip=True) if match else ""


def _menu_category(node) -> str:
    section = node.find_parent(class_=re.compile(r"menu-(section|category)"))
    if section:
        heading = section.find(["h2", "h3"])
        if heading and node not in heading.parents:
            text = heading.get_text(" ", strip=True)
            if text:
                return text[:80]
    return "Main"


def extract_menu_items(soup: BeautifulSoup) -> List[MenuItem]:
    """Try each menu selector in order and keep the first one that yields items."""

    for selector in MENU_SELECTORS:
        items: List[MenuItem] = []
        for node in soup.select(selector):
            name = _first_text(node, MENU_NAME_SELECTORS)
            if not name and not node.find(True):
                name = node.get_text(" ", strip=True)
            if not name or len(name) > 100:
                continue
            description = _first_text(node, MENU_DESCRIPTION_SELECTORS)
            price = _first_text(node, MENU_PRICE_SELECTORS)
            haystack = f"{name} {description}"
            items.append(
                MenuItem(
                    name=name,
                    description=description,
                    price=price,
                    category=_menu_category(node),
                    dietary_info=classify_dietary(haystack),
                    is_popular=is_popular(haystack),
                    ingredients=extract_ingredients(haystack),
                )
            )
        if items:
            logger.debug("Menu selector %s matched %d items", selector, len(items))
            return items
    return []


def extract_hours(soup: BeautifulSoup) -> Dict[str, DayHours]:
    hours = empty_week()
    for selector in HOURS_SELECTORS:
        texts = [node.get_text("\n", strip=True) for node in soup.select(selector)]
        block = "\n".join(text for text in texts if text)
        if not block:
            continue
        found = False
        for day, (range_pattern, closed_pattern) in _DAY_PATTERNS.items():
            match = range_pattern.search(block)
            if match:
                hours[day] = DayHours(open=match.group(1).strip(), close=match.group(2).strip())
                found = True
            elif closed_pattern.search(block):
                hours[day] = DayHours(closed=True)
                found = True
        if found:
            return hours
    return hours


def extract_photos(soup: BeautifulSoup, base_url: str) -> List[ScrapedPhoto]:
    photos: List[ScrapedPhoto] = []
    seen: Set[str] = set()
    for image in soup.find_all("img"):
        src = (image.get("src") or image.get("data-src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        url = urljoin(base_url, src)
        lowered = url.lower()
        if url in seen or any(hint in lowered for hint in PHOTO_SKIP_HINTS):
            continue
        seen.add(url)
        alt = (image.get("alt") or "").strip()
        caption = (image.get("title") or "").strip()
        photos.append(ScrapedPhoto(url=url, alt=alt, caption=caption, type=classify_photo_type(alt, caption, url)))
        if len(photos) >= MAX_PHOTOS:
            break
    return photos


def extract_description(soup: BeautifulSoup) -> str:
    for selector in DESCRIPTION_SELECTORS:
        for node in soup.select(selector):
            if node.name == "meta":
                text = node.get("content") or ""
            else:
                text = node.get_text(" ", strip=True)
            summary = _clip(text)
            if len(summary) > MIN_DESCRIPTION_LENGTH:
                return summary
    return ""


def extract_specialties(menu_items: List[MenuItem], limit: int = 5) -> List[str]:
    return [item.name for item in menu_items if item.is_popular][:limit]


def analyze_pricing(menu_items: List[MenuItem]) -> PricingInfo:
    prices: List[float] = []
    for item in menu_items:
        prices.extend(float(value) for value in PRICE_REGEX.findall(item.price or ""))
    if not prices:
        return PricingInfo()

    average = round(sum(prices) / len(prices), 2)
    if average < 15:
        price_range = PriceRange.BUDGET
    elif average > 30:
        price_range = PriceRange.EXPENSIVE
    else:
        price_range = PriceRange.MODERATE
    return PricingInfo(price_range=price_range, average_price=average)


def extract_reviews(soup: BeautifulSoup) -> List[ScrapedReview]:
    for selector in REVIEW_SELECTORS:
        reviews: List[ScrapedReview] = []
        for node in soup.select(selector):
            text = node.get_text(" ", strip=True)
            if len(text) > 20:
                reviews.append(ScrapedReview(text=text[:1000]))
            if len(reviews) >= MAX_REVIEWS:
                break
        if reviews:
            return reviews
    return []


def _extract_link_values(soup: BeautifulSoup, scheme: str) -> List[str]:
    values: List[str] = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if href.lower().startswith(f"{scheme}:"):
            value = href.split(":", 1)[1].split("?")[0].strip()
            if value:
                values.append(value)
    return values


def extract_contact_info(soup: BeautifulSoup, default_region: Optional[str]) -> ContactInfo:
    """Prefer tel:/mailto: links over numbers and emails spotted in the page text."""

    phones = [phone for value in _extract_link_values(soup, "tel") for phone in extract_phones(value, default_region)]
    emails = [value.lower() for value in _extract_link_values(soup, "mailto")]
    text = soup.get_text(" ", strip=True)
    phones.extend(extract_phones(text, default_region))
    emails.extend(sorted({match.group(0).lower() for match in EMAIL_REGEX.finditer(text)}))
    return ContactInfo(phone=phones[0] if phones else "", email=emails[0] if emails else "")


def _is_script_shell(soup: BeautifulSoup) -> bool:
    """A near-empty page whose app/root mount point has no content yet."""

    if len(soup.get_text(" ", strip=True)) > 200:
        return False
    mount = soup.find(id=re.compile("(app|root)", re.IGNORECASE))
    return mount is not None and not mount.get_text(strip=True)


class WebScraper:
    """Scrape a restaurant website into structured data. Never raises."""

    def __init__(
        self,
        settings: Settings,
        *,
        session: Optional[requests.Session] = None,
        renderer: Optional[Callable[[str, int], Tuple[str, str]]] = None,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.timeout = settings.request_timeout or REQUEST_TIMEOUT
        self.use_js_renderer = bool(settings.enrich_use_js_renderer) or renderer is not None
        self._render = renderer or render_page

    def _fetch_with_js(self, url: str) -> Optional[Tuple[str, BeautifulSoup]]:
        if not self.use_js_renderer:
            return None
        try:
            final_url, html = self._render(url, self.timeout * 1000)
            return final_url, BeautifulSoup(html, "html.parser")
        except PlaywrightTimeoutError:
            logger.warning("Playwright timed out fetching %s", url)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Playwright failed for %s: %s", url, exc)
        return None

    def scrape_website(self, url: Optional[str]) -> ScrapedRestaurantData:
        website = sanitize_website(url)
        if not website:
            logger.info("No usable website to scrape: %r", url)
            return ScrapedRestaurantData.empty()

        try:
            fetched = fetch_page(self.session, website, timeout=self.timeout)
            if not fetched:
                fetched = self._fetch_with_js(website)
            if not fetched:
                return ScrapedRestaurantData.empty()

            final_url, soup = fetched
            if self.use_js_renderer and _is_script_shell(soup):
                fetched = self._fetch_with_js(final_url)
                if fetched:
                    final_url, soup = fetched

            menu_items = extract_menu_items(soup)
            data = ScrapedRestaurantData(
                menu_items=menu_items,
                social_media=extract_social_links(soup, final_url),
                business_hours=extract_hours(soup),
                photos=extract_photos(soup, final_url),
                description=extract_description(soup),
                specialties=extract_specialties(menu_items),
                pricing=analyze_pricing(menu_items),
                contact_info=extract_contact_info(soup, self.settings.default_phone_region),
                reviews=extract_reviews(soup),
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Scraping %s failed: %s", website, exc)
            return ScrapedRestaurantData.empty()

        logger.info(
            "Scraped %s: menu_items=%d socials=%d photos=%d",
            website,
            len(data.menu_items),
            len(data.social_media),
            len(data.photos),
        )
        return data

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "WebScraper":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
