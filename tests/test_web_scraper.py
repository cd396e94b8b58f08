from concurrent.futures import ThreadPoolExecutor

import requests
from bs4 import BeautifulSoup

from afritable.core import web_scraper
from afritable.core.config import Settings
from afritable.models import DayHours, PhotoType, PriceRange, WEEKDAYS

PAGE = """
<html>
  <head><title>Blue Nile</title></head>
  <body>
    <div class="about">Blue Nile serves traditional Ethiopian dishes cooked with family recipes since 1998 in Atlanta.</div>
    <div class="menu-section">
      <h2>Entrees</h2>
      <div class="menu-item"><h3>Doro Wat</h3><p class="description">Signature spicy chicken stew</p><span class="price">$18.00</span></div>
      <div class="menu-item"><h3>Misir Wat</h3><p class="description">Vegan red lentils</p><span class="price">$12.00</span></div>
    </div>
    <div class="hours">Monday: 11:00 am - 9:00 pm<br>Tuesday: Closed</div>
    <img src="/images/logo.png" alt="logo">
    <img src="/images/doro.jpg" alt="Doro wat dish">
    <a href="https://www.instagram.com/bluenile/">Instagram</a>
    <a href="https://facebook.com/">Facebook</a>
    <a href="tel:+14045550100">Call us</a>
    <a href="mailto:hello@bluenile.example.org">Write to us</a>
  </body>
</html>
"""


class HtmlResponse:
    def __init__(self, text, url, content_type="text/html; charset=utf-8", status_code=200):
        self.text = text
        self.url = url
        self.headers = {"Content-Type": content_type}
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class HtmlSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, headers=None, timeout=None, allow_redirects=True):
        self.calls.append(url)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def close(self):
        pass


def _scraper(response):
    session = HtmlSession(response)
    return web_scraper.WebScraper(Settings(), session=session), session


def test_scrape_extracts_menu_hours_photos_and_contacts():
    scraper, session = _scraper(HtmlResponse(PAGE, "https://bluenile.example.org/"))

    data = scraper.scrape_website("bluenile.example.org")

    assert session.calls == ["https://bluenile.example.org/"]
    assert [item.name for item in data.menu_items] == ["Doro Wat", "Misir Wat"]
    doro, misir = data.menu_items
    assert doro.category == "Entrees"
    assert doro.is_popular is True
    assert doro.ingredients == ["chicken"]
    assert misir.dietary_info == ["vegan"]
    assert data.specialties == ["Doro Wat"]
    assert data.pricing.average_price == 15.0
    assert data.pricing.price_range is PriceRange.MODERATE

    assert data.business_hours["monday"] == DayHours("11:00 am", "9:00 pm")
    assert data.business_hours["tuesday"] == DayHours(closed=True)
    assert data.business_hours["wednesday"] == DayHours()

    assert [photo.url for photo in data.photos] == ["https://bluenile.example.org/images/doro.jpg"]
    assert data.photos[0].type is PhotoType.FOOD
    assert data.social_media == {"instagram": "https://www.instagram.com/bluenile"}
    assert data.description.startswith("Blue Nile serves traditional Ethiopian")
    assert data.contact_info.phone == "+14045550100"
    assert data.contact_info.email == "hello@bluenile.example.org"
    assert data.is_useful() is True


def test_unreachable_site_returns_empty_shape():
    scraper, _ = _scraper(requests.ConnectionError("refused"))

    data = scraper.scrape_website("https://gone.example.org")

    assert data.social_media == {}
    assert data.menu_items == []
    assert data.photos == []
    assert data.business_hours == {day: DayHours("", "", False) for day in WEEKDAYS}
    assert data.is_useful() is False


def test_non_html_content_is_skipped():
    scraper, _ = _scraper(HtmlResponse("%PDF", "https://bluenile.example.org/menu.pdf", "application/pdf"))

    data = scraper.scrape_website("https://bluenile.example.org/menu.pdf")

    assert data.menu_items == []
    assert data.description == ""


def test_missing_website_is_not_fetched():
    scraper, session = _scraper(HtmlResponse(PAGE, "https://bluenile.example.org/"))

    data = scraper.scrape_website(None)

    assert session.calls == []
    assert data.social_media == {}


def test_sanitize_website():
    assert web_scraper.sanitize_website("bluenile.example.org") == "https://bluenile.example.org/"
    assert web_scraper.sanitize_website("http://bluenile.example.org/menu#top") == "http://bluenile.example.org/menu"
    assert web_scraper.sanitize_website("localhost") is None
    assert web_scraper.sanitize_website("  ") is None


def test_extract_phones_formats_e164():
    assert web_scraper.extract_phones("Call 404-555-0100 today", "US") == ["+14045550100"]
    assert web_scraper.extract_phones("", "US") == []


class FakeRenderedPage:
    def __init__(self, html):
        self.html = html
        self.url = ""

    def goto(self, url, wait_until=None, timeout=None):
        self.url = url

    def content(self):
        return self.html


class FakeBrowser:
    def __init__(self, html):
        self.html = html
        self.closed = False

    def new_page(self, user_agent=None):
        return FakeRenderedPage(self.html)

    def close(self):
        self.closed = True


class FakePlaywright:
    instances = []

    def __init__(self):
        self.browsers = []
        self.stopped = False
        self.chromium = self
        FakePlaywright.instances.append(self)

    def launch(self, headless=True):
        browser = FakeBrowser(PAGE)
        self.browsers.append(browser)
        return browser

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stopped = True
        return False


def test_render_page_uses_a_fresh_browser_per_call_across_threads():
    FakePlaywright.instances = []
    with ThreadPoolExecutor(max_workers=3) as executor:
        urls = [f"https://site{index}.example.org/" for index in range(3)]
        results = list(executor.map(lambda url: web_scraper.render_page(url, 1000, FakePlaywright), urls))

    assert [final_url for final_url, _ in results] == urls
    assert len(FakePlaywright.instances) == 3
    assert all(instance.stopped for instance in FakePlaywright.instances)
    assert all(browser.closed for instance in FakePlaywright.instances for browser in instance.browsers)


def test_script_shell_page_is_rendered_before_parsing():
    shell = '<html><body><div id="root"></div></body></html>'
    session = HtmlSession(HtmlResponse(shell, "https://bluenile.example.org/"))
    rendered = []

    def renderer(url, timeout_ms):
        rendered.append((url, timeout_ms))
        return url, PAGE

    scraper = web_scraper.WebScraper(Settings(), session=session, renderer=renderer)

    data = scraper.scrape_website("https://bluenile.example.org")

    assert rendered == [("https://bluenile.example.org/", 10000)]
    assert [item.name for item in data.menu_items] == ["Doro Wat", "Misir Wat"]


def test_contact_links_win_over_page_text():
    soup = BeautifulSoup(
        '<p>Fax 212-555-0199 or sales@other.example.org</p>'
        '<a href="tel:+14045550100">Call</a><a href="mailto:Hello@BlueNile.example.org">Mail</a>',
        "html.parser",
    )

    contact = web_scraper.extract_contact_info(soup, "US")

    assert contact.phone == "+14045550100"
    assert contact.email == "hello@bluenile.example.org"
