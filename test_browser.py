from contextlib import contextmanager

import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeout

import browser
import config
from browser import (
    detect_consent,
    find_privacy_link,
    parse_size,
    pick_privacy_link,
    render_capture,
    take_screenshot,
)
from conftest import FakeRequest, FakeSession

URL = "https://example.com/"


def test_render_capture_records_requests_in_completion_order(fingerprint):
    session = FakeSession({URL: {
        "requests": [
            FakeRequest("https://example.com/", "document", 200),
            FakeRequest("https://example.com/app.js", "script", 200),
            FakeRequest("https://cdn.example.net/logo.png", "image", 404),
            FakeRequest("https://example.com/beacon", "ping", None),
        ],
        "cookies": [
            {"name": "sid", "domain": "example.com", "path": "/", "expires": -1},
            {"name": "_ga", "domain": ".example.com", "path": "/", "expires": 1893456000},
        ],
        "fingerprint": dict(fingerprint, plugins=[f"p{i}" for i in range(15)]),
        "anchors": ["/about", "/contact"],
    }})

    capture = render_capture(URL, session=session, timeout=1000)

    assert [r.to_dict() for r in capture.requests] == [
        {"url": "https://example.com/", "type": "document", "status": 200},
        {"url": "https://example.com/app.js", "type": "script", "status": 200},
        {"url": "https://cdn.example.net/logo.png", "type": "image", "status": 404},
        {"url": "https://example.com/beacon", "type": "ping", "status": 0},
    ]
    assert [c.to_dict() for c in capture.cookies] == [
        {"name": "sid", "domain": "example.com", "path": "/", "expires": -1, "session": True},
        {"name": "_ga", "domain": ".example.com", "path": "/",
         "expires": 1893456000, "session": False},
    ]
    assert capture.fingerprint.language == "en-US"
    assert capture.fingerprint.plugins == [f"p{i}" for i in range(10)]
    assert capture.anchors == ["/about", "/contact"]

    page = session.pages[0]
    assert page.goto_calls == [(URL, "networkidle", 1000)]
    assert page.listeners["requestfinished"] == []
    assert session.opened == session.closed == 1


def test_render_capture_timeout_propagates_and_closes_session():
    session = FakeSession({URL: {"goto_error": PlaywrightTimeout("Timeout 45000ms exceeded.")}})
    with pytest.raises(PlaywrightTimeout):
        render_capture(URL, session=session)
    assert session.opened == session.closed == 1
    assert session.pages[0].listeners["requestfinished"] == []


def test_detect_consent_from_dom():
    session = FakeSession({URL: {"consent": {
        "html": '<div id="onetrust-banner-sdk"></div>', "hasTcf": False}}})
    outcome = detect_consent(URL, session=session)
    assert outcome.ok
    assert outcome.value.to_dict() == {"found": True, "hasTcf": False}
    assert session.pages[0].goto_calls[0][1] == "domcontentloaded"


def test_detect_consent_from_tcf_api_alone():
    session = FakeSession({URL: {"consent": {"html": "<p>nothing</p>", "hasTcf": True}}})
    assert detect_consent(URL, session=session).value.to_dict() == {"found": True, "hasTcf": True}


def test_detect_consent_negative():
    session = FakeSession({URL: {"consent": {"html": "<p>nothing</p>", "hasTcf": False}}})
    outcome = detect_consent(URL, session=session)
    assert outcome.ok
    assert not outcome.value.found


def test_detect_consent_degrades_on_failure():
    session = FakeSession({URL: {"goto_error": PlaywrightTimeout("Timeout 30000ms exceeded.")}})
    outcome = detect_consent(URL, session=session)
    assert not outcome.ok
    assert "30000" in outcome.error
    assert outcome.value.to_dict() == {"found": False, "hasTcf": False}
    assert session.closed == 1


def test_pick_privacy_link_by_text_and_locale():
    anchors = [
        {"text": "Impressum", "href": "/impressum"},
        {"text": "Datenschutzerklärung", "href": "rechtliches/ds"},
    ]
    assert pick_privacy_link(anchors, "https://example.de/shop/") == \
        "https://example.de/shop/rechtliches/ds"


def test_pick_privacy_link_by_href():
    anchors = [{"text": "Legal", "href": "/privacy-policy"}]
    assert pick_privacy_link(anchors, URL) == "https://example.com/privacy-policy"


def test_pick_privacy_link_other_locales():
    assert pick_privacy_link([{"text": "Politique de confidentialité", "href": "/pc"}], URL) \
        == "https://example.com/pc"
    assert pick_privacy_link([{"text": "Política de privacidad", "href": "/pp"}], URL) \
        == "https://example.com/pp"


def test_find_privacy_link_first_match_wins():
    session = FakeSession({URL: {"anchor_texts": {
        "base": URL,
        "anchors": [
            {"text": "Home", "href": "/"},
            {"text": "Privacy Policy", "href": "/privacy"},
            {"text": "Datenschutz", "href": "/datenschutz"},
        ],
    }}})
    outcome = find_privacy_link(URL, session=session)
    assert outcome.ok
    assert outcome.value.to_dict() == {"present": True, "url": "https://example.com/privacy"}


def test_find_privacy_link_none_found():
    session = FakeSession({URL: {"anchor_texts": {"base": URL, "anchors": [
        {"text": "About", "href": "/about"}]}}})
    assert find_privacy_link(URL, session=session).value.to_dict() == {"present": False, "url": None}


def test_find_privacy_link_degrades_on_failure():
    session = FakeSession({URL: {"anchor_texts": RuntimeError("Execution context was destroyed")}})
    outcome = find_privacy_link(URL, session=session)
    assert not outcome.ok
    assert outcome.value.to_dict() == {"present": False, "url": None}


def test_parse_size():
    assert parse_size("800x600") == (800, 600)
    assert parse_size("1024x") == (1024, 720)
    assert parse_size("garbage") == (1280, 720)
    assert parse_size("0x-5") == (1280, 720)
    assert parse_size(None) == (1280, 720)


def test_take_screenshot_uses_viewport_and_full_page():
    session = FakeSession({URL: {}})
    png = take_screenshot(URL, 800, 600, full_page=True, session=session)
    assert png.startswith(b"\x89PNG")
    assert session.viewports == [{"width": 800, "height": 600}]
    assert session.pages[0].screenshot_calls == [("png", True)]
    assert session.closed == 1


class RecorderBrowser:
    def __init__(self):
        self.closed = False
        self.viewports = []

    def new_context(self, viewport=None):
        self.viewports.append(viewport)
        return self

    def new_page(self):
        return "page"

    def close(self):
        self.closed = True


@pytest.fixture
def fake_playwright(monkeypatch):
    launched = []

    class Chromium:
        def launch(self, headless=None, args=None):
            launched.append(RecorderBrowser())
            return launched[-1]

    class Playwright:
        chromium = Chromium()

    @contextmanager
    def fake_sync_playwright():
        yield Playwright()

    monkeypatch.setattr(browser, "sync_playwright", fake_sync_playwright)
    return launched


def all_slots_free():
    taken = 0
    while taken < config.MAX_CONCURRENT_BROWSERS and browser._BROWSER_SLOTS.acquire(blocking=False):
        taken += 1
    for _ in range(taken):
        browser._BROWSER_SLOTS.release()
    return taken == config.MAX_CONCURRENT_BROWSERS


def test_browser_session_closes_browser(fake_playwright):
    with browser.browser_session({"width": 800, "height": 600}) as page:
        assert page == "page"
    (launched,) = fake_playwright
    assert launched.closed
    assert launched.viewports == [{"width": 800, "height": 600}]
    assert all_slots_free()


def test_browser_session_closes_browser_on_error(fake_playwright):
    with pytest.raises(PlaywrightTimeout):
        with browser.browser_session():
            raise PlaywrightTimeout("Timeout 45000ms exceeded.")
    (launched,) = fake_playwright
    assert launched.closed
    assert launched.viewports == [config.VIEWPORT]
    assert all_slots_free()
