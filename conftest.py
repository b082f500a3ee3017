"""
Shared fakes for the test suite.

FakePage mimics the slice of the Playwright Page API the scanner uses:
on/remove_listener, goto, evaluate, context.cookies() and screenshot.
FakeSession stands in for browser.browser_session and counts how many
sessions were opened and closed.
"""

import threading
from contextlib import contextmanager

import pytest
import requests

import browser


class FakeResponse:
    def __init__(self, status):
        self.status = status


class FakeRequest:
    def __init__(self, url, resource_type="script", status=200):
        self.url = url
        self.resource_type = resource_type
        self._status = status

    def response(self):
        if self._status is None:
            return None
        return FakeResponse(self._status)


class FakeContext:
    def __init__(self, cookies):
        self._cookies = list(cookies)

    def cookies(self):
        return list(self._cookies)


class FakePage:
    """
    ``site`` maps a URL to a dict with optional keys: requests, cookies,
    fingerprint, anchors, consent (probe result), anchor_texts,
    goto_error.  Whatever URL goto() is called with decides what the page
    "loads", so one session can serve several targets at once.
    """

    def __init__(self, site, png=b"\x89PNG\r\n\x1a\nfake"):
        self.site = site
        self.png = png
        self.listeners = {}
        self.current = {}
        self.context = FakeContext([])
        self.goto_calls = []
        self.screenshot_calls = []

    def on(self, event, handler):
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event, handler):
        self.listeners[event].remove(handler)

    def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append((url, wait_until, timeout))
        self.current = self.site.get(url, {})
        self.context = FakeContext(self.current.get("cookies", []))
        if self.current.get("goto_error"):
            raise self.current["goto_error"]
        for req in self.current.get("requests", []):
            for handler in list(self.listeners.get("requestfinished", [])):
                handler(req)

    def evaluate(self, script):
        key = {
            browser.FINGERPRINT_JS: "fingerprint",
            browser.ANCHOR_HREFS_JS: "anchors",
            browser.CONSENT_PROBE_JS: "consent",
            browser.ANCHOR_TEXTS_JS: "anchor_texts",
        }[script]
        value = self.current.get(key)
        if isinstance(value, Exception):
            raise value
        return value

    def screenshot(self, type="png", full_page=False):
        self.screenshot_calls.append((type, full_page))
        return self.png


class FakeSession:
    def __init__(self, site):
        self.site = site
        self.pages = []
        self.viewports = []
        self.opened = 0
        self.closed = 0
        self._lock = threading.Lock()

    @contextmanager
    def __call__(self, viewport=None):
        page = FakePage(self.site)
        with self._lock:
            self.opened += 1
            self.viewports.append(viewport)
            self.pages.append(page)
        try:
            yield page
        finally:
            with self._lock:
                self.closed += 1


def make_fetch(pages):
    """Static fetch backed by a dict; unknown URLs raise ConnectionError."""
    calls = []
    timeouts = []

    def fetch(url, timeout=None):
        calls.append(url)
        timeouts.append(timeout)
        if url not in pages:
            raise requests.ConnectionError(f"cannot reach {url}")
        return pages[url]

    fetch.calls = calls
    fetch.timeouts = timeouts
    return fetch


class FakeHttpResponse:
    def __init__(self, status_code, text):
        self.status_code = status_code
        self.text = text


def make_http_get(pages):
    """
    Stand-in for requests.get.  ``pages`` maps a URL to (status, body);
    unknown URLs raise ConnectionError.
    """
    def get(url, timeout=None, allow_redirects=None, headers=None):
        if url not in pages:
            raise requests.ConnectionError(f"cannot reach {url}")
        status, body = pages[url]
        return FakeHttpResponse(status, body)

    return get


FINGERPRINT = {
    "language": "en-US",
    "platform": "Linux x86_64",
    "userAgent": "HeadlessChrome",
    "screen": {"width": 1366, "height": 900, "colorDepth": 24},
    "timezoneMinutes": -60,
    "touch": False,
    "cookiesEnabled": True,
    "plugins": [],
}


@pytest.fixture
def fingerprint():
    return dict(FINGERPRINT)


@pytest.fixture
def client():
    from app import app
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c
