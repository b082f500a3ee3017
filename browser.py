"""
browser.py - Headless Chromium renders.

Every render gets its own Playwright instance, its own Chromium process
and its own context, and the browser is closed on every exit path.
Nothing is pooled or reused between renders or between requests.

The ``session`` parameter on each function is the context manager that
yields a ready Page; it defaults to ``browser_session`` and is replaced
by a fake in the tests.
"""

import threading
from contextlib import contextmanager
from urllib.parse import urljoin

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

import config
from models import (
    CapturedRequest,
    ClientFingerprint,
    ConsentResult,
    Outcome,
    PageCookie,
    PrivacyLink,
    RenderCapture,
)
from signatures import CONSENT_DOM_HINTS, PRIVACY_LINK_PATTERNS, matches_any

# Caps the number of live Chromium processes across all requests.
_BROWSER_SLOTS = threading.BoundedSemaphore(config.MAX_CONCURRENT_BROWSERS)

# ────────────────────────────────────────────────────────────────────
# IN-PAGE SCRIPTS
# ────────────────────────────────────────────────────────────────────

FINGERPRINT_JS = """() => ({
    language: navigator.language,
    platform: navigator.platform,
    userAgent: navigator.userAgent,
    screen: {
        width: window.screen.width,
        height: window.screen.height,
        colorDepth: window.screen.colorDepth
    },
    timezoneMinutes: new Date().getTimezoneOffset(),
    touch: 'ontouchstart' in window,
    cookiesEnabled: navigator.cookieEnabled,
    plugins: navigator.plugins
        ? Array.from(navigator.plugins).map(p => p.name).slice(0, 10)
        : []
})"""

ANCHOR_HREFS_JS = """() => Array.from(document.querySelectorAll('a[href]'))
    .map(el => (el.getAttribute('href') || '').trim())
    .filter(h => !!h)"""

CONSENT_PROBE_JS = """() => ({
    html: document.documentElement ? document.documentElement.innerHTML : '',
    hasTcf: typeof window.__tcfapi === 'function'
})"""

ANCHOR_TEXTS_JS = """() => ({
    base: location.href,
    anchors: Array.from(document.querySelectorAll('a[href]')).map(a => ({
        text: (a.textContent || '').trim(),
        href: (a.getAttribute('href') || '').trim()
    }))
})"""


@contextmanager
def browser_session(viewport=None):
    """
    Launch Chromium, open one isolated context + page, yield the page.

    Blocks while MAX_CONCURRENT_BROWSERS sessions are already open.
    """
    with _BROWSER_SLOTS:
        with sync_playwright() as pw:
            browser = pw.chromium.launch(headless=True, args=config.BROWSER_ARGS)
            try:
                context = browser.new_context(viewport=viewport or config.VIEWPORT)
                yield context.new_page()
            finally:
                browser.close()


# ────────────────────────────────────────────────────────────────────
# MAIN RENDER
# ────────────────────────────────────────────────────────────────────

def render_capture(url, session=None, timeout=None):
    """
    Render ``url`` and record every request that completed while loading.

    Waits for the network to settle.  A timeout or navigation error
    propagates: the main render has no partial result.
    """
    session = session or browser_session
    timeout = timeout or config.MAIN_RENDER_TIMEOUT

    # Request-scoped: one list per render, filled in completion order.
    captured = []

    def on_request_finished(request):
        status = 0
        try:
            response = request.response()
            if response is not None:
                status = response.status
        except PlaywrightError:
            # The response can vanish if the page navigates away.
            status = 0
        captured.append(CapturedRequest(
            url=request.url,
            resource_type=request.resource_type,
            status=status,
        ))

    with session() as page:
        page.on("requestfinished", on_request_finished)
        try:
            page.goto(url, wait_until="networkidle", timeout=timeout)
            raw_cookies = page.context.cookies()
            fingerprint = page.evaluate(FINGERPRINT_JS)
            anchors = page.evaluate(ANCHOR_HREFS_JS) or []
        finally:
            page.remove_listener("requestfinished", on_request_finished)

    print(f"[*] Render of {url} finished: {len(captured)} requests, "
          f"{len(raw_cookies)} cookies")
    return RenderCapture(
        requests=list(captured),
        cookies=[PageCookie.from_playwright(c) for c in raw_cookies],
        fingerprint=ClientFingerprint.from_page(fingerprint),
        anchors=list(anchors),
    )


# ────────────────────────────────────────────────────────────────────
# SECONDARY RENDERS (best effort)
# ────────────────────────────────────────────────────────────────────

def detect_consent(url, session=None, timeout=None, hints=CONSENT_DOM_HINTS):
    """
    Look for a consent manager in the rendered DOM.

    Returns an Outcome wrapping ConsentResult; on any failure the
    Outcome is degraded to ``ConsentResult(found=False, has_tcf=False)``.
    """
    session = session or browser_session
    timeout = timeout or config.SECONDARY_RENDER_TIMEOUT
    try:
        with session() as page:
            page.goto(url, wait_until="domcontentloaded", timeout=timeout)
            probe = page.evaluate(CONSENT_PROBE_JS) or {}
    except Exception as e:
        print(f"[!] Consent render for {url} failed: {e}")
        return Outcome.degraded(ConsentResult(), e)

    has_tcf = bool(probe.get("hasTcf"))
    found = has_tcf or matches_any(probe.get("html") or "", hints)
    return Outcome.success(ConsentResult(found=found, has_tcf=has_tcf))


def pick_privacy_link(anchors, base, patterns=PRIVACY_LINK_PATTERNS):
    """First anchor whose text or href matches, resolved against ``base``."""
    for anchor in anchors:
        text = anchor.get("text") or ""
        href = anchor.get("href") or ""
        if matches_any(text, patterns) or matches_any(href, patterns):
            return urljoin(base, href)
    return None


def find_privacy_link(url, session=None, timeout=None, patterns=PRIVACY_LINK_PATTERNS):
    """
    Locate a privacy-policy link on the rendered page.

    Returns an Outcome wrapping PrivacyLink; on any failure the Outcome
    is degraded to ``PrivacyLink(present=False, url=None)``.
    """
    session = session or browser_session
    timeout = timeout or config.SECONDARY_RENDER_TIMEOUT
    try:
        with session() as page:
            page.goto(url, wait_until="domcontentloaded", timeout=timeout)
            data = page.evaluate(ANCHOR_TEXTS_JS) or {}
    except Exception as e:
        print(f"[!] Privacy-link render for {url} failed: {e}")
        return Outcome.degraded(PrivacyLink(), e)

    link = pick_privacy_link(data.get("anchors") or [], data.get("base") or url, patterns)
    return Outcome.success(PrivacyLink(present=link is not None, url=link))


# ────────────────────────────────────────────────────────────────────
# SCREENSHOT
# ────────────────────────────────────────────────────────────────────

def parse_size(size):
    """'1280x720' -> (1280, 720); unparsable parts fall back to the default."""
    default_w, default_h = (int(n) for n in config.DEFAULT_SCREENSHOT_SIZE.split("x"))
    parts = (size or "").lower().split("x")
    dims = []
    for part, fallback in zip(parts + ["", ""], (default_w, default_h)):
        try:
            value = int(part)
        except ValueError:
            value = fallback
        dims.append(value if value > 0 else fallback)
    return dims[0], dims[1]


def take_screenshot(url, width, height, full_page=False, session=None, timeout=None):
    """Render ``url`` at the given viewport and return PNG bytes."""
    session = session or browser_session
    timeout = timeout or config.SCREENSHOT_TIMEOUT
    with session(viewport={"width": width, "height": height}) as page:
        page.goto(url, wait_until="networkidle", timeout=timeout)
        return page.screenshot(type="png", full_page=full_page)
