"""
static_scan.py - Static pass over server-delivered HTML.

No script execution happens here: the page is fetched with requests,
parsed with BeautifulSoup, and classified against the signature
registries.  Whatever is found only tells us what the page *references*;
what it actually *loads* is decided later from the browser render.
"""

from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

import config
from models import StaticFindings, WordPressReport
from signatures import (
    DEFAULT_REGISTRY,
    WP_MARKER,
    WP_PLUGIN_NOTES,
    WP_PLUGIN_PATH,
    WP_THEME_PATH,
    WP_VERSION,
    classify,
)

# ────────────────────────────────────────────────────────────────────
# INDICATOR AND TIP TEXTS
# ────────────────────────────────────────────────────────────────────

IND_TRACKERS = "Trackers may run without consent"
IND_GOOGLE = "Google tools in use, check consent"
IND_CRITICAL = "Critical tools detected, check data processing agreements"
IND_EXTERNAL = "External files loaded, check their origin"
IND_NO_CONSENT = "No consent manager found"

TIP_CONSENT_BEFORE_TRACKING = "Only load trackers after consent has been given (TCF 2.2 / CMP)."
TIP_INTEGRATE_CMP = "Integrate a consent management platform (e.g. Sourcepoint, OneTrust, Cookiebot)."
TIP_SRI = "Use Subresource Integrity and review third-country data transfers."
TIP_DPA = "Sign data processing agreements and record them in your processing register."
TIP_MIXED_CONTENT = "Load resources over HTTPS only (no mixed content)."
TIP_RECORD_OF_PROCESSING = "Keep a record of processing activities (Art. 30 GDPR)."
TIP_PRIVACY_POLICY = ("Review your privacy policy: purposes, legal bases, recipients, "
                      "retention periods and data subject rights.")
TIP_CONSENT_NON_ESSENTIAL = ("Obtain consent before loading non-essential services; "
                             "design banner buttons and overlays accordingly.")


# ────────────────────────────────────────────────────────────────────
# URL HELPERS
# ────────────────────────────────────────────────────────────────────

def _origin(url):
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    default_port = {"http": 80, "https": 443}.get(scheme)
    try:
        port = parsed.port or default_port
    except ValueError:
        return None
    return scheme, (parsed.hostname or "").lower(), port


def same_origin(url, origin_url):
    """Identical scheme, host and port (default ports made explicit)."""
    origin = _origin(origin_url)
    return origin is not None and _origin(url) == origin


# ────────────────────────────────────────────────────────────────────
# FETCH AND PARSE
# ────────────────────────────────────────────────────────────────────

def fetch_html(url, timeout=None):
    """
    GET ``url`` following redirects and return the body text, whatever
    HTTP status it arrived with.

    Raises requests.RequestException on network errors only.
    """
    resp = requests.get(
        url,
        timeout=timeout or config.FETCH_TIMEOUT,
        allow_redirects=True,
        headers={"User-Agent": config.USER_AGENT},
    )
    if resp.status_code >= 400:
        print(f"[!] {url} answered HTTP {resp.status_code}, scanning the body anyway")
    return resp.text


def extract_resources(soup):
    """
    Return (scripts, links): every <script src> and <link href> value
    in document order.  Duplicates are kept.
    """
    scripts = [el.get("src") for el in soup.select("script[src]") if el.get("src")]
    links = [el.get("href") for el in soup.select("link[href]") if el.get("href")]
    return scripts, links


def detect_wordpress(html, soup=None, text_blob=None):
    """
    Look for WordPress in the raw markup.

    Paths are matched over the raw HTML rather than the DOM so that
    minified or commented-out references still count.  ``text_blob`` is
    what plugin-specific notes are matched against; it defaults to the
    HTML itself.
    """
    if soup is None:
        soup = BeautifulSoup(html, "html.parser")
    if text_blob is None:
        text_blob = html

    report = WordPressReport(is_wordpress=bool(WP_MARKER.search(html)))

    generator = soup.find("meta", attrs={"name": "generator"})
    if generator is not None:
        m = WP_VERSION.search(generator.get("content") or "")
        if m:
            report.version = m.group(1)

    # Dedupe while preserving order.
    report.plugins = list(dict.fromkeys(WP_PLUGIN_PATH.findall(html)))
    report.themes = list(dict.fromkeys(WP_THEME_PATH.findall(html)))

    if report.is_wordpress:
        if not report.plugins:
            report.notes.append(
                "No plugins detected: resources may be bundled or minified.")
        if not report.themes:
            report.notes.append(
                "No theme detected: paths may be rewritten by a cache or proxy.")
        for pattern, note in WP_PLUGIN_NOTES:
            if pattern.search(text_blob):
                report.notes.append(note)

    return report


def build_findings(html, registry=DEFAULT_REGISTRY):
    """Run the whole static pass over one HTML document."""
    soup = BeautifulSoup(html, "html.parser")
    scripts, links = extract_resources(soup)
    text_blob = "\n".join([html, *scripts, *links])

    cat = classify(text_blob, registry)

    indicators = []
    if cat.trackers:
        indicators.append(IND_TRACKERS)
    if cat.google_tools:
        indicators.append(IND_GOOGLE)
    if cat.critical_tools:
        indicators.append(IND_CRITICAL)
    if cat.external_files:
        indicators.append(IND_EXTERNAL)
    if not cat.consent_present:
        indicators.append(IND_NO_CONSENT)

    tips = []
    if cat.trackers or cat.google_tools:
        tips.append(TIP_CONSENT_BEFORE_TRACKING)
    if not cat.consent_present:
        tips.append(TIP_INTEGRATE_CMP)
    if cat.external_files:
        tips.append(TIP_SRI)
    if cat.critical_tools:
        tips.append(TIP_DPA)
    if any(s.lower().startswith("http://") for s in scripts):
        tips.append(TIP_MIXED_CONTENT)
    tips.append(TIP_RECORD_OF_PROCESSING)
    tips.append(TIP_PRIVACY_POLICY)
    if not cat.consent_present:
        tips.append(TIP_CONSENT_NON_ESSENTIAL)

    return StaticFindings(
        categorized=cat,
        indicators=indicators,
        tips=tips,
        scripts=scripts,
        links=links,
        wp=detect_wordpress(html, soup=soup, text_blob=text_blob),
    )


def merge_findings(base, extra):
    """
    Fold a crawled page's findings into ``base`` in place.

    Scripts, links and indicators are appended only if not already
    present.  Categorization, tips and the WordPress report stay those
    of the scan target.
    """
    for attr in ("scripts", "links", "indicators"):
        target = getattr(base, attr)
        seen = set(target)
        for item in getattr(extra, attr):
            if item not in seen:
                target.append(item)
                seen.add(item)
    return base
