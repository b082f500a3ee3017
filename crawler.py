"""
crawler.py - Bounded same-origin expansion from the rendered page.

Only the static pass is repeated on discovered pages; they are never
rendered in a browser.  A page that fails to fetch is dropped and does
not affect the rest of the scan.  A page that answers with an error
status still counts as scanned.
"""

from urllib.parse import urldefrag, urljoin

import config
from models import Outcome
from signatures import DEFAULT_REGISTRY
from static_scan import build_findings, fetch_html, merge_findings, same_origin


def expand(hrefs, origin_url, limit=None):
    """
    Turn raw anchor hrefs into at most ``limit`` same-origin page URLs.

    Each href is resolved against the full ``origin_url`` (the page the
    anchors came from), fragments are dropped, the target page itself is
    skipped and results keep first-seen order.
    """
    limit = config.MAX_CRAWL_PAGES if limit is None else limit
    target = urldefrag(origin_url)[0]
    found = []
    for href in hrefs:
        try:
            resolved = urldefrag(urljoin(origin_url, href))[0]
        except ValueError:
            continue
        if resolved in found or resolved == target:
            continue
        if not same_origin(resolved, origin_url):
            continue
        found.append(resolved)
        if len(found) >= limit:
            break
    return found


def fetch_page_findings(url, fetch=None, registry=DEFAULT_REGISTRY, timeout=None):
    """Static pass on one crawled page, degraded to None on any failure."""
    fetch = fetch or fetch_html
    try:
        return Outcome.success(build_findings(fetch(url, timeout=timeout), registry))
    except Exception as e:
        print(f"[!] Crawl fetch of {url} failed: {e}")
        return Outcome.degraded(None, e)


def crawl(findings, hrefs, origin_url, fetch=None, registry=DEFAULT_REGISTRY, timeout=None):
    """
    Fetch each discovered page in turn and merge its findings.

    Returns ``(url, Outcome)`` for every attempted page, in crawl order.
    Only successful pages are merged into ``findings``.  ``timeout`` is
    in seconds and defaults to FETCH_TIMEOUT.
    """
    results = []
    for url in expand(hrefs, origin_url):
        outcome = fetch_page_findings(url, fetch=fetch, registry=registry, timeout=timeout)
        if outcome.ok:
            merge_findings(findings, outcome.value)
        results.append((url, outcome))
    ok = sum(1 for _, outcome in results if outcome.ok)
    print(f"[*] Crawled {ok}/{len(results)} additional page(s) on {origin_url}")
    return results
