"""
scanner.py - Main privacy compliance scan pipeline.

Fetches a page statically, renders it in headless Chromium to see what
is actually loaded, expands to a handful of same-origin pages, inspects
the TLS certificate, checks for a consent manager and a privacy-policy
link, detects known third-party vendors and turns all of it into a
0-100 compliance score.

Usage:
    python scanner.py https://example.com https://other.com
    python scanner.py --json https://example.com
"""

import argparse
import json
import re
import sys
import time
from collections import Counter, namedtuple
from datetime import datetime
from urllib.parse import urlparse

import browser
import config
import crawler
import scoring
import static_scan
import tls_check
from models import ComplianceReport, ConsentResult, Outcome, PrivacyLink, SSLInfo
from signatures import DEFAULT_REGISTRY


class ValidationError(Exception):
    """The request itself is unusable; nothing was fetched or launched."""

    def __init__(self, field, message):
        super().__init__(message)
        self.field = field
        self.message = message


class ScanFailure(Exception):
    """A required stage failed; the scan produces no report."""

    def __init__(self, stage, details):
        super().__init__(f"{stage}: {details}")
        self.stage = stage
        self.details = details


# ────────────────────────────────────────────────────────────────────
# PIPELINE
#
# Stages run strictly in this order, one at a time.  A required stage
# that fails aborts the scan with ScanFailure.  Any other stage that
# fails falls back to its default value and is listed under
# "degraded" in the report.
#
# Timeouts: static, crawl and tls are in seconds (requests/sockets);
# render, consent and privacy are in milliseconds (Playwright).
# ────────────────────────────────────────────────────────────────────

Stage = namedtuple("Stage", "name timeout required")

PIPELINE = (
    Stage("static", config.FETCH_TIMEOUT, True),
    Stage("render", config.MAIN_RENDER_TIMEOUT, True),
    Stage("crawl", config.FETCH_TIMEOUT, False),
    Stage("tls", config.TLS_TIMEOUT, False),
    Stage("consent", config.SECONDARY_RENDER_TIMEOUT, False),
    Stage("privacy", config.SECONDARY_RENDER_TIMEOUT, False),
    Stage("tools", None, True),
    Stage("score", None, True),
)

STAGES = {stage.name: stage for stage in PIPELINE}

_URL_SCHEME = re.compile(r"^https?://", re.I)

# Tips about the privacy policy are replaced by the privacy-link result.
_PRIVACY_TIP = re.compile(r"privacy policy", re.I)


def validate_url(url):
    """Return the stripped URL or raise ValidationError."""
    url = (url or "").strip()
    if not url:
        raise ValidationError("url", "Query parameter 'url' is required.")
    if not _URL_SCHEME.match(url):
        raise ValidationError("url", "Please provide a full URL starting with http:// or https://.")
    if not urlparse(url).hostname:
        raise ValidationError("url", "The URL has no host name.")
    return url


def normalize_url(url):
    """Make sure the URL starts with http:// or https://."""
    if not _URL_SCHEME.match(url):
        return "https://" + url
    return url


def get_domain(url):
    """Extract the domain name from a URL (e.g. 'www.example.com')."""
    return urlparse(url).netloc or url


# ────────────────────────────────────────────────────────────────────
# MAIN SCAN FUNCTION
# ────────────────────────────────────────────────────────────────────

def scan_url(url, fetch=None, session=None, inspect_tls=None,
             registry=DEFAULT_REGISTRY, status_callback=None):
    """
    Perform a full compliance scan on a single URL.

    Args:
        url:             Full http(s) URL of the page to scan.
        fetch:           Static fetch function, ``fetch(url, timeout=None)``.
        session:         Context manager yielding a Playwright page.
        inspect_tls:     TLS inspection function, ``inspect_tls(url, timeout=None)``.
        registry:        Signature registry used by every classifier.
        status_callback: Optional function(message, step, total_steps, elapsed)
                         called at each checkpoint.

    Returns:
        A ComplianceReport.

    Raises:
        ValidationError: the URL is missing or not http(s).
        ScanFailure:     the static fetch or the main render failed.
    """
    url = validate_url(url)
    fetch = fetch or static_scan.fetch_html
    session = session or browser.browser_session
    inspect_tls = inspect_tls or tls_check.inspect_ssl

    total_steps = len(PIPELINE) + 1
    scan_start = time.time()
    # Per-request state only; nothing here outlives this call.
    timeline = []
    degraded = []

    def report_status(message, step):
        elapsed = time.time() - scan_start
        timeline.append({
            "step": step,
            "message": message,
            "timestamp": datetime.now().isoformat(),
        })
        print(f"[*] [{step}/{total_steps}] {message}")
        if status_callback:
            status_callback(message, step, total_steps, elapsed)

    def run_required(name, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            print(f"[!] Required stage '{name}' failed for {url}: {e}")
            raise ScanFailure(name, str(e)) from e

    def run_best_effort(name, default, func, *args, **kwargs):
        try:
            result = func(*args, **kwargs)
            outcome = result if isinstance(result, Outcome) else Outcome.success(result)
        except Exception as e:
            outcome = Outcome.degraded(default, e)
        if not outcome.ok:
            print(f"[!] Stage '{name}' degraded for {url}: {outcome.error}")
            degraded.append({"stage": name, "error": outcome.error})
        return outcome.value

    domain = get_domain(url)
    print(f"\n{'=' * 60}")
    print(f"  SCANNING: {url}")
    print(f"{'=' * 60}")
    report_status(f"Initializing scan for {domain}", 1)

    # ── Step 1: Static pass ─────────────────────────────────────────
    html = run_required("static", fetch, url, timeout=STAGES["static"].timeout)
    findings = run_required("static", static_scan.build_findings, html, registry)
    referenced = findings.categorized
    report_status(f"Static pass done: {len(findings.scripts)} scripts, "
                  f"{len(findings.links)} links", 2)

    # ── Step 2: Main render ─────────────────────────────────────────
    capture = run_required("render", browser.render_capture, url,
                           session=session, timeout=STAGES["render"].timeout)
    report_status(f"Page rendered: {len(capture.requests)} requests captured", 3)

    # ── Step 3: Same-origin crawl ───────────────────────────────────
    crawled = []
    for page_url, outcome in crawler.crawl(findings, capture.anchors, url,
                                           fetch=fetch, registry=registry,
                                           timeout=STAGES["crawl"].timeout):
        if outcome.ok:
            crawled.append(page_url)
        else:
            degraded.append({"stage": "crawl", "error": f"{page_url}: {outcome.error}"})
    report_status(f"Crawled {len(crawled)} additional page(s)", 4)

    # ── Step 4: TLS ─────────────────────────────────────────────────
    ssl_info = run_best_effort("tls", SSLInfo(), inspect_tls, url,
                               timeout=STAGES["tls"].timeout)
    report_status("TLS certificate inspected" if ssl_info.has_ssl
                  else "No usable TLS connection", 5)

    # ── Step 5: Consent manager ─────────────────────────────────────
    consent = run_best_effort("consent", ConsentResult(), browser.detect_consent, url,
                              session=session, timeout=STAGES["consent"].timeout)
    report_status("Consent manager found" if consent.found
                  else "No consent manager found in rendered page", 6)

    # ── Step 6: Privacy-policy link ─────────────────────────────────
    privacy = run_best_effort("privacy", PrivacyLink(), browser.find_privacy_link, url,
                              session=session, timeout=STAGES["privacy"].timeout)
    report_status(f"Privacy policy link: {privacy.url}" if privacy.present
                  else "No privacy policy link found", 7)

    # ── Step 7: Loaded-evidence categorization and vendors ─────────
    request_urls = [r.url for r in capture.requests]
    consent_present = referenced.consent_present or consent.found
    categorized = run_required("tools", scoring.categorize_loaded, capture.requests, url,
                               consent_present, registry)
    tools = run_required("tools", scoring.detect_tools, request_urls, categorized.consent_present)
    report_status(f"{len(tools)} third-party vendor(s) detected", 8)

    # ── Step 8: Score ───────────────────────────────────────────────
    breakdown = run_required("score", scoring.compute_score, categorized)

    tips = [t for t in findings.tips if not _PRIVACY_TIP.search(t)]
    if not privacy.present:
        tips.append(static_scan.TIP_PRIVACY_POLICY)

    type_counts = Counter(r.resource_type for r in capture.requests)
    stats = {
        "ssl": ssl_info.to_dict(),
        "pagesScanned": 1 + len(crawled),
        "pagesSample": [url, *crawled][:config.MAX_PAGES_SAMPLE],
        "requestsCount": len(capture.requests),
        "requestTypes": dict(type_counts),
        "scriptsCount": type_counts.get("script", 0),
        "imagesCount": type_counts.get("image", 0),
        "trackersCount": sum(
            1 for u in request_urls if any(p.search(u) for p in registry.trackers)
        ),
        "externalFilesCount": sum(1 for u in request_urls if scoring.is_external(u, url)),
        "cookiesCount": len(capture.cookies),
    }

    report = ComplianceReport(
        url=url,
        findings=findings,
        referenced=referenced,
        categorized=categorized,
        tips=tips,
        breakdown=breakdown,
        cookies=capture.cookies,
        tools=tools,
        external_pixels=scoring.external_pixels(request_urls),
        stats=stats,
        fingerprint=capture.fingerprint,
        privacy=privacy,
        consent=consent,
        degraded=degraded,
        timeline=timeline,
    )
    report_status(f"Scan complete: score {report.score}", 9)
    return report


def print_summary(report):
    """Print a human-readable summary of a single scan."""
    cat = report.categorized
    print(f"\n{'─' * 60}")
    print(f"  SUMMARY FOR: {report.url}")
    print(f"{'─' * 60}")
    print(f"  Score                : {report.score}/100")
    print(f"  Trackers loaded      : {'yes' if cat.trackers else 'no'}")
    print(f"  Google tools loaded  : {'yes' if cat.google_tools else 'no'}")
    print(f"  Critical tools loaded: {'yes' if cat.critical_tools else 'no'}")
    print(f"  External files       : {'yes' if cat.external_files else 'no'}")
    print(f"  Consent manager      : {'yes' if cat.consent_present else 'no'}")
    print(f"  Privacy policy       : {report.privacy.url or 'not found'}")
    print(f"  Pages scanned        : {report.stats['pagesScanned']}")
    print(f"  Cookies              : {report.stats['cookiesCount']}")

    if report.tools:
        print(f"\n  VENDORS:")
        for tool in report.tools:
            flag = "  [needs consent, none found]" if tool.non_compliant else ""
            print(f"    {tool.name:30s}  {len(tool.matches):>2} sample(s){flag}")

    if report.findings.wp.is_wordpress:
        wp = report.findings.wp
        print(f"\n  WordPress {wp.version or '(version unknown)'}: "
              f"{len(wp.plugins)} plugin(s), {len(wp.themes)} theme(s)")

    if report.degraded:
        print(f"\n  Degraded: {'; '.join(d['stage'] for d in report.degraded)}")
    print(f"{'─' * 60}\n")


# ────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ────────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(
        description="Privacy Compliance Scanner: scores websites for tracking, "
                    "third-party tools, consent and TLS posture."
    )
    parser.add_argument("urls", nargs="+", help="One or more URLs to scan.")
    parser.add_argument("--json", action="store_true",
                        help="Print the full report as JSON instead of a summary.")
    args = parser.parse_args()

    failures = 0
    for i, url in enumerate(args.urls, start=1):
        url = normalize_url(url)
        print(f"\n[{i}/{len(args.urls)}] Starting scan...")
        try:
            report = scan_url(url)
        except (ValidationError, ScanFailure) as e:
            failures += 1
            print(f"[!] Scan of {url} failed: {e}")
            continue

        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            print_summary(report)

    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
