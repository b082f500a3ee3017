"""
scoring.py - Loaded-evidence categorization, vendor detection and score.

Precedence rule for the headline flags: trackers, Google tools,
critical tools and external files are decided from the requests the
browser actually completed, not from what the static HTML merely
references.  Static-only hits remain visible in the indicators, tips
and the report's ``referenced`` block.  Consent is the exception: it is
present if the static pass *or* the consent render found it.
"""

import re

import config
from models import Categorization, ScoreBreakdown, ToolMatch
from signatures import DEFAULT_REGISTRY, EXTERNAL_PIXEL_PATTERN, TOOL_SIGNATURES, matches_any
from static_scan import same_origin

# Score weights.
BASE_SCORE = 100
TRACKER_PENALTY = 25
GOOGLE_PENALTY = 20
CRITICAL_PENALTY = 20
EXTERNAL_PENALTY = 10
CONSENT_BONUS = 10

_ABSOLUTE = re.compile(r"^https?://", re.I)


def is_external(url, origin_url):
    return bool(_ABSOLUTE.match(url)) and not same_origin(url, origin_url)


def categorize_loaded(requests, origin_url, consent_present, registry=DEFAULT_REGISTRY):
    """Headline categorization from completed requests."""
    urls = [r.url for r in requests]
    return Categorization(
        trackers=any(matches_any(u, registry.trackers) for u in urls),
        google_tools=any(matches_any(u, registry.google_tools) for u in urls),
        critical_tools=any(matches_any(u, registry.critical_tools) for u in urls),
        external_files=any(
            r.resource_type in ("script", "stylesheet") and is_external(r.url, origin_url)
            for r in requests
        ),
        consent_present=bool(consent_present),
    )


def detect_tools(urls, consent_present, signatures=TOOL_SIGNATURES, limit=None):
    """
    Match loaded URLs against the vendor registry.

    Vendors without a single matching URL are left out entirely.
    """
    limit = config.MAX_TOOL_SAMPLES if limit is None else limit
    tools = []
    for sig in signatures:
        matches = [u for u in urls if sig.pattern.search(u)]
        if not matches:
            continue
        tools.append(ToolMatch(
            name=sig.name,
            matches=matches[:limit],
            requires_consent=sig.requires_consent,
            non_compliant=sig.requires_consent and not consent_present,
            category=sig.category,
        ))
    return tools


def external_pixels(urls, limit=None):
    limit = config.MAX_EXTERNAL_PIXELS if limit is None else limit
    return [u for u in urls if EXTERNAL_PIXEL_PATTERN.search(u)][:limit]


def compute_score(cat):
    """
    Breakdown of the clamped linear score.

        100 - 25*trackers - 20*google - 20*critical - 10*external + 10*consent

    clamped to [0, 100]; read the total from ``ScoreBreakdown.total``.
    """
    return ScoreBreakdown(
        base=BASE_SCORE,
        minus_trackers=TRACKER_PENALTY if cat.trackers else 0,
        minus_google=GOOGLE_PENALTY if cat.google_tools else 0,
        minus_critical=CRITICAL_PENALTY if cat.critical_tools else 0,
        minus_external=EXTERNAL_PENALTY if cat.external_files else 0,
        plus_consent=CONSENT_BONUS if cat.consent_present else 0,
    )
