"""
signatures.py - Signature registries and the text classifier.

The registries below are constant configuration.  Every function that
uses one takes it as a parameter (defaulting to the module-level
registry), so tests can hand in their own fixtures without touching
these globals.
"""

import re
from dataclasses import dataclass
from typing import Tuple

from models import Categorization


def _compile(*patterns):
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def matches_any(text, patterns):
    """True if any of the compiled ``patterns`` is found in ``text``."""
    return any(p.search(text) for p in patterns)


# ────────────────────────────────────────────────────────────────────
# CATEGORY SIGNATURES
#
# Each category is true as soon as one of its patterns matches.  These
# are heuristics: a miss is acceptable, the list is not exhaustive.
# ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SignatureRegistry:
    trackers: Tuple[re.Pattern, ...]
    google_tools: Tuple[re.Pattern, ...]
    critical_tools: Tuple[re.Pattern, ...]
    external_files: Tuple[re.Pattern, ...]
    consent_hints: Tuple[re.Pattern, ...]


DEFAULT_REGISTRY = SignatureRegistry(
    trackers=_compile(
        r"google-analytics\.com/analytics\.js",
        r"gtag\s*\(",
        r"googletagmanager\.com/gtm\.js",
        r"GTM-[A-Z0-9]+",
        r"googlesyndication\.com|adservice\.google\.com|doubleclick\.net",
        r"connect\.facebook\.net/",
        r"fbq\s*\(",
        r"facebook\.com/tr/",
        r"hotjar\.com/",
        r"hj\s*\(",
        r"clarity\.ms/",
        r"clarity\s*\(",
        r"matomo\.(js|php)",
        r"plausible\.io/",
        r"umami\.(js|is)",
        r"tiktok\.com/i18n/pixel",
        r"snap\.licdn\.com|px\.ads\.linkedin\.com",
    ),
    google_tools=_compile(
        r"googletagmanager\.com",
        r"google-analytics\.com",
        r"recaptcha\.net|google\.com/recaptcha",
        r"googleapis\.com|gstatic\.com",
        r"maps\.googleapis\.com|maps\.google\.com",
    ),
    critical_tools=_compile(
        r"cdn\.cookielaw\.org",                              # OneTrust
        r"cdn\.segment\.com",
        r"cdn\.sentry-cdn\.com|browser\.sentry-cdn\.com",
        r"intercomcdn\.com|widget\.intercom\.io",
        r"mixpanel\.com",
    ),
    external_files=_compile(
        r"https?://[^\s]+\.(js|css)",
        r"<link[^>]+href=\"https?://",
    ),
    consent_hints=_compile(
        r"cookie(consent|banner|notice)",
        r"tcfapi|__tcfapi",
        r"consent([-_])?manager",
    ),
)


def classify(text, registry=DEFAULT_REGISTRY):
    """
    Evaluate every category of ``registry`` against one text blob.

    The blob is normally the raw HTML joined with all extracted resource
    URLs.  Returns a Categorization; nothing is cached between calls.
    """
    return Categorization(
        trackers=matches_any(text, registry.trackers),
        google_tools=matches_any(text, registry.google_tools),
        critical_tools=matches_any(text, registry.critical_tools),
        external_files=matches_any(text, registry.external_files),
        consent_present=matches_any(text, registry.consent_hints),
    )


# ────────────────────────────────────────────────────────────────────
# CONSENT MANAGER SIGNATURES (rendered DOM)
#
# Checked against the innerHTML of the rendered page.  A page exposing
# a callable window.__tcfapi counts as consent-managed on its own.
# ────────────────────────────────────────────────────────────────────

CONSENT_DOM_HINTS = _compile(
    r"__tcfapi|tcfapi",
    r"cookie(consent|banner|notice)",
    r"consent[-_]?manager",
    r"real[-_ ]?cookie[-_ ]?banner",
    r"borlabs[-_ ]?cookie",
    r"usercentrics",
    r"onetrust",
    r"cookieyes",
    r"complianz",
    r"cookiebot",
)

# ────────────────────────────────────────────────────────────────────
# PRIVACY POLICY LINK PHRASES
#
# Matched against both anchor text and href, in several locales.
# ────────────────────────────────────────────────────────────────────

PRIVACY_LINK_PATTERNS = _compile(
    r"datenschutzerkl[aä]rung",
    r"datenschutz",
    r"privacy[\s_-]*policy",
    r"privacy[\s_-]*notice",
    r"politique[\s_-]*de[\s_-]*confidentialit[eé]",
    r"pol[ií]tica[\s_-]*de[\s_-]*privacidad",
    r"informativa[\s_-]*(sulla[\s_-]*)?privacy",
    r"privacyverklaring",
)

# ────────────────────────────────────────────────────────────────────
# THIRD-PARTY VENDORS (loaded requests)
# ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ToolSignature:
    name: str
    pattern: re.Pattern
    category: str
    requires_consent: bool = True


TOOL_SIGNATURES = (
    ToolSignature("Google Fonts", re.compile(r"fonts\.googleapis\.com|fonts\.gstatic\.com", re.I), "fonts"),
    ToolSignature("WordPress Stats (Jetpack)", re.compile(r"pixel\.wp\.com/g\.gif", re.I), "analytics"),
    ToolSignature("AJAX CDN (Cloudflare)", re.compile(r"cdnjs\.cloudflare\.com|ajax\.cloudflare\.com", re.I), "cdn"),
    ToolSignature("YouTube", re.compile(r"youtube\.com|youtu\.be|i\.ytimg\.com", re.I), "video"),
    ToolSignature("Vimeo", re.compile(r"player\.vimeo\.com|vimeocdn\.com", re.I), "video"),
    ToolSignature("Google Maps", re.compile(r"maps\.googleapis\.com|maps\.google\.com|maps\.gstatic\.com", re.I), "maps"),
    ToolSignature("Google reCAPTCHA", re.compile(r"google\.com/recaptcha|recaptcha\.net", re.I), "security"),
)

# Tracking pixels and beacons among the loaded requests.
EXTERNAL_PIXEL_PATTERN = re.compile(r"pixel|track|collect|g\.gif|/generate_204", re.I)

# ────────────────────────────────────────────────────────────────────
# WORDPRESS
# ────────────────────────────────────────────────────────────────────

WP_MARKER = re.compile(
    r"wp-content|wp-includes|<meta[^>]+name=[\"']generator[\"'][^>]+WordPress",
    re.I,
)
WP_VERSION = re.compile(r"WordPress\s+([\d.]+)", re.I)
WP_PLUGIN_PATH = re.compile(r"/wp-content/plugins/([^/'\"\s]+)", re.I)
WP_THEME_PATH = re.compile(r"/wp-content/themes/([^/'\"\s]+)", re.I)

# Plugins that imply a separate compliance checkpoint when present.
WP_PLUGIN_NOTES = (
    (re.compile(r"contact-form-7", re.I),
     "Contact Form 7 detected: check what form data is collected and any third-country transfer."),
    (re.compile(r"wpforms", re.I),
     "WPForms detected: check what form data is collected and where it is stored."),
    (re.compile(r"gravityforms", re.I),
     "Gravity Forms detected: check what form data is collected and where it is stored."),
    (re.compile(r"woocommerce", re.I),
     "WooCommerce detected: check payment/tracking integrations and data processing agreements."),
    (re.compile(r"easy-digital-downloads", re.I),
     "Easy Digital Downloads detected: check payment/tracking integrations and data processing agreements."),
    (re.compile(r"wordfence", re.I),
     "Wordfence detected: check IP address storage and log retention."),
    (re.compile(r"sucuri", re.I),
     "Sucuri detected: check IP address storage and log retention."),
    (re.compile(r"better-wp-security|ithemes-security", re.I),
     "Solid Security (iThemes) detected: check IP address storage and log retention."),
)
