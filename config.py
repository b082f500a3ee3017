"""
config.py - Tunable constants for the compliance scanner.

Every value can be overridden through an environment variable of the
same name, read once at import time.  Timeouts handed to Playwright are
in milliseconds, everything handed to sockets/requests is in seconds.
"""

import os


def _env_int(name, default):
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


# ────────────────────────────────────────────────────────────────────
# TIMEOUTS
# ────────────────────────────────────────────────────────────────────

# Main render: exceeding this fails the whole scan.
MAIN_RENDER_TIMEOUT = _env_int("MAIN_RENDER_TIMEOUT", 45_000)

# Consent / privacy-link renders: exceeding this only degrades the result.
SECONDARY_RENDER_TIMEOUT = _env_int("SECONDARY_RENDER_TIMEOUT", 30_000)

SCREENSHOT_TIMEOUT = _env_int("SCREENSHOT_TIMEOUT", 30_000)

# Seconds.
TLS_TIMEOUT = _env_int("TLS_TIMEOUT", 8)
FETCH_TIMEOUT = _env_int("FETCH_TIMEOUT", 20)

# ────────────────────────────────────────────────────────────────────
# CAPS
# ────────────────────────────────────────────────────────────────────

MAX_CRAWL_PAGES = _env_int("MAX_CRAWL_PAGES", 8)
MAX_PAGES_SAMPLE = _env_int("MAX_PAGES_SAMPLE", 20)
MAX_TOOL_SAMPLES = _env_int("MAX_TOOL_SAMPLES", 5)
MAX_EXTERNAL_PIXELS = _env_int("MAX_EXTERNAL_PIXELS", 30)

# ────────────────────────────────────────────────────────────────────
# BROWSER
# ────────────────────────────────────────────────────────────────────

VIEWPORT = {
    "width": _env_int("VIEWPORT_WIDTH", 1366),
    "height": _env_int("VIEWPORT_HEIGHT", 900),
}

DEFAULT_SCREENSHOT_SIZE = os.environ.get("DEFAULT_SCREENSHOT_SIZE", "1280x720")

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

# Upper bound on Chromium processes alive at the same time across all
# concurrent requests.  Further sessions block until a slot frees up.
MAX_CONCURRENT_BROWSERS = _env_int("MAX_CONCURRENT_BROWSERS", 4)

# ────────────────────────────────────────────────────────────────────
# STATIC FETCH
# ────────────────────────────────────────────────────────────────────

USER_AGENT = os.environ.get(
    "SCANNER_USER_AGENT",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

# ────────────────────────────────────────────────────────────────────
# WEB SERVER
# ────────────────────────────────────────────────────────────────────

HOST = os.environ.get("HOST", "0.0.0.0")
PORT = _env_int("PORT", 5174)
