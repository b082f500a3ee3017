"""
app.py - Flask web server for the Privacy Compliance Scanner.

Exposes the scan pipeline in scanner.py as JSON over HTTP, plus a
screenshot endpoint and a health check.  Every route is also reachable
under /api for deployments that proxy the backend behind that prefix.

Run:  python app.py
Open: http://localhost:5174/scan?url=https://example.com
"""

import traceback

from flask import Flask, Response, jsonify, request

import browser
import config
import scanner

app = Flask(__name__)


# ────────────────────────────────────────────────────────────────────
# ROUTES
# ────────────────────────────────────────────────────────────────────

@app.route("/health")
@app.route("/api/health")
def health():
    return jsonify({"ok": True})


@app.route("/scan")
@app.route("/api/scan")
def scan():
    """
    Run a full scan synchronously.

    Query: ?url=https://example.com
    Returns the compliance report as JSON, 400 on a bad URL, 500 when
    the scan itself fails.
    """
    try:
        url = scanner.validate_url(request.args.get("url", ""))
    except scanner.ValidationError as e:
        return jsonify({"error": e.message, "field": e.field}), 400

    try:
        report = scanner.scan_url(url)
    except Exception as e:
        traceback.print_exc()
        return jsonify({"error": "Scan failed", "details": str(e)}), 500

    return jsonify(report.to_dict())


@app.route("/screenshot")
@app.route("/api/screenshot")
def screenshot():
    """
    Render a page and return it as PNG.

    Query: ?url=...&size=1280x720&fullPage=false
    """
    try:
        url = scanner.validate_url(request.args.get("url", ""))
    except scanner.ValidationError as e:
        return jsonify({"error": e.message, "field": e.field}), 400

    width, height = browser.parse_size(request.args.get("size", config.DEFAULT_SCREENSHOT_SIZE))
    full_page = request.args.get("fullPage", "false").lower() == "true"

    try:
        png = browser.take_screenshot(url, width, height, full_page=full_page)
    except Exception as e:
        print(f"[!] Screenshot of {url} failed: {e}")
        return jsonify({"error": "Screenshot failed", "details": str(e)}), 500

    return Response(
        png,
        mimetype="image/png",
        headers={"Cache-Control": "public, max-age=60"},
    )


# ────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    print("\n  Privacy Compliance Scanner API")
    print(f"  http://localhost:{config.PORT}\n")
    app.run(host=config.HOST, debug=False, port=config.PORT, threaded=True)
