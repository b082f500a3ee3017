"""
models.py - Data shapes passed between the scan stages.

All of these live for exactly one scan request.  ``to_dict()`` produces
the JSON wire format returned by the /scan endpoint (camelCase keys).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Categorization:
    """The five headline flags the score is computed from."""
    trackers: bool = False
    google_tools: bool = False
    critical_tools: bool = False
    external_files: bool = False
    consent_present: bool = False

    def to_dict(self):
        return {
            "trackingCookies": self.trackers,
            "trackers": self.trackers,
            "googleTools": self.google_tools,
            "criticalTools": self.critical_tools,
            "externalFiles": self.external_files,
            "consentPresent": self.consent_present,
        }


@dataclass
class WordPressReport:
    is_wordpress: bool = False
    version: Optional[str] = None
    plugins: List[str] = field(default_factory=list)  # unique slugs, first-seen order
    themes: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "isWordPress": self.is_wordpress,
            "version": self.version,
            "plugins": list(self.plugins),
            "themes": list(self.themes),
            "notes": list(self.notes),
        }


@dataclass
class StaticFindings:
    """Result of the static pass over fetched HTML (plus crawl merges)."""
    categorized: Categorization
    indicators: List[str] = field(default_factory=list)
    tips: List[str] = field(default_factory=list)
    scripts: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)
    wp: WordPressReport = field(default_factory=WordPressReport)


@dataclass(frozen=True)
class CapturedRequest:
    url: str
    resource_type: str
    status: int = 0

    def to_dict(self):
        return {"url": self.url, "type": self.resource_type, "status": self.status}


@dataclass(frozen=True)
class PageCookie:
    name: str
    domain: str
    path: str
    expires: float
    session: bool

    @classmethod
    def from_playwright(cls, cookie):
        # Playwright reports session cookies with expires == -1.
        expires = cookie.get("expires", -1)
        return cls(
            name=cookie.get("name", ""),
            domain=cookie.get("domain", ""),
            path=cookie.get("path", "/"),
            expires=expires,
            session=expires is None or expires < 0,
        )

    def to_dict(self):
        return {
            "name": self.name,
            "domain": self.domain,
            "path": self.path,
            "expires": self.expires,
            "session": self.session,
        }


@dataclass
class ClientFingerprint:
    language: Optional[str] = None
    platform: Optional[str] = None
    user_agent: Optional[str] = None
    screen: Dict[str, Any] = field(default_factory=dict)
    timezone_minutes: Optional[int] = None
    touch: bool = False
    cookies_enabled: bool = False
    plugins: List[str] = field(default_factory=list)

    @classmethod
    def from_page(cls, data):
        data = data or {}
        return cls(
            language=data.get("language"),
            platform=data.get("platform"),
            user_agent=data.get("userAgent"),
            screen=dict(data.get("screen") or {}),
            timezone_minutes=data.get("timezoneMinutes"),
            touch=bool(data.get("touch")),
            cookies_enabled=bool(data.get("cookiesEnabled")),
            plugins=list(data.get("plugins") or [])[:10],
        )

    def to_dict(self):
        return {
            "language": self.language,
            "platform": self.platform,
            "userAgent": self.user_agent,
            "screen": dict(self.screen),
            "timezoneMinutes": self.timezone_minutes,
            "touch": self.touch,
            "cookiesEnabled": self.cookies_enabled,
            "plugins": list(self.plugins),
        }


@dataclass
class RenderCapture:
    """Everything the main render observed."""
    requests: List[CapturedRequest] = field(default_factory=list)
    cookies: List[PageCookie] = field(default_factory=list)
    fingerprint: ClientFingerprint = field(default_factory=ClientFingerprint)
    anchors: List[str] = field(default_factory=list)  # raw href values from the rendered DOM


@dataclass
class SSLInfo:
    has_ssl: bool = False
    issuer: Optional[str] = None
    valid_from: Optional[str] = None
    valid_to: Optional[str] = None
    cipher: Optional[str] = None
    bits: Optional[int] = None
    protocol: Optional[str] = None

    def to_dict(self):
        if not self.has_ssl:
            return {"hasSSL": False}
        return {
            "hasSSL": True,
            "issuer": self.issuer,
            "validFrom": self.valid_from,
            "validTo": self.valid_to,
            "cipher": self.cipher,
            "bits": self.bits,
            "protocol": self.protocol,
        }


@dataclass
class ConsentResult:
    found: bool = False
    has_tcf: bool = False

    def to_dict(self):
        return {"found": self.found, "hasTcf": self.has_tcf}


@dataclass
class PrivacyLink:
    present: bool = False
    url: Optional[str] = None

    def to_dict(self):
        return {"present": self.present, "url": self.url}


@dataclass
class ToolMatch:
    name: str
    matches: List[str]
    requires_consent: bool
    non_compliant: bool
    category: str

    def to_dict(self):
        return {
            "name": self.name,
            "matches": list(self.matches),
            "requiresConsent": self.requires_consent,
            "nonCompliant": self.non_compliant,
            "category": self.category,
        }


@dataclass
class ScoreBreakdown:
    """Every signed term of the score, kept separately for auditing."""
    base: int = 100
    minus_trackers: int = 0
    minus_google: int = 0
    minus_critical: int = 0
    minus_external: int = 0
    plus_consent: int = 0

    @property
    def total(self):
        raw = (self.base - self.minus_trackers - self.minus_google
               - self.minus_critical - self.minus_external + self.plus_consent)
        return max(0, min(100, raw))

    def to_dict(self):
        return {
            "base": self.base,
            "minusTrackers": self.minus_trackers,
            "minusGoogle": self.minus_google,
            "minusCritical": self.minus_critical,
            "minusExternal": self.minus_external,
            "plusConsent": self.plus_consent,
        }


@dataclass
class Outcome:
    """
    Result of a best-effort stage.

    ``ok`` is False when the stage failed and ``value`` holds the
    stage's default instead; ``error`` then carries the reason.
    """
    value: Any
    ok: bool = True
    error: Optional[str] = None

    @classmethod
    def success(cls, value):
        return cls(value=value)

    @classmethod
    def degraded(cls, default, error):
        return cls(value=default, ok=False, error=str(error))


@dataclass
class ComplianceReport:
    url: str
    findings: StaticFindings
    referenced: Categorization
    categorized: Categorization
    tips: List[str]
    breakdown: ScoreBreakdown
    cookies: List[PageCookie]
    tools: List[ToolMatch]
    external_pixels: List[str]
    stats: Dict[str, Any]
    fingerprint: ClientFingerprint
    privacy: PrivacyLink
    consent: ConsentResult
    degraded: List[Dict[str, str]] = field(default_factory=list)
    timeline: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def score(self):
        return self.breakdown.total

    def to_dict(self):
        return {
            "url": self.url,
            "indicators": list(self.findings.indicators),
            "scripts": list(self.findings.scripts),
            "links": list(self.findings.links),
            "wp": self.findings.wp.to_dict(),
            "referenced": self.referenced.to_dict(),
            "categorized": self.categorized.to_dict(),
            "tips": list(self.tips),
            "score": self.score,
            "scoreBreakdown": self.breakdown.to_dict(),
            "cookies": [c.to_dict() for c in self.cookies],
            "tools": [t.to_dict() for t in self.tools],
            "externalPixels": list(self.external_pixels),
            "stats": self.stats,
            "fingerprint": self.fingerprint.to_dict(),
            "privacy": self.privacy.to_dict(),
            "consent": self.consent.to_dict(),
            "degraded": list(self.degraded),
            "timeline": list(self.timeline),
        }
