"""
Text normalization helpers shared by every provider adapter.

Everything here is pure and deterministic: the same input always yields the
same output, which keeps re-runs of a provider byte-identical.
"""

import hashlib
import json
import re
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlsplit

_WS_RE = re.compile(r"\s+")
_TRAILING_PUNCT_RE = re.compile(r"[,;:!?]+$")
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_HOSTNAME_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?(?:\.[a-z0-9](?:[a-z0-9-]*[a-z0-9])?)*$")
_NON_DIGIT_RE = re.compile(r"\D")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Words kept fully upper-cased by title_case ("PO Box", "NE 5th St").
UPPERCASE_WORDS = frozenset({"po", "ne", "nw", "se", "sw"})

NULL_MARKERS = frozenset({"null", "n/a", "none"})


def collapse_ws(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def clean_text(text: Any) -> Optional[str]:
    """
    Trim, collapse whitespace, and drop trailing list punctuation.

    Non-strings and strings that end up empty return None.
    """
    if not text or not isinstance(text, str):
        return None
    cleaned = collapse_ws(text)
    cleaned = _TRAILING_PUNCT_RE.sub("", cleaned)
    return cleaned or None


def title_case(text: str) -> str:
    """Capitalize each word; short directional/box abbreviations stay upper-case."""
    words = []
    for word in text.lower().split(" "):
        if word.replace(".", "") in UPPERCASE_WORDS:
            words.append(word.upper())
        else:
            words.append(word[:1].upper() + word[1:])
    return " ".join(words)


def phone_digits(number: str) -> str:
    """Digits-only form used as the identity of a phone number."""
    return _NON_DIGIT_RE.sub("", number or "")


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def _hostname(url: str) -> Optional[str]:
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not host or not _HOSTNAME_RE.match(host):
        return None
    return host


def is_valid_url(url: Optional[str]) -> bool:
    """True when url parses with an http(s) scheme and a well-formed host."""
    if not url or not _SCHEME_RE.match(url):
        return False
    return _hostname(url) is not None


def normalize_url(raw: Any) -> tuple[Optional[str], Optional[str]]:
    """
    Normalize a free-form website value.

    Returns (url, domain). A missing scheme becomes https://, the domain is
    the host without a leading "www.". Placeholders like "N/A" and
    unparseable values return (None, None).
    """
    url = clean_text(raw)
    if not url or url.lower() in NULL_MARKERS:
        return None, None

    if not _SCHEME_RE.match(url):
        url = "https://" + url

    host = _hostname(url)
    if host is None:
        return None, None

    domain = host[4:] if host.startswith("www.") else host
    return url, domain


def domain_of(url: Optional[str]) -> Optional[str]:
    return normalize_url(url)[1]


def to_iso(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def epoch_ms_to_iso(value: Any) -> Optional[str]:
    """ArcGIS date fields are epoch milliseconds, sometimes serialized as strings."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        millis = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if millis == 0:
        return None
    try:
        dt = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return to_iso(dt)


def stable_hash(payload: Any, length: int = 16) -> str:
    """SHA-256 over canonical JSON (sorted keys), truncated to `length` hex chars."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:length]
