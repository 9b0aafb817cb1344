"""Shared helper functions used by the checker workflows."""

from __future__ import annotations

import os
from typing import Iterable, Optional, Tuple
from urllib.parse import quote, urljoin, urlparse, urlunparse

from .checker_config import ALLOWED_SCHEMES, SKIPPED_SCHEMES
from .errors import MalformedInputError


def _env_int(name: str, default: int) -> int:
    try:
        raw = os.getenv(name, "")
        return int(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        raw = os.getenv(name, "")
        return float(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name, "")
    return raw.strip() or default


def _env_bool(name: str, default: str = "0") -> bool:
    raw = os.getenv(name, default)
    return str(raw).strip().lower() not in {"0", "false", "no", "off", ""}


def _env_int_set(name: str, default: Iterable[int]) -> frozenset[int]:
    raw = os.getenv(name, "")
    values = set()
    for token in raw.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            values.add(int(token))
        except ValueError:
            continue
    return frozenset(values) if values else frozenset(default)


def validate_url(url: str) -> str:
    """Return *url* stripped, or raise MalformedInputError.

    Only absolute http(s) URLs with a host are accepted.
    """

    raw = (url or "").strip()
    if not raw:
        raise MalformedInputError(url, "empty")
    try:
        parsed = urlparse(raw)
        port = parsed.port
    except ValueError as exc:
        raise MalformedInputError(url, str(exc)) from exc
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise MalformedInputError(url, f"unsupported scheme {parsed.scheme or 'none'!r}")
    if not parsed.hostname:
        raise MalformedInputError(url, "missing host")
    if port == 0:
        raise MalformedInputError(url, "invalid port")
    return raw


# Characters left as-is when re-encoding; '%' keeps existing escapes intact.
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = "/?%:@!$&'()*+,;=-._~"


def _idna_host(host: str) -> str:
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError:
        return host


def normalize_url(u: str) -> str:
    """Normalize an absolute URL for dedup purposes.

    - Lower-case scheme and host, IDNA-encode the host
    - Remove default ports
    - Drop the fragment (never sent to servers)
    - Percent-encode path and query the way browsers do, so ``/café`` and
      ``/caf%C3%A9`` share one key; existing escapes are kept
    """
    try:
        p = urlparse((u or "").strip())
        scheme = p.scheme.lower()
        host = _idna_host(p.hostname.lower()) if p.hostname else ""
        netloc = host
        if p.port and not ((scheme == "http" and p.port == 80) or (scheme == "https" and p.port == 443)):
            netloc = f"{host}:{p.port}"
        if p.username or p.password:
            creds = p.username or ""
            if p.password:
                creds = f"{creds}:{p.password}"
            netloc = f"{creds}@{netloc}"
        path = quote(p.path, safe=_PATH_SAFE) or ("/" if host else "")
        query = quote(p.query, safe=_QUERY_SAFE)
        return urlunparse((scheme, netloc, path, p.params, query, ""))
    except ValueError:
        return (u or "").strip()


def is_skipped_href(href: str) -> bool:
    """True for empty, fragment-only, and non-navigational scheme hrefs."""

    value = (href or "").strip()
    if not value or value.startswith("#"):
        return True
    lowered = value.lower()
    return any(lowered.startswith(scheme) for scheme in SKIPPED_SCHEMES)


def absolutize(href: str, base_url: str) -> Optional[str]:
    """Resolve *href* against *base_url*; None when it is not an http(s) link."""

    value = (href or "").strip()
    if is_skipped_href(value):
        return None
    try:
        absolute = urljoin(base_url, value)
        parsed = urlparse(absolute)
    except ValueError:
        return None
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.hostname:
        return None
    return absolute


def same_site(url: str, base_url: str) -> bool:
    """True when *url* lives on the same host as *base_url*."""

    try:
        host = (urlparse(url).hostname or "").lower()
        base = (urlparse(base_url).hostname or "").lower()
    except ValueError:
        return False
    return bool(host) and host == base


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def percent(part: int, whole: int) -> int:
    """Rounded percentage, 0 when *whole* is zero."""

    if whole <= 0:
        return 0
    return int(part * 100 / whole + 0.5)


def in_status_range(status: int, bounds: Tuple[int, int]) -> bool:
    """True when low <= status < high."""

    low, high = bounds
    return low <= status < high


__all__ = [
    "validate_url",
    "normalize_url",
    "is_skipped_href",
    "absolutize",
    "same_site",
    "origin_of",
    "percent",
    "in_status_range",
]
