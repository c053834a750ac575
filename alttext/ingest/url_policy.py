"""
Source URL policy for ingest (SSRF denylist).

Checks run against the literal hostname of the URL. No DNS resolution is
performed, so a public name that resolves to a private address is not caught
here; that limitation is documented and left to the network layer.

IPv4 hosts are matched by prefix only. IPv6 literals are classified with
`ipaddress`, and an IPv4-mapped IPv6 literal is checked as the IPv4 address
it wraps.
"""
from __future__ import annotations

import ipaddress
import re
from urllib.parse import urlparse

import httpx

from alttext.errors import ValidationFailed

MAX_URL_LENGTH = 2048

_DENIED_HOST_PATTERNS = (
    re.compile(r"^(localhost|127\.|0\.0\.0\.0|::1)", re.IGNORECASE),  # loopback
    re.compile(r"^169\.254\.", re.IGNORECASE),  # link-local / cloud metadata
    re.compile(r"^10\.", re.IGNORECASE),
    re.compile(r"^172\.(1[6-9]|2\d|3[01])\.", re.IGNORECASE),
    re.compile(r"^192\.168\.", re.IGNORECASE),
)


def _matches_denylist(host: str) -> bool:
    return any(p.search(host) for p in _DENIED_HOST_PATTERNS)


def is_denied_host(host: str) -> bool:
    """Return True if the literal hostname falls in a loopback/link-local/private range."""
    host = (host or "").strip().lower().strip("[]")
    if not host:
        return True
    if _matches_denylist(host):
        return True
    try:
        addr = ipaddress.ip_address(host)
    except ValueError:
        return False
    if not isinstance(addr, ipaddress.IPv6Address):
        return False
    if addr.ipv4_mapped is not None:
        return _matches_denylist(str(addr.ipv4_mapped))
    return bool(addr.is_loopback or addr.is_link_local or addr.is_private or addr.is_unspecified)


def _invalid() -> ValidationFailed:
    return ValidationFailed("Valid http(s) URL required", code="invalid_url")


def validate_source_url(raw: str | None) -> str:
    """Return the trimmed URL or raise `ValidationFailed`.

    Codes:
        invalid_url: not an absolute http(s) URL with a hostname, too long, or
            not parseable by the HTTP client (bad port, malformed IDNA label).
        disallowed_host: hostname in a denied range.
    """
    url = (raw or "").strip()
    if not url or len(url) > MAX_URL_LENGTH:
        raise _invalid()
    try:
        parsed = urlparse(url)
        host = parsed.hostname or ""
        parsed.port  # raises ValueError on a malformed port
        # The fetcher parses the URL again; anything it would choke on is
        # rejected here. `.host` decodes "xn--" labels.
        httpx.URL(url).host
    except (httpx.InvalidURL, UnicodeError, ValueError):
        raise _invalid()
    if parsed.scheme.lower() not in {"http", "https"} or not host:
        raise _invalid()
    if is_denied_host(host):
        raise ValidationFailed("URL resolves to a disallowed network range", code="disallowed_host")
    return url


__all__ = ["MAX_URL_LENGTH", "is_denied_host", "validate_source_url"]
