"""
Helpers to generate standardized object keys for the images bucket.

Conventions:
    - Original image bytes: originals/{image_id}

Security:
    - Sanitization removes characters outside [A-Za-z0-9._-] from segments so
      a malformed id can never address another prefix.
"""
from __future__ import annotations

import re
import unicodedata

_SEGMENT_RE = re.compile(r"[^A-Za-z0-9._-]+")


def _sanitize_segment(value: str, *, fallback: str = "x") -> str:
    value = value or ""
    normalized = unicodedata.normalize("NFKD", value)
    ascii_value = normalized.encode("ascii", "ignore").decode("ascii")
    sanitized = _SEGMENT_RE.sub("-", ascii_value).strip("-_.")
    return sanitized or fallback


def make_original_key(image_id: str) -> str:
    """Build the storage key for the original bytes of an image.

    Returns: originals/{image_id}
    """
    return f"originals/{_sanitize_segment(image_id.lower(), fallback='image')}"


__all__ = ["make_original_key"]
