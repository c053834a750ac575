"""
Centralized storage configuration for the images bucket and ingest limits.

Intent:
    Provide a single source of truth for the bucket name, the maximum accepted
    image size and the content types the ingest path stores. Prevents drift
    between the ingest coordinator, the web layer and tests.

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import os


IMAGES_BUCKET_DEFAULT = "images"

ALLOWED_CONTENT_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/avif",
    }
)


def get_images_bucket() -> str:
    """Return the configured images bucket name.

    Env:
        IMAGES_BUCKET – optional override; otherwise defaults to
        IMAGES_BUCKET_DEFAULT.
    """
    return (os.getenv("IMAGES_BUCKET") or IMAGES_BUCKET_DEFAULT).strip()


# --- Size limits --------------------------------------------------------------

def _parse_int_env(name: str, default: int, *, contract_max: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def get_max_image_bytes() -> int:
    """Maximum size of an ingested image (default/clamped 10 MiB)."""
    contract_max = 10 * 1024 * 1024
    return _parse_int_env("MAX_IMAGE_BYTES", contract_max, contract_max=contract_max)


def get_ingest_fetch_timeout() -> float:
    """Hard timeout in seconds for fetching a source URL (default/clamped 10s)."""
    return float(_parse_int_env("INGEST_FETCH_TIMEOUT", 10, contract_max=10))


def normalize_content_type(raw: str | None) -> str:
    """Strip parameters and lowercase a Content-Type header value."""
    return (raw or "").split(";", 1)[0].strip().lower()


__all__ = [
    "IMAGES_BUCKET_DEFAULT",
    "ALLOWED_CONTENT_TYPES",
    "get_images_bucket",
    "get_max_image_bytes",
    "get_ingest_fetch_timeout",
    "normalize_content_type",
]
