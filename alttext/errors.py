"""
Error taxonomy shared by the serve and ingest paths.

Intent:
    Give callers a small, stable set of failure kinds that the web layer can
    map to HTTP statuses without inspecting adapter-specific exceptions.

Design:
    - Every error carries a machine-readable `code` and a human message.
    - `DuplicateSource` is intentionally absent: a repeated ingest returns the
      existing id and is not an error.
    - `EnrichmentFailed` is internal only. The background task raises and
      catches it inside its own error boundary; clients never see it.
"""
from __future__ import annotations


class AltTextError(Exception):
    """Base class for all domain errors."""

    code = "error"

    def __init__(self, message: str = "", *, code: str | None = None) -> None:
        super().__init__(message or self.code)
        if code:
            self.code = code
        self.message = message or self.code


class NotFound(AltTextError):
    """The blob for the requested image id does not exist."""

    code = "not_found"


class StoreUnavailable(AltTextError):
    """A store on the critical path (blob, metadata during ingest) failed."""

    code = "storage_unavailable"


class UpstreamFetchFailed(AltTextError):
    """Ingest could not fetch the source URL (network, timeout, non-2xx)."""

    code = "upstream_fetch_failed"


class ValidationFailed(AltTextError):
    """Input rejected before any state was created.

    Codes:
        invalid_url, disallowed_host, unsupported_media_type, payload_too_large
    """

    code = "validation_failed"


class EnrichmentFailed(AltTextError):
    """Background enrichment did not produce a description (internal only)."""

    code = "enrichment_failed"


__all__ = [
    "AltTextError",
    "NotFound",
    "StoreUnavailable",
    "UpstreamFetchFailed",
    "ValidationFailed",
    "EnrichmentFailed",
]
