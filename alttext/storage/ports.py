"""
Storage ports used by the ingest and serve paths.

Keep these small and framework-agnostic so tests can supply simple fakes.
All methods are coroutines; adapters wrapping blocking clients run them in the
default executor.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class StoredBlob:
    """Original image bytes plus the content type recorded at ingest."""

    body: bytes
    content_type: str


class BlobStore(Protocol):
    """Blob storage keyed by image id.

    Behavior:
        - `get` returns None when no object exists for the id and raises on
          any other failure.
        - `delete` of a missing object is not an error.
    """

    async def put(self, image_id: str, body: bytes, content_type: str) -> None: ...

    async def get(self, image_id: str) -> Optional[StoredBlob]: ...

    async def delete(self, image_id: str) -> None: ...


class EphemeralStore(Protocol):
    """Key/value store with per-key expiry.

    Used for the enrichment dedup lock and the rate-limit counters. Presence
    of a key is a hint, not an ownership token: callers must tolerate both
    missing and stale entries.
    """

    async def get(self, key: str) -> Optional[str]: ...

    async def put(self, key: str, value: str, ttl_seconds: int) -> None: ...


__all__ = ["StoredBlob", "BlobStore", "EphemeralStore"]
