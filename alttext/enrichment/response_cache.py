"""
Response cache for image reads.

Intent:
    Store complete responses (status, body, headers) keyed by the canonical
    read identity so repeated reads short-circuit before any store access.

Design:
    - Freshness comes from the entry's own `Cache-Control: max-age=N`. The
      funnel sets a long max-age for described images and a short one for
      pending images, so a pending entry naturally ages out and the next
      reader re-enters the funnel.
    - Last write wins; there is no versioning and no explicit invalidation.
    - The in-process implementation is a bounded LRU. A shared edge cache can
      implement the same two-method port.
"""
from __future__ import annotations

import re
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Optional, Protocol

_MAX_AGE_RE = re.compile(r"(?:^|[,\s])max-age\s*=\s*(\d+)", re.IGNORECASE)


def image_read_identity(image_id: str) -> str:
    """Canonical cache identity for a read of `image_id` (query strings ignored)."""
    return f"GET /images/{image_id.lower()}"


def parse_max_age(cache_control: str | None) -> int:
    """Return the max-age directive in seconds, 0 when absent or malformed."""
    match = _MAX_AGE_RE.search(cache_control or "")
    if not match:
        return 0
    return int(match.group(1))


@dataclass(frozen=True)
class CachedResponse:
    status: int
    body: bytes
    headers: Dict[str, str]
    stored_at: float = field(default=0.0, compare=False)

    @property
    def max_age(self) -> int:
        return parse_max_age(self.headers.get("Cache-Control"))

    def with_headers(self, **overrides: str) -> "CachedResponse":
        """Copy with selected headers replaced; keys use `_` for `-`."""
        headers = dict(self.headers)
        for key, value in overrides.items():
            headers[key.replace("_", "-")] = value
        return replace(self, headers=headers)


class ResponseCache(Protocol):
    async def match(self, identity: str) -> Optional[CachedResponse]: ...

    async def put(self, identity: str, response: CachedResponse) -> None: ...


class InMemoryResponseCache:
    """Process-local LRU cache honouring each entry's max-age."""

    def __init__(self, *, capacity: int = 1024, clock: Callable[[], float] | None = None) -> None:
        self._capacity = max(1, int(capacity))
        self._clock = clock or time.monotonic
        self._entries: "OrderedDict[str, CachedResponse]" = OrderedDict()
        self._lock = threading.Lock()

    async def match(self, identity: str) -> Optional[CachedResponse]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(identity)
            if entry is None:
                return None
            if now - entry.stored_at >= entry.max_age:
                del self._entries[identity]
                return None
            self._entries.move_to_end(identity)
            return entry

    async def put(self, identity: str, response: CachedResponse) -> None:
        if response.max_age <= 0:
            return
        stamped = replace(response, stored_at=self._clock())
        with self._lock:
            self._entries[identity] = stamped
            self._entries.move_to_end(identity)
            while len(self._entries) > self._capacity:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "CachedResponse",
    "ResponseCache",
    "InMemoryResponseCache",
    "image_read_identity",
    "parse_max_age",
]
