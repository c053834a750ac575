"""
In-memory storage adapters for local development and tests.

Both stores keep their state in plain dicts and never suspend inside a call,
so on a single event loop a `get` followed by a `put` cannot interleave with
another coroutine.
"""
from __future__ import annotations

import time
from typing import Callable, Dict, Optional, Tuple

from .ports import StoredBlob


class InMemoryBlobStore:
    """Dict-backed blob store."""

    def __init__(self) -> None:
        self._objects: Dict[str, StoredBlob] = {}

    async def put(self, image_id: str, body: bytes, content_type: str) -> None:
        self._objects[image_id] = StoredBlob(body=bytes(body), content_type=content_type)

    async def get(self, image_id: str) -> Optional[StoredBlob]:
        return self._objects.get(image_id)

    async def delete(self, image_id: str) -> None:
        self._objects.pop(image_id, None)

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, image_id: object) -> bool:
        return image_id in self._objects


class InMemoryEphemeralStore:
    """Dict-backed key/value store with lazy expiry."""

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.monotonic
        self._entries: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, self._clock() + max(1, int(ttl_seconds)))


__all__ = ["InMemoryBlobStore", "InMemoryEphemeralStore"]
