"""
Test doubles for stores, inference and remote fetch.

Each fake records calls so tests can assert on side effects (inference call
counts, blob writes, compensating deletes) rather than on log output.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional

from alttext.images.records import ImageRecord
from alttext.images.repo_memory import InMemoryImageRepo
from alttext.ingest.fetcher import FetchedImage
from alttext.storage.memory import InMemoryBlobStore, InMemoryEphemeralStore

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64


class StoreDown(Exception):
    """Raised by fakes to simulate an unavailable backing store."""


class CountingInference:
    """Inference adapter that counts calls and optionally waits or fails."""

    def __init__(self, text: str = "A red bicycle leaning on a wall.", *, delay: float = 0.0, error: Exception | None = None) -> None:
        self.text = text
        self.delay = delay
        self.error = error
        self.calls = 0
        self.seen: List[tuple[int, str]] = []

    async def describe(self, *, image_bytes: bytes, content_type: str) -> str:
        self.calls += 1
        self.seen.append((len(image_bytes), content_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.text


class FlakyBlobStore(InMemoryBlobStore):
    def __init__(self, *, fail_get: bool = False, fail_put: bool = False, fail_delete: bool = False) -> None:
        super().__init__()
        self.fail_get = fail_get
        self.fail_put = fail_put
        self.fail_delete = fail_delete
        self.put_calls = 0
        self.delete_calls: List[str] = []

    async def put(self, image_id: str, body: bytes, content_type: str) -> None:
        self.put_calls += 1
        if self.fail_put:
            raise StoreDown("blob put failed")
        await super().put(image_id, body, content_type)

    async def get(self, image_id: str):
        if self.fail_get:
            raise StoreDown("blob get failed")
        return await super().get(image_id)

    async def delete(self, image_id: str) -> None:
        self.delete_calls.append(image_id)
        if self.fail_delete:
            raise StoreDown("blob delete failed")
        await super().delete(image_id)


class FlakyImageRepo(InMemoryImageRepo):
    def __init__(
        self,
        *,
        fail_find_by_id: bool = False,
        fail_find_by_source_url: bool = False,
        fail_insert: bool = False,
        fail_upsert: bool = False,
    ) -> None:
        super().__init__()
        self.fail_find_by_id = fail_find_by_id
        self.fail_find_by_source_url = fail_find_by_source_url
        self.fail_insert = fail_insert
        self.fail_upsert = fail_upsert
        self.upserts: List[tuple[str, str]] = []

    async def find_by_id(self, image_id: str) -> Optional[ImageRecord]:
        if self.fail_find_by_id:
            raise StoreDown("metadata read failed")
        return await super().find_by_id(image_id)

    async def find_by_source_url(self, source_url: str) -> Optional[ImageRecord]:
        if self.fail_find_by_source_url:
            raise StoreDown("metadata read failed")
        return await super().find_by_source_url(source_url)

    async def insert(self, image_id: str, source_url: Optional[str]) -> None:
        if self.fail_insert:
            raise StoreDown("metadata insert failed")
        await super().insert(image_id, source_url)

    async def upsert_description(self, image_id: str, description: str) -> None:
        self.upserts.append((image_id, description))
        if self.fail_upsert:
            raise StoreDown("metadata upsert failed")
        await super().upsert_description(image_id, description)


class RacingImageRepo(InMemoryImageRepo):
    """Simulate a concurrent ingest that wins the insert race for the same URL."""

    def __init__(self, winner_id: str) -> None:
        super().__init__()
        self.winner_id = winner_id

    async def insert(self, image_id: str, source_url: Optional[str]) -> None:
        await super().insert(self.winner_id, source_url)
        await super().insert(image_id, source_url)


class DownEphemeralStore:
    async def get(self, key: str) -> Optional[str]:
        raise StoreDown("ephemeral get failed")

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        raise StoreDown("ephemeral put failed")


class SlowEphemeralStore(InMemoryEphemeralStore):
    """Lock store with round-trip latency, like a remote key/value service."""

    def __init__(self, delay: float = 0.005) -> None:
        super().__init__()
        self.delay = delay

    async def get(self, key: str) -> Optional[str]:
        await asyncio.sleep(self.delay)
        return await super().get(key)

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        await asyncio.sleep(self.delay)
        await super().put(key, value, ttl_seconds)


class FakeFetcher:
    def __init__(self, body: bytes = JPEG_BYTES, content_type: str = "image/jpeg", *, max_bytes: int = 10 * 1024 * 1024) -> None:
        self.body = body
        self.content_type = content_type
        self.max_bytes = max_bytes
        self.calls: List[str] = []

    async def fetch(self, url: str) -> FetchedImage:
        self.calls.append(url)
        return FetchedImage(body=self.body, content_type=self.content_type)


__all__ = [
    "PNG_BYTES",
    "JPEG_BYTES",
    "StoreDown",
    "CountingInference",
    "FlakyBlobStore",
    "FlakyImageRepo",
    "RacingImageRepo",
    "DownEphemeralStore",
    "FakeFetcher",
]
