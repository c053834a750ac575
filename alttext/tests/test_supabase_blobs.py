"""
Supabase blob store with a fake storage client.

The adapter must map "object not found" to None (the funnel turns that into
NotFound) and let every other storage failure propagate.
"""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from alttext.storage.supabase_blobs import SupabaseBlobStore

IMAGE_ID = "3f2b8c1e-9a4d-4e6f-8b7a-1c2d3e4f5a6b"


class _FakeBucket:
    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.uploads: list[tuple[str, dict]] = []
        self.removed: list[list[str]] = []
        self.fail_download: Exception | None = None

    def upload(self, path: str, body: bytes, file_options: dict):
        self.uploads.append((path, file_options))
        self.objects[path] = (body, file_options["content-type"])
        return {"Key": path}

    def download(self, path: str) -> bytes:
        if self.fail_download is not None:
            raise self.fail_download
        if path not in self.objects:
            raise Exception({"statusCode": "404", "error": "not_found", "message": "Object not found"})
        return self.objects[path][0]

    def info(self, path: str) -> dict:
        return {"metadata": {"mimetype": self.objects[path][1]}}

    def remove(self, paths: list[str]):
        self.removed.append(paths)
        for path in paths:
            self.objects.pop(path, None)
        return []


def _store(bucket: _FakeBucket, *, storage3_style: bool = False) -> SupabaseBlobStore:
    calls = []

    def from_(name: str) -> _FakeBucket:
        calls.append(name)
        return bucket

    if storage3_style:
        client = SimpleNamespace(from_=from_)
    else:
        client = SimpleNamespace(storage=SimpleNamespace(from_=from_))
    return SupabaseBlobStore(client, bucket="images")


@pytest.mark.anyio
async def test_put_get_delete_roundtrip():
    bucket = _FakeBucket()
    store = _store(bucket)

    await store.put(IMAGE_ID, b"bytes", "image/webp")
    blob = await store.get(IMAGE_ID)
    await store.delete(IMAGE_ID)

    assert bucket.uploads[0][0] == f"originals/{IMAGE_ID}"
    assert bucket.uploads[0][1]["upsert"] == "false"
    assert blob.body == b"bytes" and blob.content_type == "image/webp"
    assert bucket.removed == [[f"originals/{IMAGE_ID}"]]
    assert await store.get(IMAGE_ID) is None


@pytest.mark.anyio
async def test_storage3_client_shape_is_supported():
    bucket = _FakeBucket()
    store = _store(bucket, storage3_style=True)

    await store.put(IMAGE_ID, b"bytes", "image/png")
    assert (await store.get(IMAGE_ID)).content_type == "image/png"


@pytest.mark.anyio
async def test_other_storage_errors_propagate():
    bucket = _FakeBucket()
    bucket.fail_download = ConnectionError("storage unreachable")
    store = _store(bucket)

    with pytest.raises(ConnectionError):
        await store.get(IMAGE_ID)
