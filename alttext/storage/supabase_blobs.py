"""
Supabase-backed blob store for original image bytes.

This adapter implements the `BlobStore` port using a provided Supabase client.
It is intentionally duck-typed to avoid a hard dependency during testing. The
client is expected to expose `.storage.from_(bucket)` (supabase client) or
`.from_(bucket)` (storage3 client) which returns an object offering:

- upload(path, body, file_options) -> Any
- download(path) -> bytes
- info(path) / stat(path) -> { content_type | mimetype | metadata.mimetype }
- remove([path]) -> Any

Security:
- The caller must ensure the client is initialized with the Service Role key.
- The bucket should be private; bytes are only served through the funnel.
"""
from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Dict, Optional

from .keys import make_original_key
from .ports import StoredBlob

LOG = logging.getLogger(__name__)

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _is_missing_object_error(exc: Exception) -> bool:
    """Return True when a storage exception means "object does not exist".

    storage3 reports a missing object either as `StorageApiError` with
    `status`/`code` attributes or as `StorageException` whose first arg is a
    dict carrying `statusCode`/`error`.
    """
    status = getattr(exc, "status", None)
    code = str(getattr(exc, "code", "") or "").lower()
    details: Dict[str, Any] = {}
    if exc.args and isinstance(exc.args[0], dict):
        details = exc.args[0]
        status = status or details.get("statusCode") or details.get("status")
        code = code or str(details.get("error") or "").lower()
    if code in {"not_found", "nosuchkey", "object not found"}:
        return True
    message = str(details.get("message") or exc).lower()
    return str(status) in {"404", "400"} and "not found" in message


class SupabaseBlobStore:
    """Blob store using a supabase client for Storage operations."""

    def __init__(self, client: Any, *, bucket: str):
        # Duck-typed supabase client, e.g., from `supabase import create_client(...)`.
        self._client = client
        self._bucket_name = bucket

    # --- Helpers -----------------------------------------------------------------

    def _bucket(self) -> Any:
        """Return a bucket proxy from either supabase client or storage3 client."""
        c = self._client
        storage = getattr(c, "storage", None)
        if storage is not None and hasattr(storage, "from_"):
            return storage.from_(self._bucket_name)
        if hasattr(c, "from_"):
            return c.from_(self._bucket_name)  # type: ignore[attr-defined]
        raise RuntimeError("invalid_supabase_client")

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    @staticmethod
    def _content_type_from_info(info: Any) -> Optional[str]:
        if not isinstance(info, dict):
            return None
        data = info.get("data") if isinstance(info.get("data"), dict) else info
        metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
        return data.get("content_type") or data.get("mimetype") or metadata.get("mimetype")

    # --- Sync implementations --------------------------------------------------

    def _put_sync(self, image_id: str, body: bytes, content_type: str) -> None:
        b = self._bucket()
        # Some client versions expect file options with either kebab or camel case.
        opts = {"content-type": content_type, "contentType": content_type, "upsert": "false"}
        b.upload(make_original_key(image_id), body, opts)

    def _get_sync(self, image_id: str) -> Optional[StoredBlob]:
        b = self._bucket()
        key = make_original_key(image_id)
        try:
            body = b.download(key)
        except Exception as exc:
            if _is_missing_object_error(exc):
                return None
            raise
        content_type: Optional[str] = None
        for method in ("info", "stat"):
            probe = getattr(b, method, None)
            if probe is None:
                continue
            try:
                content_type = self._content_type_from_info(probe(key))
            except Exception as exc:
                LOG.debug("storage.blobs action=content_type_probe_failed error=%s", exc.__class__.__name__)
                continue
            if content_type:
                break
        return StoredBlob(body=bytes(body), content_type=content_type or _DEFAULT_CONTENT_TYPE)

    def _delete_sync(self, image_id: str) -> None:
        self._bucket().remove([make_original_key(image_id)])

    # --- Port methods ------------------------------------------------------------

    async def put(self, image_id: str, body: bytes, content_type: str) -> None:
        await self._run(self._put_sync, image_id, body, content_type)

    async def get(self, image_id: str) -> Optional[StoredBlob]:
        return await self._run(self._get_sync, image_id)

    async def delete(self, image_id: str) -> None:
        await self._run(self._delete_sync, image_id)


__all__ = ["SupabaseBlobStore"]
