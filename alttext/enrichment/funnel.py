"""
Enrichment funnel: serve image reads and trigger description generation lazily.

Intent:
    Return image bytes with minimal latency while invoking the inference
    service at most once per image under concurrent load, and make the
    resulting description visible to later readers through the response cache.

Read path (`serve`):
    1. Fresh cache entry for the read identity -> return it verbatim.
    2. Otherwise fetch the record and the blob concurrently. The blob is the
       source of truth for bytes: absence is `NotFound`, failure is
       `StoreUnavailable`. A failed record lookup is logged and the image is
       served as pending.
    3. Build the response (description header, freshness directive).
    4. Spawn the follow-up work and return without awaiting it.

Follow-up for a pending read (detached, own error boundary):
    cache the pending response -> in-process in-flight check -> dedup lock ->
    inference (bounded by `inference_timeout_seconds`) -> sanitize -> upsert ->
    re-read and rebuild the cache entry with the long directive. An attempt
    already running in this process or a held lock ends the task after the
    first step. Any failure leaves the image pending; the next organic reader
    retries once lock and cache entries have expired.

Notes:
    The funnel keeps no "already enriched" state of its own. Whether an image
    is described is always re-derived from the record store.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from alttext.enrichment import telemetry
from alttext.enrichment.background import BackgroundRunner
from alttext.enrichment.config import FunnelConfig
from alttext.enrichment.ports import InferenceAdapterProtocol
from alttext.enrichment.response_cache import CachedResponse, ResponseCache, image_read_identity
from alttext.enrichment.sanitizer import sanitize
from alttext.errors import EnrichmentFailed, NotFound, StoreUnavailable, ValidationFailed
from alttext.images.records import ImageRecordStore, normalize_image_id
from alttext.storage.ports import BlobStore, EphemeralStore, StoredBlob

LOG = logging.getLogger(__name__)

PENDING_PLACEHOLDER = "Pending - description being generated"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def lock_key(image_id: str) -> str:
    return f"ai:{image_id}"


class EnrichmentFunnel:
    """Serve reads of stored images and enrich pending ones in the background."""

    def __init__(
        self,
        *,
        blobs: BlobStore,
        records: ImageRecordStore,
        cache: ResponseCache,
        locks: EphemeralStore,
        inference: InferenceAdapterProtocol,
        runner: BackgroundRunner,
        config: Optional[FunnelConfig] = None,
    ) -> None:
        self._blobs = blobs
        self._records = records
        self._cache = cache
        self._locks = locks
        self._inference = inference
        self._runner = runner
        self._config = config or FunnelConfig()
        self._in_flight: Set[str] = set()

    # ------------------------------------------------------------------ read

    async def serve(self, image_id: str) -> CachedResponse:
        image_id = normalize_image_id(image_id)
        identity = image_read_identity(image_id)

        cached = await self._cache_match(identity)
        if cached is not None:
            return cached

        record_result, blob_result = await asyncio.gather(
            self._records.find_by_id(image_id),
            self._blobs.get(image_id),
            return_exceptions=True,
        )
        if isinstance(blob_result, BaseException):
            if isinstance(blob_result, asyncio.CancelledError):
                raise blob_result
            LOG.error(
                "enrichment.serve action=blob_read_failed image_id=%s error_type=%s",
                image_id,
                blob_result.__class__.__name__,
            )
            raise StoreUnavailable("blob store read failed") from blob_result
        if blob_result is None:
            raise NotFound(f"no image stored for id {image_id}")

        description: Optional[str] = None
        if isinstance(record_result, BaseException):
            if isinstance(record_result, asyncio.CancelledError):
                raise record_result
            telemetry.increment_counter("metadata_read_failures_total")
            LOG.warning(
                "enrichment.serve action=metadata_read_failed image_id=%s error_type=%s",
                image_id,
                record_result.__class__.__name__,
            )
        elif record_result is not None and not record_result.is_pending:
            description = sanitize(record_result.description or "") or None

        response = self._build_response(image_id, blob_result, description)
        if description is not None:
            self._runner.spawn(
                self._cache_put(identity, response, kind="described"),
                name=f"cache:{image_id}",
            )
        else:
            self._runner.spawn(
                self._pending_follow_up(image_id, identity, response, blob_result),
                name=f"enrich:{image_id}",
            )
        return response

    def _build_response(
        self, image_id: str, blob: StoredBlob, description: Optional[str]
    ) -> CachedResponse:
        if description is not None:
            alt_text = description
            directive = self._config.described_directive
        else:
            alt_text = PENDING_PLACEHOLDER
            directive = self._config.pending_directive
        headers = {
            "Content-Type": blob.content_type or DEFAULT_CONTENT_TYPE,
            "X-Alt-Text": alt_text,
            "X-Image-Id": image_id,
            "Cache-Control": directive,
        }
        return CachedResponse(status=200, body=blob.body, headers=headers)

    # ----------------------------------------------------------- follow-up

    async def _pending_follow_up(
        self, image_id: str, identity: str, pending: CachedResponse, blob: StoredBlob
    ) -> None:
        await self._cache_put(identity, pending, kind="pending")
        try:
            stored = await self._enrich(image_id, blob)
        except EnrichmentFailed as exc:
            LOG.warning(
                "enrichment.task action=failed image_id=%s reason=%s", image_id, exc.code
            )
            return
        if stored:
            await self._rebuild_cache(image_id, identity, pending)

    async def _enrich(self, image_id: str, blob: StoredBlob) -> bool:
        """Run one enrichment attempt. Return False when another attempt already runs."""
        # Same-process attempts are deduplicated here without touching the lock
        # store; the lock store only has to cover other processes.
        if image_id in self._in_flight:
            telemetry.increment_counter("enrichment_skipped_total", reason="in_flight")
            LOG.debug("enrichment.task action=skip reason=in_flight image_id=%s", image_id)
            return False
        self._in_flight.add(image_id)
        try:
            return await self._attempt(image_id, blob)
        finally:
            self._in_flight.discard(image_id)

    async def _attempt(self, image_id: str, blob: StoredBlob) -> bool:
        if not await self._acquire_lock(image_id):
            telemetry.increment_counter("enrichment_skipped_total", reason="locked")
            LOG.debug("enrichment.task action=skip reason=locked image_id=%s", image_id)
            return False

        timeout = self._config.inference_timeout_seconds
        try:
            raw = await asyncio.wait_for(
                self._inference.describe(image_bytes=blob.body, content_type=blob.content_type),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            telemetry.increment_counter("inference_calls_total", outcome="timeout")
            LOG.warning(
                "enrichment.task action=inference_timeout image_id=%s timeout_s=%s", image_id, timeout
            )
            raise EnrichmentFailed("inference timed out", code="inference_timeout") from exc
        except Exception as exc:
            telemetry.increment_counter("inference_calls_total", outcome="error")
            LOG.warning(
                "enrichment.task action=inference_failed image_id=%s error_type=%s",
                image_id,
                exc.__class__.__name__,
            )
            raise EnrichmentFailed("inference failed", code="inference_failed") from exc

        text = sanitize(raw if isinstance(raw, str) else "")
        if not text:
            telemetry.increment_counter("inference_calls_total", outcome="empty")
            raise EnrichmentFailed("inference returned no usable text", code="empty_result")
        telemetry.increment_counter("inference_calls_total", outcome="ok")

        try:
            await self._records.upsert_description(image_id, text)
        except Exception as exc:
            LOG.error(
                "enrichment.task action=upsert_failed image_id=%s error_type=%s",
                image_id,
                exc.__class__.__name__,
            )
            raise EnrichmentFailed("description could not be stored", code="upsert_failed") from exc
        LOG.info("enrichment.task action=described image_id=%s chars=%s", image_id, len(text))
        return True

    async def _acquire_lock(self, image_id: str) -> bool:
        # Lock store outages degrade to "proceed unlocked".
        key = lock_key(image_id)
        try:
            if await self._locks.get(key) is not None:
                return False
        except Exception as exc:
            LOG.warning(
                "enrichment.lock action=read_failed image_id=%s error_type=%s",
                image_id,
                exc.__class__.__name__,
            )
            return True
        try:
            await self._locks.put(key, "1", self._config.lock_ttl_seconds)
        except Exception as exc:
            LOG.warning(
                "enrichment.lock action=write_failed image_id=%s error_type=%s",
                image_id,
                exc.__class__.__name__,
            )
        return True

    async def _rebuild_cache(self, image_id: str, identity: str, pending: CachedResponse) -> None:
        description: Optional[str] = None
        try:
            record = await self._records.find_by_id(image_id)
            if record is not None and not record.is_pending:
                description = sanitize(record.description or "") or None
        except Exception as exc:
            LOG.warning(
                "enrichment.cache action=reread_failed image_id=%s error_type=%s",
                image_id,
                exc.__class__.__name__,
            )
        if description is None:
            await self._cache_put(identity, pending, kind="pending")
            return
        described = pending.with_headers(
            X_Alt_Text=description,
            Cache_Control=self._config.described_directive,
        )
        await self._cache_put(identity, described, kind="rebuilt")

    # -------------------------------------------------------------- cache io

    async def _cache_match(self, identity: str) -> Optional[CachedResponse]:
        try:
            return await self._cache.match(identity)
        except Exception as exc:
            LOG.warning(
                "enrichment.cache action=match_failed identity=%s error_type=%s",
                identity,
                exc.__class__.__name__,
            )
            return None

    async def _cache_put(self, identity: str, response: CachedResponse, *, kind: str) -> None:
        try:
            await self._cache.put(identity, response)
        except Exception as exc:
            LOG.warning(
                "enrichment.cache action=put_failed identity=%s kind=%s error_type=%s",
                identity,
                kind,
                exc.__class__.__name__,
            )
            return
        telemetry.increment_counter("response_cache_writes_total", kind=kind)

    # ---------------------------------------------------------- human text

    async def set_description(self, image_id: str, text: str) -> str:
        """Store a human-supplied description through the same sanitize/upsert path.

        The cached response is not touched; readers see the new text once the
        current entry expires.
        """
        image_id = normalize_image_id(image_id)
        clean = sanitize(text or "")
        if not clean:
            raise ValidationFailed("description is empty after sanitizing", code="empty_description")
        try:
            record = await self._records.find_by_id(image_id)
        except Exception as exc:
            raise StoreUnavailable("metadata store read failed") from exc
        if record is None:
            raise NotFound(f"no image record for id {image_id}")
        try:
            await self._records.upsert_description(image_id, clean)
        except Exception as exc:
            raise StoreUnavailable("metadata store write failed") from exc
        LOG.info("enrichment.override action=stored image_id=%s chars=%s", image_id, len(clean))
        return clean


__all__ = ["EnrichmentFunnel", "PENDING_PLACEHOLDER", "lock_key"]
