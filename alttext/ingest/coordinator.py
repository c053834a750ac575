"""
Ingest coordinator: register a remote image under a new id.

Steps:
    1. Validate the URL (no state touched on rejection).
    2. Idempotency: an existing record for the source URL returns its id.
    3. Fetch and validate content type and size.
    4. New id, blob write.
    5. Metadata insert. On failure the blob is deleted as compensation; the
       delete is best-effort (logged, never retried, never surfaced).

The unique constraint on `source_url` in the record store is the only strong
guarantee against duplicates. Two racing ingests of the same URL both pass
step 2; the loser compensates and returns the winner's id.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

from alttext.enrichment import telemetry
from alttext.errors import StoreUnavailable
from alttext.images.records import DuplicateSourceUrlError, ImageRecordStore
from alttext.ingest.fetcher import FetchedImage, RemoteFetcher, check_content_type, check_size
from alttext.ingest.url_policy import validate_source_url
from alttext.storage.ports import BlobStore

LOG = logging.getLogger(__name__)


class Fetcher(Protocol):
    max_bytes: int

    async def fetch(self, url: str) -> FetchedImage: ...


@dataclass(frozen=True)
class IngestResult:
    image_id: str
    created: bool


class IngestCoordinator:
    def __init__(
        self,
        *,
        blobs: BlobStore,
        records: ImageRecordStore,
        fetcher: Optional[Fetcher] = None,
    ) -> None:
        self._blobs = blobs
        self._records = records
        self._fetcher = fetcher or RemoteFetcher()

    async def ingest(self, source_url: str) -> IngestResult:
        url = validate_source_url(source_url)

        existing = await self._lookup_existing(url)
        if existing is not None:
            telemetry.increment_counter("ingest_total", outcome="duplicate")
            LOG.info("ingest.coordinator action=duplicate image_id=%s", existing)
            return IngestResult(image_id=existing, created=False)

        fetched = await self._fetcher.fetch(url)
        content_type = check_content_type(fetched.content_type)
        check_size(len(fetched.body), self._fetcher.max_bytes)

        image_id = str(uuid.uuid4())
        try:
            await self._blobs.put(image_id, fetched.body, content_type)
        except Exception as exc:
            telemetry.increment_counter("ingest_total", outcome="blob_write_failed")
            LOG.error(
                "ingest.coordinator action=blob_write_failed image_id=%s error_type=%s",
                image_id,
                exc.__class__.__name__,
            )
            raise StoreUnavailable("Storage unavailable") from exc

        try:
            await self._records.insert(image_id, url)
        except DuplicateSourceUrlError:
            await self._compensate(image_id)
            winner = await self._lookup_existing(url)
            if winner is None:
                telemetry.increment_counter("ingest_total", outcome="insert_failed")
                raise StoreUnavailable("Database unavailable")
            telemetry.increment_counter("ingest_total", outcome="duplicate")
            LOG.info("ingest.coordinator action=duplicate_race image_id=%s", winner)
            return IngestResult(image_id=winner, created=False)
        except Exception as exc:
            LOG.error(
                "ingest.coordinator action=insert_failed image_id=%s error_type=%s",
                image_id,
                exc.__class__.__name__,
            )
            await self._compensate(image_id)
            telemetry.increment_counter("ingest_total", outcome="insert_failed")
            raise StoreUnavailable("Database unavailable") from exc

        telemetry.increment_counter("ingest_total", outcome="created")
        LOG.info(
            "ingest.coordinator action=created image_id=%s content_type=%s size=%s",
            image_id,
            content_type,
            len(fetched.body),
        )
        return IngestResult(image_id=image_id, created=True)

    async def _lookup_existing(self, url: str) -> Optional[str]:
        try:
            record = await self._records.find_by_source_url(url)
        except Exception as exc:
            LOG.error(
                "ingest.coordinator action=lookup_failed error_type=%s", exc.__class__.__name__
            )
            raise StoreUnavailable("Database unavailable") from exc
        return record.id if record is not None else None

    async def _compensate(self, image_id: str) -> None:
        try:
            await self._blobs.delete(image_id)
        except Exception as exc:
            telemetry.increment_counter("ingest_compensation_failures_total")
            LOG.error(
                "ingest.coordinator action=compensation_failed image_id=%s error_type=%s",
                image_id,
                exc.__class__.__name__,
            )
            return
        LOG.warning("ingest.coordinator action=compensated image_id=%s", image_id)


__all__ = ["Fetcher", "IngestCoordinator", "IngestResult"]
