"""
Service wiring: build stores, adapters, the funnel and the ingest coordinator.

Why:
    Routes only see a `Services` bundle on `app.state`. Tests build the bundle
    from in-memory stores; deployments build it from the environment
    (Postgres via psycopg, Supabase Storage, an inference adapter selected by
    module path).

Behavior:
    - DATABASE_URL set -> Postgres record store and Postgres ephemeral store,
      otherwise in-memory (development only; the startup guard refuses this
      in production).
    - SUPABASE_URL + SUPABASE_SERVICE_ROLE_KEY set -> Supabase Storage,
      otherwise in-memory blobs.
    - The inference adapter module must expose `build()`.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from importlib import import_module
from typing import Any, Optional

from alttext.enrichment.background import BackgroundRunner
from alttext.enrichment.config import FunnelConfig, load_ai_config, load_funnel_config
from alttext.enrichment.funnel import EnrichmentFunnel
from alttext.enrichment.ports import InferenceAdapterProtocol
from alttext.enrichment.response_cache import InMemoryResponseCache, ResponseCache
from alttext.images.records import ImageRecordStore
from alttext.images.repo_memory import InMemoryImageRepo
from alttext.ingest.coordinator import Fetcher, IngestCoordinator
from alttext.storage.config import get_images_bucket
from alttext.storage.memory import InMemoryBlobStore, InMemoryEphemeralStore
from alttext.storage.ports import BlobStore, EphemeralStore

logger = logging.getLogger("alttext.web")


@dataclass
class Services:
    blobs: BlobStore
    records: ImageRecordStore
    ephemeral: EphemeralStore
    cache: ResponseCache
    inference: InferenceAdapterProtocol
    runner: BackgroundRunner = field(default_factory=BackgroundRunner)
    funnel_config: FunnelConfig = field(default_factory=FunnelConfig)
    fetcher: Optional[Fetcher] = None
    funnel: EnrichmentFunnel = field(init=False)
    ingest: IngestCoordinator = field(init=False)

    def __post_init__(self) -> None:
        self.funnel = EnrichmentFunnel(
            blobs=self.blobs,
            records=self.records,
            cache=self.cache,
            locks=self.ephemeral,
            inference=self.inference,
            runner=self.runner,
            config=self.funnel_config,
        )
        self.ingest = IngestCoordinator(
            blobs=self.blobs, records=self.records, fetcher=self.fetcher
        )


def build_inference_adapter(path: str) -> InferenceAdapterProtocol:
    """Import the adapter module by path and call its `build()` factory."""
    module = import_module(path)
    factory = getattr(module, "build", None)
    if not callable(factory):
        raise RuntimeError(f"Inference adapter module {path} has no build() factory")
    return factory()


def build_in_memory_services(
    *,
    inference: Optional[InferenceAdapterProtocol] = None,
    fetcher: Optional[Fetcher] = None,
    funnel_config: Optional[FunnelConfig] = None,
) -> Services:
    """Process-local services for development and tests."""
    cfg = funnel_config or FunnelConfig()
    if inference is None:
        inference = build_inference_adapter("alttext.enrichment.adapters.stub_vision")
    return Services(
        blobs=InMemoryBlobStore(),
        records=InMemoryImageRepo(),
        ephemeral=InMemoryEphemeralStore(),
        cache=InMemoryResponseCache(capacity=cfg.cache_capacity),
        inference=inference,
        funnel_config=cfg,
        fetcher=fetcher,
    )


def _supabase_client(url: str, key: str) -> Any:
    """Return a storage-capable client: supabase-py, or storage3 for non-JWT dev keys."""
    try:
        from supabase import create_client  # type: ignore

        return create_client(url, key)
    except Exception as exc:
        logger.warning(
            "Supabase client unavailable: %s: %s; falling back to storage3",
            exc.__class__.__name__,
            str(exc),
        )
    from storage3 import SyncStorageClient  # type: ignore

    storage_url = f"{url.rstrip('/')}/storage/v1"
    headers = {"Authorization": f"Bearer {key}", "apikey": key}
    return SyncStorageClient(storage_url, headers)


def _build_blob_store() -> BlobStore:
    url = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not url or not key:
        logger.info("Blob store wired: in-memory (SUPABASE_URL not configured)")
        return InMemoryBlobStore()
    from alttext.storage.supabase_blobs import SupabaseBlobStore

    bucket = get_images_bucket()
    store = SupabaseBlobStore(_supabase_client(url, key), bucket=bucket)
    logger.info("Blob store wired: Supabase bucket=%s", bucket)
    return store


def build_services_from_env() -> Services:
    ai_cfg = load_ai_config()
    funnel_cfg = load_funnel_config()

    dsn = (os.getenv("DATABASE_URL") or "").strip()
    records: ImageRecordStore
    ephemeral: EphemeralStore
    if dsn:
        from alttext.images.repo_db import DBImageRepo
        from alttext.storage.ephemeral_db import DBEphemeralStore

        records = DBImageRepo(dsn)
        ephemeral = DBEphemeralStore(dsn)
        logger.info("Record and ephemeral stores wired: Postgres")
    else:
        records = InMemoryImageRepo()
        ephemeral = InMemoryEphemeralStore()
        logger.info("Record and ephemeral stores wired: in-memory (DATABASE_URL not configured)")

    inference = build_inference_adapter(ai_cfg.vision_adapter_path)
    logger.info(
        "Inference adapter wired: backend=%s adapter=%s", ai_cfg.backend, ai_cfg.vision_adapter_path
    )
    return Services(
        blobs=_build_blob_store(),
        records=records,
        ephemeral=ephemeral,
        cache=InMemoryResponseCache(capacity=funnel_cfg.cache_capacity),
        inference=inference,
        funnel_config=funnel_cfg,
    )


__all__ = [
    "Services",
    "build_inference_adapter",
    "build_in_memory_services",
    "build_services_from_env",
]
