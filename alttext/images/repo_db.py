"""Postgres-backed image record store."""

from __future__ import annotations

import asyncio
import os
from functools import partial
from typing import Any, List, Optional

from .records import DuplicateSourceUrlError, ImageRecord, MetadataStoreError

try:  # pragma: no cover -- optional dependency in some environments
    import psycopg
    from psycopg import errors as pg_errors
    from psycopg.rows import dict_row

    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover
    psycopg = None  # type: ignore
    pg_errors = None  # type: ignore
    dict_row = None  # type: ignore
    HAVE_PSYCOPG = False


_SELECT_COLUMNS = "id::text as id, source_url, description, created_at, updated_at"


def _dsn() -> str:
    """Resolve the Postgres DSN (IMAGES_DATABASE_URL wins over DATABASE_URL)."""
    for candidate in (os.getenv("IMAGES_DATABASE_URL"), os.getenv("DATABASE_URL")):
        if candidate:
            return candidate
    raise RuntimeError("Database DSN unavailable for image repo")


def _row_to_record(row: Optional[dict]) -> Optional[ImageRecord]:
    if not row:
        return None
    return ImageRecord(
        id=str(row["id"]),
        source_url=row.get("source_url"),
        description=row.get("description"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class DBImageRepo:
    """Persistence adapter for `public.images`.

    Queries run on psycopg's blocking client inside the default executor so
    the event loop stays free while a lookup is in flight.
    """

    def __init__(self, dsn: Optional[str] = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBImageRepo")
        self._dsn = dsn or _dsn()

    async def _run(self, func, *args: Any):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    # --- Sync implementations --------------------------------------------------

    def _fetch_one_sync(self, predicate: str, value: str) -> Optional[ImageRecord]:
        with psycopg.connect(self._dsn, row_factory=dict_row) as conn:  # type: ignore[arg-type]
            with conn.cursor() as cur:
                cur.execute(f"select {_SELECT_COLUMNS} from public.images where {predicate}", (value,))
                row = cur.fetchone()
        return _row_to_record(row)

    def _insert_sync(self, image_id: str, source_url: Optional[str]) -> None:
        try:
            with psycopg.connect(self._dsn, autocommit=True) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        insert into public.images (id, source_url, created_at)
                        values (%s::uuid, %s, now())
                        """,
                        (image_id, source_url),
                    )
        except pg_errors.UniqueViolation as exc:  # type: ignore[union-attr]
            constraint = getattr(getattr(exc, "diag", None), "constraint_name", "") or ""
            if "source_url" in constraint:
                raise DuplicateSourceUrlError(source_url or "") from exc
            raise MetadataStoreError("duplicate_id") from exc

    def _upsert_description_sync(self, image_id: str, description: str) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    insert into public.images (id, description, created_at, updated_at)
                    values (%s::uuid, %s, now(), now())
                    on conflict (id) do update
                       set description = excluded.description,
                           updated_at = excluded.updated_at
                    """,
                    (image_id, description),
                )

    def _list_page_sync(self, limit: int, offset: int) -> List[ImageRecord]:
        with psycopg.connect(self._dsn, row_factory=dict_row) as conn:  # type: ignore[arg-type]
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_SELECT_COLUMNS}
                      from public.images
                     order by created_at desc
                     limit %s offset %s
                    """,
                    (limit, offset),
                )
                rows = cur.fetchall()
        return [rec for rec in (_row_to_record(r) for r in rows) if rec is not None]

    def _count_sync(self) -> int:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("select count(*) from public.images")
                row = cur.fetchone()
        return int(row[0]) if row else 0

    # --- Port methods ------------------------------------------------------------

    async def find_by_id(self, image_id: str) -> Optional[ImageRecord]:
        return await self._run(self._fetch_one_sync, "id = %s::uuid", image_id)

    async def find_by_source_url(self, source_url: str) -> Optional[ImageRecord]:
        return await self._run(self._fetch_one_sync, "source_url = %s", source_url)

    async def insert(self, image_id: str, source_url: Optional[str]) -> None:
        await self._run(self._insert_sync, image_id, source_url)

    async def upsert_description(self, image_id: str, description: str) -> None:
        await self._run(self._upsert_description_sync, image_id, description)

    async def list_page(self, *, limit: int, offset: int) -> List[ImageRecord]:
        return await self._run(self._list_page_sync, limit, offset)

    async def count(self) -> int:
        return await self._run(self._count_sync)


__all__ = ["DBImageRepo"]
