"""
Database-backed ephemeral key/value store (Postgres/Supabase).

Why: The in-memory store only deduplicates within one process. Persisting the
keys in Postgres lets every web instance see the same enrichment locks and
rate-limit counters.

Semantics:
- Expiry is evaluated on read (`expires_at > now()`); rows are never deleted by
  this store. A periodic `delete ... where expires_at < now()` is an operator
  concern.
- `get` and `put` are separate statements, so two instances may both observe
  a missing key. That is the accepted best-effort behaviour of the lock.

Note: This module uses psycopg3. It is imported only when DATABASE_URL is set.
"""
from __future__ import annotations

import asyncio
import os
import re
from functools import partial
from typing import Optional

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False


class DBEphemeralStore:
    """Postgres-backed key/value store with per-key expiry.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string.
    table:
        Fully qualified table name. Defaults to `public.ephemeral_keys`.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.ephemeral_keys") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBEphemeralStore")
        self._dsn = dsn or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBEphemeralStore")
        if not re.match(r'^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$', table or ''):
            raise ValueError("Invalid table name")
        self._table = table

    def _schema_and_name(self) -> tuple[str, str]:
        if "." in self._table:
            schema, name = self._table.split(".", 1)
        else:
            schema, name = "public", self._table
        return schema, name

    def _get_sync(self, key: str) -> Optional[str]:
        from psycopg import sql as _sql

        schema, name = self._schema_and_name()
        stmt = _sql.SQL("select value from {}.{} where key = %s and expires_at > now()").format(
            _sql.Identifier(schema), _sql.Identifier(name)
        )
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (key,))
                row = cur.fetchone()
        return str(row[0]) if row else None

    def _put_sync(self, key: str, value: str, ttl_seconds: int) -> None:
        from psycopg import sql as _sql

        schema, name = self._schema_and_name()
        stmt = _sql.SQL(
            "insert into {}.{} (key, value, expires_at) "
            "values (%s, %s, now() + make_interval(secs => %s)) "
            "on conflict (key) do update set value = excluded.value, expires_at = excluded.expires_at"
        ).format(_sql.Identifier(schema), _sql.Identifier(name))
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (key, value, max(1, int(ttl_seconds))))

    async def get(self, key: str) -> Optional[str]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(self._get_sync, key))

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, partial(self._put_sync, key, value, ttl_seconds))


__all__ = ["DBEphemeralStore"]
