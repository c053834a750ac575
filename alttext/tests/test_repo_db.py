"""
Postgres adapters against a scripted psycopg stand-in.

Why:
    The ingest race handling depends on telling a source-URL constraint
    violation apart from other insert failures. These tests pin that mapping
    and the SQL shape without needing a live database.
"""
from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

pytest.importorskip("psycopg")

from psycopg import errors as pg_errors  # noqa: E402

from alttext.images import repo_db  # noqa: E402
from alttext.images.records import DuplicateSourceUrlError, MetadataStoreError  # noqa: E402
from alttext.storage import ephemeral_db  # noqa: E402

from utils.fake_psycopg import install_fake_psycopg  # noqa: E402

IMAGE_ID = "3f2b8c1e-9a4d-4e6f-8b7a-1c2d3e4f5a6b"
DSN = "postgresql://alttext:pw@localhost:5432/alttext"


def _unique_violation(constraint: str) -> Exception:
    class _UniqueViolation(pg_errors.UniqueViolation):
        diag = SimpleNamespace(constraint_name=constraint)

    return _UniqueViolation("duplicate key value violates unique constraint")


@pytest.mark.anyio
async def test_find_by_id_maps_row(monkeypatch: pytest.MonkeyPatch):
    db = install_fake_psycopg(monkeypatch, repo_db)
    created = datetime(2024, 5, 1, tzinfo=timezone.utc)
    db.queue(
        {
            "id": IMAGE_ID,
            "source_url": "https://example.com/a.jpg",
            "description": None,
            "created_at": created,
            "updated_at": None,
        }
    )
    repo = repo_db.DBImageRepo(DSN)

    record = await repo.find_by_id(IMAGE_ID)

    assert record.id == IMAGE_ID
    assert record.is_pending
    sql, params = db.statements[0]
    assert "id = %s::uuid" in sql
    assert params == (IMAGE_ID,)


@pytest.mark.anyio
async def test_find_by_source_url_absent(monkeypatch: pytest.MonkeyPatch):
    install_fake_psycopg(monkeypatch, repo_db)
    repo = repo_db.DBImageRepo(DSN)

    assert await repo.find_by_source_url("https://example.com/none.jpg") is None


@pytest.mark.anyio
async def test_insert_source_url_violation_is_duplicate(monkeypatch: pytest.MonkeyPatch):
    db = install_fake_psycopg(monkeypatch, repo_db)
    db.queue(_unique_violation("images_source_url_key"))
    repo = repo_db.DBImageRepo(DSN)

    with pytest.raises(DuplicateSourceUrlError):
        await repo.insert(IMAGE_ID, "https://example.com/a.jpg")


@pytest.mark.anyio
async def test_insert_primary_key_violation_is_generic_error(monkeypatch: pytest.MonkeyPatch):
    db = install_fake_psycopg(monkeypatch, repo_db)
    db.queue(_unique_violation("images_pkey"))
    repo = repo_db.DBImageRepo(DSN)

    with pytest.raises(MetadataStoreError) as excinfo:
        await repo.insert(IMAGE_ID, "https://example.com/a.jpg")
    assert not isinstance(excinfo.value, DuplicateSourceUrlError)


@pytest.mark.anyio
async def test_upsert_description_uses_on_conflict(monkeypatch: pytest.MonkeyPatch):
    db = install_fake_psycopg(monkeypatch, repo_db)
    repo = repo_db.DBImageRepo(DSN)

    await repo.upsert_description(IMAGE_ID, "A red bicycle.")

    sql, params = db.statements[0]
    assert "on conflict (id) do update" in sql
    assert params == (IMAGE_ID, "A red bicycle.")
    assert db.connect_kwargs[0].get("autocommit") is True


@pytest.mark.anyio
async def test_list_page_and_count(monkeypatch: pytest.MonkeyPatch):
    db = install_fake_psycopg(monkeypatch, repo_db)
    db.queue([{"id": IMAGE_ID, "source_url": None, "description": "x"}])
    db.queue((7,))
    repo = repo_db.DBImageRepo(DSN)

    rows = await repo.list_page(limit=10, offset=20)
    total = await repo.count()

    assert [r.id for r in rows] == [IMAGE_ID]
    assert db.statements[0][1] == (10, 20)
    assert "order by created_at desc" in db.statements[0][0]
    assert total == 7


@pytest.mark.anyio
async def test_ephemeral_store_get_and_put(monkeypatch: pytest.MonkeyPatch):
    db = install_fake_psycopg(monkeypatch, ephemeral_db)
    db.queue(None)
    db.queue(None)
    db.queue(("1",))
    store = ephemeral_db.DBEphemeralStore(DSN)

    assert await store.get("ai:x") is None
    await store.put("ai:x", "1", 0)
    assert await store.get("ai:x") == "1"

    assert "expires_at > now()" in db.statements[0][0]
    # TTL is clamped to at least one second.
    assert db.statements[1][1] == ("ai:x", "1", 1)


def test_ephemeral_store_rejects_bad_table_name():
    with pytest.raises(ValueError):
        ephemeral_db.DBEphemeralStore(DSN, table="public.keys; drop table x")
