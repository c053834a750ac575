"""In-memory image record store for local development and tests."""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .records import DuplicateSourceUrlError, ImageRecord


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


class InMemoryImageRepo:
    """Dict-backed store that enforces the same constraints as the SQL table."""

    def __init__(self) -> None:
        self._rows: Dict[str, ImageRecord] = {}

    async def find_by_id(self, image_id: str) -> Optional[ImageRecord]:
        return self._rows.get(image_id)

    async def find_by_source_url(self, source_url: str) -> Optional[ImageRecord]:
        for row in self._rows.values():
            if row.source_url == source_url:
                return row
        return None

    async def insert(self, image_id: str, source_url: Optional[str]) -> None:
        if image_id in self._rows:
            raise ValueError(f"duplicate id: {image_id}")
        if source_url is not None and any(r.source_url == source_url for r in self._rows.values()):
            raise DuplicateSourceUrlError(source_url)
        self._rows[image_id] = ImageRecord(
            id=image_id,
            source_url=source_url,
            description=None,
            created_at=_now(),
            updated_at=None,
        )

    async def upsert_description(self, image_id: str, description: str) -> None:
        now = _now()
        existing = self._rows.get(image_id)
        if existing is None:
            self._rows[image_id] = ImageRecord(
                id=image_id, source_url=None, description=description, created_at=now, updated_at=now
            )
            return
        self._rows[image_id] = replace(existing, description=description, updated_at=now)

    async def list_page(self, *, limit: int, offset: int) -> List[ImageRecord]:
        # Insertion order breaks ties between identical timestamps.
        ordered = sorted(
            enumerate(self._rows.values()),
            key=lambda item: (item[1].created_at or datetime.min.replace(tzinfo=timezone.utc), item[0]),
            reverse=True,
        )
        return [row for _, row in ordered[offset : offset + limit]]

    async def count(self) -> int:
        return len(self._rows)


__all__ = ["InMemoryImageRepo"]
