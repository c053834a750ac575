"""
Image record model and the metadata store port.

Design:
    - `description is None` is the only signal for "enrichment not yet
      completed". There is no separate status column.
    - `source_url` uniqueness is enforced by the store itself. Application
      code may look up a URL first, but only the store constraint is a
      guarantee; stores raise `DuplicateSourceUrlError` on violation.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol


UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_image_id(value: str | None) -> bool:
    return bool(value) and bool(UUID_RE.match(value or ""))


def normalize_image_id(value: str) -> str:
    """Image ids are case-insensitive; stores always see lower case."""
    return (value or "").strip().lower()


@dataclass(frozen=True)
class ImageRecord:
    id: str
    source_url: Optional[str]
    description: Optional[str]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.description is None or self.description == ""

    def to_public_dict(self) -> dict:
        """JSON-friendly projection used by the audit listing."""
        return {
            "id": self.id,
            "source_url": self.source_url,
            "alt_text": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class MetadataStoreError(Exception):
    """Base class for metadata store failures."""


class DuplicateSourceUrlError(MetadataStoreError):
    """Insert rejected by the unique constraint on source_url."""


class ImageRecordStore(Protocol):
    """Metadata store for image records."""

    async def find_by_id(self, image_id: str) -> Optional[ImageRecord]: ...

    async def find_by_source_url(self, source_url: str) -> Optional[ImageRecord]: ...

    async def insert(self, image_id: str, source_url: Optional[str]) -> None: ...

    async def upsert_description(self, image_id: str, description: str) -> None: ...

    async def list_page(self, *, limit: int, offset: int) -> List[ImageRecord]: ...

    async def count(self) -> int: ...


__all__ = [
    "UUID_RE",
    "is_image_id",
    "normalize_image_id",
    "ImageRecord",
    "MetadataStoreError",
    "DuplicateSourceUrlError",
    "ImageRecordStore",
]
