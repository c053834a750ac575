"""Audit endpoint: paginated inventory of image records."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from alttext.errors import StoreUnavailable
from alttext.images.records import is_image_id, normalize_image_id
from alttext.web.auth import require_admin

audit_router = APIRouter(tags=["Audit"])
logger = logging.getLogger("alttext.web")

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


def _private_response(body: dict, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _clamp_pagination(limit_raw: str | None, page_raw: str | None) -> tuple[int, int]:
    try:
        limit = int(limit_raw) if limit_raw else DEFAULT_LIMIT
    except ValueError:
        limit = DEFAULT_LIMIT
    try:
        page = int(page_raw) if page_raw else 1
    except ValueError:
        page = 1
    return max(1, min(limit, MAX_LIMIT)), max(page, 1)


@audit_router.get("/audit")
async def audit(request: Request):
    """
    List image records newest first, or look up a single record by `id`.

    Permissions:
        Bearer ADMIN_TOKEN.
    """
    error = require_admin(request)
    if error:
        return error
    records = request.app.state.services.records
    params = request.query_params

    image_id = params.get("id")
    if image_id:
        if not is_image_id(image_id):
            return _private_response({"error": "invalid_id", "detail": "Invalid id"}, status_code=400)
        try:
            row = await records.find_by_id(normalize_image_id(image_id))
        except Exception as exc:
            logger.error("audit action=lookup_failed error_type=%s", exc.__class__.__name__)
            raise StoreUnavailable("Database unavailable") from exc
        data = [row.to_public_dict()] if row else []
        return _private_response(
            {"total": len(data), "page": 1, "limit": 1, "count": len(data), "data": data}
        )

    limit, page = _clamp_pagination(params.get("limit"), params.get("page"))
    try:
        rows, total = await asyncio.gather(
            records.list_page(limit=limit, offset=(page - 1) * limit),
            records.count(),
        )
    except Exception as exc:
        logger.error("audit action=query_failed error_type=%s", exc.__class__.__name__)
        raise StoreUnavailable("Database unavailable") from exc
    return _private_response(
        {
            "total": total,
            "page": page,
            "limit": limit,
            "count": len(rows),
            "data": [row.to_public_dict() for row in rows],
        }
    )
