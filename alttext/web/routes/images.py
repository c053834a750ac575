"""Image endpoints: lazy read, URL ingest and description override."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from alttext.images.records import is_image_id, normalize_image_id
from alttext.web.auth import require_admin

images_router = APIRouter(tags=["Images"])
logger = logging.getLogger("alttext.web")

ROUTES = [
    "GET /images/:uuid",
    "PUT /images/:uuid/description",
    "POST /upload",
    "GET /audit",
]


def _services(request: Request):
    return request.app.state.services


def _json(body: dict, *, status_code: int) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def route_not_found() -> JSONResponse:
    return JSONResponse({"error": "not_found", "detail": "Not found", "routes": ROUTES}, status_code=404)


async def _json_body(request: Request):
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


@images_router.get("/images/{image_id}")
async def read_image(request: Request, image_id: str):
    """
    Serve image bytes with the alt-text in `X-Alt-Text`.

    Behavior:
        - Cached responses are returned verbatim.
        - Pending images are served immediately with a placeholder and a short
          freshness directive; the description is generated in the background.
    """
    if not is_image_id(image_id):
        return route_not_found()
    cached = await _services(request).funnel.serve(image_id)
    return Response(content=cached.body, status_code=cached.status, headers=dict(cached.headers))


@images_router.post("/upload")
async def upload_image(request: Request):
    """
    Register a remote image by URL.

    Permissions:
        Bearer ADMIN_TOKEN.

    Returns:
        201 with the new id, or 200 with the existing id when the URL was
        ingested before.
    """
    error = require_admin(request)
    if error:
        return error
    body = await _json_body(request)
    if body is None:
        return _json(
            {"error": "invalid_json", "detail": 'Invalid JSON, expected: {"url":"https://..."}'},
            status_code=400,
        )
    source_url = str(body.get("url") or "").strip()
    result = await _services(request).ingest.ingest(source_url)
    if result.created:
        message = "Image uploaded - alt-text will generate on first access"
        status_code = 201
    else:
        message = "Already uploaded"
        status_code = 200
    return _json(
        {"imageId": result.image_id, "url": f"/images/{result.image_id}", "message": message},
        status_code=status_code,
    )


@images_router.put("/images/{image_id}/description")
async def set_description(request: Request, image_id: str):
    """
    Replace the alt-text of an image with human-supplied text.

    The text goes through the same sanitizer as generated descriptions.
    Cached responses keep the old text until they expire.
    """
    error = require_admin(request)
    if error:
        return error
    if not is_image_id(image_id):
        return _json({"error": "invalid_id", "detail": "Invalid id"}, status_code=400)
    body = await _json_body(request)
    if body is None or not isinstance(body.get("description"), str):
        return _json(
            {"error": "invalid_json", "detail": 'Invalid JSON, expected: {"description":"..."}'},
            status_code=400,
        )
    image_id = normalize_image_id(image_id)
    clean = await _services(request).funnel.set_description(image_id, body["description"])
    return _json({"imageId": image_id, "alt_text": clean}, status_code=200)
