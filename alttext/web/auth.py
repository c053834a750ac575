"""
Bearer token check for the administrative endpoints.

Security:
    - The expected token comes from ADMIN_TOKEN at request time so tests and
      rotations do not need a restart.
    - A missing ADMIN_TOKEN is a server misconfiguration (500), never an open
      door.
    - Comparison is constant-time.
"""
from __future__ import annotations

import hmac
import logging
import os
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("alttext.web")

_REALM = 'Bearer realm="alttext"'


def _error(code: str, detail: str, *, status_code: int, headers: dict | None = None) -> JSONResponse:
    merged = {"Cache-Control": "private, no-store"}
    merged.update(headers or {})
    return JSONResponse({"error": code, "detail": detail}, status_code=status_code, headers=merged)


def _bearer_token(request: Request) -> str:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def require_admin(request: Request) -> Optional[JSONResponse]:
    """Return an error response when the caller is not the admin, else None."""
    expected = (os.getenv("ADMIN_TOKEN") or "").strip()
    if not expected:
        logger.error("auth action=misconfigured reason=admin_token_unset path=%s", request.url.path)
        return _error("server_misconfigured", "ADMIN_TOKEN is not configured", status_code=500)
    supplied = _bearer_token(request)
    if not supplied or not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        logger.info("auth action=denied path=%s", request.url.path)
        return _error(
            "unauthorized",
            "Valid bearer token required",
            status_code=401,
            headers={"WWW-Authenticate": _REALM},
        )
    return None


__all__ = ["require_admin"]
