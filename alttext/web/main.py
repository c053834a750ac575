"""
FastAPI application for the lazy alt-text image host.

Routes:
    GET  /health                      liveness probe
    GET  /images/{id}                 image bytes, alt-text in X-Alt-Text
    POST /upload                      ingest a remote image by URL (bearer)
    GET  /audit                       paginated record inventory (bearer)
    PUT  /images/{id}/description     human alt-text override (bearer)

Run with `uvicorn alttext.web.main:app`.
"""
from __future__ import annotations

import logging
import os
import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from alttext import __version__
from alttext.errors import (
    AltTextError,
    NotFound,
    StoreUnavailable,
    UpstreamFetchFailed,
    ValidationFailed,
)
from alttext.web.config import ensure_secure_config_on_startup
from alttext.web.rate_limit import (
    RETRY_AFTER_SECONDS,
    RateLimitConfig,
    allow_request,
    is_rate_limited_path,
    load_rate_limit_config,
)
from alttext.web.routes.audit import audit_router
from alttext.web.routes.images import images_router, route_not_found
from alttext.web.wiring import Services, build_services_from_env

logger = logging.getLogger("alttext.web")

EXPOSED_HEADERS = ["X-Alt-Text", "X-Image-Id", "Cache-Control"]


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via ALTTEXT_ENABLE_DOTENV (default true outside
      pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("ALTTEXT_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()


def _status_for(exc: AltTextError) -> int:
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, StoreUnavailable):
        return 503
    if isinstance(exc, UpstreamFetchFailed):
        return 502
    if isinstance(exc, ValidationFailed):
        if exc.code == "payload_too_large":
            return 413
        if exc.code == "unsupported_media_type":
            return 415
        return 400
    return 500


def _client_ip(request: Request) -> str:
    if (os.getenv("TRUST_PROXY_HEADERS", "false") or "").strip().lower() == "true":
        forwarded = request.headers.get("x-forwarded-for") or ""
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


def create_app(
    services: Optional[Services] = None,
    *,
    rate_limit: Optional[RateLimitConfig] = None,
) -> FastAPI:
    """Build the application. Tests pass their own `services`."""
    logging.basicConfig(level=(os.getenv("LOG_LEVEL") or "INFO").upper())
    ensure_secure_config_on_startup()
    services = services or build_services_from_env()
    limits = rate_limit or load_rate_limit_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Let in-flight enrichment finish before the process exits.
        await app.state.services.runner.drain()

    app = FastAPI(
        title="alttext",
        description="Image host with lazily generated alt-text",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.rate_limit = limits

    app.include_router(images_router)
    app.include_router(audit_router)

    @app.exception_handler(AltTextError)
    async def domain_error_handler(request: Request, exc: AltTextError):
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.warning(
                "request action=failed path=%s code=%s status=%s", request.url.path, exc.code, status_code
            )
        return JSONResponse(
            {"error": exc.code, "detail": exc.message},
            status_code=status_code,
            headers={"Cache-Control": "private, no-store"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return route_not_found()
        return JSONResponse(
            {"error": "http_error", "detail": exc.detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            "request action=unhandled path=%s error_type=%s",
            request.url.path,
            exc.__class__.__name__,
            exc_info=exc,
        )
        return JSONResponse(
            {"error": "internal_error", "detail": "Internal server error"},
            status_code=500,
            headers={"Cache-Control": "private, no-store"},
        )

    @app.middleware("http")
    async def rate_limiter(request: Request, call_next):
        if request.method != "OPTIONS" and is_rate_limited_path(request.url.path):
            allowed = await allow_request(
                app.state.services.ephemeral, _client_ip(request), config=app.state.rate_limit
            )
            if not allowed:
                logger.info("rate_limit action=rejected path=%s", request.url.path)
                return JSONResponse(
                    {"error": "rate_limited", "detail": "Too many requests, slow down"},
                    status_code=429,
                    headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
                )
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        expose_headers=EXPOSED_HEADERS,
    )

    @app.get("/health")
    async def health_check():
        # Minimal health endpoint used by orchestrators and tests.
        return JSONResponse(
            {"status": "ok", "ts": int(time.time() * 1000)},
            headers={"Cache-Control": "private, no-store"},
        )

    return app


app = create_app()
