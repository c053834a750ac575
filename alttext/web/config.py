"""
Configuration and startup security checks for the image host.

Why: An image host with an admin token and a metered inference backend must
not be deployed with development defaults. This module provides a single
guard that enforces minimal production safety constraints without burdening
local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os

_PLACEHOLDER_PREFIXES = ("CHANGE_ME", "DUMMY", "REPLACE_ME")


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _is_placeholder(value: str) -> bool:
    upper = (value or "").strip().upper()
    return not upper or upper.startswith(_PLACEHOLDER_PREFIXES)


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/staging only):
    - ADMIN_TOKEN must be set and not a placeholder.
    - AI_BACKEND must not be the stub adapter.
    - DATABASE_URL must be set and must not disable TLS.
    - Supabase storage (URL and service role key) must be configured.
    """

    env = os.getenv("ALTTEXT_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) Admin token for upload/audit/description endpoints
    if _is_placeholder(os.getenv("ADMIN_TOKEN", "")):
        raise SystemExit(
            "Refusing to start: ADMIN_TOKEN is unset or a placeholder in production."
        )

    # 2) AI backend safety: the stub adapter must never run in prod/stage.
    ai_backend = (os.getenv("AI_BACKEND") or "stub").strip().lower()
    if ai_backend == "stub":
        raise SystemExit(
            "Refusing to start: AI_BACKEND=stub is not allowed in production/staging. Configure a real adapter."
        )

    # 3) Postgres: required, and TLS must not be explicitly disabled
    dsn = os.getenv("DATABASE_URL", "")
    if not dsn.strip():
        raise SystemExit("Refusing to start: DATABASE_URL is required in production.")
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )

    # 4) Blob storage must be the real bucket, not the in-memory fallback
    url = (os.getenv("SUPABASE_URL") or "").strip()
    srole = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not url or _is_placeholder(srole):
        raise SystemExit(
            "Refusing to start: SUPABASE_URL/SUPABASE_SERVICE_ROLE_KEY are unset or placeholders in production."
        )
