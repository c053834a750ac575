"""
Best-effort per-client rate limiting on the API paths.

Counters live in the ephemeral store under `rl:{ip}:{minute}` and expire after
`RATE_LIMIT_TTL` seconds. The read-increment-write is not atomic, so bursts
can slightly exceed the limit. Store failures fail open.
"""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional

from alttext.storage.ports import EphemeralStore

logger = logging.getLogger("alttext.web")

RETRY_AFTER_SECONDS = 60
_API_PREFIXES = ("/images/",)
_API_PATHS = {"/upload", "/audit"}


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int = 10
    ttl_seconds: int = 75


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(raw) if raw else default
    except ValueError:
        return default
    return value if value > 0 else default


def load_rate_limit_config() -> RateLimitConfig:
    return RateLimitConfig(
        max_requests=_int_env("RATE_LIMIT_MAX", 10),
        ttl_seconds=_int_env("RATE_LIMIT_TTL", 75),
    )


def is_rate_limited_path(path: str) -> bool:
    return path.startswith(_API_PREFIXES) or path in _API_PATHS


def window_key(client_ip: str, now: float) -> str:
    return f"rl:{client_ip}:{int(now // 60)}"


async def allow_request(
    store: EphemeralStore,
    client_ip: str,
    *,
    config: RateLimitConfig,
    clock: Optional[Callable[[], float]] = None,
) -> bool:
    """Count one request for `client_ip`; return False once the window is exhausted."""
    key = window_key(client_ip, (clock or time.time)())
    try:
        raw = await store.get(key)
        count = int(raw) if raw and raw.isdigit() else 0
        if count >= config.max_requests:
            return False
        await store.put(key, str(count + 1), config.ttl_seconds)
    except Exception as exc:
        logger.warning("rate_limit action=store_failed error_type=%s", exc.__class__.__name__)
    return True


__all__ = [
    "RETRY_AFTER_SECONDS",
    "RateLimitConfig",
    "allow_request",
    "is_rate_limited_path",
    "load_rate_limit_config",
    "window_key",
]
