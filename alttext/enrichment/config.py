"""
Enrichment configuration: inference adapter selection and funnel timings.

Intent:
    Provide a single place to read environment variables that control adapter
    selection (DI), the vision model, timeouts, the Ollama URL, the dedup lock
    TTL and the freshness directives the funnel emits.

Why:
    Centralising configuration makes validation and defaults explicit and
    lets tests exercise config behaviour without booting the web app.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
from urllib.parse import urlparse
import re


@dataclass(frozen=True)
class AIConfig:
    backend: str  # "stub" | "local"
    vision_adapter_path: str
    vision_model: str
    timeout_vision_seconds: int
    ollama_base_url: str


@dataclass(frozen=True)
class FunnelConfig:
    lock_ttl_seconds: int = 300
    inference_timeout_seconds: float = 60
    cache_max_age: int = 3600
    cache_pending_age: int = 60
    stale_while_revalidate: int = 300
    cache_capacity: int = 1024

    @property
    def described_directive(self) -> str:
        return f"public, max-age={self.cache_max_age}"

    @property
    def pending_directive(self) -> str:
        return (
            f"public, max-age={self.cache_pending_age}, "
            f"stale-while-revalidate={self.stale_while_revalidate}"
        )


def _int_env(name: str, default: int, *, low: int = 1, high: int = 300) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}")
    if value < low or value > high:
        raise ValueError(f"{name} out of range ({low}..{high}), got: {value}")
    return value


_HOST_RE = re.compile(r"^[a-z0-9._-]+$")


def _validate_ollama_url(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"}:
        raise ValueError("OLLAMA_BASE_URL must start with http:// or https://")
    host = (parsed.hostname or "").lower()
    # Allow typical local/service forms: localhost, loopback, docker service names
    if host in {"localhost"} or host.startswith("127.") or host.startswith("::1"):
        return
    if "." not in host and _HOST_RE.match(host):
        return
    raise ValueError("OLLAMA_BASE_URL must point to localhost or a valid service hostname without dots")


def is_prod_like() -> bool:
    env = (os.getenv("ALTTEXT_ENV") or "dev").lower()
    return env in {"prod", "production", "stage", "staging"}


def load_ai_config() -> AIConfig:
    """
    Parse and validate inference configuration from environment variables.

    Behavior:
        - `AI_BACKEND` selects DI alias: "stub" or "local" (default: stub).
        - An explicit `AI_VISION_ADAPTER` module path takes precedence.
        - Validates the timeout (1..300 seconds) and Ollama base URL shape.
    """
    backend = (os.getenv("AI_BACKEND") or "stub").strip().lower()
    if backend not in {"stub", "local"}:
        raise ValueError("AI_BACKEND must be 'stub' or 'local'")
    if backend == "stub" and is_prod_like():
        raise ValueError("AI_BACKEND=stub is not allowed in production/staging environments.")

    default_vision = (
        "alttext.enrichment.adapters.local_vision"
        if backend == "local"
        else "alttext.enrichment.adapters.stub_vision"
    )
    vision_adapter = os.getenv("AI_VISION_ADAPTER", default_vision)

    vision_model = os.getenv("AI_VISION_MODEL", "llama3.2-vision")
    timeout_vision = _int_env("AI_TIMEOUT_VISION", 30)

    ollama_url = os.getenv("OLLAMA_BASE_URL", "http://ollama:11434")
    _validate_ollama_url(ollama_url)

    return AIConfig(
        backend=backend,
        vision_adapter_path=vision_adapter,
        vision_model=vision_model,
        timeout_vision_seconds=timeout_vision,
        ollama_base_url=ollama_url,
    )


def load_funnel_config() -> FunnelConfig:
    """Read lock TTL, inference timeout, freshness directives and cache capacity from the environment."""
    return FunnelConfig(
        lock_ttl_seconds=_int_env("ENRICHMENT_LOCK_TTL", 300, high=86400),
        inference_timeout_seconds=_int_env("ENRICHMENT_INFERENCE_TIMEOUT", 60),
        cache_max_age=_int_env("CACHE_MAX_AGE", 3600, high=31536000),
        cache_pending_age=_int_env("CACHE_PENDING_AGE", 60, high=3600),
        stale_while_revalidate=_int_env("CACHE_STALE_WHILE_REVALIDATE", 300, low=0, high=86400),
        cache_capacity=_int_env("RESPONSE_CACHE_CAPACITY", 1024, high=1_000_000),
    )


__all__ = ["AIConfig", "FunnelConfig", "is_prod_like", "load_ai_config", "load_funnel_config"]
