"""
Ports for inference adapters: protocol, prompts and error taxonomy.

Intent:
    Provide framework-agnostic contracts between the enrichment funnel and
    concrete adapters (stub, local Ollama). Keeping these definitions in a
    dedicated module avoids circular imports and clarifies boundaries.

Notes:
    The funnel treats every adapter error the same way (log, leave the image
    pending). The transient/permanent split exists for observability.
"""

from __future__ import annotations

from typing import Protocol


SYSTEM_PROMPT = "You are an accessibility assistant. Describe images concisely for use as alt-text."
USER_PROMPT = "Describe this image in one concise sentence suitable for use as alt-text."


# ----------------------------- Protocols ------------------------------------


class InferenceAdapterProtocol(Protocol):
    """Inference adapter turns image bytes into a free-text description."""

    async def describe(self, *, image_bytes: bytes, content_type: str) -> str:
        ...


# ------------------------------ Errors --------------------------------------


class InferenceError(Exception):
    """Base class for inference adapter failures."""


class InferenceTransientError(InferenceError):
    """Recoverable failure (timeout, unreachable host); a later read retries."""


class InferencePermanentError(InferenceError):
    """Non-recoverable failure for this input (unsupported image, bad model)."""


__all__ = [
    "SYSTEM_PROMPT",
    "USER_PROMPT",
    "InferenceAdapterProtocol",
    "InferenceError",
    "InferenceTransientError",
    "InferencePermanentError",
]
