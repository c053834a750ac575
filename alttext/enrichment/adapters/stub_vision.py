"""
Deterministic inference adapter for local development and tests.

Intent:
    Provide a minimal implementation that adheres to the funnel's
    `InferenceAdapterProtocol` without requiring external AI services.

Behavior:
    Returns a placeholder sentence naming the content type and byte size so
    the enrichment pipeline can be exercised end to end.
"""

from __future__ import annotations


class StubVisionAdapter:
    """Return a deterministic description."""

    async def describe(self, *, image_bytes: bytes, content_type: str) -> str:
        return f"An image ({content_type or 'unknown type'}, {len(image_bytes)} bytes)."


def build() -> StubVisionAdapter:
    """Factory used by the wiring to instantiate the adapter."""
    return StubVisionAdapter()
