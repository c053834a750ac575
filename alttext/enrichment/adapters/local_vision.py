"""
Local vision adapter using a simple Ollama client call.

Intent:
    Turn stored image bytes into a one-sentence alt-text description:
      - Forward the image base64-encoded via the client's `images` parameter.
      - Classify timeouts and unreachable hosts as InferenceTransientError.
      - Classify unsupported content types as InferencePermanentError.

Notes:
    - We import `ollama` lazily inside the call so test monkeypatching works.
    - The blocking client runs in the default executor; `asyncio.wait_for`
      bounds the whole call by the configured vision timeout.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Optional

from alttext.enrichment.config import AIConfig, load_ai_config
from alttext.enrichment.ports import (
    SYSTEM_PROMPT,
    USER_PROMPT,
    InferencePermanentError,
    InferenceTransientError,
)
from alttext.storage.config import ALLOWED_CONTENT_TYPES

LOG = logging.getLogger(__name__)


def _response_text(response: object) -> str:
    if isinstance(response, dict):
        raw = response.get("response", "")
    else:
        raw = getattr(response, "response", "")
    text = str(raw or "").strip()
    if text.startswith("```") and text.endswith("```"):
        lines = text.splitlines()
        if len(lines) >= 3 and lines[-1].strip() == "```":
            text = "\n".join(lines[1:-1]).strip()
    return text


def _call_model(*, model: str, base_url: str, image_b64: str) -> str:
    """Invoke the Ollama vision model with a single image."""
    try:
        import ollama  # type: ignore
    except Exception as exc:  # pragma: no cover - depends on environment
        raise InferenceTransientError(f"ollama client unavailable: {exc}")

    try:
        client = ollama.Client(base_url)
        response = client.generate(
            model=model,
            prompt=USER_PROMPT,
            system=SYSTEM_PROMPT,
            images=[image_b64],
            options={"temperature": 0},
        )
    except TimeoutError as exc:
        raise InferenceTransientError(str(exc) or "timeout")
    except ConnectionError as exc:
        raise InferenceTransientError(str(exc) or "connection_error")
    except Exception as exc:
        # ollama.ResponseError carries an HTTP status; 4xx means the request
        # itself is wrong (unknown model, unreadable image).
        status = getattr(exc, "status_code", None)
        if isinstance(status, int) and 400 <= status < 500:
            raise InferencePermanentError(str(exc))
        raise InferenceTransientError(str(exc))
    return _response_text(response)


class _LocalVisionAdapter:
    """Vision adapter backed by a local Ollama instance."""

    def __init__(self, config: Optional[AIConfig] = None) -> None:
        cfg = config or load_ai_config()
        self._model = cfg.vision_model
        self._base_url = cfg.ollama_base_url
        self._timeout = cfg.timeout_vision_seconds

    async def describe(self, *, image_bytes: bytes, content_type: str) -> str:
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise InferencePermanentError(f"unsupported content type: {content_type}")
        if not image_bytes:
            raise InferencePermanentError("empty image")
        image_b64 = base64.b64encode(image_bytes).decode("ascii")
        loop = asyncio.get_running_loop()
        call = loop.run_in_executor(
            None,
            lambda: _call_model(model=self._model, base_url=self._base_url, image_b64=image_b64),
        )
        try:
            text = await asyncio.wait_for(call, timeout=self._timeout)
        except asyncio.TimeoutError:
            LOG.warning(
                "enrichment.vision action=timeout model=%s timeout_s=%s", self._model, self._timeout
            )
            raise InferenceTransientError("timeout")
        if not text:
            raise InferenceTransientError("empty response from local vision")
        LOG.debug("enrichment.vision action=described model=%s chars=%s", self._model, len(text))
        return text


def build() -> _LocalVisionAdapter:
    """Factory used by the wiring to construct the adapter instance."""
    return _LocalVisionAdapter()
