"""
Remote fetch of source images for ingest.

Behavior:
    - httpx AsyncClient, no redirects (a 3xx is an upstream failure), bounded
      by a hard overall timeout.
    - The body is streamed and abandoned as soon as it exceeds the size cap.
    - Content type is checked from the response headers before the body is
      read, so disallowed types cost no download.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from alttext.errors import UpstreamFetchFailed, ValidationFailed
from alttext.storage.config import (
    ALLOWED_CONTENT_TYPES,
    get_ingest_fetch_timeout,
    get_max_image_bytes,
    normalize_content_type,
)

LOG = logging.getLogger(__name__)

USER_AGENT = "alttext-ingest/1.0"


@dataclass(frozen=True)
class FetchedImage:
    body: bytes
    content_type: str


def check_content_type(raw: str | None) -> str:
    content_type = normalize_content_type(raw)
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationFailed(
            f"Unsupported content type: {content_type or 'unknown'}",
            code="unsupported_media_type",
        )
    return content_type


def check_size(size: int, max_bytes: int) -> None:
    if size > max_bytes:
        raise ValidationFailed(
            f"Image exceeds {max_bytes // (1024 * 1024)} MB limit",
            code="payload_too_large",
        )


class RemoteFetcher:
    """Download a source URL under the ingest limits."""

    def __init__(
        self,
        *,
        timeout: Optional[float] = None,
        max_bytes: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout if timeout is not None else get_ingest_fetch_timeout()
        self._max_bytes = max_bytes if max_bytes is not None else get_max_image_bytes()
        self._transport = transport

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    async def fetch(self, url: str) -> FetchedImage:
        try:
            return await asyncio.wait_for(self._fetch(url), timeout=self._timeout)
        except asyncio.TimeoutError:
            LOG.warning("ingest.fetch action=timeout timeout_s=%s", self._timeout)
            raise UpstreamFetchFailed("Timed out fetching source image", code="upstream_timeout")
        except httpx.TimeoutException:
            LOG.warning("ingest.fetch action=timeout timeout_s=%s", self._timeout)
            raise UpstreamFetchFailed("Timed out fetching source image", code="upstream_timeout")
        except (httpx.InvalidURL, UnicodeError) as exc:
            # Normally caught by validate_source_url before any fetch.
            LOG.warning("ingest.fetch action=invalid_url error_type=%s", exc.__class__.__name__)
            raise ValidationFailed("Valid http(s) URL required", code="invalid_url") from exc
        except httpx.HTTPError as exc:
            LOG.warning("ingest.fetch action=failed error_type=%s", exc.__class__.__name__)
            raise UpstreamFetchFailed("Failed to fetch source image") from exc

    async def _fetch(self, url: str) -> FetchedImage:
        headers = {"User-Agent": USER_AGENT}
        async with httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=False,
            transport=self._transport,
        ) as client:
            async with client.stream("GET", url, headers=headers) as resp:
                code = resp.status_code
                if code < 200 or code >= 300:
                    LOG.info("ingest.fetch action=upstream_status status=%s", code)
                    raise UpstreamFetchFailed(
                        f"Upstream returned HTTP {code}", code="upstream_fetch_failed"
                    )
                content_type = check_content_type(resp.headers.get("content-type"))
                declared = resp.headers.get("content-length")
                if declared and declared.isdigit():
                    check_size(int(declared), self._max_bytes)
                data = bytearray()
                async for chunk in resp.aiter_bytes():
                    if not chunk:
                        continue
                    data.extend(chunk)
                    check_size(len(data), self._max_bytes)
        return FetchedImage(body=bytes(data), content_type=content_type)


__all__ = ["USER_AGENT", "FetchedImage", "RemoteFetcher", "check_content_type", "check_size"]
