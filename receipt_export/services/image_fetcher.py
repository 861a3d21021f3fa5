# receipt_export/services/image_fetcher.py
"""Best-effort receipt image downloads from the image service.

Every failure (missing id, HTTP error status, timeout, transport error) comes
back as ``ImageAbsent``; nothing raises past ``fetch``.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import httpx

from receipt_export.utils.logging import logger
from receipt_export.utils.metrics import IMAGE_FETCHES

DEFAULT_CONTENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class ImagePresent:
    content: bytes
    content_type: str = DEFAULT_CONTENT_TYPE


@dataclass(frozen=True)
class ImageAbsent:
    reason: str = ""


ImageFetchResult = Union[ImagePresent, ImageAbsent]


class ImageFetcher:
    """Download receipt images by id.

    ``timeout_seconds`` bounds each download end to end, body included, not
    just the gap between network reads.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        max_concurrency: int = 8,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_concurrency = max(1, max_concurrency)
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=float(self.timeout_seconds), transport=self.transport)

    def image_url(self, image_id: str) -> str:
        return f"{self.base_url}/image/{image_id}"

    async def fetch(
        self,
        image_id: Optional[str],
        record_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> ImageFetchResult:
        """Fetch one image. Returns ``ImageAbsent`` on any failure."""
        if not image_id:
            IMAGE_FETCHES.labels(outcome="missing_id").inc()
            return ImageAbsent("missing image id")

        if client is None:
            async with self._client() as own_client:
                return await self._fetch(own_client, image_id, record_id)
        return await self._fetch(client, image_id, record_id)

    async def _fetch(self, client: httpx.AsyncClient, image_id: str, record_id: Optional[str]) -> ImageFetchResult:
        log_extra = {"record_id": record_id, "image_id": image_id}
        try:
            response = await asyncio.wait_for(
                client.get(self.image_url(image_id)), self.timeout_seconds
            )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            IMAGE_FETCHES.labels(outcome="timeout").inc()
            logger.warning(
                f"Image download timed out after {self.timeout_seconds}s",
                extra=log_extra,
            )
            return ImageAbsent("timeout")
        except httpx.HTTPError as e:
            IMAGE_FETCHES.labels(outcome="error").inc()
            logger.warning(f"Failed to download image {image_id}: {e}", extra=log_extra)
            return ImageAbsent(str(e) or e.__class__.__name__)
        except Exception as e:
            IMAGE_FETCHES.labels(outcome="error").inc()
            logger.exception(f"Unexpected error downloading image {image_id}", extra=log_extra)
            return ImageAbsent(str(e) or e.__class__.__name__)

        if response.status_code != 200:
            IMAGE_FETCHES.labels(outcome="http_status").inc()
            logger.warning(
                f"Image service returned {response.status_code} for image {image_id}",
                extra=log_extra,
            )
            return ImageAbsent(f"status {response.status_code}")

        if not response.content:
            IMAGE_FETCHES.labels(outcome="error").inc()
            logger.warning(f"Image service returned an empty body for image {image_id}", extra=log_extra)
            return ImageAbsent("empty body")

        IMAGE_FETCHES.labels(outcome="present").inc()
        content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        return ImagePresent(content=response.content, content_type=content_type)

    async def fetch_many(
        self,
        image_ids: Sequence[Optional[str]],
        record_ids: Optional[Sequence[Optional[str]]] = None,
    ) -> List[ImageFetchResult]:
        """Fetch several images concurrently.

        The result list is index-aligned with ``image_ids``; ``None`` entries
        become ``ImageAbsent`` without touching the network.
        """
        if record_ids is None:
            record_ids = [None] * len(image_ids)
        if not any(image_ids):
            return [ImageAbsent("no image id") for _ in image_ids]

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async with self._client() as client:
            async def bounded(image_id: Optional[str], record_id: Optional[str]) -> ImageFetchResult:
                if not image_id:
                    return ImageAbsent("no image id")
                async with semaphore:
                    return await self.fetch(image_id, record_id=record_id, client=client)

            return list(await asyncio.gather(
                *(bounded(image_id, record_id) for image_id, record_id in zip(image_ids, record_ids))
            ))
