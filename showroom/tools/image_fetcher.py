"""Room image resolution for vision prompts.

Many retailer CDNs refuse hot-linking from the model provider, so an image
URL is resolved in tiers: the URL itself when it answers as an image,
otherwise the bytes fetched server-side with browser headers and inlined as
a data URL, otherwise nothing.
"""

import base64
from typing import Optional

import httpx
import structlog

logger = structlog.get_logger()

# Plain browser headers; the Sec-* family tends to trip anti-bot rules
BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
}

MAX_INLINE_BYTES = 10 * 1024 * 1024


def _media_type(response: httpx.Response) -> str:
    return response.headers.get("content-type", "").split(";")[0].strip().lower()


class ImageFetcher:
    """Resolves a user-supplied image URL into something the model can read."""

    def __init__(
        self,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the fetcher.

        Args:
            timeout: Per-request timeout in seconds
            transport: Optional transport override (tests use httpx.MockTransport)
        """
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport,
        )

    async def _probe(self, client: httpx.AsyncClient, url: str) -> bool:
        """True when the URL answers directly with an image content type."""
        try:
            response = await client.head(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("image_probe_failed", url=url, error=str(e))
            return False
        return response.status_code < 400 and _media_type(response).startswith("image/")

    async def _inline(self, client: httpx.AsyncClient, url: str) -> Optional[str]:
        """Download the image with browser headers and return a base64 data URL."""
        try:
            response = await client.get(url, headers=BROWSER_HEADERS)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("image_download_failed", url=url, error=str(e))
            return None

        if response.status_code >= 400:
            logger.warning("image_download_rejected", url=url, status=response.status_code)
            return None

        media_type = _media_type(response)
        if not media_type.startswith("image/"):
            logger.warning("image_download_not_image", url=url, content_type=media_type)
            return None

        content = response.content
        if not content or len(content) > MAX_INLINE_BYTES:
            logger.warning("image_download_bad_size", url=url, size=len(content))
            return None

        encoded = base64.b64encode(content).decode("ascii")
        return f"data:{media_type};base64,{encoded}"

    async def resolve(self, url: str) -> Optional[str]:
        """Resolve an image URL.

        Args:
            url: User-supplied image URL (a data URL passes straight through)

        Returns:
            The original URL, an inlined data URL, or None when the image is
            unreachable
        """
        if not url:
            return None
        if url.startswith("data:image/"):
            return url

        async with self._client() as client:
            if await self._probe(client, url):
                logger.debug("image_direct", url=url)
                return url

            inlined = await self._inline(client, url)

        if inlined:
            logger.info("image_inlined", url=url, size=len(inlined))
        else:
            logger.warning("image_unavailable", url=url)
        return inlined
