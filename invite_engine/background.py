import asyncio
import logging
import random

import httpx

from .errors import InviteError, ServiceUnavailableError

logger = logging.getLogger(__name__)

REMOVE_BG_URL = "https://api.remove.bg/v1.0/removebg"


class BackgroundRemovalError(InviteError):
    status_code = 500
    public_message = "Background removal failed. Please try again."


class _RetryableError(Exception):
    """remove.bg answered 5xx; worth another attempt"""


# --- RETRY HELPER WITH EXPONENTIAL BACKOFF ---
async def retry_with_backoff(func, max_retries: int = 3, base_delay: float = 2.0):
    """
    Retry an async function on retryable failures with exponential backoff.
    Delays: 2s, 4s, 8s (with jitter)
    """
    for attempt in range(max_retries):
        try:
            return await func()
        except (_RetryableError, httpx.TransportError) as e:
            if attempt == max_retries - 1:
                logger.error(f"❌ All {max_retries} attempts failed: {e}")
                raise
            delay = base_delay * (2 ** attempt) + random.uniform(0, 1)
            logger.warning(f"⚠️ Attempt {attempt + 1} failed, retrying in {delay:.1f}s: {e}")
            await asyncio.sleep(delay)


class BackgroundRemover:
    """remove.bg client returning a transparent PNG"""

    def __init__(self, api_key: str, url: str = REMOVE_BG_URL, timeout: float = 30.0,
                 max_retries: int = 3, base_delay: float = 2.0, transport: httpx.AsyncBaseTransport = None):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def remove(self, image: bytes, mime_type: str = "image/png", request_id: str = "") -> bytes:
        if not self.enabled:
            raise ServiceUnavailableError("No REMOVE_BG_API_KEY set",
                                          public_message="Background removal is not available")

        async def _call_api() -> bytes:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.url,
                    headers={"X-Api-Key": self.api_key},
                    data={"size": "auto", "format": "png"},
                    files={"image_file": ("image", image, mime_type)},
                )
            if response.status_code == 200:
                return response.content
            if response.status_code >= 500:
                # Server error - worth retrying
                raise _RetryableError(f"Server error {response.status_code}: {response.text[:200]}")
            # Client error (4xx) - don't retry
            raise BackgroundRemovalError(f"remove.bg error {response.status_code}: {response.text[:200]}")

        logger.info(f"🎨 [{request_id}] Removing background ({len(image) / 1024:.1f} KB)")
        try:
            result = await retry_with_backoff(_call_api, max_retries=self.max_retries, base_delay=self.base_delay)
        except (_RetryableError, httpx.TransportError) as e:
            raise BackgroundRemovalError(f"Background removal failed after retries: {e}") from e
        logger.info(f"✅ [{request_id}] Background removed ({len(result) / 1024:.1f} KB)")
        return result
