"""Image download and inspection utilities.

This module fetches product images over HTTP and reads their pixel
dimensions. Both synchronous and async downloads are supported, with
configurable timeouts and retries for transient failures.
"""

from __future__ import annotations

import asyncio
import io
import time
from pathlib import Path

import httpx
from PIL import Image, UnidentifiedImageError

from labelsense.domain.errors import ImageDecodeError, ImageDownloadError
from labelsense.infrastructure.observability.logging import get_logger
from labelsense.infrastructure.observability.metrics import record_image_download

logger = get_logger(__name__)


class ImageDownloader:
    """Downloads image bytes from URLs.

    Transport errors and 5xx responses are retried with exponential backoff;
    4xx responses fail immediately. Every failure ends in
    :class:`ImageDownloadError`.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_base_seconds: float = 0.5,
        transport: httpx.BaseTransport | httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the image downloader.

        Args:
            timeout: HTTP request timeout in seconds.
            max_retries: Maximum number of attempts per URL.
            backoff_base_seconds: First retry delay, doubled on each retry.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_base_seconds = max(0.0, backoff_base_seconds)
        self.transport = transport

    def _backoff_delay(self, attempt: int) -> float:
        return self.backoff_base_seconds * (2**attempt)

    def _should_retry(self, exc: Exception, attempt: int) -> bool:
        if attempt >= self.max_retries - 1:
            return False
        if isinstance(exc, httpx.HTTPStatusError):
            return exc.response.status_code >= 500
        return isinstance(exc, httpx.TransportError)

    def _to_error(self, url: str, exc: Exception) -> ImageDownloadError:
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            return ImageDownloadError(url, f"HTTP {status}", status_code=status)
        return ImageDownloadError(url, str(exc) or exc.__class__.__name__)

    def _finish(self, url: str, content: bytes, started: float) -> bytes:
        duration = time.perf_counter() - started
        record_image_download("success", duration, len(content))
        logger.debug("Downloaded image %s (%d bytes)", url, len(content))
        return content

    def _fail(self, url: str, exc: Exception, attempts: int, started: float) -> ImageDownloadError:
        record_image_download("failed", time.perf_counter() - started)
        error = self._to_error(url, exc)
        logger.error("Failed to download image after %d attempt(s): %s", attempts, error)
        return error

    def fetch(self, url: str) -> bytes:
        """Download ``url`` and return its body.

        Raises:
            ImageDownloadError: On network, timeout or HTTP status failure.
        """
        started = time.perf_counter()
        for attempt in range(self.max_retries):
            try:
                with httpx.Client(
                    timeout=self.timeout, transport=self.transport, follow_redirects=True
                ) as client:
                    response = client.get(url)
                    response.raise_for_status()
                    return self._finish(url, response.content, started)
            except (httpx.HTTPStatusError, httpx.TransportError) as exc:
                if not self._should_retry(exc, attempt):
                    raise self._fail(url, exc, attempt + 1, started) from exc
                time.sleep(self._backoff_delay(attempt))
        raise ImageDownloadError(url, "Max retries exceeded")

    async def fetch_async(self, url: str) -> bytes:
        """Download ``url`` asynchronously and return its body.

        Raises:
            ImageDownloadError: On network, timeout or HTTP status failure.
        """
        started = time.perf_counter()
        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self.transport, follow_redirects=True
                ) as client:
                    response = await client.get(url)
                    response.raise_for_status()
                    return self._finish(url, response.content, started)
            except (httpx.HTTPStatusError, httpx.TransportError) as exc:
                if not self._should_retry(exc, attempt):
                    raise self._fail(url, exc, attempt + 1, started) from exc
                await asyncio.sleep(self._backoff_delay(attempt))
        raise ImageDownloadError(url, "Max retries exceeded")


def read_image_file(path: str | Path) -> bytes:
    """Read a local image file.

    Raises:
        ImageDownloadError: If the file does not exist or cannot be read.
    """
    file_path = Path(path)
    try:
        return file_path.read_bytes()
    except OSError as exc:
        raise ImageDownloadError(str(file_path), str(exc)) from exc


def get_image_dimensions(image_bytes: bytes) -> tuple[int, int]:
    """Return ``(width, height)`` of an encoded image.

    Raises:
        ImageDecodeError: If the bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            return image.size
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageDecodeError(f"Cannot read image dimensions: {exc}") from exc


__all__ = ["ImageDownloader", "get_image_dimensions", "read_image_file"]
