"""Tests for image download and inspection."""

import asyncio
import io

import httpx
import pytest
from PIL import Image

from labelsense.domain.errors import ImageDecodeError, ImageDownloadError
from labelsense.infrastructure.http.images import (
    ImageDownloader,
    get_image_dimensions,
    read_image_file,
)
from labelsense.infrastructure.observability.metrics import IMAGE_DOWNLOADS, get_registry

URL = "https://cdn.example.com/products/1.png"


def _png(width: int = 32, height: int = 16) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return buffer.getvalue()


class _Responder:
    """Replays a list of responses (or exceptions) and counts calls."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _downloader(responder: _Responder, max_retries: int = 3) -> ImageDownloader:
    return ImageDownloader(
        max_retries=max_retries,
        backoff_base_seconds=0,
        transport=httpx.MockTransport(responder),
    )


def test_fetch_returns_body() -> None:
    body = _png()
    responder = _Responder(httpx.Response(200, content=body))

    assert _downloader(responder).fetch(URL) == body
    assert responder.calls == 1
    assert get_registry().counter(IMAGE_DOWNLOADS).get({"status": "success"}) == 1


def test_client_error_is_not_retried() -> None:
    responder = _Responder(httpx.Response(404))

    with pytest.raises(ImageDownloadError) as excinfo:
        _downloader(responder).fetch(URL)

    assert excinfo.value.status_code == 404
    assert excinfo.value.url == URL
    assert "HTTP 404" in str(excinfo.value)
    assert responder.calls == 1
    assert get_registry().counter(IMAGE_DOWNLOADS).get({"status": "failed"}) == 1


def test_server_error_is_retried() -> None:
    responder = _Responder(httpx.Response(500), httpx.Response(200, content=b"ok"))

    assert _downloader(responder).fetch(URL) == b"ok"
    assert responder.calls == 2


def test_connection_errors_exhaust_retries() -> None:
    responder = _Responder(httpx.ConnectError("connection refused"))

    with pytest.raises(ImageDownloadError, match="connection refused"):
        _downloader(responder, max_retries=3).fetch(URL)

    assert responder.calls == 3


def test_fetch_async() -> None:
    body = _png()
    responder = _Responder(httpx.Response(503), httpx.Response(200, content=body))

    result = asyncio.run(_downloader(responder).fetch_async(URL))

    assert result == body
    assert responder.calls == 2


def test_fetch_async_failure() -> None:
    responder = _Responder(httpx.Response(403))

    with pytest.raises(ImageDownloadError) as excinfo:
        asyncio.run(_downloader(responder).fetch_async(URL))

    assert excinfo.value.status_code == 403


def test_get_image_dimensions() -> None:
    assert get_image_dimensions(_png(64, 48)) == (64, 48)


def test_get_image_dimensions_rejects_garbage() -> None:
    with pytest.raises(ImageDecodeError):
        get_image_dimensions(b"<html>not found</html>")


def test_read_image_file(tmp_path) -> None:
    path = tmp_path / "label.png"
    path.write_bytes(_png())

    assert read_image_file(path) == path.read_bytes()

    with pytest.raises(ImageDownloadError):
        read_image_file(tmp_path / "missing.png")
