"""Exception hierarchy for the label detection pipeline."""

from __future__ import annotations


class LabelDetectionError(Exception):
    """Base class for all errors raised by the detection pipeline."""


class ImageAcquisitionError(LabelDetectionError):
    """Raised when an image cannot be obtained or decoded."""


class ImageDownloadError(ImageAcquisitionError):
    """Raised when downloading an image fails (network, timeout, HTTP status)."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(f"Failed to download image {url}: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code


class ImageDecodeError(ImageAcquisitionError):
    """Raised when image bytes cannot be decoded or preprocessed."""


class OCREngineError(LabelDetectionError):
    """Raised when the OCR engine fails to recognise an image."""


class OCRPoolNotInitializedError(OCREngineError):
    """Raised when recognition is requested from a pool that is not running."""


__all__ = [
    "ImageAcquisitionError",
    "ImageDecodeError",
    "ImageDownloadError",
    "LabelDetectionError",
    "OCREngineError",
    "OCRPoolNotInitializedError",
]
