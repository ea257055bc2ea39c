"""Domain models package.

This package contains the OCR, image and decision records for labelsense.
"""

from .detection import (
    BarcodeQRAnalysis,
    LabelDetectionResult,
    LabelMetrics,
    ScoreBreakdown,
    TextDensityAnalysis,
)
from .image import ImageType, ProductImage
from .ocr import BoundingBox, OCRResult, OCRWord

__all__ = [
    "BarcodeQRAnalysis",
    "BoundingBox",
    "ImageType",
    "LabelDetectionResult",
    "LabelMetrics",
    "OCRResult",
    "OCRWord",
    "ProductImage",
    "ScoreBreakdown",
    "TextDensityAnalysis",
]
