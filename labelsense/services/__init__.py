"""Service layer for labelsense."""

from .label_detection import LabelDetectionService, OCRPool

__all__ = ["LabelDetectionService", "OCRPool"]
