"""Infrastructure layer for labelsense.

Holds adapters for OCR, image acquisition and observability. Nothing in
here decides whether an image is a label; that lives in the domain layer.
"""

from . import ai, http, observability

__all__ = ["ai", "http", "observability"]
