"""Text density metrics from OCR word geometry.

Structured OCR output (words with bounding boxes) is turned into text area,
coverage and a text-block count. When the engine only returned plain text,
the metrics are estimated from character and line counts instead.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable

from labelsense.domain.models import OCRResult, TextDensityAnalysis

logger = logging.getLogger(__name__)

# Text blocks are approximated by the number of occupied cells in a
# GRID_SIZE x GRID_SIZE grid over a fixed reference frame.
GRID_SIZE = 5
REFERENCE_WIDTH = 1000
REFERENCE_HEIGHT = 1000

# Average glyph cell, in pixels, for the plain-text area estimate.
AVG_CHAR_WIDTH = 10
AVG_CHAR_HEIGHT = 15


def _coverage(area: float, image_area: float) -> float:
    if image_area <= 0:
        return 0.0
    return area / image_area * 100


def count_text_blocks(
    points: Iterable[tuple[float, float]],
    reference_width: float = REFERENCE_WIDTH,
    reference_height: float = REFERENCE_HEIGHT,
    grid_size: int = GRID_SIZE,
) -> int:
    """Count distinct grid cells occupied by the given points.

    Points are bucketed as given; coordinates outside the reference frame
    land in cells beyond the grid and still count as distinct blocks.
    """
    cell_width = reference_width / grid_size
    cell_height = reference_height / grid_size
    cells = {
        (math.floor(x / cell_width), math.floor(y / cell_height)) for x, y in points
    }
    return len(cells)


def _analyze_words(ocr: OCRResult, image_area: float) -> TextDensityAnalysis:
    total_area = sum(word.bbox.area for word in ocr.words)
    centers = [word.bbox.center for word in ocr.words]
    average_confidence = sum(word.confidence for word in ocr.words) / len(ocr.words)

    # Not capped at 100, unlike the plain-text estimate.
    return TextDensityAnalysis(
        total_text_area=total_area,
        image_area=image_area,
        text_coverage_percentage=_coverage(total_area, image_area),
        text_block_count=count_text_blocks(centers),
        average_word_confidence=average_confidence,
        words_detected=len(ocr.words),
    )


def _analyze_plain_text(ocr: OCRResult, image_area: float) -> TextDensityAnalysis:
    text = ocr.text.strip()
    words_detected = len(text.split())
    estimated_area = float(len(text) * AVG_CHAR_WIDTH * AVG_CHAR_HEIGHT)
    if image_area > 0:
        estimated_area = min(estimated_area, image_area)
    coverage = min(_coverage(estimated_area, image_area), 100.0)
    lines = [line for line in text.split("\n") if line.strip()]
    block_count = max(len(lines) // 2, 1)

    logger.debug(
        "Plain text analysis: chars=%d words=%d lines=%d blocks=%d coverage=%.2f%%",
        len(text),
        words_detected,
        len(lines),
        block_count,
        coverage,
    )

    return TextDensityAnalysis(
        total_text_area=estimated_area,
        image_area=image_area,
        text_coverage_percentage=coverage,
        text_block_count=block_count,
        average_word_confidence=ocr.confidence,
        words_detected=words_detected,
    )


def analyze_text_density(ocr: OCRResult, width: int, height: int) -> TextDensityAnalysis:
    """Compute text density metrics for an OCR result.

    Args:
        ocr: OCR output for the image.
        width: Original image width in pixels.
        height: Original image height in pixels.

    Returns:
        A fresh :class:`TextDensityAnalysis`; all-zero when nothing was
        recognised.
    """
    image_area = float(width * height)

    if ocr.words:
        return _analyze_words(ocr, image_area)

    if ocr.text.strip():
        logger.warning("No structured words detected, analysing plain text")
        return _analyze_plain_text(ocr, image_area)

    return TextDensityAnalysis.empty(image_area)


__all__ = ["analyze_text_density", "count_text_blocks"]
