"""Derived analysis records and the final label decision."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TextDensityAnalysis:
    """Geometric/textual density metrics computed from one OCR pass."""

    total_text_area: float
    image_area: float
    text_coverage_percentage: float
    text_block_count: int
    average_word_confidence: float
    words_detected: int

    @classmethod
    def empty(cls, image_area: float) -> "TextDensityAnalysis":
        """Zero metrics for an image in which nothing was recognised."""
        return cls(
            total_text_area=0.0,
            image_area=image_area,
            text_coverage_percentage=0.0,
            text_block_count=0,
            average_word_confidence=0.0,
            words_detected=0,
        )


@dataclass(frozen=True)
class BarcodeQRAnalysis:
    """Likely presence of codes inferred from text cues (no pixel decoding)."""

    has_barcode: bool
    has_qr_code: bool
    confidence: float

    @property
    def has_any_code(self) -> bool:
        return self.has_barcode or self.has_qr_code


@dataclass(frozen=True)
class ScoreBreakdown:
    """Output of the scoring engine."""

    score: float
    is_label: bool
    confidence: float
    reasoning: str


@dataclass(frozen=True)
class LabelMetrics:
    """Metrics reported alongside a label decision."""

    text_coverage: float
    text_block_count: int
    word_count: int
    has_barcode: bool
    has_qr_code: bool
    average_text_confidence: float

    @classmethod
    def empty(cls) -> "LabelMetrics":
        return cls(
            text_coverage=0.0,
            text_block_count=0,
            word_count=0,
            has_barcode=False,
            has_qr_code=False,
            average_text_confidence=0.0,
        )

    @classmethod
    def from_analysis(
        cls, density: TextDensityAnalysis, codes: BarcodeQRAnalysis
    ) -> "LabelMetrics":
        return cls(
            text_coverage=density.text_coverage_percentage,
            text_block_count=density.text_block_count,
            word_count=density.words_detected,
            has_barcode=codes.has_barcode,
            has_qr_code=codes.has_qr_code,
            average_text_confidence=density.average_word_confidence,
        )

    def to_dict(self) -> dict:
        return {
            "textCoverage": self.text_coverage,
            "textBlockCount": self.text_block_count,
            "wordCount": self.word_count,
            "hasBarcode": self.has_barcode,
            "hasQRCode": self.has_qr_code,
            "averageTextConfidence": self.average_text_confidence,
        }


@dataclass(frozen=True)
class LabelDetectionResult:
    """Final decision record for one image."""

    is_product_label: bool
    confidence: float
    reasoning: str
    metrics: LabelMetrics
    processing_time_ms: float

    @classmethod
    def failed(cls, reason: str) -> "LabelDetectionResult":
        """Zero-confidence record used when an image could not be processed."""
        return cls(
            is_product_label=False,
            confidence=0.0,
            reasoning=reason,
            metrics=LabelMetrics.empty(),
            processing_time_ms=0.0,
        )

    def to_dict(self) -> dict:
        """Serialise using the camelCase keys of the public JSON contract."""
        return {
            "isProductLabel": self.is_product_label,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "metrics": self.metrics.to_dict(),
            "processingTimeMs": self.processing_time_ms,
        }


__all__ = [
    "BarcodeQRAnalysis",
    "LabelDetectionResult",
    "LabelMetrics",
    "ScoreBreakdown",
    "TextDensityAnalysis",
]
