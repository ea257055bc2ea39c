"""Weighted scoring of density metrics and detector signals.

The score is an additive sum of independent criteria (max 100 points). An
image scores as a label at 45 points: any two or three moderate signals are
enough.
Criterion order only affects the order of the reasoning trail.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from labelsense.domain.models import (
    BarcodeQRAnalysis,
    OCRResult,
    ScoreBreakdown,
    TextDensityAnalysis,
)

from .signals import (
    DEFAULT_VOCABULARY,
    KeywordVocabulary,
    SignalReport,
    has_ingredients,
    has_manufacturer_info,
    has_storage_info,
)

logger = logging.getLogger(__name__)

NO_CHARACTERISTICS_REASON = "No label characteristics detected"
REASON_SEPARATOR = "; "


@dataclass(frozen=True)
class ScoreTier:
    """Points awarded once a metric reaches ``minimum``.

    ``description`` is formatted with ``value=`` the measured metric.
    """

    minimum: float
    points: float
    description: str

    @classmethod
    def parse(cls, data: Any) -> "ScoreTier":
        if isinstance(data, ScoreTier):
            return data
        if isinstance(data, Mapping):
            return cls(float(data["minimum"]), float(data["points"]), str(data["description"]))
        minimum, points, description = data
        return cls(float(minimum), float(points), str(description))


def _tiers(*items: tuple[float, float, str]) -> tuple[ScoreTier, ...]:
    return tuple(ScoreTier(*item) for item in items)


@dataclass(frozen=True)
class ScoringConfig:
    """All thresholds and weights of the scoring engine.

    Tier tuples are ordered from the highest minimum down; the first tier
    whose minimum is reached (strictly exceeded for text length) wins.
    """

    text_length_tiers: tuple[ScoreTier, ...] = field(
        default_factory=lambda: _tiers(
            (100, 15, "Significant amount of text detected: {value} characters"),
            (50, 8, "Text detected: {value} characters"),
        )
    )
    coverage_min_ratio: float = 0.1
    coverage_saturation_ratio: float = 0.4
    coverage_max_points: float = 20
    block_tiers: tuple[ScoreTier, ...] = field(
        default_factory=lambda: _tiers(
            (5, 15, "Multiple text blocks: {value}"),
            (3, 10, "Several text blocks: {value}"),
            (2, 5, "Some text blocks: {value}"),
        )
    )
    word_tiers: tuple[ScoreTier, ...] = field(
        default_factory=lambda: _tiers(
            (30, 15, "High word count: {value}"),
            (20, 12, "Moderately high word count: {value}"),
            (10, 8, "Moderate word count: {value}"),
            (5, 4, "Some words detected: {value}"),
        )
    )
    nutrition_points: float = 20
    ingredients_points: float = 10
    storage_points: float = 5
    manufacturer_points: float = 5
    code_points: float = 5
    label_threshold: float = 45
    max_score: float = 100

    def with_overrides(self, data: Mapping[str, Any]) -> "ScoringConfig":
        """Return a copy with fields from ``data`` replaced."""
        known = {f.name for f in dataclasses.fields(self)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown scoring fields: {sorted(unknown)}")
        changes: dict[str, Any] = {}
        for key, value in data.items():
            if key.endswith("_tiers"):
                if not isinstance(value, (list, tuple)):
                    raise ValueError(f"Scoring field {key!r} must be a list of tiers")
                try:
                    changes[key] = tuple(ScoreTier.parse(item) for item in value)
                except (KeyError, TypeError, ValueError) as exc:
                    raise ValueError(f"Invalid tier in scoring field {key!r}: {exc}") from exc
            elif isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Scoring field {key!r} must be a number")
            else:
                changes[key] = float(value)
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScoringConfig":
        return DEFAULT_SCORING.with_overrides(data)


DEFAULT_SCORING = ScoringConfig()


def _first_tier(
    tiers: Sequence[ScoreTier], value: float, *, strict: bool = False
) -> ScoreTier | None:
    for tier in tiers:
        if value > tier.minimum if strict else value >= tier.minimum:
            return tier
    return None


def _format_number(value: float) -> str:
    return f"{value:.2f}"


def score_signals(
    density: TextDensityAnalysis,
    signals: SignalReport,
    text_length: int,
    config: ScoringConfig = DEFAULT_SCORING,
) -> ScoreBreakdown:
    """Fuse density metrics and detector outputs into a decision.

    Args:
        density: Text density metrics for the image.
        signals: Detector outputs.
        text_length: Length of the stripped OCR text.
        config: Thresholds and weights.
    """
    score = 0.0
    reasons: list[str] = []

    tier = _first_tier(config.text_length_tiers, text_length, strict=True)
    if tier is not None:
        score += tier.points
        reasons.append(tier.description.format(value=text_length))

    coverage_ratio = density.text_coverage_percentage / 100
    if coverage_ratio > config.coverage_min_ratio:
        score += min(
            config.coverage_max_points,
            coverage_ratio / config.coverage_saturation_ratio * config.coverage_max_points,
        )
        reasons.append(
            f"Text coverage: {_format_number(density.text_coverage_percentage)}%"
        )

    tier = _first_tier(config.block_tiers, density.text_block_count)
    if tier is not None:
        score += tier.points
        reasons.append(tier.description.format(value=density.text_block_count))

    tier = _first_tier(config.word_tiers, density.words_detected)
    if tier is not None:
        score += tier.points
        reasons.append(tier.description.format(value=density.words_detected))

    if signals.nutrition:
        score += config.nutrition_points
        reasons.append("Contains nutrition information (very strong indicator)")

    if signals.ingredients:
        score += config.ingredients_points
        reasons.append("Contains an ingredients list")

    if signals.storage:
        score += config.storage_points
        reasons.append("Contains temperature/storage information")

    if signals.manufacturer:
        score += config.manufacturer_points
        reasons.append("Contains manufacturer/distributor information")

    codes = signals.codes
    if codes.has_any_code:
        score += config.code_points
        kinds = []
        if codes.has_qr_code:
            kinds.append("QR code")
        if codes.has_barcode:
            kinds.append("barcode")
        reasons.append(f"Contains {' and/or '.join(kinds)}")

    confidence = min(score / config.max_score, 1.0) if config.max_score > 0 else 0.0
    is_label = score >= config.label_threshold
    reasoning = REASON_SEPARATOR.join(reasons) if reasons else NO_CHARACTERISTICS_REASON

    logger.info(
        "Final score: score=%.2f confidence=%.2f%% is_label=%s",
        score,
        confidence * 100,
        is_label,
    )
    return ScoreBreakdown(
        score=score, is_label=is_label, confidence=confidence, reasoning=reasoning
    )


def calculate_label_score(
    density: TextDensityAnalysis,
    barcode_qr: BarcodeQRAnalysis,
    has_nutrition: bool,
    ocr: OCRResult,
    *,
    config: ScoringConfig = DEFAULT_SCORING,
    vocabulary: KeywordVocabulary = DEFAULT_VOCABULARY,
) -> ScoreBreakdown:
    """Score an image from its density, code and nutrition analyses.

    The remaining detectors (ingredients, storage, manufacturer) are run on
    ``ocr`` here.
    """
    text_length = len(ocr.text.strip())
    logger.debug(
        "Scoring: coverage=%.2f blocks=%d words=%d avg_confidence=%.2f text_length=%d",
        density.text_coverage_percentage,
        density.text_block_count,
        density.words_detected,
        density.average_word_confidence,
        text_length,
    )
    signals = SignalReport(
        nutrition=has_nutrition,
        ingredients=has_ingredients(ocr, vocabulary),
        storage=has_storage_info(ocr, vocabulary),
        manufacturer=has_manufacturer_info(ocr, vocabulary),
        codes=barcode_qr,
    )
    return score_signals(density, signals, text_length, config)


__all__ = [
    "DEFAULT_SCORING",
    "NO_CHARACTERISTICS_REASON",
    "ScoreTier",
    "ScoringConfig",
    "calculate_label_score",
    "score_signals",
]
