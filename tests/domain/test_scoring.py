"""Tests for the label scoring engine."""

import pytest

from labelsense.domain.analysis import (
    DEFAULT_SCORING,
    NO_CHARACTERISTICS_REASON,
    ScoringConfig,
    SignalReport,
    analyze_text_density,
    calculate_label_score,
    detect_barcode_qr,
    has_ingredients,
    has_nutritional_info,
    score_signals,
)
from labelsense.domain.models import BarcodeQRAnalysis, OCRResult, TextDensityAnalysis

NO_CODES = BarcodeQRAnalysis(has_barcode=False, has_qr_code=False, confidence=0.3)
NO_SIGNALS = SignalReport(
    nutrition=False, ingredients=False, storage=False, manufacturer=False, codes=NO_CODES
)

LABEL_TEXT = (
    "INFORMACION NUTRICIONAL Calorias 120kcal Proteina 5g Grasa 2g "
    "Carbohidratos 20g Ingredientes: leche, azucar, agua, cultivo"
)


def _density(coverage: float = 0.0, blocks: int = 0, words: int = 0) -> TextDensityAnalysis:
    return TextDensityAnalysis(
        total_text_area=0.0,
        image_area=1_000_000.0,
        text_coverage_percentage=coverage,
        text_block_count=blocks,
        average_word_confidence=90.0,
        words_detected=words,
    )


def _score(density: TextDensityAnalysis, signals: SignalReport = NO_SIGNALS, text_length: int = 0):
    return score_signals(density, signals, text_length)


class TestScenarios:
    def test_nutrition_and_ingredients_label(self) -> None:
        ocr = OCRResult(text=LABEL_TEXT, confidence=85.0)
        density = _density(coverage=30.0, blocks=6, words=20)

        assert has_nutritional_info(ocr)
        assert has_ingredients(ocr)

        breakdown = calculate_label_score(
            density, detect_barcode_qr(ocr), has_nutritional_info(ocr), ocr
        )

        assert breakdown.score >= 45
        assert breakdown.is_label

    def test_beach_photo_is_not_a_label(self) -> None:
        ocr = OCRResult(text="Photo of a smiling child on a beach", confidence=85.0)
        density = _density(coverage=2.0, blocks=1, words=8)

        breakdown = calculate_label_score(
            density, detect_barcode_qr(ocr), has_nutritional_info(ocr), ocr
        )

        assert breakdown.score < 45
        assert not breakdown.is_label

    def test_empty_ocr_scores_zero(self) -> None:
        ocr = OCRResult(text="", confidence=0.0)
        density = analyze_text_density(ocr, 640, 480)

        breakdown = calculate_label_score(
            density, detect_barcode_qr(ocr), has_nutritional_info(ocr), ocr
        )

        assert breakdown.score == 0
        assert breakdown.confidence == 0
        assert not breakdown.is_label
        assert breakdown.reasoning == NO_CHARACTERISTICS_REASON


class TestCoverage:
    @pytest.mark.parametrize("coverage", [40.0, 80.0, 250.0])
    def test_points_saturate_at_twenty(self, coverage: float) -> None:
        breakdown = _score(_density(coverage=coverage))
        assert breakdown.score == pytest.approx(20.0)

    def test_points_are_linear_below_saturation(self) -> None:
        assert _score(_density(coverage=20.0)).score == pytest.approx(10.0)

    def test_minimum_ratio_is_exclusive(self) -> None:
        breakdown = _score(_density(coverage=10.0))
        assert breakdown.score == 0
        assert breakdown.reasoning == NO_CHARACTERISTICS_REASON

    def test_reason_shows_two_decimals(self) -> None:
        assert _score(_density(coverage=40.0)).reasoning == "Text coverage: 40.00%"


class TestTiers:
    @pytest.mark.parametrize(
        "length, points", [(0, 0), (50, 0), (51, 8), (100, 8), (101, 15), (500, 15)]
    )
    def test_text_length(self, length: int, points: float) -> None:
        assert _score(_density(), text_length=length).score == points

    @pytest.mark.parametrize(
        "blocks, points", [(0, 0), (1, 0), (2, 5), (3, 10), (4, 10), (5, 15), (25, 15)]
    )
    def test_block_count(self, blocks: int, points: float) -> None:
        assert _score(_density(blocks=blocks)).score == points

    @pytest.mark.parametrize(
        "words, points",
        [(0, 0), (4, 0), (5, 4), (9, 4), (10, 8), (19, 8), (20, 12), (29, 12), (30, 15)],
    )
    def test_word_count(self, words: int, points: float) -> None:
        assert _score(_density(words=words)).score == points

    def test_more_words_never_lower_the_score(self) -> None:
        scores = [_score(_density(coverage=15.0, blocks=3, words=n)).score for n in range(80)]
        assert scores == sorted(scores)


class TestSignals:
    def test_signal_weights(self) -> None:
        signals = SignalReport(
            nutrition=True,
            ingredients=True,
            storage=True,
            manufacturer=True,
            codes=BarcodeQRAnalysis(has_barcode=True, has_qr_code=True, confidence=0.8),
        )
        assert _score(_density(), signals).score == 45

    def test_threshold_is_inclusive(self) -> None:
        signals = SignalReport(
            nutrition=True, ingredients=True, storage=False, manufacturer=False, codes=NO_CODES
        )
        breakdown = _score(_density(blocks=5), signals)

        assert breakdown.score == 45
        assert breakdown.is_label
        assert breakdown.confidence == pytest.approx(0.45)

    def test_threshold_boundary_with_other_signals(self) -> None:
        signals = SignalReport(
            nutrition=True, ingredients=False, storage=True, manufacturer=True, codes=NO_CODES
        )
        breakdown = _score(_density(blocks=5, words=0), signals)

        assert breakdown.score == 45
        assert breakdown.is_label

        breakdown = _score(_density(blocks=3), signals)
        assert breakdown.score == 40
        assert not breakdown.is_label

    def test_reasoning_follows_criterion_order(self) -> None:
        signals = SignalReport(
            nutrition=True,
            ingredients=True,
            storage=True,
            manufacturer=True,
            codes=BarcodeQRAnalysis(has_barcode=True, has_qr_code=True, confidence=0.8),
        )
        breakdown = _score(_density(coverage=40.0, blocks=5, words=30), signals, text_length=150)

        assert breakdown.reasoning.split("; ") == [
            "Significant amount of text detected: 150 characters",
            "Text coverage: 40.00%",
            "Multiple text blocks: 5",
            "High word count: 30",
            "Contains nutrition information (very strong indicator)",
            "Contains an ingredients list",
            "Contains temperature/storage information",
            "Contains manufacturer/distributor information",
            "Contains QR code and/or barcode",
        ]
        # The score itself is not capped; only the confidence is.
        assert breakdown.score == 110
        assert breakdown.confidence == 1.0

    def test_barcode_only_reason(self) -> None:
        signals = SignalReport(
            nutrition=False,
            ingredients=False,
            storage=False,
            manufacturer=False,
            codes=BarcodeQRAnalysis(has_barcode=True, has_qr_code=False, confidence=0.6),
        )
        assert _score(_density(), signals).reasoning == "Contains barcode"


class TestScoringConfig:
    def test_overrides_change_decision(self) -> None:
        config = ScoringConfig.from_dict({"label_threshold": 10})
        breakdown = score_signals(_density(words=10), NO_SIGNALS, 0, config)

        assert breakdown.score == 8
        assert not breakdown.is_label

        config = ScoringConfig.from_dict({"label_threshold": 8})
        assert score_signals(_density(words=10), NO_SIGNALS, 0, config).is_label

    def test_tiers_can_be_replaced(self) -> None:
        config = DEFAULT_SCORING.with_overrides(
            {"word_tiers": [{"minimum": 1, "points": 50, "description": "Words: {value}"}]}
        )
        breakdown = score_signals(_density(words=1), NO_SIGNALS, 0, config)

        assert breakdown.score == 50
        assert breakdown.is_label
        assert breakdown.reasoning == "Words: 1"

    def test_unknown_field_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown scoring fields"):
            ScoringConfig.from_dict({"bonus_points": 5})

    def test_confidence_is_capped(self) -> None:
        config = ScoringConfig.from_dict({"max_score": 50})
        signals = SignalReport(
            nutrition=True, ingredients=True, storage=True, manufacturer=True, codes=NO_CODES
        )
        breakdown = score_signals(_density(blocks=5), signals, 0, config)
        assert breakdown.confidence == 1.0

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"label_threshold": "45"}, "must be a number"),
            ({"code_points": None}, "must be a number"),
            ({"word_tiers": "many"}, "must be a list of tiers"),
            ({"block_tiers": [{"minimum": 2}]}, "Invalid tier"),
        ],
    )
    def test_wrong_types_are_rejected(self, overrides, message) -> None:
        with pytest.raises(ValueError, match=message):
            ScoringConfig.from_dict(overrides)
