"""Keyword and pattern detectors for label content.

Each detector inspects the OCR text of one image and reports whether a kind
of label content is present: nutrition facts, an ingredients list, storage
instructions, manufacturer details, or a barcode/QR code. Vocabularies are
Spanish-first with common English terms and live in
:class:`KeywordVocabulary` so they can be replaced per deployment.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping

from labelsense.domain.models import BarcodeQRAnalysis, OCRResult

from .matching import any_match, count_matches, matching_keywords

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeywordVocabulary:
    """Vocabularies and match thresholds used by the detectors."""

    nutrition: tuple[str, ...] = (
        "informacion nutricional",
        "información nutricional",
        "nutricional",
        "calorias",
        "calorías",
        "proteina",
        "proteína",
        "grasa",
        "carbohidrato",
        "kcal",
        "nutricion",
    )
    nutrition_short_tokens: tuple[str, ...] = (
        "cal",
        "kcal",
        "grasa",
        "prot",
        "carb",
        "fibr",
    )
    ingredients: tuple[str, ...] = (
        "ingrediente",
        "ingredientes",
        "contiene",
        "leche",
        "azucar",
        "azúcar",
        "agua",
        "natural",
        "cultivo",
        "probiotico",
        "probiótico",
    )
    storage: tuple[str, ...] = (
        "temperatura",
        "almacena",
        "refrigera",
        "conserva",
        "grados",
        "°c",
        "almacenaje",
    )
    manufacturer: tuple[str, ...] = (
        "producto",
        "fabricado",
        "elaborado",
        "distribuido",
        "comercializado",
        "industria",
        "empresa",
        "hecho en",
    )
    qr_code: tuple[str, ...] = ("qr", "scan", "escanea", "código", "codigo")
    barcode: tuple[str, ...] = ("barras", "ean", "upc", "código", "codigo")

    nutrition_threshold: float = 0.7
    ingredients_threshold: float = 0.75
    ingredients_min_matches: int = 2
    storage_threshold: float = 0.75
    manufacturer_threshold: float = 0.75
    code_threshold: float = 0.7

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "KeywordVocabulary":
        """Build a vocabulary from defaults overridden by ``data``.

        Unknown keys raise ``ValueError`` so typos in config files surface.
        """
        return DEFAULT_VOCABULARY.with_overrides(data)

    def with_overrides(self, data: Mapping[str, Any]) -> "KeywordVocabulary":
        fields = {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}
        unknown = set(data) - set(fields)
        if unknown:
            raise ValueError(f"Unknown vocabulary fields: {sorted(unknown)}")
        changes: dict[str, Any] = {}
        for key, value in data.items():
            current = fields[key]
            if isinstance(current, tuple):
                if not isinstance(value, (list, tuple)) or not all(
                    isinstance(v, str) for v in value
                ):
                    raise ValueError(f"Vocabulary field {key!r} must be a list of strings")
                changes[key] = tuple(value)
            elif isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Vocabulary field {key!r} must be a number")
            else:
                changes[key] = type(current)(value)
        return dataclasses.replace(self, **changes)


DEFAULT_VOCABULARY = KeywordVocabulary()


# "| 12" style cells of a nutrition table
TABLE_CELL_PATTERN = re.compile(r"\|\s*\d+")
MIN_TABLE_PIPES = 3

# Quantities such as "120kcal", "5 g", "2,5mg"
UNIT_PATTERN = re.compile(r"\d+[.,]?\d*\s*(?:g|mg|kcal|cal|gr)\b", re.IGNORECASE)
MIN_UNIT_MATCHES = 3
MIN_PORTION_UNIT_MATCHES = 2

PORTION_PATTERN = re.compile(r"por\s+(?:cada|100|cad)", re.IGNORECASE)

# Word stems that survive OCR corruption of longer nutrition terms
PARTIAL_STEM_PATTERNS = (
    re.compile(r"nutri", re.IGNORECASE),
    re.compile(r"calor", re.IGNORECASE),
    re.compile(r"prote", re.IGNORECASE),
    re.compile(r"carbo", re.IGNORECASE),
    re.compile(r"informa.*nutri", re.IGNORECASE),
)
MIN_STEM_MATCHES = 2
MIN_SHORT_TOKEN_MATCHES = 2

LONG_DIGIT_RUN_PATTERN = re.compile(r"\d{8,}")

CODE_KEYWORD_CONFIDENCE = 0.8
DIGIT_RUN_CONFIDENCE = 0.6
NO_CODE_CONFIDENCE = 0.3


def has_nutritional_info(
    ocr: OCRResult, vocabulary: KeywordVocabulary = DEFAULT_VOCABULARY
) -> bool:
    """Detect a nutrition facts panel.

    Any one of these strategies is enough: a fuzzy vocabulary hit, a
    pipe-delimited table, several quantities with units, several short
    nutrition tokens, a "per portion" phrase with quantities, or several
    partial word stems.
    """
    text = ocr.text
    text_lower = text.lower()

    keywords = matching_keywords(text, vocabulary.nutrition, vocabulary.nutrition_threshold)
    has_table_cell = TABLE_CELL_PATTERN.search(text) is not None
    has_multiple_pipes = text.count("|") >= MIN_TABLE_PIPES
    unit_matches = UNIT_PATTERN.findall(text)
    short_matches = sum(
        1 for token in vocabulary.nutrition_short_tokens if token in text_lower
    )
    has_portion_info = PORTION_PATTERN.search(text) is not None
    stem_matches = sum(1 for pattern in PARTIAL_STEM_PATTERNS if pattern.search(text))

    found = (
        len(keywords) >= 1
        or (has_table_cell and has_multiple_pipes)
        or len(unit_matches) >= MIN_UNIT_MATCHES
        or short_matches >= MIN_SHORT_TOKEN_MATCHES
        or (has_portion_info and len(unit_matches) >= MIN_PORTION_UNIT_MATCHES)
        or stem_matches >= MIN_STEM_MATCHES
    )

    logger.debug(
        "Nutrition analysis: keywords=%s table=%s pipes=%s units=%d short=%d "
        "portion=%s stems=%d -> %s",
        keywords,
        has_table_cell,
        has_multiple_pipes,
        len(unit_matches),
        short_matches,
        has_portion_info,
        stem_matches,
        found,
    )
    return found


def has_ingredients(
    ocr: OCRResult, vocabulary: KeywordVocabulary = DEFAULT_VOCABULARY
) -> bool:
    """Detect an ingredients list (at least two vocabulary hits)."""
    matched = count_matches(
        ocr.text, vocabulary.ingredients, vocabulary.ingredients_threshold
    )
    return matched >= vocabulary.ingredients_min_matches


def has_storage_info(
    ocr: OCRResult, vocabulary: KeywordVocabulary = DEFAULT_VOCABULARY
) -> bool:
    """Detect temperature or storage instructions."""
    return any_match(ocr.text, vocabulary.storage, vocabulary.storage_threshold)


def has_manufacturer_info(
    ocr: OCRResult, vocabulary: KeywordVocabulary = DEFAULT_VOCABULARY
) -> bool:
    """Detect manufacturer or distributor details."""
    return any_match(
        ocr.text, vocabulary.manufacturer, vocabulary.manufacturer_threshold
    )


def detect_barcode_qr(
    ocr: OCRResult, vocabulary: KeywordVocabulary = DEFAULT_VOCABULARY
) -> BarcodeQRAnalysis:
    """Infer likely barcode/QR presence from keywords and long digit runs."""
    text = ocr.text
    has_qr_keywords = any_match(text, vocabulary.qr_code, vocabulary.code_threshold)
    has_barcode_keywords = any_match(text, vocabulary.barcode, vocabulary.code_threshold)
    has_digit_run = LONG_DIGIT_RUN_PATTERN.search(text) is not None

    if has_qr_keywords or has_barcode_keywords:
        confidence = CODE_KEYWORD_CONFIDENCE
    elif has_digit_run:
        confidence = DIGIT_RUN_CONFIDENCE
    else:
        confidence = NO_CODE_CONFIDENCE

    analysis = BarcodeQRAnalysis(
        has_barcode=has_barcode_keywords or has_digit_run,
        has_qr_code=has_qr_keywords,
        confidence=confidence,
    )
    logger.debug("Code analysis: %s", analysis)
    return analysis


@dataclass(frozen=True)
class SignalReport:
    """Outputs of every detector for one OCR result."""

    nutrition: bool
    ingredients: bool
    storage: bool
    manufacturer: bool
    codes: BarcodeQRAnalysis


def detect_signals(
    ocr: OCRResult, vocabulary: KeywordVocabulary = DEFAULT_VOCABULARY
) -> SignalReport:
    """Run all detectors over ``ocr``."""
    return SignalReport(
        nutrition=has_nutritional_info(ocr, vocabulary),
        ingredients=has_ingredients(ocr, vocabulary),
        storage=has_storage_info(ocr, vocabulary),
        manufacturer=has_manufacturer_info(ocr, vocabulary),
        codes=detect_barcode_qr(ocr, vocabulary),
    )


__all__ = [
    "DEFAULT_VOCABULARY",
    "KeywordVocabulary",
    "SignalReport",
    "detect_barcode_qr",
    "detect_signals",
    "has_ingredients",
    "has_manufacturer_info",
    "has_nutritional_info",
    "has_storage_info",
]
