"""OCR engine pool and image preprocessing."""

from .ocr_engine import (
    DEFAULT_LANGUAGE,
    DEFAULT_POOL_SIZE,
    OCREnginePool,
    OCRWorker,
    TesseractWorker,
    ocr_result_from_tesseract_data,
)
from .preprocessing import (
    PreprocessingConfig,
    preprocess_for_ocr,
    preprocess_variants,
    resize_for_ocr,
)

__all__ = [
    "DEFAULT_LANGUAGE",
    "DEFAULT_POOL_SIZE",
    "OCREnginePool",
    "OCRWorker",
    "PreprocessingConfig",
    "TesseractWorker",
    "ocr_result_from_tesseract_data",
    "preprocess_for_ocr",
    "preprocess_variants",
    "resize_for_ocr",
]
