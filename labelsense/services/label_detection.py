"""Label detection service.

This service orchestrates the detection pipeline for product images:
1. Build the image URL and download the bytes
2. Read the original dimensions
3. Preprocess the image for OCR
4. Recognise text through the shared OCR pool
5. Measure text density and run the signal detectors
6. Score the evidence and decide whether the image is a label

Batches run the same pipeline concurrently. A failing image never aborts
the batch; it is reported as a zero-confidence failure record instead.
"""

from __future__ import annotations

import asyncio
import dataclasses
import re
import time
from pathlib import Path
from typing import Callable, Protocol, Sequence

from labelsense.domain.analysis import (
    DEFAULT_SCORING,
    DEFAULT_VOCABULARY,
    KeywordVocabulary,
    ScoringConfig,
    analyze_text_density,
    calculate_label_score,
    detect_barcode_qr,
    has_nutritional_info,
)
from labelsense.domain.models import (
    LabelDetectionResult,
    LabelMetrics,
    OCRResult,
    ProductImage,
)
from labelsense.infrastructure.ai.preprocessing import preprocess_for_ocr
from labelsense.infrastructure.http.images import ImageDownloader, get_image_dimensions
from labelsense.infrastructure.observability import (
    Timer,
    get_logger,
    log_context,
    log_exception,
    record_label_detection,
)
from labelsense.infrastructure.observability.metrics import PREPROCESS_DURATION

logger = get_logger(__name__)

# Image ids come from clients (upload file names); keep them inside debug_dir.
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")

# How much OCR text goes into the log line
TEXT_PREVIEW_LENGTH = 500

ProgressCallback = Callable[[int, int], None]
Preprocessor = Callable[[bytes], bytes]


class OCRPool(Protocol):
    """What the service needs from an OCR engine pool."""

    @property
    def size(self) -> int: ...

    async def recognize(self, image_bytes: bytes) -> OCRResult: ...


class Downloader(Protocol):
    async def fetch_async(self, url: str) -> bytes: ...


class LabelDetectionService:
    """Decides whether product images are labels.

    The OCR pool is shared and owned by the caller, which is responsible
    for initializing and terminating it.
    """

    def __init__(
        self,
        ocr_pool: OCRPool,
        downloader: Downloader | None = None,
        *,
        scoring: ScoringConfig = DEFAULT_SCORING,
        vocabulary: KeywordVocabulary = DEFAULT_VOCABULARY,
        max_concurrency: int | None = None,
        preprocess: Preprocessor = preprocess_for_ocr,
        debug_dir: str | Path | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            ocr_pool: Initialized OCR engine pool.
            downloader: Image downloader. A default :class:`ImageDownloader`
                is created if omitted.
            scoring: Score thresholds and weights.
            vocabulary: Keyword vocabularies for the signal detectors.
            max_concurrency: Images processed at once in a batch. Defaults
                to the OCR pool size.
            preprocess: Image normalisation applied before OCR.
            debug_dir: If set, every preprocessed image is written there.
        """
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.ocr_pool = ocr_pool
        self.downloader = downloader or ImageDownloader()
        self.scoring = scoring
        self.vocabulary = vocabulary
        self.max_concurrency = max_concurrency or ocr_pool.size
        self._preprocess = preprocess
        self.debug_dir = Path(debug_dir) if debug_dir else None

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def analyze_ocr_result(
        self, ocr: OCRResult, width: int, height: int
    ) -> LabelDetectionResult:
        """Turn an OCR result into a label decision.

        ``width`` and ``height`` are the dimensions used for coverage.
        ``processing_time_ms`` covers the analysis only; the pipeline
        replaces it with the full duration.
        """
        started = time.perf_counter()
        density = analyze_text_density(ocr, width, height)
        codes = detect_barcode_qr(ocr, self.vocabulary)
        nutrition = has_nutritional_info(ocr, self.vocabulary)
        breakdown = calculate_label_score(
            density,
            codes,
            nutrition,
            ocr,
            config=self.scoring,
            vocabulary=self.vocabulary,
        )
        return LabelDetectionResult(
            is_product_label=breakdown.is_label,
            confidence=breakdown.confidence,
            reasoning=breakdown.reasoning,
            metrics=LabelMetrics.from_analysis(density, codes),
            processing_time_ms=(time.perf_counter() - started) * 1000,
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _save_debug_image(self, image_id: str, image_bytes: bytes) -> None:
        if self.debug_dir is None:
            return
        self.debug_dir.mkdir(parents=True, exist_ok=True)
        safe_id = _UNSAFE_FILENAME_CHARS.sub("_", image_id)
        path = self.debug_dir / f"preprocessed-{safe_id}.png"
        path.write_bytes(image_bytes)
        logger.info("Preprocessed image saved to %s", path)

    async def _run_pipeline(
        self, image_bytes: bytes, image_id: str, started: float
    ) -> LabelDetectionResult:
        width, height = get_image_dimensions(image_bytes)
        logger.info("Original dimensions: %dx%d", width, height)

        loop = asyncio.get_running_loop()
        with Timer(PREPROCESS_DURATION, help_text="Image preprocessing duration in seconds"):
            processed = await loop.run_in_executor(None, self._preprocess, image_bytes)
        logger.info("Preprocessed image: %d bytes", len(processed))
        self._save_debug_image(image_id, processed)

        ocr = await self.ocr_pool.recognize(processed)
        logger.info("OCR completed: %d words detected", len(ocr.words))
        logger.debug("Detected text: %r", ocr.text[:TEXT_PREVIEW_LENGTH])
        if not ocr.words:
            logger.warning(
                "No words detected; the image may be empty, over-processed "
                "or in a language the OCR model does not cover"
            )

        result = self.analyze_ocr_result(ocr, width, height)
        duration = time.perf_counter() - started
        result = dataclasses.replace(result, processing_time_ms=duration * 1000)
        record_label_detection("label" if result.is_product_label else "not_label", duration)
        logger.info(
            "Detection completed: is_label=%s confidence=%.2f%% time=%dms",
            result.is_product_label,
            result.confidence * 100,
            result.processing_time_ms,
        )
        return result

    async def detect_label(self, image: ProductImage) -> LabelDetectionResult:
        """Download ``image`` and decide whether it is a label.

        Raises:
            ImageAcquisitionError: If the image cannot be downloaded or decoded.
            OCREngineError: If recognition fails.
        """
        started = time.perf_counter()
        with log_context(image_id=image.id):
            try:
                url = image.build_url()
                logger.info("Analyzing image %s", url)
                image_bytes = await self.downloader.fetch_async(url)
                logger.info("Image downloaded: %d bytes", len(image_bytes))
                return await self._run_pipeline(image_bytes, image.id, started)
            except Exception as exc:
                record_label_detection("failed", time.perf_counter() - started)
                log_exception(logger, "Error analyzing image", exc)
                raise

    async def detect_label_bytes(
        self, image_bytes: bytes, image_id: str = "bytes"
    ) -> LabelDetectionResult:
        """Run the pipeline on image bytes that are already available.

        Raises:
            ImageDecodeError: If the bytes are not a readable image.
            OCREngineError: If recognition fails.
        """
        started = time.perf_counter()
        with log_context(image_id=image_id):
            try:
                return await self._run_pipeline(image_bytes, image_id, started)
            except Exception as exc:
                record_label_detection("failed", time.perf_counter() - started)
                log_exception(logger, "Error analyzing image", exc)
                raise

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def detect_labels_in_batch(
        self,
        images: Sequence[ProductImage],
        progress_callback: ProgressCallback | None = None,
    ) -> dict[str, LabelDetectionResult]:
        """Analyze many images, at most ``max_concurrency`` at a time.

        Returns one entry per input image id. Failed images map to a
        failure record whose reasoning starts with ``"Error: "``.
        """
        total = len(images)
        logger.info(
            "Starting batch of %d image(s) (concurrency=%d)", total, self.max_concurrency
        )
        semaphore = asyncio.Semaphore(self.max_concurrency)
        done = 0
        failed = 0

        async def _bounded(image: ProductImage) -> LabelDetectionResult:
            nonlocal done, failed
            async with semaphore:
                try:
                    result = await self.detect_label(image)
                except Exception as exc:
                    failed += 1
                    result = LabelDetectionResult.failed(f"Error: {exc}")
            done += 1
            if progress_callback is not None:
                progress_callback(done, total)
            return result

        outcomes = await asyncio.gather(*(_bounded(image) for image in images))
        results = {image.id: result for image, result in zip(images, outcomes)}

        logger.info("Batch completed: %d image(s), %d failed", total, failed)
        return results


__all__ = ["LabelDetectionService", "OCRPool"]
