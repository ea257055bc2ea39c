"""Tesseract OCR workers and the bounded worker pool.

The pool owns a fixed set of workers. Callers borrow an idle worker through
an ``asyncio.Queue``, so at most ``pool_size`` recognitions run at once and
a busy worker is never handed to a second caller. Recognition itself is
blocking and runs in the default executor.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Protocol, Sequence

from PIL import Image, UnidentifiedImageError

from labelsense.domain.errors import OCREngineError, OCRPoolNotInitializedError
from labelsense.domain.models import BoundingBox, OCRResult, OCRWord
from labelsense.infrastructure.observability.logging import get_logger, log_duration
from labelsense.infrastructure.observability.metrics import record_ocr

logger = get_logger(__name__)

DEFAULT_LANGUAGE = "spa+eng"
DEFAULT_POOL_SIZE = 4

# Tesseract page segmentation: fully automatic, no OSD
PSM_AUTO = 3


class OCRWorker(Protocol):
    """A single OCR engine instance."""

    def start(self) -> None: ...

    def recognize(self, image_bytes: bytes) -> OCRResult: ...

    def close(self) -> None: ...


def ocr_result_from_tesseract_data(data: dict) -> OCRResult:
    """Build an :class:`OCRResult` from ``pytesseract.image_to_data`` output.

    Empty tokens and tokens with negative confidence (layout rows) are
    dropped. The full text is rebuilt line by line from the remaining
    words, and the engine confidence is the mean word confidence.
    """
    words: list[OCRWord] = []
    lines: dict[tuple[int, int, int], list[str]] = {}

    for i, raw_text in enumerate(data.get("text", [])):
        text = str(raw_text or "").strip()
        try:
            confidence = float(data["conf"][i])
        except (KeyError, IndexError, TypeError, ValueError):
            continue
        if not text or confidence < 0:
            continue

        left = float(data["left"][i])
        top = float(data["top"][i])
        bbox = BoundingBox(
            x0=left,
            y0=top,
            x1=left + float(data["width"][i]),
            y1=top + float(data["height"][i]),
        )
        words.append(OCRWord(text=text, confidence=confidence, bbox=bbox))

        line_key = (
            int(data.get("block_num", [0] * (i + 1))[i]),
            int(data.get("par_num", [0] * (i + 1))[i]),
            int(data.get("line_num", [0] * (i + 1))[i]),
        )
        lines.setdefault(line_key, []).append(text)

    full_text = "\n".join(" ".join(parts) for parts in lines.values())
    confidence = sum(w.confidence for w in words) / len(words) if words else 0.0
    return OCRResult.create(text=full_text, confidence=confidence, words=words)


class TesseractWorker:
    """OCR worker backed by the local Tesseract binary via pytesseract."""

    def __init__(
        self,
        language: str = DEFAULT_LANGUAGE,
        psm: int = PSM_AUTO,
        tesseract_cmd: str | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            language: Tesseract language(s), e.g. ``"spa+eng"``.
            psm: Page segmentation mode.
            tesseract_cmd: Path to the tesseract executable. Auto-detected if None.
        """
        self.language = language
        self.psm = psm
        self.tesseract_cmd = tesseract_cmd

    @property
    def tesseract_config(self) -> str:
        return f"--psm {self.psm} -c preserve_interword_spaces=1"

    def start(self) -> None:
        """Verify that Tesseract is installed.

        Raises:
            OCREngineError: If the binary cannot be found or run.
        """
        import pytesseract

        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
        try:
            version = pytesseract.get_tesseract_version()
        except (pytesseract.TesseractNotFoundError, OSError) as exc:
            raise OCREngineError(f"Tesseract OCR is not available: {exc}") from exc
        logger.debug("Tesseract %s ready (lang=%s)", version, self.language)

    def recognize(self, image_bytes: bytes) -> OCRResult:
        """Run OCR over an encoded image.

        Raises:
            OCREngineError: If the image cannot be read or Tesseract fails.
        """
        import pytesseract

        try:
            with Image.open(io.BytesIO(image_bytes)) as image:
                data = pytesseract.image_to_data(
                    image,
                    lang=self.language,
                    config=self.tesseract_config,
                    output_type=pytesseract.Output.DICT,
                )
        except (UnidentifiedImageError, OSError) as exc:
            raise OCREngineError(f"Cannot read image for OCR: {exc}") from exc
        except pytesseract.TesseractError as exc:
            raise OCREngineError(f"Tesseract failed: {exc}") from exc
        return ocr_result_from_tesseract_data(data)

    def close(self) -> None:
        """Tesseract runs as a subprocess per call; nothing to release."""


WorkerFactory = Callable[[str], OCRWorker]


class OCREnginePool:
    """A fixed-size pool of OCR workers.

    Construct once at startup, :meth:`initialize` it, share the instance
    with callers and :meth:`terminate` it on shutdown.
    """

    def __init__(
        self,
        pool_size: int = DEFAULT_POOL_SIZE,
        language: str = DEFAULT_LANGUAGE,
        worker_factory: WorkerFactory | None = None,
    ) -> None:
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self.pool_size = pool_size
        self.language = language
        self._worker_factory: WorkerFactory = worker_factory or TesseractWorker
        self._workers: list[OCRWorker] = []
        self._idle: asyncio.Queue[OCRWorker | None] | None = None

    @property
    def size(self) -> int:
        return self.pool_size

    @property
    def is_initialized(self) -> bool:
        return self._idle is not None

    async def initialize(self) -> None:
        """Create and start all workers. Calling it twice is a no-op.

        Raises:
            OCREngineError: If any worker fails to start.
        """
        if self.is_initialized:
            return

        logger.info(
            "Initializing OCR pool with %d worker(s) (lang=%s)",
            self.pool_size,
            self.language,
        )
        loop = asyncio.get_running_loop()
        workers = [self._worker_factory(self.language) for _ in range(self.pool_size)]
        with log_duration(logger, "OCR worker startup", level=logging.INFO):
            await asyncio.gather(*(loop.run_in_executor(None, w.start) for w in workers))

        idle: asyncio.Queue[OCRWorker | None] = asyncio.Queue()
        for worker in workers:
            idle.put_nowait(worker)
        self._workers = workers
        self._idle = idle

    async def terminate(self) -> None:
        """Close all workers and mark the pool as not initialized.

        Callers still waiting for a worker get
        :class:`OCRPoolNotInitializedError`; recognitions already running
        finish on their worker.
        """
        if not self.is_initialized:
            return
        logger.info("Shutting down OCR pool")
        idle = self._idle
        workers, self._workers, self._idle = self._workers, [], None
        while not idle.empty():
            idle.get_nowait()
        # Closed marker; each waiter that takes it puts it back for the next.
        idle.put_nowait(None)
        for worker in workers:
            worker.close()
        logger.info("OCR pool shut down")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[OCRWorker]:
        """Borrow an idle worker, waiting until one is free.

        Raises:
            OCRPoolNotInitializedError: If the pool is not running, or is
                terminated while waiting.
        """
        idle = self._idle
        if idle is None:
            raise OCRPoolNotInitializedError("OCR pool is not initialized")
        worker = await idle.get()
        if worker is None:
            idle.put_nowait(None)
            raise OCRPoolNotInitializedError("OCR pool was terminated while waiting for a worker")
        try:
            yield worker
        finally:
            # The pool may have been terminated while the worker was busy.
            if self._idle is idle:
                idle.put_nowait(worker)

    async def recognize(self, image_bytes: bytes) -> OCRResult:
        """Recognise text in an encoded image using the next idle worker.

        Raises:
            OCRPoolNotInitializedError: If the pool is not running.
            OCREngineError: If recognition fails.
        """
        async with self.acquire() as worker:
            loop = asyncio.get_running_loop()
            started = time.perf_counter()
            try:
                result = await loop.run_in_executor(None, worker.recognize, image_bytes)
            except OCREngineError:
                record_ocr("failed", time.perf_counter() - started)
                raise
            except Exception as exc:
                record_ocr("failed", time.perf_counter() - started)
                raise OCREngineError(f"OCR recognition failed: {exc}") from exc

        duration = time.perf_counter() - started
        record_ocr("success", duration, len(result.words))
        logger.info(
            "OCR completed in %dms: words=%d confidence=%.2f text_length=%d",
            duration * 1000,
            len(result.words),
            result.confidence,
            len(result.text),
        )
        return result

    async def recognize_best(self, variants: Sequence[bytes]) -> OCRResult:
        """OCR several variants of one image and keep the best result.

        Results are ranked by ``words * confidence / 100``; variants that
        fail are skipped.

        Raises:
            OCREngineError: If every variant fails.
        """
        logger.info("Processing %d image variant(s)", len(variants))
        outcomes = await asyncio.gather(
            *(self.recognize(v) for v in variants), return_exceptions=True
        )

        results: list[OCRResult] = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, OCRResult):
                results.append(outcome)
            else:
                logger.warning("OCR variant %d failed: %s", index, outcome)

        if not results:
            raise OCREngineError("No image variant could be recognised")

        best = results[0]
        for candidate in results[1:]:
            if _variant_score(candidate) > _variant_score(best):
                best = candidate
        logger.info(
            "Best variant selected: words=%d confidence=%.2f",
            len(best.words),
            best.confidence,
        )
        return best


def _variant_score(result: OCRResult) -> float:
    return len(result.words) * (result.confidence / 100)


__all__ = [
    "DEFAULT_LANGUAGE",
    "DEFAULT_POOL_SIZE",
    "OCREnginePool",
    "OCRWorker",
    "TesseractWorker",
    "ocr_result_from_tesseract_data",
]
