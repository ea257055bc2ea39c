"""FastAPI application exposing label detection.

Run with ``uvicorn labelsense.app.api:app`` or ``labelsense serve``.
"""

from __future__ import annotations

import dataclasses
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from fastapi import FastAPI, File, HTTPException, Response, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field

from labelsense import __version__
from labelsense.app.config import Settings, load_analysis_config, load_settings
from labelsense.app.dependencies import DetectionServiceDep, OCRPoolDep, SettingsDep
from labelsense.domain.errors import (
    ImageDecodeError,
    ImageDownloadError,
    OCREngineError,
)
from labelsense.domain.models import LabelDetectionResult, ProductImage
from labelsense.infrastructure.ai.ocr_engine import OCREnginePool
from labelsense.infrastructure.http.images import ImageDownloader
from labelsense.infrastructure.observability import (
    configure_logging,
    format_prometheus,
    get_logger,
)
from labelsense.services.label_detection import LabelDetectionService

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class ProductImageRequest(BaseModel):
    """A catalogue image record as sent by callers."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="_id")
    referenced_file_url: str = Field(alias="referencedFileURL")
    base_url: str | None = Field(None, alias="baseUrl")
    is_absolute_url: bool = Field(False, alias="isAbsoluteUrl")
    file_pixel_width: int = Field(0, alias="filePixelWidth")
    file_pixel_height: int = Field(0, alias="filePixelHeight")
    image_type: str | None = Field(None, alias="imageType")
    image_hash: str | None = Field(None, alias="imageHash")
    main: bool = False

    def to_domain(self, default_base_url: str = "") -> ProductImage:
        return ProductImage.from_dict(
            self.model_dump(by_alias=True, exclude_none=True),
            default_base_url=default_base_url,
        )


class BatchDetectionRequest(BaseModel):
    images: list[ProductImageRequest]


class LabelMetricsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text_coverage: float = Field(alias="textCoverage")
    text_block_count: int = Field(alias="textBlockCount")
    word_count: int = Field(alias="wordCount")
    has_barcode: bool = Field(alias="hasBarcode")
    has_qr_code: bool = Field(alias="hasQRCode")
    average_text_confidence: float = Field(alias="averageTextConfidence")


class LabelDetectionResponse(BaseModel):
    """Label decision for one image."""

    model_config = ConfigDict(populate_by_name=True)

    is_product_label: bool = Field(alias="isProductLabel")
    confidence: float
    reasoning: str
    metrics: LabelMetricsResponse
    processing_time_ms: float = Field(alias="processingTimeMs")

    @classmethod
    def from_result(cls, result: LabelDetectionResult) -> "LabelDetectionResponse":
        return cls.model_validate(result.to_dict())


class BatchDetectionResponse(BaseModel):
    results: dict[str, LabelDetectionResponse]


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    ocr_pool_size: int
    detection_thresholds: dict[str, float]


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ImageDownloadError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, ImageDecodeError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, OCREngineError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Error processing image: {exc}",
    )


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    ocr_pool: Any | None = None,
    downloader: Any | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Service settings. Read from the environment at startup
            if omitted.
        ocr_pool: OCR pool to use instead of a Tesseract pool.
        downloader: Image downloader to use instead of the HTTP one.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        resolved = settings or load_settings()
        configure_logging(resolved.log_level)
        logger.info("Initializing label detection service")

        scoring, vocabulary = load_analysis_config(resolved.config_path)
        pool = ocr_pool or OCREnginePool(
            pool_size=resolved.worker_pool_size, language=resolved.tesseract_lang
        )
        await pool.initialize()
        try:
            app.state.settings = resolved
            app.state.ocr_pool = pool
            app.state.detection_service = LabelDetectionService(
                pool,
                downloader or ImageDownloader(),
                scoring=scoring,
                vocabulary=vocabulary,
                debug_dir=resolved.debug_dir,
            )
            logger.info("Service ready on port %d", resolved.port)
            yield
        finally:
            logger.info("Shutting down label detection service")
            await pool.terminate()

    app = FastAPI(title="labelsense API", version=__version__, lifespan=lifespan)

    @app.get("/")
    async def root() -> dict[str, Any]:
        """API root endpoint with links."""
        return {
            "name": "labelsense API",
            "version": __version__,
            "docs": "/docs",
            "endpoints": {
                "health": "/health",
                "detect_label": "/api/detect-label",
                "detect_labels": "/api/detect-labels",
                "upload": "/api/detect-label/upload",
                "metrics": "/metrics",
            },
        }

    @app.get("/health", response_model=HealthResponse)
    async def health(pool: OCRPoolDep, current: SettingsDep) -> HealthResponse:
        return HealthResponse(
            status="ok",
            timestamp=datetime.now(timezone.utc).isoformat(),
            ocr_pool_size=pool.size,
            detection_thresholds=dataclasses.asdict(current.detection),
        )

    @app.post("/api/detect-label", response_model=LabelDetectionResponse)
    async def detect_label(
        payload: ProductImageRequest,
        service: DetectionServiceDep,
        current: SettingsDep,
    ) -> LabelDetectionResponse:
        image = payload.to_domain(current.base_image_url)
        try:
            result = await service.detect_label(image)
        except Exception as exc:
            raise _http_error(exc) from exc
        return LabelDetectionResponse.from_result(result)

    @app.post("/api/detect-labels", response_model=BatchDetectionResponse)
    async def detect_labels(
        payload: BatchDetectionRequest,
        service: DetectionServiceDep,
        current: SettingsDep,
    ) -> BatchDetectionResponse:
        images = [item.to_domain(current.base_image_url) for item in payload.images]
        results = await service.detect_labels_in_batch(images)
        return BatchDetectionResponse(
            results={
                image_id: LabelDetectionResponse.from_result(result)
                for image_id, result in results.items()
            }
        )

    @app.post("/api/detect-label/upload", response_model=LabelDetectionResponse)
    async def detect_label_upload(
        service: DetectionServiceDep,
        file: UploadFile = File(...),
    ) -> LabelDetectionResponse:
        image_bytes = await file.read()
        try:
            result = await service.detect_label_bytes(
                image_bytes, image_id=file.filename or "upload"
            )
        except Exception as exc:
            raise _http_error(exc) from exc
        return LabelDetectionResponse.from_result(result)

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(
            content=format_prometheus(), media_type="text/plain; version=0.0.4"
        )

    return app


app = create_app()

__all__ = [
    "BatchDetectionRequest",
    "BatchDetectionResponse",
    "HealthResponse",
    "LabelDetectionResponse",
    "ProductImageRequest",
    "app",
    "create_app",
]
