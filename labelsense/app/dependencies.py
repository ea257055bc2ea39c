"""Shared FastAPI dependencies for labelsense application components.

The lifespan handler in :mod:`labelsense.app.api` stores the settings, the
OCR pool and the detection service on ``app.state``; these helpers read
them back for request handlers.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from labelsense.app.config import Settings
from labelsense.infrastructure.ai.ocr_engine import OCREnginePool
from labelsense.services.label_detection import LabelDetectionService

__all__ = [
    "get_settings",
    "get_ocr_pool",
    "get_detection_service",
    # Annotated dependency types
    "SettingsDep",
    "OCRPoolDep",
    "DetectionServiceDep",
]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_ocr_pool(request: Request) -> OCREnginePool:
    return request.app.state.ocr_pool


def get_detection_service(request: Request) -> LabelDetectionService:
    return request.app.state.detection_service


SettingsDep = Annotated[Settings, Depends(get_settings)]
OCRPoolDep = Annotated[OCREnginePool, Depends(get_ocr_pool)]
DetectionServiceDep = Annotated[LabelDetectionService, Depends(get_detection_service)]
