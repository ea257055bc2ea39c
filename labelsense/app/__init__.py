"""Application layer: configuration and the HTTP API."""

from .config import (
    DetectionThresholds,
    Settings,
    load_analysis_config,
    load_config,
    load_settings,
)

__all__ = [
    "DetectionThresholds",
    "Settings",
    "load_analysis_config",
    "load_config",
    "load_settings",
]
