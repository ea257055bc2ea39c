"""Observability and logging facades."""

from .logging import (
    configure_logging,
    current_log_context,
    get_logger,
    log_context,
    log_duration,
    log_exception,
    parse_log_level,
)
from .metrics import (
    Timer,
    format_prometheus,
    get_detection_stats,
    get_metrics_summary,
    increment_counter,
    observe_histogram,
    record_image_download,
    record_label_detection,
    record_ocr,
)

__all__ = [
    # Logging
    "configure_logging",
    "current_log_context",
    "get_logger",
    "log_context",
    "log_duration",
    "log_exception",
    "parse_log_level",
    # Metrics
    "Timer",
    "format_prometheus",
    "get_detection_stats",
    "get_metrics_summary",
    "increment_counter",
    "observe_histogram",
    "record_image_download",
    "record_label_detection",
    "record_ocr",
]
