"""Tests for contextual logging and in-process metrics."""

import logging

import pytest

from labelsense.infrastructure.observability.logging import (
    ContextualFormatter,
    configure_logging,
    current_log_context,
    log_context,
    log_duration,
    parse_log_level,
)
from labelsense.infrastructure.observability.metrics import (
    LABEL_DETECTIONS,
    Counter,
    Timer,
    format_prometheus,
    get_detection_stats,
    get_metrics_summary,
    get_registry,
    record_label_detection,
    record_ocr,
)


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("labelsense.test", logging.INFO, __file__, 1, message, None, None)


class TestLogContext:
    def test_formatter_appends_context(self) -> None:
        formatter = ContextualFormatter("%(message)s")

        with log_context(image_id="abc"):
            assert formatter.format(_record("OCR done")) == "OCR done [image_id=abc]"

        assert formatter.format(_record("OCR done")) == "OCR done"

    def test_nested_contexts_merge_and_restore(self) -> None:
        with log_context(image_id="abc"):
            with log_context(batch="7"):
                assert current_log_context() == {"image_id": "abc", "batch": "7"}
            assert current_log_context() == {"image_id": "abc"}
        assert current_log_context() == {}

    def test_parse_log_level(self) -> None:
        assert parse_log_level("debug") == logging.DEBUG
        assert parse_log_level(logging.ERROR) == logging.ERROR
        assert parse_log_level("loud") == logging.INFO
        assert parse_log_level(None, default=logging.WARNING) == logging.WARNING


class TestMetrics:
    def test_detection_stats(self) -> None:
        record_label_detection("label", 0.5)
        record_label_detection("label", 1.5)
        record_label_detection("failed", 0.1)

        stats = get_detection_stats()

        assert stats["detections"] == {"label": 2, "not_label": 0, "failed": 1}
        assert stats["duration"]["count"] == 3
        assert stats["duration"]["sum"] == pytest.approx(2.1)

    def test_ocr_words_are_counted_only_on_success(self) -> None:
        record_ocr("success", 0.2, words=12)
        record_ocr("failed", 0.1)

        summary = get_metrics_summary()

        assert summary["counters"]["ocr_words_total"] == {"default": 12.0}
        assert summary["counters"]["ocr_runs_total"] == {
            "status=success": 1.0,
            "status=failed": 1.0,
        }

    def test_prometheus_format(self) -> None:
        record_label_detection("not_label", 0.25)

        text = format_prometheus()

        assert "# TYPE label_detections_total counter" in text
        assert 'label_detections_total{outcome="not_label"} 1.0' in text
        assert "label_detection_duration_seconds_count 1" in text
        assert "label_detection_duration_seconds_sum 0.25" in text

    def test_registry_reset(self) -> None:
        record_label_detection("label", 0.1)
        get_registry().reset()
        assert get_registry().counter(LABEL_DETECTIONS).get({"outcome": "label"}) == 0

    def test_timer_records_into_histogram(self) -> None:
        with Timer("preprocess_duration_seconds", labels={"variant": "binary"}) as timer:
            pass

        stats = get_registry().histogram("preprocess_duration_seconds").get_stats(
            {"variant": "binary"}
        )
        assert stats["count"] == 1
        assert stats["sum"] == timer.elapsed


class TestLogDuration:
    def test_logs_start_and_completion(self, caplog) -> None:
        logger = logging.getLogger("labelsense.test.duration")

        with caplog.at_level(logging.INFO, logger="labelsense.test.duration"):
            with log_duration(logger, "OCR worker startup", level=logging.INFO):
                pass

        messages = [r.getMessage() for r in caplog.records]
        assert messages[0] == "Starting: OCR worker startup"
        assert messages[1].startswith("Completed: OCR worker startup in ")

    def test_failure_is_logged_and_reraised(self, caplog) -> None:
        logger = logging.getLogger("labelsense.test.duration")

        with caplog.at_level(logging.DEBUG, logger="labelsense.test.duration"):
            with pytest.raises(RuntimeError):
                with log_duration(logger, "download"):
                    raise RuntimeError("boom")

        assert caplog.records[-1].levelno == logging.ERROR
        assert caplog.records[-1].getMessage().startswith("Failed: download after ")


def test_configure_logging_replaces_its_own_handler() -> None:
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        configure_logging("DEBUG")
        configure_logging("WARNING")

        added = [h for h in root.handlers if h not in before]
        assert len(added) == 1
        assert isinstance(added[0].formatter, ContextualFormatter)
        assert root.level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in root.handlers:
            if handler not in before:
                root.removeHandler(handler)
        root.setLevel(level)


class TestRegistry:
    def test_counter_rejects_negative_increments(self) -> None:
        with pytest.raises(ValueError):
            Counter("x_total").inc(-1)

    def test_name_cannot_change_kind(self) -> None:
        get_registry().counter("ocr_runs_total")
        with pytest.raises(TypeError, match="counter"):
            get_registry().histogram("ocr_runs_total")

    def test_histogram_tracks_extremes(self) -> None:
        histogram = get_registry().histogram("ocr_duration_seconds")
        for value in (0.3, 0.1, 0.5):
            histogram.observe(value)

        stats = histogram.get_stats()
        assert stats["count"] == 3
        assert stats["min"] == 0.1
        assert stats["max"] == 0.5
