"""In-process metrics for the label detection pipeline.

Every stage (download, preprocessing, OCR, scoring) reports into one
process-wide :class:`MetricRegistry`. The API serves it as Prometheus text
on ``/metrics``; the CLI prints :func:`get_detection_stats` after a batch.
"""

from __future__ import annotations

import threading
import time
from typing import Iterator, Mapping

Labels = Mapping[str, str | None]
LabelKey = tuple[tuple[str, str | None], ...]

DEFAULT_SERIES = "default"

LABEL_DETECTIONS = "label_detections_total"
LABEL_DETECTION_DURATION = "label_detection_duration_seconds"
OCR_RUNS = "ocr_runs_total"
OCR_DURATION = "ocr_duration_seconds"
OCR_WORDS = "ocr_words_total"
IMAGE_DOWNLOADS = "image_downloads_total"
IMAGE_DOWNLOAD_DURATION = "image_download_duration_seconds"
IMAGE_DOWNLOADS_BYTES = "image_downloads_bytes_total"
PREPROCESS_DURATION = "preprocess_duration_seconds"

DETECTION_OUTCOMES = ("label", "not_label", "failed")
STATUSES = ("success", "failed")


def _series_key(labels: Labels | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


def _series_name(key: LabelKey) -> str:
    """``status=success`` style name used in summaries."""
    if not key:
        return DEFAULT_SERIES
    return ",".join(f"{name}={value}" for name, value in key)


def _prometheus_suffix(key: LabelKey) -> str:
    if not key:
        return ""
    inner = ",".join(f'{name}="{value}"' for name, value in key)
    return "{" + inner + "}"


class _Metric:
    kind = ""

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._lock = threading.Lock()

    def header(self) -> Iterator[str]:
        if self.help_text:
            yield f"# HELP {self.name} {self.help_text}"
        yield f"# TYPE {self.name} {self.kind}"


class Counter(_Metric):
    """Monotonic total, one value per label set."""

    kind = "counter"

    def __init__(self, name: str, help_text: str = "") -> None:
        super().__init__(name, help_text)
        self._totals: dict[LabelKey, float] = {}

    def inc(self, value: float = 1.0, labels: Labels | None = None) -> None:
        if value < 0:
            raise ValueError(f"counter {self.name} cannot decrease")
        key = _series_key(labels)
        with self._lock:
            self._totals[key] = self._totals.get(key, 0.0) + value

    def get(self, labels: Labels | None = None) -> float:
        with self._lock:
            return self._totals.get(_series_key(labels), 0.0)

    def snapshot(self) -> dict[LabelKey, float]:
        with self._lock:
            return dict(self._totals)

    def exposition(self) -> Iterator[str]:
        yield from self.header()
        for key, total in self.snapshot().items():
            yield f"{self.name}{_prometheus_suffix(key)} {total}"


class Histogram(_Metric):
    """Running count/sum/min/max of observed durations, per label set.

    Exported as a Prometheus ``summary`` without quantiles.
    """

    kind = "summary"

    def __init__(self, name: str, help_text: str = "") -> None:
        super().__init__(name, help_text)
        self._series: dict[LabelKey, list[float]] = {}

    def observe(self, value: float, labels: Labels | None = None) -> None:
        key = _series_key(labels)
        with self._lock:
            series = self._series.get(key)
            if series is None:
                self._series[key] = [1, value, value, value]
                return
            series[0] += 1
            series[1] += value
            series[2] = min(series[2], value)
            series[3] = max(series[3], value)

    def get_stats(self, labels: Labels | None = None) -> dict[str, float]:
        with self._lock:
            series = self._series.get(_series_key(labels))
            series = list(series) if series else None
        return self._as_stats(series)

    def snapshot(self) -> dict[LabelKey, dict[str, float]]:
        with self._lock:
            copied = {key: list(series) for key, series in self._series.items()}
        return {key: self._as_stats(series) for key, series in copied.items()}

    def exposition(self) -> Iterator[str]:
        yield from self.header()
        for key, stats in self.snapshot().items():
            suffix = _prometheus_suffix(key)
            yield f"{self.name}_count{suffix} {stats['count']}"
            yield f"{self.name}_sum{suffix} {stats['sum']}"

    @staticmethod
    def _as_stats(series: list[float] | None) -> dict[str, float]:
        if not series:
            return {"count": 0, "sum": 0.0, "avg": 0.0, "min": 0.0, "max": 0.0}
        count, total, lowest, highest = series
        return {
            "count": int(count),
            "sum": total,
            "avg": total / count,
            "min": lowest,
            "max": highest,
        }


class MetricRegistry:
    """Named counters and histograms, created on first use."""

    def __init__(self) -> None:
        self._metrics: dict[str, _Metric] = {}
        self._lock = threading.Lock()

    def _get_or_create(self, cls: type[_Metric], name: str, help_text: str) -> _Metric:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = cls(name, help_text)
            elif not isinstance(metric, cls):
                raise TypeError(f"metric {name} is already registered as a {metric.kind}")
            elif help_text and not metric.help_text:
                metric.help_text = help_text
            return metric

    def counter(self, name: str, help_text: str = "") -> Counter:
        return self._get_or_create(Counter, name, help_text)  # type: ignore[return-value]

    def histogram(self, name: str, help_text: str = "") -> Histogram:
        return self._get_or_create(Histogram, name, help_text)  # type: ignore[return-value]

    def all_counters(self) -> dict[str, Counter]:
        with self._lock:
            return {n: m for n, m in self._metrics.items() if isinstance(m, Counter)}

    def all_histograms(self) -> dict[str, Histogram]:
        with self._lock:
            return {n: m for n, m in self._metrics.items() if isinstance(m, Histogram)}

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()


_registry = MetricRegistry()


def get_registry() -> MetricRegistry:
    return _registry


def increment_counter(
    name: str,
    value: float = 1.0,
    labels: Labels | None = None,
    help_text: str = "",
) -> None:
    _registry.counter(name, help_text).inc(value, labels)


def observe_histogram(
    name: str,
    value: float,
    labels: Labels | None = None,
    help_text: str = "",
) -> None:
    _registry.histogram(name, help_text).observe(value, labels)


class Timer:
    """Measure a block and record the elapsed seconds into a histogram.

    ``elapsed`` stays readable after the block::

        with Timer(PREPROCESS_DURATION) as timer:
            processed = preprocess_for_ocr(data)
        logger.debug("Preprocessing took %.3fs", timer.elapsed)
    """

    def __init__(
        self,
        histogram_name: str,
        labels: Labels | None = None,
        help_text: str = "",
    ) -> None:
        self.histogram_name = histogram_name
        self.labels = labels
        self.help_text = help_text
        self.elapsed = 0.0
        self._started = 0.0

    def __enter__(self) -> Timer:
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.elapsed = time.perf_counter() - self._started
        observe_histogram(self.histogram_name, self.elapsed, self.labels, self.help_text)


def record_label_detection(outcome: str, duration: float) -> None:
    """Count one verdict (``label``, ``not_label`` or ``failed``) and its pipeline time."""
    increment_counter(
        LABEL_DETECTIONS,
        labels={"outcome": outcome},
        help_text="Images analyzed, by verdict",
    )
    observe_histogram(
        LABEL_DETECTION_DURATION,
        duration,
        help_text="Seconds from download to verdict",
    )


def record_ocr(status: str, duration: float, words: int = 0) -> None:
    """Count one recognition; ``words`` only feeds the word total when positive."""
    labels = {"status": status}
    increment_counter(OCR_RUNS, labels=labels, help_text="Tesseract recognitions, by status")
    observe_histogram(OCR_DURATION, duration, labels=labels, help_text="Seconds spent in Tesseract")
    if words > 0:
        increment_counter(OCR_WORDS, float(words), help_text="Words returned by Tesseract")


def record_image_download(status: str, duration: float, bytes_downloaded: int = 0) -> None:
    labels = {"status": status}
    increment_counter(IMAGE_DOWNLOADS, labels=labels, help_text="Image fetches, by status")
    observe_histogram(
        IMAGE_DOWNLOAD_DURATION,
        duration,
        labels=labels,
        help_text="Seconds spent fetching images, retries included",
    )
    if bytes_downloaded > 0:
        increment_counter(
            IMAGE_DOWNLOADS_BYTES, float(bytes_downloaded), help_text="Image bytes fetched"
        )


def get_detection_stats() -> dict[str, object]:
    """Verdict, OCR and download counts plus pipeline timing, for CLI display."""
    detections = _registry.counter(LABEL_DETECTIONS)
    ocr = _registry.counter(OCR_RUNS)
    downloads = _registry.counter(IMAGE_DOWNLOADS)
    return {
        "detections": {o: detections.get({"outcome": o}) for o in DETECTION_OUTCOMES},
        "ocr": {s: ocr.get({"status": s}) for s in STATUSES},
        "downloads": {s: downloads.get({"status": s}) for s in STATUSES},
        "duration": _registry.histogram(LABEL_DETECTION_DURATION).get_stats(),
    }


def get_metrics_summary() -> dict[str, object]:
    """All series keyed by metric name, then by ``name=value`` label text."""
    return {
        "counters": {
            name: {_series_name(key): total for key, total in counter.snapshot().items()}
            for name, counter in _registry.all_counters().items()
        },
        "histograms": {
            name: {_series_name(key): stats for key, stats in histogram.snapshot().items()}
            for name, histogram in _registry.all_histograms().items()
        },
    }


def format_prometheus() -> str:
    """Render the registry in the Prometheus text exposition format."""
    lines: list[str] = []
    for counter in _registry.all_counters().values():
        lines.extend(counter.exposition())
    for histogram in _registry.all_histograms().values():
        lines.extend(histogram.exposition())
    return "\n".join(lines)


__all__ = [
    "Counter",
    "Histogram",
    "MetricRegistry",
    "Timer",
    "format_prometheus",
    "get_detection_stats",
    "get_metrics_summary",
    "get_registry",
    "increment_counter",
    "observe_histogram",
    "record_image_download",
    "record_label_detection",
    "record_ocr",
]
