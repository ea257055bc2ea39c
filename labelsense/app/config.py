"""Configuration utilities for labelsense.

Runtime settings come from environment variables. Scoring weights and
keyword vocabularies can be tuned with a JSON file::

    {
        "scoring": {"label_threshold": 50, "nutrition_points": 25},
        "vocabulary": {"storage": ["refrigerar", "congelar"]}
    }

Both sections are optional; missing fields keep their defaults.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

from labelsense.domain.analysis import (
    DEFAULT_SCORING,
    DEFAULT_VOCABULARY,
    KeywordVocabulary,
    ScoringConfig,
)
from labelsense.infrastructure.ai.ocr_engine import DEFAULT_LANGUAGE, DEFAULT_POOL_SIZE


@dataclass(frozen=True)
class DetectionThresholds:
    """Coarse detection thresholds accepted from the environment.

    They are reported on ``/health``; the scoring engine does not read
    them and uses the tiers of :class:`ScoringConfig` instead.
    """

    text_coverage: float = 0.25
    text_blocks: int = 5
    word_count: int = 20
    min_confidence: float = 0.70


@dataclass(frozen=True)
class Settings:
    """Service settings."""

    port: int = 3000
    base_image_url: str = ""
    tesseract_lang: str = DEFAULT_LANGUAGE
    worker_pool_size: int = DEFAULT_POOL_SIZE
    detection: DetectionThresholds = field(default_factory=DetectionThresholds)
    log_level: str = "INFO"
    debug_dir: str | None = None
    config_path: str | None = None


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from environment variables.

    Args:
        environ: Variables to read. Defaults to ``os.environ``.

    Raises:
        ValueError: If a numeric variable cannot be parsed.
    """
    env = os.environ if environ is None else environ
    pool_size = _env_int(env, "TESSERACT_WORKER_POOL_SIZE", DEFAULT_POOL_SIZE)
    if pool_size < 1:
        raise ValueError("TESSERACT_WORKER_POOL_SIZE must be at least 1")

    return Settings(
        port=_env_int(env, "PORT", 3000),
        base_image_url=env.get("BASE_IMAGE_URL", ""),
        tesseract_lang=env.get("TESSERACT_LANG") or DEFAULT_LANGUAGE,
        worker_pool_size=pool_size,
        detection=DetectionThresholds(
            text_coverage=_env_float(env, "LABEL_TEXT_COVERAGE_THRESHOLD", 0.25),
            text_blocks=_env_int(env, "LABEL_TEXT_BLOCK_THRESHOLD", 5),
            word_count=_env_int(env, "LABEL_WORD_COUNT_THRESHOLD", 20),
            min_confidence=_env_float(env, "MIN_CONFIDENCE_THRESHOLD", 0.70),
        ),
        log_level=env.get("LOG_LEVEL") or "INFO",
        debug_dir=env.get("LABELSENSE_DEBUG_DIR") or None,
        config_path=env.get("LABELSENSE_CONFIG") or None,
    )


def load_config(path: str | Path) -> Dict[str, Any]:
    """Load configuration from a JSON file.

    Args:
        path: Path to the JSON configuration file.

    Returns:
        A dictionary of configuration values.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration in {path} must be a JSON object")
    return data


def load_analysis_config(
    path: str | Path | None,
) -> tuple[ScoringConfig, KeywordVocabulary]:
    """Return scoring and vocabulary settings, overridden from ``path``.

    Without a path the defaults are returned.

    Raises:
        ValueError: If a section is malformed or names an unknown field.
    """
    if path is None:
        return DEFAULT_SCORING, DEFAULT_VOCABULARY

    data = load_config(path)
    scoring_data = data.get("scoring", {})
    vocabulary_data = data.get("vocabulary", {})
    for name, section in (("scoring", scoring_data), ("vocabulary", vocabulary_data)):
        if not isinstance(section, dict):
            raise ValueError(f"'{name}' in {path} must be a JSON object")

    return (
        DEFAULT_SCORING.with_overrides(scoring_data),
        DEFAULT_VOCABULARY.with_overrides(vocabulary_data),
    )


__all__ = [
    "DetectionThresholds",
    "Settings",
    "load_analysis_config",
    "load_config",
    "load_settings",
]
