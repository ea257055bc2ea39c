"""Tests for settings and analysis configuration loading."""

import json

import pytest

from labelsense.app.config import (
    DetectionThresholds,
    Settings,
    load_analysis_config,
    load_config,
    load_settings,
)
from labelsense.domain.analysis import DEFAULT_SCORING, DEFAULT_VOCABULARY


def test_defaults_without_environment() -> None:
    settings = load_settings({})

    assert settings == Settings()
    assert settings.port == 3000
    assert settings.tesseract_lang == "spa+eng"
    assert settings.worker_pool_size == 4
    assert settings.detection == DetectionThresholds()


def test_environment_overrides() -> None:
    settings = load_settings(
        {
            "PORT": "8080",
            "BASE_IMAGE_URL": "https://cdn.example.com/",
            "TESSERACT_LANG": "eng",
            "TESSERACT_WORKER_POOL_SIZE": "2",
            "LABEL_TEXT_COVERAGE_THRESHOLD": "0.3",
            "LABEL_WORD_COUNT_THRESHOLD": "25",
            "MIN_CONFIDENCE_THRESHOLD": "0.8",
            "LOG_LEVEL": "DEBUG",
            "LABELSENSE_DEBUG_DIR": "/tmp/debug",
        }
    )

    assert settings.port == 8080
    assert settings.base_image_url == "https://cdn.example.com/"
    assert settings.tesseract_lang == "eng"
    assert settings.worker_pool_size == 2
    assert settings.detection.text_coverage == 0.3
    assert settings.detection.text_blocks == 5
    assert settings.detection.word_count == 25
    assert settings.detection.min_confidence == 0.8
    assert settings.log_level == "DEBUG"
    assert settings.debug_dir == "/tmp/debug"
    assert settings.config_path is None


def test_invalid_number_names_the_variable() -> None:
    with pytest.raises(ValueError, match="PORT"):
        load_settings({"PORT": "eighty"})


def test_pool_size_must_be_positive() -> None:
    with pytest.raises(ValueError, match="TESSERACT_WORKER_POOL_SIZE"):
        load_settings({"TESSERACT_WORKER_POOL_SIZE": "0"})


class TestAnalysisConfig:
    def test_defaults_without_file(self) -> None:
        assert load_analysis_config(None) == (DEFAULT_SCORING, DEFAULT_VOCABULARY)

    def test_sections_override_defaults(self, tmp_path) -> None:
        path = tmp_path / "labelsense.json"
        path.write_text(
            json.dumps(
                {
                    "scoring": {"label_threshold": 60},
                    "vocabulary": {"storage": ["keep refrigerated"]},
                }
            ),
            encoding="utf-8",
        )

        scoring, vocabulary = load_analysis_config(path)

        assert scoring.label_threshold == 60
        assert scoring.nutrition_points == DEFAULT_SCORING.nutrition_points
        assert vocabulary.storage == ("keep refrigerated",)
        assert vocabulary.manufacturer == DEFAULT_VOCABULARY.manufacturer

    def test_malformed_section(self, tmp_path) -> None:
        path = tmp_path / "labelsense.json"
        path.write_text(json.dumps({"scoring": [1, 2]}), encoding="utf-8")

        with pytest.raises(ValueError, match="'scoring'"):
            load_analysis_config(path)

    def test_unknown_field(self, tmp_path) -> None:
        path = tmp_path / "labelsense.json"
        path.write_text(json.dumps({"scoring": {"bonus": 1}}), encoding="utf-8")

        with pytest.raises(ValueError):
            load_analysis_config(path)

    def test_config_must_be_an_object(self, tmp_path) -> None:
        path = tmp_path / "labelsense.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(ValueError, match="JSON object"):
            load_config(path)
