"""Shared helpers for composing CLI command contexts.

Commands receive a :class:`CLIContext` through ``ctx.obj``. It carries the
settings and the factories used to build the OCR pool and the image
downloader, so tests can swap in stubs.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Callable

import click

from labelsense.app.config import Settings, load_analysis_config, load_settings
from labelsense.domain.analysis import KeywordVocabulary, ScoringConfig
from labelsense.infrastructure.ai.ocr_engine import OCREnginePool
from labelsense.infrastructure.http.images import ImageDownloader
from labelsense.services.label_detection import LabelDetectionService

PoolFactory = Callable[[int, str], Any]


def _default_pool_factory(pool_size: int, language: str) -> OCREnginePool:
    return OCREnginePool(pool_size=pool_size, language=language)


@dataclass(frozen=True)
class CLIContext:
    """Container for CLI dependencies and configuration."""

    settings: Settings = field(default_factory=Settings)
    config_path: Path | None = None
    pool_factory: PoolFactory = _default_pool_factory
    downloader_factory: Callable[[], Any] = ImageDownloader

    def analysis_config(self) -> tuple[ScoringConfig, KeywordVocabulary]:
        """Scoring and vocabulary, overridden from the config file if any."""
        path = self.config_path or self.settings.config_path
        try:
            return load_analysis_config(path)
        except (OSError, ValueError) as exc:
            raise click.ClickException(f"Invalid configuration {path}: {exc}") from exc

    @asynccontextmanager
    async def detection_service(
        self,
        language: str | None = None,
        concurrency: int | None = None,
    ) -> AsyncIterator[LabelDetectionService]:
        """Yield a detection service backed by a freshly started OCR pool."""
        scoring, vocabulary = self.analysis_config()
        pool_size = concurrency or self.settings.worker_pool_size
        pool = self.pool_factory(pool_size, language or self.settings.tesseract_lang)
        await pool.initialize()
        try:
            yield LabelDetectionService(
                pool,
                self.downloader_factory(),
                scoring=scoring,
                vocabulary=vocabulary,
                max_concurrency=concurrency,
                debug_dir=self.settings.debug_dir,
            )
        finally:
            await pool.terminate()


def build_cli_context(config_path: str | None = None) -> CLIContext:
    """Create the default context from environment settings."""
    try:
        settings = load_settings()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    return CLIContext(
        settings=settings, config_path=Path(config_path) if config_path else None
    )


def get_cli_context(ctx: click.Context) -> CLIContext:
    """Return the context stored on ``ctx.obj``, creating a default one."""
    root = ctx.find_root()
    if not isinstance(root.obj, CLIContext):
        root.obj = build_cli_context()
    return root.obj


__all__ = ["CLIContext", "build_cli_context", "get_cli_context"]
