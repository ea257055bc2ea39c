"""Label detection CLI commands.

- detect: Run the pipeline on one image URL or local file
- batch: Run the pipeline on a JSON file of image records
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from labelsense.domain.errors import LabelDetectionError
from labelsense.domain.models import LabelDetectionResult, ProductImage
from labelsense.infrastructure.http.images import read_image_file
from labelsense.infrastructure.observability.metrics import get_detection_stats

from .context import get_cli_context

console = Console()


def _is_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def _result_table(title: str, result: LabelDetectionResult) -> Table:
    verdict = "[green]Label[/green]" if result.is_product_label else "[yellow]Not a label[/yellow]"
    metrics = result.metrics

    table = Table(title=title, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Verdict", verdict)
    table.add_row("Confidence", f"{result.confidence * 100:.1f}%")
    table.add_row("Text coverage", f"{metrics.text_coverage:.2f}%")
    table.add_row("Text blocks", str(metrics.text_block_count))
    table.add_row("Words", str(metrics.word_count))
    table.add_row("Avg. word confidence", f"{metrics.average_text_confidence:.1f}")
    table.add_row("Barcode / QR", f"{metrics.has_barcode} / {metrics.has_qr_code}")
    table.add_row("Time", f"{result.processing_time_ms:.0f} ms")
    table.add_row("Reasoning", result.reasoning.replace("; ", "\n"))
    return table


@click.command(name="detect")
@click.argument("source")
@click.option("--lang", default=None, help="Tesseract language(s), e.g. spa+eng.")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.pass_context
def detect(ctx: click.Context, source: str, lang: str | None, as_json: bool) -> None:
    """Decide whether the image at SOURCE (URL or file path) is a product label."""
    cli_context = get_cli_context(ctx)

    async def _run() -> LabelDetectionResult:
        async with cli_context.detection_service(language=lang, concurrency=1) as service:
            if _is_url(source):
                image = ProductImage(
                    id=Path(source).name or source,
                    referenced_file_url=source,
                    is_absolute_url=True,
                )
                return await service.detect_label(image)
            image_bytes = read_image_file(source)
            return await service.detect_label_bytes(image_bytes, image_id=Path(source).stem)

    try:
        result = asyncio.run(_run())
    except LabelDetectionError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return
    console.print(_result_table(source, result))


def _load_image_records(path: Path, default_base_url: str) -> list[ProductImage]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise click.ClickException(f"Cannot read {path}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("images", [])
    if not isinstance(data, list):
        raise click.ClickException(f"{path} must contain a list of image records")

    try:
        return [ProductImage.from_dict(item, default_base_url) for item in data]
    except (TypeError, ValueError) as exc:
        raise click.ClickException(f"Invalid image record in {path}: {exc}") from exc


@click.command(name="batch")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Images processed at once. Defaults to the OCR pool size.",
)
@click.option("--lang", default=None, help="Tesseract language(s), e.g. spa+eng.")
@click.option("--json", "as_json", is_flag=True, help="Print the results as JSON.")
@click.pass_context
def batch(
    ctx: click.Context,
    file: Path,
    concurrency: int | None,
    lang: str | None,
    as_json: bool,
) -> None:
    """Analyze every image record in FILE (a JSON list).

    Records use the catalogue format (``_id``, ``referencedFileURL``,
    ``baseUrl``, ``isAbsoluteUrl``). Images that fail are reported and do
    not stop the batch.
    """
    cli_context = get_cli_context(ctx)
    images = _load_image_records(file, cli_context.settings.base_image_url)
    if not images:
        click.echo("No images to analyze.")
        return

    async def _run() -> dict[str, LabelDetectionResult]:
        async with cli_context.detection_service(
            language=lang, concurrency=concurrency
        ) as service:
            if as_json:
                return await service.detect_labels_in_batch(images)
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TextColumn("[cyan]{task.completed}/{task.total}"),
                console=console,
            ) as progress:
                task = progress.add_task("Analyzing images", total=len(images))
                return await service.detect_labels_in_batch(
                    images,
                    progress_callback=lambda done, _total: progress.update(
                        task, completed=done
                    ),
                )

    results = asyncio.run(_run())

    if as_json:
        click.echo(
            json.dumps({image_id: r.to_dict() for image_id, r in results.items()}, indent=2)
        )
        return

    table = Table(title=f"Label detection ({len(results)} images)")
    table.add_column("Image", style="bold")
    table.add_column("Label")
    table.add_column("Confidence", justify="right")
    table.add_column("Reasoning")
    for image_id, result in results.items():
        table.add_row(
            image_id,
            "yes" if result.is_product_label else "no",
            f"{result.confidence * 100:.1f}%",
            result.reasoning,
        )
    console.print(table)

    labels = sum(1 for r in results.values() if r.is_product_label)
    console.print(f"[bold]{labels}[/bold] of {len(results)} image(s) look like labels")

    stats = get_detection_stats()
    duration = stats["duration"]
    if duration["count"]:
        console.print(
            f"Failed: {stats['detections']['failed']:.0f}, "
            f"average pipeline time {duration['avg'] * 1000:.0f} ms"
        )


__all__ = ["batch", "detect"]
