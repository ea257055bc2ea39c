"""Score raw text without running OCR.

Useful for tuning thresholds and vocabularies: paste the text of a label
and see which signals fire and how many points each criterion adds.
"""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from labelsense.domain.analysis import detect_signals, score_signals
from labelsense.domain.models import OCRResult, TextDensityAnalysis

from .context import get_cli_context

console = Console()


@click.command(name="score-text")
@click.argument("text")
@click.option(
    "--words",
    type=click.IntRange(min=0),
    default=None,
    help="Word count to assume. Defaults to the number of tokens in TEXT.",
)
@click.option(
    "--blocks",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Text block count to assume.",
)
@click.option(
    "--coverage",
    type=click.FloatRange(min=0),
    default=0.0,
    show_default=True,
    help="Text coverage percentage to assume.",
)
@click.pass_context
def score_text(
    ctx: click.Context,
    text: str,
    words: int | None,
    blocks: int,
    coverage: float,
) -> None:
    """Score TEXT as if OCR had read it from an image."""
    scoring, vocabulary = get_cli_context(ctx).analysis_config()

    ocr = OCRResult.create(text=text, confidence=0.0, words=())
    density = TextDensityAnalysis(
        total_text_area=0.0,
        image_area=0.0,
        text_coverage_percentage=coverage,
        text_block_count=blocks,
        average_word_confidence=0.0,
        words_detected=len(text.split()) if words is None else words,
    )
    signals = detect_signals(ocr, vocabulary)
    breakdown = score_signals(density, signals, len(text.strip()), scoring)

    table = Table(title="Signals")
    table.add_column("Signal", style="bold")
    table.add_column("Detected")
    table.add_row("Nutrition", str(signals.nutrition))
    table.add_row("Ingredients", str(signals.ingredients))
    table.add_row("Storage", str(signals.storage))
    table.add_row("Manufacturer", str(signals.manufacturer))
    table.add_row("Barcode", str(signals.codes.has_barcode))
    table.add_row("QR code", str(signals.codes.has_qr_code))
    console.print(table)

    verdict = "[green]LABEL[/green]" if breakdown.is_label else "[yellow]NOT A LABEL[/yellow]"
    console.print(
        f"Score: [bold]{breakdown.score:.2f}[/bold] "
        f"(threshold {scoring.label_threshold:g}) -> {verdict}"
    )
    for reason in breakdown.reasoning.split("; "):
        console.print(f"  - {reason}")


__all__ = ["score_text"]
