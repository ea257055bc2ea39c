"""CLI commands for labelsense.

This package is the home for all Click commands; ``cli`` is the group
installed as the ``labelsense`` script.
"""

from .__main__ import cli
from .detect import batch, detect
from .score import score_text
from .serve import serve

__all__ = ["batch", "cli", "detect", "score_text", "serve"]
