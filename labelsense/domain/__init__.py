"""Domain layer facade for labelsense.

This package groups the pure models and the label analysis algorithms
(approximate matching, text density, signal detection and scoring). Nothing
in here touches the network, the OCR engine or the filesystem.
"""

from . import analysis, errors, models

__all__ = ["analysis", "errors", "models"]
