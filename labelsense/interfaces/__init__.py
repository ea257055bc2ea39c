"""User-facing interfaces for labelsense.

Packages under ``labelsense.interfaces`` expose boundary adapters such as CLI
commands.
"""

from . import cli

__all__ = ["cli"]
