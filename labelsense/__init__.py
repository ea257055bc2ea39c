"""
labelsense package initializer.

This package decides whether a product photo shows a printed product label
(nutrition table, ingredients list, barcode, manufacturer text) or an
ordinary product shot, so label-like images can be routed to structured
extraction.

The package exposes a ``__version__`` attribute indicating the installed
version of labelsense. The version is read from pyproject.toml via
importlib.metadata – this is the single source of truth.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("labelsense")
except PackageNotFoundError:
    # Package is not installed (running from source without pip install -e .)
    __version__ = "0.0.0.dev"

__all__: list[str] = ["__version__"]
