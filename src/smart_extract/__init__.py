"""smart-extract: task extraction with web content enrichment and LLM analysis."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("smart-extract")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = ["__version__"]
