"""Directory group synchronization for Grafana."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]

__version__: str
"""The version string of gcontrol (PEP 440 / SemVer compatible)."""

try:
    __version__ = version("gcontrol")
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0"
