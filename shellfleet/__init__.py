"""shellfleet: live dashboard over local agent sessions."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("shellfleet")
except PackageNotFoundError:
    # Source checkout without installed metadata.
    __version__ = "0.0.0+dev"

__all__ = ["__version__"]
