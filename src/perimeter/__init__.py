"""Perimeter - infrastructure exposure scanner."""

from perimeter.version import __version__

__all__ = ["__version__"]
