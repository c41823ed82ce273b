"""Origin protection correlation."""

from perimeter.scanners.origin.scanner import OriginCorrelator

__all__ = ["OriginCorrelator"]
