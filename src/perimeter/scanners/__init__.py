"""Scanner modules for Perimeter."""

from perimeter.scanners.origin import OriginCorrelator
from perimeter.scanners.reachability import ReachabilityProber, classify_exposure

__all__ = ["OriginCorrelator", "ReachabilityProber", "classify_exposure"]
