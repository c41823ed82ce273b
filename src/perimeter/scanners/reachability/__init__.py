"""Reachability probing."""

from perimeter.scanners.reachability.scanner import (
    ReachabilityProber,
    TransportErrorCode,
    UNREACHABLE_ERROR_CODES,
    classify_exposure,
    transport_error_code,
)

__all__ = [
    "ReachabilityProber",
    "TransportErrorCode",
    "UNREACHABLE_ERROR_CODES",
    "classify_exposure",
    "transport_error_code",
]
