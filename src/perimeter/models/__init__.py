"""Pydantic data models for Perimeter."""

from perimeter.models.base import (
    ADDRESS_RECORD_TYPES,
    BaseSchema,
    ExposureStatus,
    OriginExposureType,
    RecordType,
    ScanStatus,
)
from perimeter.models.provider import ProviderRecord, ProviderZone
from perimeter.models.probe import ProbeResult
from perimeter.models.origin import OriginAssessment, OriginReport
from perimeter.models.scan import ExposureStats, LastScanSummary, ScanCounters

__all__ = [
    # Base
    "ADDRESS_RECORD_TYPES",
    "BaseSchema",
    "ExposureStatus",
    "OriginExposureType",
    "RecordType",
    "ScanStatus",
    # Provider
    "ProviderRecord",
    "ProviderZone",
    # Probe
    "ProbeResult",
    # Origin
    "OriginAssessment",
    "OriginReport",
    # Scan
    "ExposureStats",
    "LastScanSummary",
    "ScanCounters",
]
