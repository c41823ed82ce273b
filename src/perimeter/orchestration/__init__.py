"""Scan orchestration, scheduling and configuration."""

from perimeter.orchestration.coordinator import ScanOrchestrator
from perimeter.orchestration.configuration import ScanConfigService
from perimeter.orchestration.scheduler import ScanScheduler

__all__ = ["ScanOrchestrator", "ScanConfigService", "ScanScheduler"]
