"""Scan progress and statistics models."""

from datetime import datetime

from pydantic import Field

from perimeter.models.base import BaseSchema, ExposureStatus


class ScanCounters(BaseSchema):
    """Running counters for one scan execution."""

    zones_scanned: int = 0
    records_scanned: int = 0
    total_records: int = 0
    checked_records: int = 0
    public_count: int = 0
    private_count: int = 0
    unreachable_count: int = 0
    error_count: int = 0
    origin_exposed_count: int = 0

    def record_status(self, status: ExposureStatus) -> None:
        """Count one classified record."""
        if status == ExposureStatus.PUBLIC:
            self.public_count += 1
        elif status == ExposureStatus.PRIVATE:
            self.private_count += 1
        elif status == ExposureStatus.UNREACHABLE:
            self.unreachable_count += 1
        else:
            self.error_count += 1
        self.checked_records += 1


class LastScanSummary(BaseSchema):
    """Short description of the most recent completed scan."""

    id: str
    triggered_by: str
    completed_at: datetime | None = None
    records_scanned: int = 0


class ExposureStats(BaseSchema):
    """Aggregate exposure figures for an organization."""

    total_records: int = 0
    public_count: int = 0
    private_count: int = 0
    unreachable_count: int = 0
    pending_count: int = 0
    error_count: int = 0
    origin_exposed_count: int = 0
    zone_count: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    last_scan: LastScanSummary | None = None
    is_configured: bool = False
    is_enabled: bool = False
    scan_schedule: str | None = None
