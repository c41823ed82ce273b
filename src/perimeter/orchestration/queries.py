"""Read-side queries over scan results."""

from sqlalchemy.ext.asyncio import AsyncSession

from perimeter.database import (
    DnsRecordRepository,
    ScanConfigRepository,
    ScanLogRepository,
    ZoneRepository,
)
from perimeter.models import ExposureStats, ExposureStatus, LastScanSummary


async def get_exposure_stats(db: AsyncSession, organization_id: str) -> ExposureStats:
    """Aggregate exposure figures for the dashboard and CLI status view."""
    record_repo = DnsRecordRepository(db)
    by_status = await record_repo.count_by_status(organization_id)
    config = await ScanConfigRepository(db).get(organization_id)
    last_scan = await ScanLogRepository(db).latest_completed(organization_id)

    return ExposureStats(
        total_records=sum(by_status.values()),
        public_count=by_status.get(ExposureStatus.PUBLIC.value, 0),
        private_count=by_status.get(ExposureStatus.PRIVATE.value, 0),
        unreachable_count=by_status.get(ExposureStatus.UNREACHABLE.value, 0),
        pending_count=by_status.get(ExposureStatus.PENDING.value, 0),
        error_count=by_status.get(ExposureStatus.ERROR.value, 0),
        origin_exposed_count=await record_repo.count_origin_exposed(organization_id),
        zone_count=await ZoneRepository(db).count(organization_id),
        by_type=await record_repo.count_by_type(organization_id),
        last_scan=LastScanSummary(
            id=str(last_scan.id),
            triggered_by=last_scan.triggered_by,
            completed_at=last_scan.completed_at,
            records_scanned=last_scan.records_scanned,
        ) if last_scan else None,
        is_configured=bool(config and config.api_token),
        is_enabled=bool(config and config.is_enabled),
        scan_schedule=config.scan_schedule if config else None,
    )
