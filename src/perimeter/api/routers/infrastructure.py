"""Infrastructure exposure API endpoints."""

from datetime import datetime, timezone
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field

from perimeter.core.exceptions import ScanConflictError
from perimeter.core.logging import get_logger
from perimeter.database import (
    DnsRecordRepository,
    ScanConfigRepository,
    ScanLogRepository,
    ZoneRepository,
    get_session,
)
from perimeter.models import ExposureStats
from perimeter.orchestration import ScanConfigService, ScanOrchestrator
from perimeter.orchestration.queries import get_exposure_stats
from perimeter.reports import CSVReportGenerator

router = APIRouter()
logger = get_logger("api.infrastructure")

OrganizationId = Annotated[str, Query(min_length=1, description="Organization identifier")]


def get_orchestrator() -> ScanOrchestrator:
    return ScanOrchestrator()


def get_config_service() -> ScanConfigService:
    return ScanConfigService()


class ConfigRequest(BaseModel):
    """Scanner configuration for an organization."""

    organization_id: str = Field(min_length=1)
    api_token: str = Field(min_length=1)
    http_proxy: str | None = Field(default=None, examples=["http://proxy.internal:3128"])
    scan_schedule: str | None = Field(default=None, examples=["0 0 * * *"])
    is_enabled: bool = True


class OrganizationRequest(BaseModel):
    organization_id: str = Field(min_length=1)


class RecordListResponse(BaseModel):
    """Paginated list of DNS records."""

    items: list[dict]
    total: int
    page: int
    limit: int
    total_pages: int


def _optional_filter(value: str | None) -> str | None:
    if value is None or value in ("", "all"):
        return None
    return value


def _optional_bool(value: str | None) -> bool | None:
    if value == "true":
        return True
    if value == "false":
        return False
    return None


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@router.get("/config")
async def get_config(organization_id: OrganizationId) -> dict:
    """Get the scanner configuration without its credential."""
    async with get_session() as db:
        config = await ScanConfigRepository(db).get(organization_id)
        return {"data": config.to_public_dict() if config else None}


@router.post("/config")
async def save_config(
    request: ConfigRequest,
    service: ScanConfigService = Depends(get_config_service),
) -> dict:
    """Verify the provider token and store the configuration.

    An invalid token or schedule is answered with 400.
    """
    config = await service.save_config(
        request.organization_id,
        api_token=request.api_token,
        http_proxy=request.http_proxy,
        scan_schedule=request.scan_schedule,
        is_enabled=request.is_enabled,
    )
    return {"data": config.to_public_dict()}


# ---------------------------------------------------------------------------
# Stats, records and zones
# ---------------------------------------------------------------------------

@router.get("/stats", response_model=ExposureStats)
async def get_stats(organization_id: OrganizationId) -> ExposureStats:
    async with get_session() as db:
        return await get_exposure_stats(db, organization_id)


@router.get("/records", response_model=RecordListResponse)
async def list_records(
    organization_id: OrganizationId,
    search: str | None = None,
    type: str | None = None,
    exposure_status: str | None = None,
    proxied: Literal["true", "false", "all", ""] | None = None,
    origin_protected: Literal["true", "false", "all", ""] | None = None,
    zone_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
) -> RecordListResponse:
    """List records with optional filtering."""
    zone_filter = _optional_filter(zone_id)
    try:
        zone_uuid = UUID(zone_filter) if zone_filter else None
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid zone_id") from None

    async with get_session() as db:
        rows, total = await DnsRecordRepository(db).search(
            organization_id,
            search=search or None,
            record_type=_optional_filter(type),
            exposure_status=_optional_filter(exposure_status),
            proxied=_optional_bool(proxied),
            origin_protected=_optional_bool(origin_protected),
            zone_id=zone_uuid,
            limit=limit,
            offset=(page - 1) * limit,
        )

    return RecordListResponse(
        items=[record.to_dict(zone_name=zone_name) for record, zone_name in rows],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
    )


@router.get("/records/{record_id}")
async def get_record(record_id: UUID, organization_id: OrganizationId) -> dict:
    async with get_session() as db:
        found = await DnsRecordRepository(db).get_with_zone(record_id, organization_id)
    if found is None:
        raise HTTPException(status_code=404, detail="Record not found")

    record, zone = found
    data = record.to_dict(zone_name=zone.name)
    data["zone"] = {
        "id": str(zone.id),
        "name": zone.name,
        "status": zone.status,
        "nameservers": zone.nameservers,
    }
    return {"data": data}


@router.post("/records/{record_id}/check")
async def check_record(
    record_id: UUID,
    request: OrganizationRequest,
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Re-probe one record without running a full scan."""
    record = await orchestrator.check_single_record(record_id, request.organization_id)
    return {"data": record.to_dict()}


@router.get("/zones")
async def list_zones(organization_id: OrganizationId) -> dict:
    async with get_session() as db:
        zones = await ZoneRepository(db).list_with_counts(organization_id)
    return {"data": [zone.to_dict(record_count=count) for zone, count in zones]}


# ---------------------------------------------------------------------------
# Scans
# ---------------------------------------------------------------------------

async def _run_scan(
    orchestrator: ScanOrchestrator,
    organization_id: str,
    triggered_by: str,
) -> None:
    """Run a scan in the background; the ScanLog records the outcome."""
    try:
        await orchestrator.run_full_scan(organization_id, triggered_by)
    except ScanConflictError:
        logger.info("background_scan_skipped", organization_id=organization_id)
    except Exception as e:
        logger.error(
            "background_scan_failed",
            organization_id=organization_id,
            error=str(e),
        )


@router.post("/scan", status_code=202)
async def start_scan(
    request: OrganizationRequest,
    background_tasks: BackgroundTasks,
    triggered_by: str = Query(default="manual", min_length=1),
    orchestrator: ScanOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Start a full scan unless one is already running."""
    organization_id = request.organization_id
    async with get_session() as db:
        config = await ScanConfigRepository(db).get(organization_id)
        running = await ScanLogRepository(db).get_running(organization_id)

    if config is None or not config.api_token:
        raise HTTPException(
            status_code=400,
            detail="DNS provider API token is not configured for this organization",
        )
    if running is not None:
        raise HTTPException(status_code=409, detail="A scan is already in progress")

    background_tasks.add_task(_run_scan, orchestrator, organization_id, triggered_by)
    logger.info("scan_requested", organization_id=organization_id, triggered_by=triggered_by)

    return {"data": {"message": "Infrastructure scan started."}}


@router.get("/scan-status")
async def get_scan_status(organization_id: OrganizationId) -> dict:
    """Latest scan with its live progress counters."""
    async with get_session() as db:
        scan_log = await ScanLogRepository(db).latest(organization_id)
    return {"data": scan_log.to_dict() if scan_log else None}


@router.get("/scan-history")
async def get_scan_history(
    organization_id: OrganizationId,
    limit: int = Query(default=10, ge=1, le=100),
) -> dict:
    async with get_session() as db:
        scans = await ScanLogRepository(db).history(organization_id, limit)
    return {"data": [scan.to_dict() for scan in scans]}


@router.get("/export")
async def export_report(organization_id: OrganizationId) -> Response:
    """Download the exposure report as CSV."""
    async with get_session() as db:
        rows, _ = await DnsRecordRepository(db).search(organization_id, limit=0)
        last_scan = await ScanLogRepository(db).latest_completed(organization_id)

    generator = CSVReportGenerator()
    generated_at = datetime.now(timezone.utc)
    content = generator.generate(rows, last_scan, generated_at=generated_at)
    return Response(
        content=content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{generator.filename(generated_at)}"'
        },
    )

