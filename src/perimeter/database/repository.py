"""Repository layer for database operations."""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from perimeter.core.exceptions import ScanConflictError
from perimeter.database.models import DnsRecord, DnsZone, ScanConfig, ScanLog
from perimeter.models import (
    ExposureStatus,
    OriginAssessment,
    ProbeResult,
    ProviderRecord,
    ProviderZone,
    ScanCounters,
    ScanStatus,
)


class ScanConfigRepository:
    """Repository for per-organization scanner configuration."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, organization_id: str) -> ScanConfig | None:
        """Get the configuration of an organization."""
        result = await self.session.execute(
            select(ScanConfig).where(ScanConfig.organization_id == organization_id)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        organization_id: str,
        api_token: str,
        http_proxy: str | None,
        scan_schedule: str,
        is_enabled: bool,
    ) -> ScanConfig:
        """Create or replace the configuration of an organization."""
        config = await self.get(organization_id)
        if config is None:
            config = ScanConfig(organization_id=organization_id)

        config.api_token = api_token
        config.http_proxy = http_proxy
        config.scan_schedule = scan_schedule
        config.is_enabled = is_enabled
        config.updated_at = datetime.now(timezone.utc)

        self.session.add(config)
        await self.session.flush()
        return config

    async def list_enabled(self) -> list[ScanConfig]:
        """List configurations with scanning enabled."""
        result = await self.session.execute(
            select(ScanConfig)
            .where(ScanConfig.is_enabled.is_(True))
            .order_by(ScanConfig.organization_id)
        )
        return list(result.scalars().all())


class ZoneRepository:
    """Repository for DNS zones."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_provider_id(
        self, organization_id: str, provider_zone_id: str
    ) -> DnsZone | None:
        result = await self.session.execute(
            select(DnsZone).where(
                DnsZone.organization_id == organization_id,
                DnsZone.provider_zone_id == provider_zone_id,
            )
        )
        return result.scalar_one_or_none()

    async def upsert(self, organization_id: str, zone: ProviderZone) -> DnsZone:
        """Create or update a zone matched by its provider id."""
        db_zone = await self.get_by_provider_id(organization_id, zone.id)
        if db_zone is None:
            db_zone = DnsZone(organization_id=organization_id, provider_zone_id=zone.id)

        db_zone.name = zone.name
        db_zone.status = zone.status
        db_zone.nameservers = zone.name_servers
        db_zone.updated_at = datetime.now(timezone.utc)

        self.session.add(db_zone)
        await self.session.flush()
        return db_zone

    async def count(self, organization_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(DnsZone)
            .where(DnsZone.organization_id == organization_id)
        )
        return result.scalar() or 0

    async def list_with_counts(self, organization_id: str) -> list[tuple[DnsZone, int]]:
        """List zones of an organization with their record counts."""
        counts = (
            select(DnsRecord.zone_id, func.count(DnsRecord.id).label("record_count"))
            .group_by(DnsRecord.zone_id)
            .subquery()
        )
        result = await self.session.execute(
            select(DnsZone, func.coalesce(counts.c.record_count, 0))
            .outerjoin(counts, counts.c.zone_id == DnsZone.id)
            .where(DnsZone.organization_id == organization_id)
            .order_by(DnsZone.name)
        )
        return [(zone, int(count)) for zone, count in result.all()]


class DnsRecordRepository:
    """Repository for DNS records and their scan state."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, record_id: UUID, organization_id: str) -> DnsRecord | None:
        """Get a record scoped to its organization."""
        result = await self.session.execute(
            select(DnsRecord).where(
                DnsRecord.id == record_id,
                DnsRecord.organization_id == organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_with_zone(
        self, record_id: UUID, organization_id: str
    ) -> tuple[DnsRecord, DnsZone] | None:
        result = await self.session.execute(
            select(DnsRecord, DnsZone)
            .join(DnsZone, DnsZone.id == DnsRecord.zone_id)
            .where(
                DnsRecord.id == record_id,
                DnsRecord.organization_id == organization_id,
            )
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    async def upsert(
        self,
        organization_id: str,
        zone_id: UUID,
        record: ProviderRecord,
    ) -> DnsRecord:
        """Create or update a record matched by its provider id.

        New records start as PENDING; existing ones keep their scan state
        until the next check overwrites it.
        """
        result = await self.session.execute(
            select(DnsRecord).where(
                DnsRecord.organization_id == organization_id,
                DnsRecord.provider_record_id == record.id,
            )
        )
        db_record = result.scalar_one_or_none()
        if db_record is None:
            db_record = DnsRecord(
                organization_id=organization_id,
                zone_id=zone_id,
                provider_record_id=record.id,
                name=record.name,
                record_type=record.type,
                content=record.content,
                exposure_status=ExposureStatus.PENDING.value,
            )

        db_record.zone_id = zone_id
        db_record.name = record.name
        db_record.record_type = record.type
        db_record.content = record.content
        db_record.proxied = record.proxied
        db_record.ttl = record.ttl
        db_record.updated_at = datetime.now(timezone.utc)

        self.session.add(db_record)
        await self.session.flush()
        return db_record

    async def list_for_organization(
        self,
        organization_id: str,
        record_types: Iterable[str] | None = None,
    ) -> list[DnsRecord]:
        """List records of an organization in a stable order."""
        query = select(DnsRecord).where(DnsRecord.organization_id == organization_id)
        if record_types is not None:
            query = query.where(DnsRecord.record_type.in_(list(record_types)))
        result = await self.session.execute(query.order_by(DnsRecord.name, DnsRecord.id))
        return list(result.scalars().all())

    async def count(self, organization_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(DnsRecord)
            .where(DnsRecord.organization_id == organization_id)
        )
        return result.scalar() or 0

    async def apply_probe_result(
        self,
        record_id: UUID,
        result: ProbeResult,
        checked_at: datetime | None = None,
    ) -> None:
        """Persist the reachability fields of one record."""
        await self.session.execute(
            update(DnsRecord)
            .where(DnsRecord.id == record_id)
            .values(
                exposure_status=result.status.value,
                http_status_code=result.http_status_code,
                response_time_ms=result.response_time_ms,
                last_checked_at=checked_at or datetime.now(timezone.utc),
                check_error=result.error or None,
            )
        )

    async def apply_origin_assessments(
        self, assessments: Iterable[OriginAssessment]
    ) -> None:
        """Persist origin protection verdicts."""
        for assessment in assessments:
            exposure_type = assessment.origin_exposure_type
            await self.session.execute(
                update(DnsRecord)
                .where(DnsRecord.id == assessment.record_id)
                .values(
                    origin_protected=assessment.origin_protected,
                    origin_exposure_type=exposure_type.value if exposure_type else None,
                    origin_exposure_details=assessment.origin_exposure_details,
                )
            )

    async def search(
        self,
        organization_id: str,
        search: str | None = None,
        record_type: str | None = None,
        exposure_status: str | None = None,
        proxied: bool | None = None,
        origin_protected: bool | None = None,
        zone_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[tuple[DnsRecord, str]], int]:
        """List records with filters, returning rows with their zone name."""
        conditions: list[Any] = [DnsRecord.organization_id == organization_id]
        if search:
            conditions.append(DnsRecord.name.ilike(f"%{search}%"))
        if record_type:
            conditions.append(DnsRecord.record_type == record_type)
        if exposure_status:
            conditions.append(DnsRecord.exposure_status == exposure_status)
        if proxied is not None:
            conditions.append(DnsRecord.proxied.is_(proxied))
        if origin_protected is not None:
            conditions.append(DnsRecord.origin_protected.is_(origin_protected))
        if zone_id:
            conditions.append(DnsRecord.zone_id == zone_id)

        # Get total count
        count_query = select(func.count()).select_from(DnsRecord).where(*conditions)
        total_result = await self.session.execute(count_query)
        total = total_result.scalar() or 0

        query = (
            select(DnsRecord, DnsZone.name)
            .join(DnsZone, DnsZone.id == DnsRecord.zone_id)
            .where(*conditions)
            .order_by(DnsRecord.exposure_status, DnsRecord.name)
            .offset(offset)
        )
        if limit:
            query = query.limit(limit)

        result = await self.session.execute(query)
        rows = [(record, zone_name) for record, zone_name in result.all()]
        return rows, total

    async def count_by_status(self, organization_id: str) -> dict[str, int]:
        result = await self.session.execute(
            select(DnsRecord.exposure_status, func.count())
            .where(DnsRecord.organization_id == organization_id)
            .group_by(DnsRecord.exposure_status)
        )
        return {status: int(count) for status, count in result.all()}

    async def count_by_type(self, organization_id: str) -> dict[str, int]:
        result = await self.session.execute(
            select(DnsRecord.record_type, func.count())
            .where(DnsRecord.organization_id == organization_id)
            .group_by(DnsRecord.record_type)
        )
        return {record_type: int(count) for record_type, count in result.all()}

    async def count_origin_exposed(self, organization_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(DnsRecord)
            .where(
                DnsRecord.organization_id == organization_id,
                DnsRecord.origin_protected.is_(False),
            )
        )
        return result.scalar() or 0


class ScanLogRepository:
    """Repository for scan executions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_running(self, organization_id: str, triggered_by: str) -> ScanLog:
        """Create a running scan log, claiming the organization's active marker."""
        scan_log = ScanLog(
            organization_id=organization_id,
            triggered_by=triggered_by,
            status=ScanStatus.RUNNING.value,
            active_key=organization_id,
        )
        self.session.add(scan_log)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ScanConflictError(
                "A scan is already in progress",
                organization_id=organization_id,
            ) from e
        return scan_log

    async def get_by_id(self, scan_id: UUID) -> ScanLog | None:
        result = await self.session.execute(select(ScanLog).where(ScanLog.id == scan_id))
        return result.scalar_one_or_none()

    async def get_running(self, organization_id: str) -> ScanLog | None:
        """Get the running scan of an organization, if any."""
        result = await self.session.execute(
            select(ScanLog)
            .where(
                ScanLog.organization_id == organization_id,
                ScanLog.status == ScanStatus.RUNNING.value,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def update_progress(
        self,
        scan_id: UUID,
        counters: ScanCounters,
        **fields: Any,
    ) -> None:
        """Write counters and extra fields to a scan log."""
        await self.session.execute(
            update(ScanLog)
            .where(ScanLog.id == scan_id)
            .values(**counters.model_dump(), **fields)
        )

    async def finalize(
        self,
        scan_id: UUID,
        status: ScanStatus,
        counters: ScanCounters | None = None,
        error: str | None = None,
    ) -> ScanLog | None:
        """Move a scan log to a terminal status and release the active marker."""
        values: dict[str, Any] = {
            "status": status.value,
            "active_key": None,
            "current_domain": None,
            "completed_at": datetime.now(timezone.utc),
        }
        if counters is not None:
            values.update(counters.model_dump())
        if error is not None:
            values["error"] = error

        await self.session.execute(
            update(ScanLog).where(ScanLog.id == scan_id).values(**values)
        )
        scan_log = await self.get_by_id(scan_id)
        if scan_log is not None:
            await self.session.refresh(scan_log)
        return scan_log

    async def latest(self, organization_id: str) -> ScanLog | None:
        """Get the most recently started scan."""
        result = await self.session.execute(
            select(ScanLog)
            .where(ScanLog.organization_id == organization_id)
            .order_by(ScanLog.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def latest_completed(self, organization_id: str) -> ScanLog | None:
        result = await self.session.execute(
            select(ScanLog)
            .where(
                ScanLog.organization_id == organization_id,
                ScanLog.status == ScanStatus.COMPLETED.value,
            )
            .order_by(ScanLog.completed_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def history(self, organization_id: str, limit: int = 10) -> list[ScanLog]:
        result = await self.session.execute(
            select(ScanLog)
            .where(ScanLog.organization_id == organization_id)
            .order_by(ScanLog.started_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
