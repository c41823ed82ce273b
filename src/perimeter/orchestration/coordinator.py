"""Scan orchestrator driving sync, reachability and origin phases."""

import asyncio
from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from perimeter.core.config import get_settings
from perimeter.core.exceptions import ConfigurationError, NotFoundError, ProviderError
from perimeter.core.interfaces import IDNSProvider
from perimeter.core.logging import get_logger
from perimeter.database import (
    DnsRecord,
    DnsRecordRepository,
    ScanConfigRepository,
    ScanLog,
    ScanLogRepository,
    ZoneRepository,
    get_session,
)
from perimeter.models import ExposureStatus, ProbeResult, ScanCounters, ScanStatus
from perimeter.providers import CloudflareClient
from perimeter.scanners import OriginCorrelator, ReachabilityProber

ProviderFactory = Callable[[str], IDNSProvider]
SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class ScanOrchestrator:
    """Runs a full exposure scan for one organization.

    Progress is committed to the ScanLog after each zone, each probe
    batch and each phase, so readers can poll it while the scan runs.
    The caller must make sure no other scan is running for the same
    organization; the store rejects a second running log as a backstop.
    """

    def __init__(
        self,
        provider_factory: ProviderFactory | None = None,
        prober: ReachabilityProber | None = None,
        correlator: OriginCorrelator | None = None,
        session_factory: SessionFactory | None = None,
        batch_size: int | None = None,
    ) -> None:
        self.logger = get_logger("orchestrator")
        self.settings = get_settings()
        self._provider_factory = provider_factory or CloudflareClient
        self.prober = prober or ReachabilityProber()
        self.correlator = correlator or OriginCorrelator(self.prober)
        self._session = session_factory or get_session
        self.batch_size = batch_size or self.settings.probe_batch_size

    async def run_full_scan(
        self,
        organization_id: str,
        triggered_by: str = "scheduled",
    ) -> ScanLog:
        """Sync, probe and correlate every record of an organization."""
        async with self._session() as db:
            config = await ScanConfigRepository(db).get(organization_id)
        if config is None or not config.api_token:
            raise ConfigurationError(
                "DNS provider API token not configured for this organization",
                details={"organization_id": organization_id},
            )
        api_token = config.api_token
        proxy_url = config.http_proxy or None

        async with self._session() as db:
            scan_log = await ScanLogRepository(db).create_running(organization_id, triggered_by)
        scan_id = scan_log.id
        counters = ScanCounters()

        self.logger.info(
            "scan_started",
            scan_id=str(scan_id),
            organization_id=organization_id,
            triggered_by=triggered_by,
        )

        try:
            async with self._provider_factory(api_token) as provider:
                await self._sync(organization_id, scan_id, provider, counters)

            records = await self._load_records(organization_id)
            counters.total_records = len(records)
            async with self._session() as db:
                await ScanLogRepository(db).update_progress(scan_id, counters)

            await self._check_reachability(scan_id, records, proxy_url, counters)

            counters.origin_exposed_count = await self._check_origins(
                organization_id, proxy_url
            )

            async with self._session() as db:
                result = await ScanLogRepository(db).finalize(
                    scan_id, ScanStatus.COMPLETED, counters
                )
        except asyncio.CancelledError:
            self.logger.warning(
                "scan_cancelled",
                scan_id=str(scan_id),
                organization_id=organization_id,
            )
            await asyncio.shield(self._finalize_failed(scan_id, counters, "Scan cancelled"))
            raise
        except Exception as e:
            self.logger.error(
                "scan_failed",
                scan_id=str(scan_id),
                organization_id=organization_id,
                error=str(e),
            )
            try:
                await self._finalize_failed(scan_id, counters, str(e) or type(e).__name__)
            except Exception as finalize_error:
                raise finalize_error from e
            raise

        self.logger.info(
            "scan_completed",
            scan_id=str(scan_id),
            organization_id=organization_id,
            zones=counters.zones_scanned,
            records=counters.records_scanned,
            public=counters.public_count,
            private=counters.private_count,
            unreachable=counters.unreachable_count,
            errors=counters.error_count,
            origin_exposed=counters.origin_exposed_count,
        )
        return result if result is not None else scan_log

    async def _finalize_failed(
        self,
        scan_id: UUID,
        counters: ScanCounters,
        error: str,
    ) -> None:
        async with self._session() as db:
            await ScanLogRepository(db).finalize(scan_id, ScanStatus.FAILED, counters, error=error)

    async def _sync(
        self,
        organization_id: str,
        scan_id: UUID,
        provider: IDNSProvider,
        counters: ScanCounters,
    ) -> None:
        """Upsert zones and their records from the provider."""
        zones = await provider.list_zones()

        for zone in zones:
            try:
                provider_records = await provider.list_filtered_records(zone.id)
            except ProviderError as e:
                self.logger.warning(
                    "zone_records_skipped",
                    zone=zone.name,
                    zone_id=zone.id,
                    error=e.message,
                )
                provider_records = []

            async with self._session() as db:
                db_zone = await ZoneRepository(db).upsert(organization_id, zone)
                record_repo = DnsRecordRepository(db)
                for record in provider_records:
                    await record_repo.upsert(organization_id, db_zone.id, record)
                counters.records_scanned += len(provider_records)
                counters.zones_scanned += 1
                await ScanLogRepository(db).update_progress(
                    scan_id, counters, current_domain=zone.name
                )

        self.logger.info(
            "sync_completed",
            organization_id=organization_id,
            zones=counters.zones_scanned,
            records=counters.records_scanned,
        )

    async def _load_records(
        self,
        organization_id: str,
        record_types: Sequence[str] | None = None,
    ) -> list[DnsRecord]:
        async with self._session() as db:
            return await DnsRecordRepository(db).list_for_organization(
                organization_id, record_types
            )

    async def _probe_batch(
        self,
        batch: Sequence[DnsRecord],
        proxy_url: str | None,
    ) -> list[ProbeResult]:
        """Probe a batch concurrently; one failure never cancels the others."""
        outcomes = await asyncio.gather(
            *(self.prober.probe(record.name, proxy_url) for record in batch),
            return_exceptions=True,
        )

        results: list[ProbeResult] = []
        for record, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.warning("probe_crashed", hostname=record.name, error=str(outcome))
                outcome = ProbeResult(
                    status=ExposureStatus.ERROR,
                    error=str(outcome) or type(outcome).__name__,
                )
            results.append(outcome)
        return results

    async def _check_reachability(
        self,
        scan_id: UUID,
        records: Sequence[DnsRecord],
        proxy_url: str | None,
        counters: ScanCounters,
    ) -> None:
        """Probe records in fixed-size batches, persisting after each one."""
        for start in range(0, len(records), self.batch_size):
            batch = records[start:start + self.batch_size]
            results = await self._probe_batch(batch, proxy_url)
            checked_at = datetime.now(timezone.utc)

            async with self._session() as db:
                record_repo = DnsRecordRepository(db)
                for record, result in zip(batch, results):
                    await record_repo.apply_probe_result(record.id, result, checked_at)
                    counters.record_status(result.status)
                await ScanLogRepository(db).update_progress(
                    scan_id, counters, current_domain=batch[-1].name
                )

            self.logger.debug(
                "batch_checked",
                scan_id=str(scan_id),
                checked=counters.checked_records,
                total=len(records),
            )

    async def _check_origins(self, organization_id: str, proxy_url: str | None) -> int:
        """Correlate origin exposure over the synced record set."""
        records = await self._load_records(organization_id)
        report = await self.correlator.correlate(records, proxy_url)

        async with self._session() as db:
            await DnsRecordRepository(db).apply_origin_assessments(
                report.assessments.values()
            )

        self.logger.info(
            "origin_check_completed",
            organization_id=organization_id,
            exposed=report.exposed_count,
        )
        return report.exposed_count

    async def check_single_record(self, record_id: UUID, organization_id: str) -> DnsRecord:
        """Re-probe one record on demand and persist its reachability fields."""
        async with self._session() as db:
            record = await DnsRecordRepository(db).get(record_id, organization_id)
            config = await ScanConfigRepository(db).get(organization_id)
        if record is None:
            raise NotFoundError("Record not found", details={"record_id": str(record_id)})
        proxy_url = (config.http_proxy if config else None) or None

        result = await self.prober.probe(record.name, proxy_url)

        async with self._session() as db:
            record_repo = DnsRecordRepository(db)
            await record_repo.apply_probe_result(record.id, result)
            updated = await record_repo.get(record.id, organization_id)

        self.logger.info(
            "record_checked",
            record_id=str(record_id),
            hostname=record.name,
            status=result.status.value,
        )
        return updated if updated is not None else record
