"""Tests for the scan orchestrator."""

import asyncio
from uuid import uuid4

import pytest

from conftest import FakeProber, FakeProvider, make_record, make_zone
from perimeter.core.exceptions import ConfigurationError, NotFoundError, ScanConflictError
from perimeter.database import (
    DnsRecordRepository,
    ScanConfigRepository,
    ScanLogRepository,
    ZoneRepository,
    get_session,
)
from perimeter.models import ExposureStatus, OriginReport, ProbeResult, ScanStatus
from perimeter.orchestration import ScanOrchestrator

ORG = "org-1"


async def _configure(organization_id: str = ORG, http_proxy: str | None = None) -> None:
    async with get_session() as db:
        await ScanConfigRepository(db).upsert(
            organization_id,
            api_token="token",
            http_proxy=http_proxy,
            scan_schedule="0 0 * * *",
            is_enabled=True,
        )


async def _records_by_name(organization_id: str = ORG) -> dict:
    async with get_session() as db:
        records = await DnsRecordRepository(db).list_for_organization(organization_id)
    return {record.name: record for record in records}


def _orchestrator(provider, prober, **kwargs) -> ScanOrchestrator:
    return ScanOrchestrator(
        provider_factory=lambda token: provider,
        prober=prober,
        batch_size=2,
        **kwargs,
    )


class BrokenCorrelator:
    async def correlate(self, records, proxy_url=None) -> OriginReport:
        raise RuntimeError("correlation exploded")


@pytest.fixture
def mixed_prober() -> FakeProber:
    return FakeProber(
        results={
            "a.example.com": ProbeResult(status=ExposureStatus.PUBLIC, http_status_code=200, response_time_ms=12),
            "b.example.com": ProbeResult(status=ExposureStatus.PRIVATE, http_status_code=403, response_time_ms=8),
            "c.example.com": ProbeResult(status=ExposureStatus.UNREACHABLE, error="ECONNREFUSED", response_time_ms=3),
            "d.example.com": RuntimeError("kaboom"),
        }
    )


async def test_full_scan(database, fake_provider, mixed_prober):
    await _configure()

    scan_log = await _orchestrator(fake_provider, mixed_prober).run_full_scan(ORG, "manual")

    assert scan_log.status == "completed"
    assert scan_log.triggered_by == "manual"
    assert scan_log.zones_scanned == 1
    assert scan_log.records_scanned == 5
    assert scan_log.total_records == 5
    assert scan_log.checked_records == 5
    assert scan_log.public_count == 2
    assert scan_log.private_count == 1
    assert scan_log.unreachable_count == 1
    assert scan_log.error_count == 1
    assert scan_log.origin_exposed_count == 2
    assert scan_log.completed_at is not None
    assert scan_log.active_key is None
    assert scan_log.current_domain is None
    assert fake_provider.closed is True

    records = await _records_by_name()
    assert records["a.example.com"].exposure_status == "PUBLIC"
    assert records["a.example.com"].http_status_code == 200
    assert records["a.example.com"].origin_protected is False
    assert records["a.example.com"].origin_exposure_type == "IP_LEAK"
    assert records["b.example.com"].exposure_status == "PRIVATE"
    assert records["b.example.com"].origin_protected is False
    assert records["c.example.com"].exposure_status == "UNREACHABLE"
    assert records["c.example.com"].check_error == "ECONNREFUSED"
    assert records["c.example.com"].origin_protected is True
    assert records["d.example.com"].exposure_status == "ERROR"
    assert records["d.example.com"].check_error == "kaboom"
    assert records["d.example.com"].origin_protected is None
    assert records["www.example.com"].origin_protected is None
    assert all(record.last_checked_at is not None for record in records.values())


async def test_rescan_is_idempotent(database, fake_provider, fake_prober):
    await _configure()
    orchestrator = _orchestrator(fake_provider, fake_prober)

    await orchestrator.run_full_scan(ORG)
    first_ids = {name: record.id for name, record in (await _records_by_name()).items()}
    await orchestrator.run_full_scan(ORG)

    async with get_session() as db:
        assert await DnsRecordRepository(db).count(ORG) == 5
        assert await ZoneRepository(db).count(ORG) == 1
        history = await ScanLogRepository(db).history(ORG)

    assert len(history) == 2
    assert all(scan.status == "completed" for scan in history)
    second_ids = {name: record.id for name, record in (await _records_by_name()).items()}
    assert first_ids == second_ids


async def test_upstream_change_updates_record(database, fake_provider, fake_prober, sample_zone):
    await _configure()
    orchestrator = _orchestrator(fake_provider, fake_prober)
    await orchestrator.run_full_scan(ORG)

    fake_provider.records[sample_zone.id][1] = make_record(
        "r2", "b.example.com", "1.2.3.4", proxied=True
    )
    scan_log = await orchestrator.run_full_scan(ORG)

    records = await _records_by_name()
    assert records["b.example.com"].proxied is True
    assert records["a.example.com"].origin_protected is True
    assert scan_log.origin_exposed_count == 0


async def test_probes_use_configured_proxy(database, fake_provider, fake_prober):
    await _configure(http_proxy="http://proxy.internal:3128")

    await _orchestrator(fake_provider, fake_prober).run_full_scan(ORG)

    assert len(fake_prober.probed) == 5
    assert {proxy for _, proxy in fake_prober.probed} == {"http://proxy.internal:3128"}
    assert fake_prober.origin_probes == [("1.2.3.4", "a.example.com", "http://proxy.internal:3128")]


async def test_failure_marks_scan_failed(database, fake_provider, fake_prober):
    await _configure()
    orchestrator = _orchestrator(fake_provider, fake_prober, correlator=BrokenCorrelator())

    with pytest.raises(RuntimeError, match="correlation exploded"):
        await orchestrator.run_full_scan(ORG)

    async with get_session() as db:
        repo = ScanLogRepository(db)
        scan_log = await repo.latest(ORG)
        running = await repo.get_running(ORG)

    assert running is None
    assert scan_log.status == "failed"
    assert scan_log.error == "correlation exploded"
    assert scan_log.completed_at is not None
    assert scan_log.active_key is None
    assert scan_log.records_scanned == 5
    assert scan_log.checked_records == 5


class StallingProber(FakeProber):
    def __init__(self) -> None:
        super().__init__()
        self.started = asyncio.Event()

    async def probe(self, hostname: str, proxy_url: str | None = None) -> ProbeResult:
        self.started.set()
        await asyncio.sleep(10)
        return await super().probe(hostname, proxy_url)


async def test_cancelled_scan_is_finalized_as_failed(database, fake_provider, fake_prober):
    await _configure()
    prober = StallingProber()
    task = asyncio.create_task(_orchestrator(fake_provider, prober).run_full_scan(ORG))
    await asyncio.wait_for(prober.started.wait(), timeout=5)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    async with get_session() as db:
        repo = ScanLogRepository(db)
        scan_log = await repo.latest(ORG)
        running = await repo.get_running(ORG)

    assert running is None
    assert scan_log.status == "failed"
    assert scan_log.error == "Scan cancelled"
    assert scan_log.active_key is None
    assert scan_log.completed_at is not None

    rescan = await _orchestrator(fake_provider, fake_prober).run_full_scan(ORG)
    assert rescan.status == "completed"


async def test_finalize_failure_chains_scan_error(database, fake_provider, fake_prober, monkeypatch):
    await _configure()
    finalize = ScanLogRepository.finalize

    async def failing_finalize(self, scan_id, status, counters=None, error=None):
        if status == ScanStatus.FAILED:
            raise RuntimeError("database gone")
        return await finalize(self, scan_id, status, counters, error)

    monkeypatch.setattr(ScanLogRepository, "finalize", failing_finalize)
    orchestrator = _orchestrator(fake_provider, fake_prober, correlator=BrokenCorrelator())

    with pytest.raises(RuntimeError, match="database gone") as exc_info:
        await orchestrator.run_full_scan(ORG)

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert str(exc_info.value.__cause__) == "correlation exploded"


async def test_zone_failure_skips_only_that_zone(database, fake_prober, sample_records):
    provider = FakeProvider(
        zones=[make_zone("zone-1", "example.com"), make_zone("zone-2", "broken.com")],
        records={"zone-1": sample_records},
        failing_zones={"zone-2"},
    )
    await _configure()

    scan_log = await _orchestrator(provider, fake_prober).run_full_scan(ORG)

    assert scan_log.status == "completed"
    assert scan_log.zones_scanned == 2
    assert scan_log.records_scanned == 5


async def test_missing_configuration(database, fake_provider, fake_prober):
    with pytest.raises(ConfigurationError):
        await _orchestrator(fake_provider, fake_prober).run_full_scan(ORG)

    async with get_session() as db:
        assert await ScanLogRepository(db).history(ORG) == []


async def test_concurrent_scan_rejected(database, fake_provider, fake_prober):
    await _configure()
    async with get_session() as db:
        running = await ScanLogRepository(db).create_running(ORG, "manual")

    with pytest.raises(ScanConflictError):
        await _orchestrator(fake_provider, fake_prober).run_full_scan(ORG)

    async with get_session() as db:
        still_running = await ScanLogRepository(db).get_running(ORG)
        assert len(await ScanLogRepository(db).history(ORG)) == 1

    assert still_running.id == running.id
    assert fake_prober.probed == []


async def test_other_organization_may_scan_concurrently(database, fake_provider, fake_prober):
    await _configure()
    await _configure("org-2")
    async with get_session() as db:
        await ScanLogRepository(db).create_running("org-2", "manual")

    scan_log = await _orchestrator(fake_provider, fake_prober).run_full_scan(ORG)

    assert scan_log.status == "completed"


async def test_check_single_record(database, fake_provider, fake_prober):
    await _configure(http_proxy="http://proxy.internal:3128")
    orchestrator = _orchestrator(fake_provider, fake_prober)
    await orchestrator.run_full_scan(ORG)
    record = (await _records_by_name())["b.example.com"]

    fake_prober.results["b.example.com"] = ProbeResult(
        status=ExposureStatus.PRIVATE, http_status_code=403, response_time_ms=4
    )
    updated = await orchestrator.check_single_record(record.id, ORG)

    assert updated.id == record.id
    assert updated.exposure_status == "PRIVATE"
    assert updated.http_status_code == 403
    assert updated.origin_protected is False
    assert fake_prober.probed[-1] == ("b.example.com", "http://proxy.internal:3128")


async def test_check_single_record_not_found(database, fake_provider, fake_prober):
    await _configure()

    with pytest.raises(NotFoundError):
        await _orchestrator(fake_provider, fake_prober).check_single_record(uuid4(), ORG)


async def test_check_single_record_is_scoped_to_organization(database, fake_provider, fake_prober):
    await _configure()
    orchestrator = _orchestrator(fake_provider, fake_prober)
    await orchestrator.run_full_scan(ORG)
    record = (await _records_by_name())["a.example.com"]

    with pytest.raises(NotFoundError):
        await orchestrator.check_single_record(record.id, "org-2")
