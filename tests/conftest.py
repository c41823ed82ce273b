"""Pytest configuration and fixtures."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from perimeter.core.exceptions import ProviderError
from perimeter.core.interfaces import IDNSProvider
from perimeter.database import close_db, init_db
from perimeter.models import ExposureStatus, ProbeResult, ProviderRecord, ProviderZone


class FakeProvider(IDNSProvider):
    """In-memory DNS provider."""

    def __init__(
        self,
        zones: list[ProviderZone] | None = None,
        records: dict[str, list[ProviderRecord]] | None = None,
        failing_zones: set[str] | None = None,
        valid: bool = True,
    ) -> None:
        self.zones = zones or []
        self.records = records or {}
        self.failing_zones = failing_zones or set()
        self.valid = valid
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    async def list_zones(self) -> list[ProviderZone]:
        return list(self.zones)

    async def list_filtered_records(self, zone_id: str) -> list[ProviderRecord]:
        if zone_id in self.failing_zones:
            raise ProviderError("zone unavailable", provider=self.name)
        return list(self.records.get(zone_id, []))

    async def verify_credential(self) -> bool:
        return self.valid

    async def aclose(self) -> None:
        self.closed = True


class FakeProber:
    """Prober returning canned results keyed by hostname."""

    def __init__(
        self,
        results: dict[str, ProbeResult | Exception] | None = None,
        origin_reachable: set[str] | None = None,
    ) -> None:
        self.results = results or {}
        self.origin_reachable = origin_reachable or set()
        self.probed: list[tuple[str, str | None]] = []
        self.origin_probes: list[tuple[str, str, str | None]] = []

    async def probe(self, hostname: str, proxy_url: str | None = None) -> ProbeResult:
        self.probed.append((hostname, proxy_url))
        result = self.results.get(
            hostname,
            ProbeResult(status=ExposureStatus.PUBLIC, http_status_code=200, response_time_ms=5),
        )
        if isinstance(result, Exception):
            raise result
        return result

    async def probe_origin(
        self, ip: str, host_header: str, proxy_url: str | None = None
    ) -> bool:
        self.origin_probes.append((ip, host_header, proxy_url))
        return host_header in self.origin_reachable


def make_zone(zone_id: str = "zone-1", name: str = "example.com") -> ProviderZone:
    return ProviderZone(id=zone_id, name=name, status="active", name_servers=["ns1.example.net"])


def make_record(
    record_id: str,
    name: str,
    content: str,
    record_type: str = "A",
    proxied: bool = False,
    zone_id: str = "zone-1",
) -> ProviderRecord:
    return ProviderRecord(
        id=record_id,
        zone_id=zone_id,
        name=name,
        type=record_type,
        content=content,
        proxied=proxied,
    )


@pytest.fixture
async def database(tmp_path: Path) -> AsyncIterator[str]:
    """Fresh SQLite database for one test."""
    await close_db()
    url = f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    await init_db(url)
    yield url
    await close_db()


@pytest.fixture
def sample_zone() -> ProviderZone:
    return make_zone()


@pytest.fixture
def sample_records() -> list[ProviderRecord]:
    """One leaked origin, one protected origin, one direct host and a CNAME."""
    return [
        make_record("r1", "a.example.com", "1.2.3.4", proxied=True),
        make_record("r2", "b.example.com", "1.2.3.4", proxied=False),
        make_record("r3", "c.example.com", "5.6.7.8", proxied=True),
        make_record("r4", "d.example.com", "9.9.9.9", proxied=False),
        make_record("r5", "www.example.com", "a.example.com", record_type="CNAME", proxied=True),
    ]


@pytest.fixture
def fake_provider(sample_zone: ProviderZone, sample_records: list[ProviderRecord]) -> FakeProvider:
    return FakeProvider(zones=[sample_zone], records={sample_zone.id: sample_records})


@pytest.fixture
def fake_prober() -> FakeProber:
    return FakeProber()
