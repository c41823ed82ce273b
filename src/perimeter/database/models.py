"""SQLModel ORM models for database storage."""

import json
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Column, Field, SQLModel, Text

from perimeter.models.base import ExposureStatus, ScanStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive values
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _iso(value: datetime | None) -> str | None:
    value = _as_utc(value)
    return value.isoformat() if value else None


def _timestamp(**kwargs: Any) -> Any:
    return Field(sa_type=DateTime(timezone=True), **kwargs)


class ScanConfig(SQLModel, table=True):
    """Per-organization scanner configuration."""

    __tablename__ = "scan_configs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    organization_id: str = Field(index=True, unique=True)
    api_token: str | None = Field(default=None)
    http_proxy: str | None = Field(default=None)
    scan_schedule: str = Field(default="0 0 * * *")
    is_enabled: bool = Field(default=True, index=True)

    created_at: datetime = _timestamp(default_factory=_utcnow)
    updated_at: datetime = _timestamp(default_factory=_utcnow)

    @property
    def has_api_token(self) -> bool:
        return bool(self.api_token)

    def to_public_dict(self) -> dict[str, Any]:
        """Convert to dictionary without the credential."""
        return {
            "id": str(self.id),
            "organization_id": self.organization_id,
            "has_api_token": self.has_api_token,
            "http_proxy": self.http_proxy or "",
            "scan_schedule": self.scan_schedule,
            "is_enabled": self.is_enabled,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class DnsZone(SQLModel, table=True):
    """Mirror of a provider-side DNS zone."""

    __tablename__ = "dns_zones"
    __table_args__ = (
        UniqueConstraint("organization_id", "provider_zone_id", name="uq_zone_provider_id"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    organization_id: str = Field(index=True)
    provider_zone_id: str
    name: str = Field(index=True)
    status: str = Field(default="unknown")

    nameservers_json: str = Field(default="[]", sa_column=Column(Text))

    created_at: datetime = _timestamp(default_factory=_utcnow)
    updated_at: datetime = _timestamp(default_factory=_utcnow)

    @property
    def nameservers(self) -> list[str]:
        """Parse nameservers from JSON."""
        return json.loads(self.nameservers_json or "[]")

    @nameservers.setter
    def nameservers(self, value: list[str]) -> None:
        """Store nameservers as JSON."""
        self.nameservers_json = json.dumps(list(value))

    def to_dict(self, record_count: int | None = None) -> dict[str, Any]:
        """Convert to dictionary."""
        data = {
            "id": str(self.id),
            "organization_id": self.organization_id,
            "provider_zone_id": self.provider_zone_id,
            "name": self.name,
            "status": self.status,
            "nameservers": self.nameservers,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if record_count is not None:
            data["record_count"] = record_count
        return data


class DnsRecord(SQLModel, table=True):
    """A provider DNS record plus its scan-derived state."""

    __tablename__ = "dns_records"
    __table_args__ = (
        UniqueConstraint("organization_id", "provider_record_id", name="uq_record_provider_id"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    organization_id: str = Field(index=True)
    zone_id: UUID = Field(foreign_key="dns_zones.id", index=True)
    provider_record_id: str
    name: str = Field(index=True)
    record_type: str = Field(index=True)
    content: str = Field(index=True)
    proxied: bool = Field(default=False)
    ttl: int = Field(default=1)

    # Reachability
    exposure_status: str = Field(default=ExposureStatus.PENDING.value, index=True)
    http_status_code: int | None = None
    response_time_ms: int | None = None
    last_checked_at: datetime | None = _timestamp(default=None)
    check_error: str | None = Field(default=None, sa_column=Column(Text, nullable=True))

    # Origin protection
    origin_protected: bool | None = Field(default=None, index=True)
    origin_exposure_type: str | None = None
    origin_exposure_details: str | None = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )

    created_at: datetime = _timestamp(default_factory=_utcnow)
    updated_at: datetime = _timestamp(default_factory=_utcnow)

    def to_dict(self, zone_name: str | None = None) -> dict[str, Any]:
        """Convert to dictionary."""
        data = {
            "id": str(self.id),
            "organization_id": self.organization_id,
            "zone_id": str(self.zone_id),
            "provider_record_id": self.provider_record_id,
            "name": self.name,
            "type": self.record_type,
            "content": self.content,
            "proxied": self.proxied,
            "ttl": self.ttl,
            "exposure_status": self.exposure_status,
            "http_status_code": self.http_status_code,
            "response_time_ms": self.response_time_ms,
            "last_checked_at": _iso(self.last_checked_at),
            "check_error": self.check_error,
            "origin_protected": self.origin_protected,
            "origin_exposure_type": self.origin_exposure_type,
            "origin_exposure_details": self.origin_exposure_details,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if zone_name is not None:
            data["zone_name"] = zone_name
        return data


class ScanLog(SQLModel, table=True):
    """One scan execution and its live progress counters."""

    __tablename__ = "scan_logs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    organization_id: str = Field(index=True)
    triggered_by: str = Field(default="scheduled")
    status: str = Field(default=ScanStatus.RUNNING.value, index=True)

    # Holds the organization id while running, NULL afterwards.
    active_key: str | None = Field(default=None, unique=True)

    zones_scanned: int = 0
    records_scanned: int = 0
    total_records: int = 0
    checked_records: int = 0
    public_count: int = 0
    private_count: int = 0
    unreachable_count: int = 0
    error_count: int = 0
    origin_exposed_count: int = 0
    current_domain: str | None = None

    error: str | None = Field(default=None, sa_column=Column(Text, nullable=True))

    started_at: datetime = _timestamp(default_factory=_utcnow, index=True)
    completed_at: datetime | None = _timestamp(default=None)

    @property
    def duration_seconds(self) -> float | None:
        """Calculate scan duration."""
        if self.started_at and self.completed_at:
            return (_as_utc(self.completed_at) - _as_utc(self.started_at)).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": str(self.id),
            "organization_id": self.organization_id,
            "triggered_by": self.triggered_by,
            "status": self.status,
            "zones_scanned": self.zones_scanned,
            "records_scanned": self.records_scanned,
            "total_records": self.total_records,
            "checked_records": self.checked_records,
            "public_count": self.public_count,
            "private_count": self.private_count,
            "unreachable_count": self.unreachable_count,
            "error_count": self.error_count,
            "origin_exposed_count": self.origin_exposed_count,
            "current_domain": self.current_domain,
            "error": self.error,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "duration_seconds": self.duration_seconds,
        }
