"""Database module for Perimeter."""

from perimeter.database.connection import close_db, get_session, init_db, ping_db
from perimeter.database.models import DnsRecord, DnsZone, ScanConfig, ScanLog
from perimeter.database.repository import (
    DnsRecordRepository,
    ScanConfigRepository,
    ScanLogRepository,
    ZoneRepository,
)

__all__ = [
    "get_session",
    "init_db",
    "close_db",
    "ping_db",
    "DnsRecord",
    "DnsZone",
    "ScanConfig",
    "ScanLog",
    "DnsRecordRepository",
    "ScanConfigRepository",
    "ScanLogRepository",
    "ZoneRepository",
]
