"""Base models and enums."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )


class ScanStatus(str, Enum):
    """Scan execution status."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ExposureStatus(str, Enum):
    """Reachability of a hostname as seen from the public internet."""

    PENDING = "PENDING"
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    UNREACHABLE = "UNREACHABLE"
    ERROR = "ERROR"


class OriginExposureType(str, Enum):
    """How an origin server behind the CDN is exposed."""

    IP_LEAK = "IP_LEAK"
    BOTH = "BOTH"


class RecordType(str, Enum):
    """DNS record types tracked by the scanner."""

    A = "A"
    AAAA = "AAAA"
    CNAME = "CNAME"


ADDRESS_RECORD_TYPES = (RecordType.A.value, RecordType.AAAA.value)
