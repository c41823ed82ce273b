"""Reachability probe result models."""

from pydantic import Field

from perimeter.models.base import BaseSchema, ExposureStatus


class ProbeResult(BaseSchema):
    """Outcome of a single HTTPS reachability probe."""

    status: ExposureStatus
    http_status_code: int | None = None
    response_time_ms: int | None = Field(default=None, ge=0)
    error: str | None = None
