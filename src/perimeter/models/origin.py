"""Origin protection assessment models."""

from uuid import UUID

from pydantic import Field

from perimeter.models.base import BaseSchema, OriginExposureType


class OriginAssessment(BaseSchema):
    """Origin protection verdict for one DNS record.

    ``origin_protected`` is ``None`` when the concept does not apply:
    CNAME records and addresses that are never proxied.
    """

    record_id: UUID
    origin_protected: bool | None = None
    origin_exposure_type: OriginExposureType | None = None
    origin_exposure_details: str | None = None

    @property
    def is_exposed(self) -> bool:
        return self.origin_protected is False


class OriginReport(BaseSchema):
    """Result of one correlation pass over an organization's records."""

    assessments: dict[UUID, OriginAssessment] = Field(default_factory=dict)
    leaked_ips: list[str] = Field(default_factory=list)

    @property
    def exposed_count(self) -> int:
        return sum(1 for a in self.assessments.values() if a.is_exposed)
