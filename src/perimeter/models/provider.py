"""DNS provider payload models."""

from pydantic import BaseModel, ConfigDict, Field


class ProviderZone(BaseModel):
    """A DNS zone as returned by the provider."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    status: str = "unknown"
    name_servers: list[str] = Field(default_factory=list)


class ProviderRecord(BaseModel):
    """A DNS record as returned by the provider."""

    model_config = ConfigDict(extra="ignore")

    id: str
    zone_id: str | None = None
    name: str
    type: str
    content: str
    proxied: bool = False
    ttl: int = 1
