"""Abstract interfaces for scanner collaborators."""

from abc import ABC, abstractmethod
from typing import Any

from perimeter.models.provider import ProviderRecord, ProviderZone


class IDNSProvider(ABC):
    """Read-only view of a DNS/CDN provider account."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        ...

    @abstractmethod
    async def list_zones(self) -> list[ProviderZone]:
        """Return every zone visible to the credential."""
        ...

    @abstractmethod
    async def list_filtered_records(self, zone_id: str) -> list[ProviderRecord]:
        """Return the A, AAAA and CNAME records of a zone."""
        ...

    @abstractmethod
    async def verify_credential(self) -> bool:
        """Check the credential against the provider. Never raises."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        return None

    async def __aenter__(self) -> "IDNSProvider":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
