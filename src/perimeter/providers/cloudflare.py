"""Cloudflare API client for zones and DNS records."""

from collections.abc import AsyncIterator
from typing import Any

import httpx
from aiolimiter import AsyncLimiter
from pydantic import ValidationError

from perimeter.core.config import get_settings
from perimeter.core.exceptions import ProviderError
from perimeter.core.interfaces import IDNSProvider
from perimeter.core.logging import get_logger
from perimeter.infrastructure.http import HTTPClient
from perimeter.models import ProviderRecord, ProviderZone, RecordType


class CloudflareClient(IDNSProvider):
    """Read-only Cloudflare client bound to one API token.

    Each organization has its own token, so a client is built per scan
    and closed afterwards.
    """

    RECORD_TYPES = (RecordType.A.value, RecordType.AAAA.value, RecordType.CNAME.value)

    def __init__(
        self,
        api_token: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = get_settings()
        self.logger = get_logger("cloudflare")
        self._limiter = AsyncLimiter(self.settings.provider_requests_per_second, 1.0)
        self._http = HTTPClient(
            base_url=self.settings.cloudflare_api_base,
            timeout=self.settings.provider_timeout,
            headers={
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )
        self._opened = False

    @property
    def name(self) -> str:
        return "cloudflare"

    async def __aenter__(self) -> "CloudflareClient":
        await self._ensure_open()
        return self

    async def aclose(self) -> None:
        if self._opened:
            await self._http.aclose()
            self._opened = False

    async def _ensure_open(self) -> None:
        if not self._opened:
            await self._http.__aenter__()
            self._opened = True

    async def _request(self, path: str, params: dict[str, Any] | None = None) -> dict:
        """GET a path and return the decoded envelope."""
        await self._ensure_open()
        async with self._limiter:
            try:
                response = await self._http.get(path, params=params)
            except httpx.HTTPError as e:
                raise ProviderError(
                    f"Cloudflare API request failed: {e}",
                    provider=self.name,
                    details={"path": path},
                ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"Cloudflare API returned a non-JSON body (HTTP {response.status_code})",
                provider=self.name,
                details={"path": path, "status_code": response.status_code},
            ) from e

        if not isinstance(data, dict) or not data.get("success"):
            errors = data.get("errors", []) if isinstance(data, dict) else []
            raise ProviderError(
                f"Cloudflare API error: {errors}",
                provider=self.name,
                errors=errors,
                details={"path": path, "status_code": response.status_code},
            )
        return data

    async def _paginate(
        self,
        path: str,
        params: dict[str, Any],
        per_page: int,
    ) -> AsyncIterator[list[dict]]:
        """Yield each page of results until ``total_pages`` is reached."""
        page = 1
        total_pages = 1
        while page <= total_pages:
            data = await self._request(path, {**params, "page": page, "per_page": per_page})
            yield list(data.get("result") or [])
            result_info = data.get("result_info") or {}
            total_pages = int(result_info.get("total_pages") or 1)
            page += 1

    async def list_zones(self) -> list[ProviderZone]:
        """Fetch all zones visible to the token."""
        zones: list[ProviderZone] = []
        async for page in self._paginate("/zones", {}, self.settings.zones_page_size):
            zones.extend(ProviderZone.model_validate(item) for item in page)

        self.logger.info("zones_fetched", count=len(zones))
        return zones

    def _parse_records(self, zone_id: str, page: list[dict[str, Any]]) -> list[ProviderRecord]:
        try:
            return [ProviderRecord.model_validate({"zone_id": zone_id, **item}) for item in page]
        except ValidationError as e:
            raise ProviderError(
                f"Cloudflare API returned a malformed DNS record: {e.error_count()} error(s)",
                provider=self.name,
                details={"zone_id": zone_id},
            ) from e

    async def list_filtered_records(self, zone_id: str) -> list[ProviderRecord]:
        """Fetch A, AAAA and CNAME records of a zone, one type at a time.

        A failure for one type is logged and the rest of that type skipped;
        pages already fetched are kept.
        """
        records: list[ProviderRecord] = []
        path = f"/zones/{zone_id}/dns_records"

        for record_type in self.RECORD_TYPES:
            try:
                async for page in self._paginate(
                    path, {"type": record_type}, self.settings.records_page_size
                ):
                    records.extend(self._parse_records(zone_id, page))
            except ProviderError as e:
                self.logger.warning(
                    "records_fetch_failed",
                    zone_id=zone_id,
                    record_type=record_type,
                    error=e.message,
                )

        self.logger.debug("records_fetched", zone_id=zone_id, count=len(records))
        return records

    async def verify_credential(self) -> bool:
        """Verify the API token is valid."""
        try:
            data = await self._request("/user/tokens/verify")
        except Exception as e:
            self.logger.warning("token_verification_failed", error=str(e))
            return False
        return data.get("success") is True
