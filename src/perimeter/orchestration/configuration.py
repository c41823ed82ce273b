"""Admin configuration of per-organization scanning."""

from urllib.parse import urlparse

from apscheduler.triggers.cron import CronTrigger

from perimeter.core.config import get_settings
from perimeter.core.exceptions import ConfigurationError, ValidationError
from perimeter.core.logging import get_logger
from perimeter.database import ScanConfig, ScanConfigRepository, get_session
from perimeter.orchestration.coordinator import ProviderFactory, SessionFactory
from perimeter.providers import CloudflareClient


def validate_schedule(expression: str) -> str:
    """Check a five-field cron expression."""
    try:
        CronTrigger.from_crontab(expression)
    except ValueError as e:
        raise ValidationError(f"Invalid scan schedule '{expression}': {e}") from None
    return expression


def validate_proxy_url(proxy_url: str | None) -> str | None:
    """Accept an empty value or an http(s) forward-proxy URL."""
    if not proxy_url:
        return None
    parsed = urlparse(proxy_url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValidationError(f"Invalid HTTP check proxy URL: {proxy_url}")
    return proxy_url


class ScanConfigService:
    """Reads and writes scanner configuration.

    A credential is checked against the provider before it is stored.
    """

    def __init__(
        self,
        provider_factory: ProviderFactory | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.logger = get_logger("configuration")
        self.settings = get_settings()
        self._provider_factory = provider_factory or CloudflareClient
        self._session = session_factory or get_session

    async def get_config(self, organization_id: str) -> ScanConfig | None:
        async with self._session() as db:
            return await ScanConfigRepository(db).get(organization_id)

    async def save_config(
        self,
        organization_id: str,
        api_token: str,
        http_proxy: str | None = None,
        scan_schedule: str | None = None,
        is_enabled: bool = True,
    ) -> ScanConfig:
        """Validate and store an organization's configuration."""
        if not organization_id:
            raise ValidationError("organization_id is required")
        if not api_token:
            raise ValidationError("api_token is required")

        schedule = validate_schedule(scan_schedule or self.settings.default_scan_schedule)
        proxy = validate_proxy_url(http_proxy)

        async with self._provider_factory(api_token) as provider:
            valid = await provider.verify_credential()
        if not valid:
            raise ConfigurationError(
                "Invalid DNS provider API token",
                details={"organization_id": organization_id},
            )

        async with self._session() as db:
            config = await ScanConfigRepository(db).upsert(
                organization_id,
                api_token=api_token,
                http_proxy=proxy,
                scan_schedule=schedule,
                is_enabled=is_enabled,
            )

        self.logger.info(
            "config_saved",
            organization_id=organization_id,
            has_proxy=proxy is not None,
            scan_schedule=schedule,
            is_enabled=is_enabled,
        )
        return config
