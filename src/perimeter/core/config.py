"""Configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./perimeter.db")

    # DNS provider API
    cloudflare_api_base: str = Field(default="https://api.cloudflare.com/client/v4")
    provider_timeout: int = Field(default=30, ge=1, le=120)
    zones_page_size: int = Field(default=50, ge=5, le=50)
    records_page_size: int = Field(default=100, ge=5, le=5000)
    provider_requests_per_second: int = Field(default=4, ge=1, le=50)

    # Reachability probes
    probe_timeout: int = Field(default=15, ge=1, le=120)
    probe_max_redirects: int = Field(default=5, ge=0, le=20)
    direct_probe_timeout: int = Field(default=10, ge=1, le=120)
    direct_probe_max_redirects: int = Field(default=3, ge=0, le=20)
    probe_batch_size: int = Field(default=10, ge=1, le=100)
    user_agent: str = Field(default="Perimeter-InfraMonitor/1.0")

    # Scheduling
    default_scan_schedule: str = Field(default="0 0 * * *")
    scheduler_refresh_minutes: int = Field(default=15, ge=1, le=1440)

    # API Configuration
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "text"] = Field(default="json")

    # CORS Configuration (set CORS_ORIGINS env var, comma-separated)
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins. Set to ['*'] for development only.",
    )
    cors_allow_credentials: bool = Field(default=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
