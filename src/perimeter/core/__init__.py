"""Core module - configuration, logging, and interfaces."""

from perimeter.core.config import Settings, get_settings
from perimeter.core.exceptions import (
    PerimeterError,
    ConfigurationError,
    ProviderError,
    ScanConflictError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "Settings",
    "get_settings",
    "PerimeterError",
    "ConfigurationError",
    "ProviderError",
    "ScanConflictError",
    "NotFoundError",
    "ValidationError",
]
