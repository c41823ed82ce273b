"""Custom exceptions for Perimeter."""


class PerimeterError(Exception):
    """Base exception for all Perimeter errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PerimeterError):
    """Raised when input validation fails."""

    pass


class ConfigurationError(PerimeterError):
    """Raised when scan configuration is missing or invalid."""

    pass


class ProviderError(PerimeterError):
    """Raised when the DNS provider API returns an unusable response."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        errors: list | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.provider = provider
        self.errors = errors or []


class ScanConflictError(PerimeterError):
    """Raised when a scan is already running for an organization."""

    def __init__(
        self,
        message: str,
        organization_id: str | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.organization_id = organization_id


class NotFoundError(PerimeterError):
    """Raised when a requested entity does not exist."""

    pass
