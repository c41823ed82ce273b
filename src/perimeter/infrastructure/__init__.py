"""Infrastructure layer."""

from perimeter.infrastructure.http import HTTPClient

__all__ = ["HTTPClient"]
