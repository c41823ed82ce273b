"""DNS provider clients."""

from perimeter.providers.cloudflare import CloudflareClient

__all__ = ["CloudflareClient"]
