"""Outbound HTTP client."""

from typing import Any

import httpx

from perimeter.core.config import get_settings


class HTTPClient:
    """Async HTTP client wrapper.

    One instance opens one ``httpx.AsyncClient`` for the duration of an
    ``async with`` block. Every outbound request in the project goes
    through here so proxy routing and TLS policy are set in one place.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
        proxy: str | None = None,
        verify: bool = True,
        follow_redirects: bool = True,
        max_redirects: int = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = get_settings()
        self.base_url = base_url
        self.timeout = timeout if timeout is not None else self.settings.probe_timeout
        self.headers = {"User-Agent": self.settings.user_agent, **(headers or {})}
        self.proxy = proxy or None
        self.verify = verify
        self.follow_redirects = follow_redirects
        self.max_redirects = max_redirects
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self.headers,
            proxy=self.proxy,
            verify=self.verify,
            follow_redirects=self.follow_redirects,
            max_redirects=self.max_redirects,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is None:
            raise RuntimeError('HTTPClient must be used inside "async with"')
        return await self._client.get(url, **kwargs)
