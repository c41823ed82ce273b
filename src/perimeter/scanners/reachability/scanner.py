"""HTTPS reachability prober."""

import socket
import ssl
import time
from collections.abc import Iterator

import httpx

from perimeter.core.config import get_settings
from perimeter.core.logging import get_logger
from perimeter.infrastructure.http import HTTPClient
from perimeter.models import ExposureStatus, ProbeResult


class TransportErrorCode:
    """Identifiers for transport failures that mean "not reachable"."""

    CONNECTION_REFUSED = "ECONNREFUSED"
    DNS_NOT_FOUND = "ENOTFOUND"
    TIMED_OUT = "ETIMEDOUT"
    CONNECTION_RESET = "ECONNRESET"
    CONNECTION_ABORTED = "ECONNABORTED"
    TLS_HOSTNAME_MISMATCH = "ERR_TLS_CERT_ALTNAME_INVALID"


UNREACHABLE_ERROR_CODES = frozenset({
    TransportErrorCode.CONNECTION_REFUSED,
    TransportErrorCode.DNS_NOT_FOUND,
    TransportErrorCode.TIMED_OUT,
    TransportErrorCode.CONNECTION_RESET,
    TransportErrorCode.CONNECTION_ABORTED,
    TransportErrorCode.TLS_HOSTNAME_MISMATCH,
})

# Fallback when the exception chain carries no typed OS/TLS error
_MESSAGE_PATTERNS: list[tuple[str, tuple[str, ...]]] = [
    (TransportErrorCode.CONNECTION_REFUSED, ("connection refused", "errno 111")),
    (
        TransportErrorCode.DNS_NOT_FOUND,
        (
            "name or service not known",
            "nodename nor servname",
            "temporary failure in name resolution",
            "getaddrinfo failed",
            "no address associated with hostname",
        ),
    ),
    (
        TransportErrorCode.TLS_HOSTNAME_MISMATCH,
        ("hostname mismatch", "doesn't match", "not valid for"),
    ),
    (TransportErrorCode.CONNECTION_RESET, ("connection reset",)),
    (TransportErrorCode.CONNECTION_ABORTED, ("connection aborted",)),
    (TransportErrorCode.TIMED_OUT, ("timed out", "timeout")),
]

# OpenSSL X509_V_ERR_HOSTNAME_MISMATCH
_X509_HOSTNAME_MISMATCH = 62


def classify_exposure(
    http_status: int | None,
    error_code: str | None = None,
) -> ExposureStatus:
    """Map a probe outcome to exactly one exposure status.

    A 403 means the host is alive but refuses public access. Any other
    HTTP answer counts as public, including 4xx and 5xx.
    """
    if http_status is not None:
        if http_status == 403:
            return ExposureStatus.PRIVATE
        if 200 <= http_status < 600:
            return ExposureStatus.PUBLIC
        return ExposureStatus.UNREACHABLE

    if error_code in UNREACHABLE_ERROR_CODES:
        return ExposureStatus.UNREACHABLE
    return ExposureStatus.ERROR


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _is_hostname_mismatch(err: ssl.SSLCertVerificationError) -> bool:
    if getattr(err, "verify_code", None) == _X509_HOSTNAME_MISMATCH:
        return True
    return "hostname mismatch" in (getattr(err, "verify_message", "") or "").lower()


def transport_error_code(exc: BaseException) -> str | None:
    """Derive a transport error identifier from an exception, if any."""
    if isinstance(exc, httpx.TimeoutException):
        return TransportErrorCode.TIMED_OUT

    for err in _exception_chain(exc):
        if isinstance(err, ConnectionRefusedError):
            return TransportErrorCode.CONNECTION_REFUSED
        if isinstance(err, ConnectionResetError):
            return TransportErrorCode.CONNECTION_RESET
        if isinstance(err, ConnectionAbortedError):
            return TransportErrorCode.CONNECTION_ABORTED
        if isinstance(err, socket.gaierror):
            return TransportErrorCode.DNS_NOT_FOUND
        if isinstance(err, ssl.SSLCertVerificationError) and _is_hostname_mismatch(err):
            return TransportErrorCode.TLS_HOSTNAME_MISMATCH
        if isinstance(err, TimeoutError):
            return TransportErrorCode.TIMED_OUT

    message = " ".join(str(err) for err in _exception_chain(exc)).lower()
    for code, patterns in _MESSAGE_PATTERNS:
        if any(pattern in message for pattern in patterns):
            return code
    return None


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class ReachabilityProber:
    """Issues single HTTPS requests and classifies the outcome.

    Neither probe method raises: every failure is returned as a
    classification so callers can fan out without per-item handling.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = get_settings()
        self.logger = get_logger("reachability")
        self._transport = transport

    async def probe(self, hostname: str, proxy_url: str | None = None) -> ProbeResult:
        """GET ``https://{hostname}`` and classify the result."""
        url = f"https://{hostname}"
        start = time.monotonic()

        try:
            async with HTTPClient(
                timeout=self.settings.probe_timeout,
                proxy=proxy_url,
                max_redirects=self.settings.probe_max_redirects,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except Exception as e:
            response_time_ms = _elapsed_ms(start)
            code = transport_error_code(e)
            status = classify_exposure(None, code)
            error = code if status == ExposureStatus.UNREACHABLE else (str(e) or type(e).__name__)

            self.logger.debug(
                "probe_failed",
                hostname=hostname,
                status=status.value,
                error=error,
            )
            return ProbeResult(
                status=status,
                http_status_code=None,
                response_time_ms=response_time_ms,
                error=error,
            )

        return ProbeResult(
            status=classify_exposure(response.status_code),
            http_status_code=response.status_code,
            response_time_ms=_elapsed_ms(start),
        )

    async def probe_origin(
        self,
        ip: str,
        host_header: str,
        proxy_url: str | None = None,
    ) -> bool:
        """Check whether an origin answers HTTPS on its bare IP.

        Certificate verification is disabled on purpose: the origin's
        certificate is issued for the hostname, never for the IP. This is
        a scanner capability only and must not leak into other clients.
        """
        host = f"[{ip}]" if ":" in ip else ip
        try:
            async with HTTPClient(
                timeout=self.settings.direct_probe_timeout,
                headers={"Host": host_header},
                proxy=proxy_url,
                verify=False,
                max_redirects=self.settings.direct_probe_max_redirects,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    f"https://{host}", extensions={"sni_hostname": host_header}
                )
        except Exception as e:
            self.logger.debug("origin_probe_failed", ip=ip, host=host_header, error=str(e))
            return False

        status_code = response.status_code
        return 200 <= status_code < 600 and status_code != 403
