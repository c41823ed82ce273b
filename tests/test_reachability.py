"""Tests for the HTTPS reachability prober."""

import socket
import ssl

import httpx
import pytest

from perimeter.models import ExposureStatus
from perimeter.scanners.reachability import (
    ReachabilityProber,
    TransportErrorCode,
    classify_exposure,
    transport_error_code,
)


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (200, ExposureStatus.PUBLIC),
        (204, ExposureStatus.PUBLIC),
        (401, ExposureStatus.PUBLIC),
        (404, ExposureStatus.PUBLIC),
        (500, ExposureStatus.PUBLIC),
        (503, ExposureStatus.PUBLIC),
        (403, ExposureStatus.PRIVATE),
        (199, ExposureStatus.UNREACHABLE),
        (600, ExposureStatus.UNREACHABLE),
    ],
)
def test_classify_http_status(status_code, expected):
    assert classify_exposure(status_code) == expected


@pytest.mark.parametrize(
    "code",
    [
        "ECONNREFUSED",
        "ENOTFOUND",
        "ETIMEDOUT",
        "ECONNRESET",
        "ECONNABORTED",
        "ERR_TLS_CERT_ALTNAME_INVALID",
    ],
)
def test_classify_unreachable_codes(code):
    assert classify_exposure(None, code) == ExposureStatus.UNREACHABLE


def test_classify_unknown_failure_is_error():
    assert classify_exposure(None, None) == ExposureStatus.ERROR
    assert classify_exposure(None, "EPROTO") == ExposureStatus.ERROR


def _chained(cause: BaseException) -> httpx.ConnectError:
    exc = httpx.ConnectError("connect failed")
    exc.__cause__ = cause
    return exc


def test_transport_error_code_from_exception_chain():
    assert transport_error_code(_chained(ConnectionRefusedError())) == "ECONNREFUSED"
    assert transport_error_code(_chained(ConnectionResetError())) == "ECONNRESET"
    assert transport_error_code(_chained(ConnectionAbortedError())) == "ECONNABORTED"
    assert transport_error_code(_chained(socket.gaierror(-2, "Name or service not known"))) == "ENOTFOUND"


def test_transport_error_code_tls_hostname_mismatch():
    err = ssl.SSLCertVerificationError(1, "certificate verify failed")
    err.verify_code = 62
    err.verify_message = "Hostname mismatch, certificate is not valid for 'example.com'."
    assert transport_error_code(_chained(err)) == TransportErrorCode.TLS_HOSTNAME_MISMATCH


def test_transport_error_code_other_tls_failure_is_unclassified():
    err = ssl.SSLCertVerificationError(1, "certificate verify failed")
    err.verify_code = 10
    err.verify_message = "certificate has expired"
    assert transport_error_code(_chained(err)) is None


def test_transport_error_code_timeout():
    assert transport_error_code(httpx.ConnectTimeout("timed out")) == "ETIMEDOUT"
    assert transport_error_code(httpx.ReadTimeout("read")) == "ETIMEDOUT"


def test_transport_error_code_message_fallback():
    assert transport_error_code(httpx.ConnectError("[Errno 111] Connection refused")) == "ECONNREFUSED"
    assert transport_error_code(RuntimeError("something odd")) is None


def _prober(handler) -> ReachabilityProber:
    return ReachabilityProber(transport=httpx.MockTransport(handler))


async def test_probe_public_host():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    result = await _prober(handler).probe("app.example.com")

    assert result.status == ExposureStatus.PUBLIC
    assert result.http_status_code == 200
    assert result.error is None
    assert result.response_time_ms is not None and result.response_time_ms >= 0
    assert str(seen[0].url) == "https://app.example.com"
    assert seen[0].headers["user-agent"] == "Perimeter-InfraMonitor/1.0"


async def test_probe_forbidden_host_is_private():
    result = await _prober(lambda request: httpx.Response(403)).probe("admin.example.com")

    assert result.status == ExposureStatus.PRIVATE
    assert result.http_status_code == 403


async def test_probe_server_error_is_public():
    result = await _prober(lambda request: httpx.Response(502)).probe("api.example.com")

    assert result.status == ExposureStatus.PUBLIC
    assert result.http_status_code == 502


async def test_probe_follows_redirects():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/":
            return httpx.Response(301, headers={"Location": "https://app.example.com/login"})
        return httpx.Response(403)

    result = await _prober(handler).probe("app.example.com")

    assert result.status == ExposureStatus.PRIVATE
    assert result.http_status_code == 403


async def test_probe_connection_refused_is_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

    result = await _prober(handler).probe("dead.example.com")

    assert result.status == ExposureStatus.UNREACHABLE
    assert result.http_status_code is None
    assert result.error == "ECONNREFUSED"


async def test_probe_timeout_is_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    result = await _prober(handler).probe("slow.example.com")

    assert result.status == ExposureStatus.UNREACHABLE
    assert result.error == "ETIMEDOUT"


async def test_probe_unexpected_failure_is_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.RemoteProtocolError("malformed response", request=request)

    result = await _prober(handler).probe("weird.example.com")

    assert result.status == ExposureStatus.ERROR
    assert result.http_status_code is None
    assert result.error == "malformed response"


async def test_probe_origin_sends_host_header_to_ip():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    reachable = await _prober(handler).probe_origin("1.2.3.4", "a.example.com")

    assert reachable is True
    assert seen[0].url.host == "1.2.3.4"
    assert seen[0].url.scheme == "https"
    assert seen[0].headers["host"] == "a.example.com"
    assert seen[0].extensions["sni_hostname"] == "a.example.com"


async def test_probe_origin_brackets_ipv6():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(404)

    assert await _prober(handler).probe_origin("2001:db8::1", "v6.example.com") is True
    assert seen[0].url.host == "2001:db8::1"


async def test_probe_origin_forbidden_is_not_reachable():
    assert await _prober(lambda request: httpx.Response(403)).probe_origin(
        "1.2.3.4", "a.example.com"
    ) is False


async def test_probe_origin_connection_failure_is_not_reachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    assert await _prober(handler).probe_origin("1.2.3.4", "a.example.com") is False
