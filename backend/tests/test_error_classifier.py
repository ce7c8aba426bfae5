"""Tests for transport failure / HTTP response classification."""

import socket

import httpx
import pytest

from gallerysync.errors import (
    AccessDenied,
    DiskNotFound,
    DomainError,
    DomainException,
    NetworkError,
    NetworkTimeout,
    NetworkUnknown,
    NoConnection,
    QuotaExceeded,
    ServerError,
    Unauthorized,
    UnknownError,
)
from gallerysync.services.error_classifier import TOO_MANY_REQUESTS_MESSAGE, classify


def _resp(code: int, body=None, content: bytes | None = None) -> httpx.Response:
    if content is not None:
        return httpx.Response(code, content=content)
    return httpx.Response(code, json=body) if body is not None else httpx.Response(code)


@pytest.mark.parametrize(
    "response, expected",
    [
        (_resp(401), Unauthorized()),
        (_resp(403, {"error": "DiskForbiddenError", "description": "/secret"}), AccessDenied("/secret")),
        (_resp(403, {"error": "DiskQuotaExceededError"}), QuotaExceeded()),
        (_resp(403, {"error": "SomethingElse"}), Unauthorized()),
        (_resp(404, {"error": "DiskNotFoundError", "description": "/a"}), DiskNotFound("/a")),
        (_resp(404, {"error": "DiskPathDoesntExistsError", "description": "/b"}), DiskNotFound("/b")),
        (_resp(404, {"error": "Other"}), DiskNotFound("unknown")),
        (_resp(404), DiskNotFound("unknown")),
        (_resp(429), ServerError(429, TOO_MANY_REQUESTS_MESSAGE)),
        (_resp(503, {"error": "DiskServiceUnavailableError", "message": "Down"}), ServerError(503, "Down")),
        (_resp(500), ServerError(500, "Server error")),
        (_resp(409, {"error": "DiskResourceAlreadyExistsError", "message": "Exists"}), ServerError(409, "Exists")),
        (_resp(418), ServerError(418, "I'm a teapot")),
    ],
)
def test_http_classification(response, expected):
    assert classify(response) == expected


def test_malformed_error_body_is_swallowed():
    assert classify(_resp(503, content=b"<html>oops</html>")) == ServerError(503, "Server error")


def test_timeouts():
    assert classify(httpx.ConnectTimeout("connect")) == NetworkTimeout()
    assert classify(httpx.ReadTimeout("read")) == NetworkTimeout()
    assert classify(TimeoutError()) == NetworkTimeout()


def test_dns_failure_anywhere_in_chain():
    try:
        try:
            raise socket.gaierror(-2, "Name or service not known")
        except socket.gaierror as inner:
            raise httpx.ConnectError("[Errno -2] Name or service not known") from inner
    except httpx.ConnectError as outer:
        assert classify(outer) == NoConnection()


def test_io_message_heuristics():
    assert classify(httpx.ConnectError("Unable to resolve host api.test")) == NoConnection()
    assert classify(OSError("socket timeout while reading")) == NetworkTimeout()
    failure = httpx.ConnectError("connection refused")
    error = classify(failure)
    assert isinstance(error, NetworkUnknown)
    assert error.cause is failure


def test_domain_exception_passes_through():
    assert classify(DomainException(QuotaExceeded())) == QuotaExceeded()


def test_anything_else_is_unknown():
    failure = ValueError("bad")
    error = classify(failure)
    assert isinstance(error, UnknownError)
    assert error.message == "bad"
    assert error.cause is failure


def test_error_categories_are_not_instantiable():
    with pytest.raises(TypeError):
        DomainError()
    with pytest.raises(TypeError):
        NetworkError()
