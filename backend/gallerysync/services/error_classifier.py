"""Transport failure / HTTP response -> DomainError classification."""

from __future__ import annotations

import logging
import socket

import httpx

from gallerysync.errors import (
    AccessDenied,
    DiskNotFound,
    DomainError,
    DomainException,
    NetworkTimeout,
    NetworkUnknown,
    NoConnection,
    QuotaExceeded,
    ServerError,
    Unauthorized,
    UnknownError,
)
from gallerysync.schemas.resource import (
    ERROR_FORBIDDEN,
    ERROR_NOT_FOUND,
    ERROR_PATH_NOT_FOUND,
    ERROR_QUOTA_EXCEEDED,
    ErrorDto,
)

logger = logging.getLogger(__name__)

TOO_MANY_REQUESTS_MESSAGE = "Too many requests. Please try again later."


def classify(failure: BaseException | httpx.Response) -> DomainError:
    """Map an exception or a non-success response onto the domain taxonomy."""
    if isinstance(failure, httpx.Response):
        return classify_response(failure)
    if isinstance(failure, httpx.HTTPStatusError):
        return classify_response(failure.response)
    if isinstance(failure, DomainException):
        return failure.error
    if isinstance(failure, (httpx.TimeoutException, TimeoutError)):
        return NetworkTimeout()
    if _is_resolution_failure(failure):
        return NoConnection()
    if isinstance(failure, (httpx.TransportError, OSError)):
        return _classify_io_failure(failure)
    return UnknownError(str(failure) or "Unknown error occurred", failure)


def classify_response(response: httpx.Response) -> DomainError:
    code = response.status_code
    body = parse_error_body(response)

    if code == 401:
        return Unauthorized()
    if code == 403:
        if body is not None and body.error == ERROR_FORBIDDEN:
            return AccessDenied(path=body.description or "unknown")
        if body is not None and body.error == ERROR_QUOTA_EXCEEDED:
            return QuotaExceeded()
        return Unauthorized()
    if code == 404:
        if body is not None and body.error in (ERROR_NOT_FOUND, ERROR_PATH_NOT_FOUND):
            return DiskNotFound(path=body.description or "unknown")
        return DiskNotFound(path="unknown")
    if code == 429:
        return ServerError(code=code, server_message=TOO_MANY_REQUESTS_MESSAGE)
    if 500 <= code <= 599:
        return ServerError(code=code, server_message=_body_message(body) or "Server error")
    return ServerError(code=code, server_message=_body_message(body) or response.reason_phrase)


def parse_error_body(response: httpx.Response) -> ErrorDto | None:
    """Decode ``{error, message, description}``; None when absent or malformed."""
    try:
        return ErrorDto.model_validate(response.json())
    except (ValueError, httpx.ResponseNotRead) as e:
        logger.debug("Unparsable error body (HTTP %d): %s", response.status_code, e)
        return None


def _body_message(body: ErrorDto | None) -> str | None:
    return body.message if body is not None else None


def _classify_io_failure(failure: BaseException) -> DomainError:
    text = str(failure).lower()
    if "resolve host" in text:
        return NoConnection()
    if "timeout" in text:
        return NetworkTimeout()
    return NetworkUnknown(failure)


def _is_resolution_failure(failure: BaseException) -> bool:
    """Walk the exception chain looking for a DNS lookup error."""
    seen: set[int] = set()
    current: BaseException | None = failure
    while current is not None and id(current) not in seen:
        if isinstance(current, socket.gaierror):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False
