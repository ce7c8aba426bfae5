"""DomainError -> HTTP translation shared by the route modules."""

from __future__ import annotations

from typing import TypeVar

from fastapi import HTTPException, status

from gallerysync.errors import (
    AccessDenied,
    AuthError,
    CacheError,
    DiskNotFound,
    DomainError,
    InvalidInputError,
    InvalidPublicUrl,
    NetworkTimeout,
    NetworkUnknown,
    NoConnection,
    PublicLinkExpired,
    QuotaExceeded,
    Result,
    ServerError,
    UnknownError,
)

T = TypeVar("T")


def status_for(error: DomainError) -> int:
    """HTTP status for every DomainError variant."""
    if isinstance(error, NoConnection):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(error, NetworkTimeout):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(error, ServerError):
        if error.code == 429:
            return status.HTTP_429_TOO_MANY_REQUESTS
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(error, NetworkUnknown):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(error, AuthError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(error, DiskNotFound):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, AccessDenied):
        return status.HTTP_403_FORBIDDEN
    if isinstance(error, QuotaExceeded):
        return status.HTTP_507_INSUFFICIENT_STORAGE
    if isinstance(error, PublicLinkExpired):
        return status.HTTP_410_GONE
    if isinstance(error, (InvalidPublicUrl, InvalidInputError)):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(error, (CacheError, UnknownError)):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    raise TypeError(f"Unhandled DomainError variant: {type(error).__name__}")


def http_error(error: DomainError) -> HTTPException:
    return HTTPException(
        status_code=status_for(error),
        detail={"error": type(error).__name__, "message": error.message},
    )


def unwrap(result: Result[T]) -> T:
    """Return the value or raise the matching HTTPException."""
    if result.error is not None:
        raise http_error(result.error)
    return result.value  # type: ignore[return-value]
