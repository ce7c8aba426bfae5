"""Domain error taxonomy and the Result wrapper returned by the sync service.

Every failure that crosses a component boundary is one of the closed set of
``DomainError`` variants below. Raw transport exceptions are never handed to a
caller; they may only travel along as the opaque ``cause`` for logging.

Variants are grouped by category::

    NetworkError     NoConnection, NetworkTimeout, ServerError, NetworkUnknown
    AuthError        Unauthorized, TokenExpired, InvalidCredentials, AuthCancelled
    DiskError        DiskNotFound, AccessDenied, QuotaExceeded,
                     InvalidPublicUrl, PublicLinkExpired
    CacheError       CacheReadError, CacheWriteError
    InvalidInputError  InvalidUrl, EmptyField
    UnknownError
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class DomainError(ABC):
    """Base of the closed error hierarchy; only leaf variants are instantiable."""

    @property
    @abstractmethod
    def message(self) -> str:
        ...

    @property
    def cause(self) -> Optional[BaseException]:
        return None

    def __str__(self) -> str:
        return self.message


# --- Network ---------------------------------------------------------------


@dataclass(frozen=True)
class NetworkError(DomainError):
    pass


@dataclass(frozen=True)
class NoConnection(NetworkError):
    @property
    def message(self) -> str:
        return "No internet connection"


@dataclass(frozen=True)
class NetworkTimeout(NetworkError):
    @property
    def message(self) -> str:
        return "Request timed out"


@dataclass(frozen=True)
class ServerError(NetworkError):
    code: int
    server_message: str

    @property
    def message(self) -> str:
        return f"Server error: {self.code} - {self.server_message}"


@dataclass(frozen=True)
class NetworkUnknown(NetworkError):
    error: BaseException = field(compare=False)

    @property
    def message(self) -> str:
        return f"Network error: {self.error}"

    @property
    def cause(self) -> Optional[BaseException]:
        return self.error


# --- Auth ------------------------------------------------------------------


@dataclass(frozen=True)
class AuthError(DomainError):
    pass


@dataclass(frozen=True)
class Unauthorized(AuthError):
    @property
    def message(self) -> str:
        return "Authentication required"


@dataclass(frozen=True)
class TokenExpired(AuthError):
    @property
    def message(self) -> str:
        return "Session expired. Please login again"


@dataclass(frozen=True)
class InvalidCredentials(AuthError):
    @property
    def message(self) -> str:
        return "Invalid credentials"


@dataclass(frozen=True)
class AuthCancelled(AuthError):
    @property
    def message(self) -> str:
        return "Authentication cancelled"


# --- Disk ------------------------------------------------------------------


@dataclass(frozen=True)
class DiskError(DomainError):
    pass


@dataclass(frozen=True)
class DiskNotFound(DiskError):
    path: str

    @property
    def message(self) -> str:
        return f"Resource not found: {self.path}"


@dataclass(frozen=True)
class AccessDenied(DiskError):
    path: str

    @property
    def message(self) -> str:
        return f"Access denied: {self.path}"


@dataclass(frozen=True)
class QuotaExceeded(DiskError):
    @property
    def message(self) -> str:
        return "Disk quota exceeded"


@dataclass(frozen=True)
class InvalidPublicUrl(DiskError):
    url: str

    @property
    def message(self) -> str:
        return f"Invalid public folder URL: {self.url}"


@dataclass(frozen=True)
class PublicLinkExpired(DiskError):
    @property
    def message(self) -> str:
        return "Public link has expired"


# --- Cache -----------------------------------------------------------------


@dataclass(frozen=True)
class CacheError(DomainError):
    error: BaseException = field(compare=False)

    @property
    def cause(self) -> Optional[BaseException]:
        return self.error


@dataclass(frozen=True)
class CacheReadError(CacheError):
    @property
    def message(self) -> str:
        return f"Failed to read from cache: {self.error}"


@dataclass(frozen=True)
class CacheWriteError(CacheError):
    @property
    def message(self) -> str:
        return f"Failed to write to cache: {self.error}"


# --- Validation ------------------------------------------------------------


@dataclass(frozen=True)
class InvalidInputError(DomainError):
    pass


@dataclass(frozen=True)
class InvalidUrl(InvalidInputError):
    url: str

    @property
    def message(self) -> str:
        return f"Invalid URL format: {self.url}"


@dataclass(frozen=True)
class EmptyField(InvalidInputError):
    field_name: str

    @property
    def message(self) -> str:
        return f"Field cannot be empty: {self.field_name}"


# --- Fallback --------------------------------------------------------------


@dataclass(frozen=True)
class UnknownError(DomainError):
    text: str
    error: Optional[BaseException] = field(default=None, compare=False)

    @property
    def message(self) -> str:
        return self.text

    @property
    def cause(self) -> Optional[BaseException]:
        return self.error


class DomainException(Exception):
    """Carries a classified ``DomainError`` across internal seams."""

    def __init__(self, error: DomainError):
        super().__init__(error.message)
        self.error = error


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success value or a single ``DomainError``, never both."""

    value: Optional[T] = None
    error: Optional[DomainError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: DomainError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise ``DomainException`` for the error."""
        if self.error is not None:
            raise DomainException(self.error)
        return self.value  # type: ignore[return-value]
