"""Error taxonomy for metastore clients and the mapping onto it.

Every failure raised by `hmsops.core` is a `MetastoreError` carrying a stable
`kind`. Remote faults reported by the metastore, transport failures and
undecodable responses are translated here, in one place, so callers can tell
a missing object apart from an unreachable service when deciding on retries.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Stable classification of every error raised by the client."""

    CONSTRUCTION = "CONSTRUCTION"
    CONNECT = "CONNECT"
    TIMEOUT = "TIMEOUT"
    UNAVAILABLE = "UNAVAILABLE"
    PROTOCOL_ERROR = "PROTOCOL_ERROR"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    REMOTE_ERROR = "REMOTE_ERROR"
    AUTH = "AUTH"


class MetastoreError(RuntimeError):
    """Base class for all metastore client errors."""

    kind: ErrorKind = ErrorKind.REMOTE_ERROR
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConstructionError(MetastoreError):
    """Raised when a client cannot be built from the given configuration."""

    kind = ErrorKind.CONSTRUCTION


class ConfigError(ConstructionError):
    """Raised for malformed configuration values (headers, durations, URIs)."""


class ConnectError(ConstructionError):
    """Raised when the transport to the metastore cannot be established."""

    kind = ErrorKind.CONNECT


class MetastoreTimeout(MetastoreError):
    """Raised when a call does not complete within its deadline."""

    kind = ErrorKind.TIMEOUT
    retryable = True


class UnavailableError(MetastoreError):
    """Raised when the metastore cannot be reached or the connection is gone."""

    kind = ErrorKind.UNAVAILABLE
    retryable = True


class ProtocolError(MetastoreError):
    """Raised when a response cannot be decoded."""

    kind = ErrorKind.PROTOCOL_ERROR


class NotFoundError(MetastoreError):
    """Raised when the requested object does not exist in the metastore."""

    kind = ErrorKind.NOT_FOUND


class AlreadyExistsError(MetastoreError):
    """Raised when creating an object that already exists."""

    kind = ErrorKind.ALREADY_EXISTS


class InvalidArgumentError(MetastoreError):
    """Raised when the metastore rejects the input of a call."""

    kind = ErrorKind.INVALID_ARGUMENT


class RemoteError(MetastoreError):
    """Raised for generic metastore-side failures."""

    kind = ErrorKind.REMOTE_ERROR


class AuthReason(str, Enum):
    """Why authentication failed."""

    UNSUPPORTED = "UNSUPPORTED"
    REJECTED = "REJECTED"
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"


class AuthError(MetastoreError):
    """Raised when authentication is unsupported or the credential is rejected."""

    kind = ErrorKind.AUTH

    def __init__(self, message: str, reason: AuthReason = AuthReason.REJECTED) -> None:
        super().__init__(message)
        self.reason = reason


class UnsupportedAuthError(AuthError, ConstructionError):
    """Raised at construction time for an auth mode the transport cannot carry."""

    kind = ErrorKind.AUTH

    def __init__(self, message: str) -> None:
        super().__init__(message, AuthReason.UNSUPPORTED)


class FaultKind(str, Enum):
    """Classes of structured faults returned by the metastore."""

    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INVALID_INPUT = "INVALID_INPUT"
    GENERIC = "GENERIC"


@dataclass(frozen=True)
class RemoteFault:
    """A structured exception reported by the metastore for one call."""

    kind: FaultKind
    message: str
    type_name: str = ""


class TransportFailure(str, Enum):
    """Failure classes raised by connections."""

    TIMEOUT = "TIMEOUT"
    CONNECTION = "CONNECTION"
    REMOTE_REJECTED = "REMOTE_REJECTED"


class TransportError(Exception):
    """Low-level failure of a connection, translated by `map_transport_error`."""

    def __init__(
        self,
        kind: TransportFailure,
        message: str,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code


_FAULT_ERRORS: dict[FaultKind, type[MetastoreError]] = {
    FaultKind.NOT_FOUND: NotFoundError,
    FaultKind.ALREADY_EXISTS: AlreadyExistsError,
    FaultKind.INVALID_INPUT: InvalidArgumentError,
    FaultKind.GENERIC: RemoteError,
}


def map_remote_fault(fault: RemoteFault) -> MetastoreError:
    """Return the error for a fault reported by the metastore."""
    message = fault.message or fault.type_name or "metastore call failed"
    return _FAULT_ERRORS[fault.kind](message)


def map_transport_error(error: TransportError) -> MetastoreError:
    """Return the error for a failed connection call."""
    if error.kind is TransportFailure.TIMEOUT:
        return MetastoreTimeout(f"Metastore call timed out: {error.message}")
    if error.kind is TransportFailure.REMOTE_REJECTED:
        status = error.status_code
        if status in (401, 403):
            return AuthError(
                f"Metastore rejected the credentials (HTTP {status}).",
                AuthReason.REJECTED,
            )
        return UnavailableError(f"Metastore rejected the request (HTTP {status}).")
    return UnavailableError(f"Metastore is unavailable: {error.message}")


def map_decode_error(exc: Exception) -> ProtocolError:
    """Return the error for a response that could not be decoded."""
    return ProtocolError(f"Malformed metastore response: {exc}")
