"""Error taxonomy for the Manta client.

Every error raised by the client derives from MantaClientError. Several
also derive from the matching builtin so callers can catch them the
usual way (``except ValueError``, ``except ConnectionError``, ...).
"""

from __future__ import annotations

import builtins
from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Service-provided error codes, collapsed to a closed set."""

    RESOURCE_NOT_FOUND = "ResourceNotFound"
    INVALID_ARGUMENT = "InvalidArgument"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    AUTHENTICATION_ERROR = "AuthenticationError"
    DIRECTORY_NOT_EMPTY = "DirectoryNotEmpty"
    PRECONDITION_FAILED = "PreconditionFailed"
    UNKNOWN = "Unknown"

    @classmethod
    def from_wire(cls, code: Optional[object], status: int = 0) -> "ErrorCode":
        """Map a wire error code (or, failing that, a status) to an ErrorCode.

        Args:
            code: The ``code`` field of the service's JSON error body. Anything
                but a non-empty string counts as no code.
            status: HTTP status, used when no code was sent.

        Returns:
            Matching error code, UNKNOWN if nothing matches.
        """
        if isinstance(code, str) and code:
            normalized = code[:-5] if code.endswith("Error") else code
            return _WIRE_ALIASES.get(normalized, cls.UNKNOWN)
        return _STATUS_DEFAULTS.get(status, cls.UNKNOWN)


_WIRE_ALIASES = {
    "ResourceNotFound": ErrorCode.RESOURCE_NOT_FOUND,
    "NotFound": ErrorCode.RESOURCE_NOT_FOUND,
    "DirectoryDoesNotExist": ErrorCode.RESOURCE_NOT_FOUND,
    "ParentNotDirectory": ErrorCode.INVALID_ARGUMENT,
    "InvalidArgument": ErrorCode.INVALID_ARGUMENT,
    "InvalidJob": ErrorCode.INVALID_ARGUMENT,
    "InvalidParameter": ErrorCode.INVALID_ARGUMENT,
    "BadRequest": ErrorCode.INVALID_ARGUMENT,
    "ServiceUnavailable": ErrorCode.SERVICE_UNAVAILABLE,
    "Authentication": ErrorCode.AUTHENTICATION_ERROR,
    "AuthorizationFailed": ErrorCode.AUTHENTICATION_ERROR,
    "InvalidCredentials": ErrorCode.AUTHENTICATION_ERROR,
    "InvalidKeyId": ErrorCode.AUTHENTICATION_ERROR,
    "InvalidSignature": ErrorCode.AUTHENTICATION_ERROR,
    "KeyDoesNotExist": ErrorCode.AUTHENTICATION_ERROR,
    "DirectoryNotEmpty": ErrorCode.DIRECTORY_NOT_EMPTY,
    "PreconditionFailed": ErrorCode.PRECONDITION_FAILED,
}

_STATUS_DEFAULTS = {
    400: ErrorCode.INVALID_ARGUMENT,
    401: ErrorCode.AUTHENTICATION_ERROR,
    403: ErrorCode.AUTHENTICATION_ERROR,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    412: ErrorCode.PRECONDITION_FAILED,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


class MantaClientError(Exception):
    """Base class for all client errors."""


class AuthenticationError(MantaClientError):
    """Signing a request or URI failed."""


class RemoteResponseError(MantaClientError):
    """The service answered with a non-success status."""

    def __init__(
        self,
        status: int,
        service_code: ErrorCode = ErrorCode.UNKNOWN,
        message: str = "",
        method: str = "",
        path: str = "",
    ) -> None:
        self.status = status
        self.service_code = service_code
        self.message = message
        self.method = method
        self.path = path
        super().__init__(
            f"{method} {path} failed with [{status}] {service_code.value}: {message}".strip()
        )


class NotADirectoryError(MantaClientError, builtins.NotADirectoryError):
    """A listing was requested for something that is not a directory."""


class DecodeError(MantaClientError, ValueError):
    """A record could not be decoded where strict decoding is required."""


class OutOfRangeError(MantaClientError, ValueError):
    """A seek target lies outside the addressable range."""


class ConnectionError(MantaClientError, builtins.ConnectionError):
    """Transport-level I/O failed before a response was obtained."""


class InvalidArgumentError(MantaClientError, ValueError):
    """A caller-supplied argument is missing or invalid."""
