"""Outbound ports - External dependency interfaces for the Manta client.

Outbound ports define the collaborators the client relies on for
request signing and HTTP transport. Both are replaceable; the package
ships an httpx transport and an RSA-SHA256 signer.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping, Optional, Protocol, Union

from manta_client.domain.value_objects.headers import HeaderMap

# In-memory bytes, a lazily produced chunk stream, or nothing
RequestBody = Union[bytes, Iterable[bytes], None]


# =============================================================================
# Signed Request
# =============================================================================


@dataclass(frozen=True)
class SignedRequest:
    """A single request, built and signed per call and never reused."""

    method: str
    url: str
    headers: HeaderMap = field(default_factory=HeaderMap)
    body: RequestBody = None

    def with_headers(self, headers: Mapping[str, str]) -> "SignedRequest":
        """Return a copy with ``headers`` merged over the existing ones."""
        return replace(self, headers=self.headers.merged(headers))


# =============================================================================
# Signer Port
# =============================================================================


class SignerPort(Protocol):
    """Protocol for request and URI signing.

    Signatures are validity-windowed, so callers sign immediately
    before sending.

    Raises:
        AuthenticationError: From either method when signing fails.
    """

    @abstractmethod
    def sign_request(self, request: SignedRequest) -> Mapping[str, str]:
        """Sign a request.

        Args:
            request: Request about to be sent.

        Returns:
            Headers to add to the request (``Date``, ``Authorization``).
        """
        ...

    @abstractmethod
    def sign_uri(self, method: str, url: str, expires: int) -> str:
        """Produce a capability URL.

        Args:
            method: HTTP verb the URL grants (GET or HEAD).
            url: Absolute, encoded URL of the resource.
            expires: Expiry as seconds since the epoch.

        Returns:
            The URL with signature, key id and expiry as query parameters.
        """
        ...


# =============================================================================
# Transport Port
# =============================================================================


class TransportResponse(Protocol):
    """A response whose body has not been read yet."""

    status_code: int
    reason_phrase: str
    headers: Mapping[str, str]

    @abstractmethod
    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` body bytes; ``b""`` at end of body.

        Raises:
            ConnectionError: If the connection fails mid-body.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the connection. Idempotent; aborts an unread body."""
        ...


class HttpTransportPort(Protocol):
    """Protocol for executing HTTP requests.

    Must support ``Range`` requests and streamed request bodies.

    Thread Safety:
        ``send`` must be safe to call from several threads.
    """

    @abstractmethod
    def send(self, request: SignedRequest, timeout: Optional[float] = None) -> TransportResponse:
        """Send a request and return once response headers arrive.

        Raises:
            ConnectionError: If no response could be obtained.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the connection pool. Idempotent."""
        ...
