"""Signed request execution.

Every network call made by the client goes through SignedRequestExecutor:
it builds the URL, signs the request right before sending it, maps
failure statuses onto RemoteResponseError and hands back a
RemoteResponse that releases its connection exactly once.
"""

from __future__ import annotations

import io
import json
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Union
from urllib.parse import urlencode

import structlog
from opentelemetry import trace

from manta_client.domain.exceptions import (
    AuthenticationError,
    ConnectionError,
    DecodeError,
    ErrorCode,
    InvalidArgumentError,
    RemoteResponseError,
)
from manta_client.domain.value_objects.headers import HeaderMap
from manta_client.domain.value_objects.paths import format_path
from manta_client.infrastructure.logging import get_logger
from manta_client.infrastructure.metrics import ClientMetrics
from manta_client.infrastructure.tracing import get_tracer
from manta_client.ports.outbound import (
    HttpTransportPort,
    RequestBody,
    SignedRequest,
    SignerPort,
    TransportResponse,
)

HTTP_ACCEPTED = 202
# Error bodies are small JSON documents; never read more than this
MAX_ERROR_BODY = 64 * 1024
SIGNABLE_URI_METHODS = ("GET", "HEAD")

Expiry = Union[datetime, timedelta, int, float]


class RemoteResponse(io.RawIOBase):
    """A response whose body is read as a raw binary stream.

    Status and headers stay available after the response is closed.
    Closing releases the pooled connection; it only ever happens once.
    """

    def __init__(
        self,
        method: str,
        path: str,
        response: TransportResponse,
        metrics: Optional[ClientMetrics] = None,
    ) -> None:
        super().__init__()
        self.method = method
        self.path = path
        self.status = response.status_code
        self.reason = response.reason_phrase
        self.headers = HeaderMap(response.headers)
        self._response = response
        self._metrics = metrics
        self._released = False
        self._failure: Optional[RemoteResponseError] = None
        self._failure_checked = False

        if self._metrics:
            self._metrics.open_responses.inc()

    @property
    def ok(self) -> bool:
        return self.status < 400

    @property
    def accepted(self) -> bool:
        return self.status == HTTP_ACCEPTED

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        if self._released:
            raise ValueError("I/O operation on closed response.")
        view = memoryview(buffer).cast("B")
        data = self._response.read(len(view))
        size = len(data)
        view[:size] = data
        return size

    def close(self) -> None:
        if not self._released:
            self._released = True
            try:
                self._response.close()
            finally:
                if self._metrics:
                    self._metrics.open_responses.dec()
        super().close()

    def failure(self) -> Optional[RemoteResponseError]:
        """Describe a failed response as an error, or None on success.

        Reads the (small) JSON error body on first call.
        """
        if self.ok:
            return None
        if not self._failure_checked:
            self._failure_checked = True
            code: Any = None
            message = self.reason or ""
            body = b"" if self._released or self.method == "HEAD" else self._read_up_to(MAX_ERROR_BODY)
            if body:
                try:
                    document = json.loads(body)
                except ValueError:
                    message = body.decode("utf-8", errors="replace").strip() or message
                else:
                    if isinstance(document, dict):
                        code = document.get("code")
                        message = str(document.get("message") or message)
            self._failure = RemoteResponseError(
                status=self.status,
                service_code=ErrorCode.from_wire(code, self.status),
                message=message,
                method=self.method,
                path=self.path,
            )
        return self._failure

    def _read_up_to(self, limit: int) -> bytes:
        chunks = []
        remaining = limit
        while remaining > 0:
            chunk = self.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def json(self) -> Any:
        """Read and decode the remaining body as one JSON document.

        Raises:
            DecodeError: If the body is not valid JSON.
        """
        body = self.read()
        try:
            return json.loads(body)
        except ValueError as exc:
            raise DecodeError(f"Malformed JSON body from {self.method} {self.path}") from exc

    def text(self, encoding: str = "utf-8") -> str:
        return self.read().decode(encoding)

    def __repr__(self) -> str:
        return f"<RemoteResponse {self.method} {self.path} [{self.status}]>"


class SignedRequestExecutor:
    """Builds, signs and executes requests against one service endpoint.

    Holds no per-call state, so one executor can be shared by any number
    of orchestrators, readers and threads.
    """

    def __init__(
        self,
        endpoint: str,
        transport: HttpTransportPort,
        signer: SignerPort,
        *,
        timeout: Optional[float] = None,
        metrics: Optional[ClientMetrics] = None,
        tracer: Optional[trace.Tracer] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        """Initialize the executor.

        Args:
            endpoint: Base URL of the service, e.g. ``https://manta.example.com``.
            transport: HTTP transport collaborator.
            signer: Request signing collaborator.
            timeout: Per-request timeout in seconds (transport default if None).
            metrics: Optional metrics collector.
            tracer: Tracer for request spans.
            logger: Bound logger for the per-call debug trace.
        """
        if not endpoint:
            raise InvalidArgumentError("Service endpoint must be specified")
        self._endpoint = endpoint.rstrip("/")
        self._transport = transport
        self._signer = signer
        self._timeout = timeout
        self._metrics = metrics
        self._tracer = tracer or get_tracer()
        self._logger = logger or get_logger(__name__)

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def url_for(self, path: str, query: Optional[Mapping[str, Any]] = None) -> str:
        """Build the absolute, encoded URL for a path."""
        url = self._endpoint + format_path(path)
        if query:
            params = [(key, str(value)) for key, value in query.items() if value is not None]
            if params:
                url = f"{url}?{urlencode(params)}"
        return url

    def execute(
        self,
        method: str,
        path: str,
        headers: Optional[Mapping[str, str]] = None,
        body: RequestBody = None,
        *,
        query: Optional[Mapping[str, Any]] = None,
        raise_for_status: bool = True,
    ) -> RemoteResponse:
        """Execute a signed request and return the open response.

        The caller owns the response and must close it (it is a context
        manager).

        Args:
            method: HTTP verb.
            path: Object path, unencoded.
            headers: Extra request headers.
            body: Bytes, an iterable of byte chunks (streamed), or None.
            query: Query parameters; None values are dropped.
            raise_for_status: If False, failure statuses are returned and
                the caller matches on ``response.failure()``.

        Raises:
            RemoteResponseError: On a failure status (when raising).
            AuthenticationError: If signing fails.
            ConnectionError: If no response could be obtained.
        """
        if path is None:
            raise InvalidArgumentError("Path must be present")
        method = method.upper()
        request = SignedRequest(method, self.url_for(path, query), HeaderMap(headers), body)

        with self._tracer.start_as_current_span("manta.request") as span:
            span.set_attribute("http.method", method)
            span.set_attribute("manta.path", path)

            request = self._sign(request)
            self._logger.debug("manta_request", method=method, path=path)

            started = time.monotonic()
            try:
                raw = self._transport.send(request, timeout=self._timeout)
            except ConnectionError:
                self._record_error(method, "connection")
                self._logger.debug("manta_connection_failed", method=method, path=path)
                raise
            elapsed = time.monotonic() - started

            response = RemoteResponse(method, path, raw, self._metrics)
            span.set_attribute("http.status_code", response.status)
            self._logger.debug(
                "manta_response",
                method=method,
                path=path,
                status=response.status,
                elapsed_ms=round(elapsed * 1000, 2),
            )
            if self._metrics:
                self._metrics.requests_total.labels(method=method, status=str(response.status)).inc()
                self._metrics.request_latency.labels(method=method).observe(elapsed)

            if not raise_for_status:
                return response

            try:
                failure = response.failure()
            except BaseException:
                response.close()
                raise
            if failure is not None:
                response.close()
                self._record_error(method, failure.service_code.name.lower())
                raise failure
            return response

    def execute_and_release(
        self,
        method: str,
        path: str,
        headers: Optional[Mapping[str, str]] = None,
        body: RequestBody = None,
        *,
        query: Optional[Mapping[str, Any]] = None,
    ) -> RemoteResponse:
        """Execute a request whose body is not needed.

        Returns:
            The already-closed response; status and headers remain readable.
        """
        with self.execute(method, path, headers, body, query=query) as response:
            return response

    def sign_uri(self, path: str, method: str = "GET", expires: Optional[Expiry] = None) -> str:
        """Generate a capability URL usable without further authentication.

        Args:
            path: Object path.
            method: GET or HEAD.
            expires: Absolute expiry (datetime or epoch seconds) or a
                timedelta from now. Naive datetimes are taken as UTC.

        Returns:
            URL embedding the signature, key id and expiry.

        Raises:
            InvalidArgumentError: If path or expires is missing.
            AuthenticationError: If signing fails.
        """
        if not path:
            raise InvalidArgumentError("Path must be present")
        if expires is None:
            raise InvalidArgumentError("Expires must be present")
        method = (method or "").upper()
        if method not in SIGNABLE_URI_METHODS:
            raise InvalidArgumentError(f"Signed URIs only support GET and HEAD, not {method!r}")

        expires_epoch = _expiry_epoch(expires)
        url = self.url_for(path)
        try:
            return self._signer.sign_uri(method, url, expires_epoch)
        except AuthenticationError:
            raise
        except Exception as exc:
            raise AuthenticationError(f"Unable to sign URI for {path}") from exc

    def close(self) -> None:
        """Close the underlying transport."""
        self._transport.close()

    def _sign(self, request: SignedRequest) -> SignedRequest:
        try:
            signed_headers = self._signer.sign_request(request)
        except AuthenticationError:
            self._record_error(request.method, "authentication")
            raise
        except Exception as exc:
            self._record_error(request.method, "authentication")
            raise AuthenticationError(f"Unable to sign {request.method} {request.url}") from exc
        return request.with_headers(signed_headers)

    def _record_error(self, method: str, error_type: str) -> None:
        if self._metrics:
            self._metrics.request_errors.labels(method=method, error_type=error_type).inc()


def _expiry_epoch(expires: Expiry) -> int:
    if isinstance(expires, timedelta):
        return int(time.time() + expires.total_seconds())
    if isinstance(expires, datetime):
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return int(expires.timestamp())
    return int(expires)
