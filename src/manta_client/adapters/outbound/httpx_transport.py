"""HTTP transport backed by httpx.

Responses are opened in streaming mode so bodies are pulled on demand
and connections go back to the pool when the response is closed.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional

import httpx

from manta_client import __version__
from manta_client.domain.exceptions import ConnectionError
from manta_client.infrastructure.config import HttpConfig
from manta_client.ports.outbound import SignedRequest

USER_AGENT = f"manta-client-python/{__version__}"
DEFAULT_CHUNK_SIZE = 64 * 1024


class HttpxResponse:
    """Streaming httpx response exposed through the TransportResponse protocol."""

    def __init__(self, response: httpx.Response, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._response = response
        self.status_code = response.status_code
        self.reason_phrase = response.reason_phrase
        self.headers = response.headers
        self._chunks: Iterator[bytes] = response.iter_bytes(chunk_size)
        self._buffer = bytearray()
        self._exhausted = False
        self._closed = False

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or the whole remaining body if negative.

        May return fewer than ``size`` bytes; ``b""`` means end of body.
        """
        if self._closed:
            return b""
        try:
            if size < 0:
                while self._pull():
                    pass
            elif not self._buffer:
                self._pull()
        except httpx.TransportError as exc:
            raise ConnectionError(f"Connection failed while reading {self._response.url}") from exc

        if size < 0 or size >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
        else:
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
        return data

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        self._response.close()

    def _pull(self) -> bool:
        if self._exhausted:
            return False
        chunk = next(self._chunks, None)
        if chunk is None:
            self._exhausted = True
            return False
        self._buffer += chunk
        return True


class HttpxTransport:
    """HttpTransportPort implementation over a pooled ``httpx.Client``."""

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        *,
        timeout: float = 20.0,
        max_connections: int = 24,
        verify: bool = True,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize the transport.

        Args:
            client: Preconfigured client; one is created if None.
            timeout: Default timeout in seconds.
            max_connections: Connection pool size.
            verify: Verify TLS certificates.
            chunk_size: Size of body chunks pulled from the socket.
        """
        self._client = client or httpx.Client(
            timeout=timeout,
            limits=httpx.Limits(max_connections=max_connections),
            verify=verify,
            headers={"User-Agent": USER_AGENT},
        )
        self._chunk_size = chunk_size
        self._closed = False

    @classmethod
    def from_config(cls, config: HttpConfig) -> "HttpxTransport":
        return cls(
            timeout=config.timeout,
            max_connections=config.max_connections,
            verify=config.verify_tls,
            chunk_size=config.read_chunk_size,
        )

    def send(self, request: SignedRequest, timeout: Optional[float] = None) -> HttpxResponse:
        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        httpx_request = self._client.build_request(
            request.method,
            request.url,
            headers=list(request.headers.items()),
            content=request.body,
            **kwargs,
        )
        try:
            response = self._client.send(httpx_request, stream=True)
        except httpx.TransportError as exc:
            raise ConnectionError(f"{request.method} {request.url} failed: {exc}") from exc
        return HttpxResponse(response, self._chunk_size)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._client.close()
