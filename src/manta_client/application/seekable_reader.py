"""Random-access reads over a remote object.

SeekableRemoteReader is a raw binary stream whose reads are served by
ranged GET requests. Seeking only moves the logical position; the next
read decides whether the open response can keep serving it or whether a
new ``Range: bytes=<pos>-`` request is needed.

State machine:
    Closed --read--> OpenAt(pos, response)
    OpenAt(a, r) --read at a--> OpenAt(a + n, r)
    OpenAt(a, r) --read at p != a--> OpenAt(p, r') (r released)
    OpenAt(a, r) --end of body / read error / close--> Closed (r released)

Not safe for concurrent use: the cursor and open response are unguarded.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Any, Optional, Union

from manta_client.application.request_executor import RemoteResponse, SignedRequestExecutor
from manta_client.domain.exceptions import DecodeError, OutOfRangeError
from manta_client.infrastructure.metrics import ClientMetrics

HTTP_PARTIAL_CONTENT = 206
SKIP_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class _Closed:
    """No response is open."""


@dataclass
class _OpenAt:
    """A response is open; its next byte is at ``anchor``."""

    anchor: int
    response: RemoteResponse


_CLOSED = _Closed()
ReaderState = Union[_Closed, _OpenAt]


class SeekableRemoteReader(io.RawIOBase):
    """Seekable raw stream over a remote object.

    Wrap in ``io.BufferedReader`` for read-ahead; ``MantaClient.get_seekable``
    does this.
    """

    def __init__(
        self,
        executor: SignedRequestExecutor,
        path: str,
        position: int = 0,
        metrics: Optional[ClientMetrics] = None,
    ) -> None:
        super().__init__()
        self._state: ReaderState = _CLOSED
        if position < 0:
            raise OutOfRangeError(f"Position must not be negative: {position}")
        self._executor = executor
        self._path = path
        self._position = position
        self._metrics = metrics
        self._size: Optional[int] = None

    @property
    def path(self) -> str:
        return self._path

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        self._ensure_open()
        return self._position

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move the logical position. Never opens a connection by itself,
        except SEEK_END, which needs the object size.

        Raises:
            OutOfRangeError: If the target position is negative.
        """
        self._ensure_open()
        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self._position + offset
        elif whence == io.SEEK_END:
            target = self.size() + offset
        else:
            raise ValueError(f"Invalid whence ({whence})")

        if target < 0:
            raise OutOfRangeError(f"Position must not be negative: {target}")
        self._position = target
        return target

    def size(self) -> int:
        """Object size in bytes, fetched with HEAD unless already known."""
        self._ensure_open()
        if self._size is None:
            response = self._executor.execute_and_release("HEAD", self._path)
            length = response.headers.get("content-length")
            if length is None:
                raise DecodeError(f"No content-length returned for {self._path}")
            self._size = int(length)
        return self._size

    def readinto(self, buffer: Any) -> int:
        self._ensure_open()
        view = memoryview(buffer).cast("B")
        if len(view) == 0:
            return 0
        if self._size is not None and self._position >= self._size:
            self._release()
            return 0

        response = self._response_at_position()
        try:
            data = response.read(len(view))
        except BaseException:
            # The next read re-ranges from the current position
            self._release()
            raise
        count = len(data)
        view[:count] = data
        self._position += count

        if count == 0:
            # End of body: the object ends here
            self._size = self._position
            self._release()
        else:
            self._state = _OpenAt(self._position, response)
        return count

    def close(self) -> None:
        if not self.closed:
            try:
                self._release()
            finally:
                super().close()

    def _response_at_position(self) -> RemoteResponse:
        state = self._state
        if isinstance(state, _OpenAt) and state.anchor == self._position:
            return state.response

        self._release()
        response = self._executor.execute(
            "GET", self._path, headers={"Range": f"bytes={self._position}-"}
        )
        if self._metrics:
            self._metrics.range_requests.inc()
        try:
            self._learn_size(response)
            if response.status != HTTP_PARTIAL_CONTENT and self._position > 0:
                # Range ignored: the body starts at byte zero
                self._skip(response, self._position)
        except BaseException:
            response.close()
            raise
        self._state = _OpenAt(self._position, response)
        return response

    def _learn_size(self, response: RemoteResponse) -> None:
        content_range = response.headers.get("content-range")
        if content_range and "/" in content_range:
            total = content_range.rsplit("/", 1)[1].strip()
            if total.isdigit():
                self._size = int(total)
            return
        length = response.headers.get("content-length")
        if response.status != HTTP_PARTIAL_CONTENT and length and length.isdigit():
            self._size = int(length)

    @staticmethod
    def _skip(response: RemoteResponse, count: int) -> None:
        remaining = count
        while remaining > 0:
            chunk = response.read(min(remaining, SKIP_CHUNK_SIZE))
            if not chunk:
                break
            remaining -= len(chunk)

    def _release(self) -> None:
        state, self._state = self._state, _CLOSED
        if isinstance(state, _OpenAt):
            state.response.close()

    def _ensure_open(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed reader.")
