"""Lazy record streams over newline-delimited response bodies.

A RecordStream pulls one line at a time from a response body, decodes
it and hands it to the consumer. Nothing is read ahead of demand beyond
the line buffer, and the underlying response is released exactly once:
when the body is exhausted, when decoding fails, or when the consumer
closes the stream.
"""

from __future__ import annotations

import io
import json
from typing import Any, Callable, Generic, Iterator, Mapping, Optional, Protocol, TypeVar

from manta_client.domain.exceptions import DecodeError

T = TypeVar("T")

# Returns None for entries that should be skipped
LineDecoder = Callable[[str], Optional[T]]
# Called with lines that are not valid text; the line is then skipped
UndecodableHandler = Callable[[bytes, UnicodeDecodeError], None]


class ResponseBody(Protocol):
    """A readable raw binary response body with headers."""

    headers: Mapping[str, str]

    def readable(self) -> bool: ...

    def readinto(self, buffer: bytearray) -> Optional[int]: ...

    def close(self) -> None: ...

    @property
    def closed(self) -> bool: ...


class RecordStream(Generic[T]):
    """Single-pass iterator of decoded records; close it to release the response.

    Example:
        with RecordStream(response, decode_json_line) as records:
            for record in records:
                ...
    """

    def __init__(
        self,
        body: ResponseBody,
        decode: LineDecoder[T],
        encoding: str = "utf-8",
        on_undecodable: Optional[UndecodableHandler] = None,
    ) -> None:
        """Initialize the stream.

        Args:
            body: Open response body; owned and released by the stream.
            decode: Turns one stripped, non-empty line into a record.
            encoding: Text encoding of the body.
            on_undecodable: Handler for lines that are not valid text in
                ``encoding``. If None, such a line raises DecodeError.
        """
        self._body = body
        self._lines = io.BufferedReader(body)
        self._decode = decode
        self._encoding = encoding
        self._on_undecodable = on_undecodable
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[T]:
        return self

    def __next__(self) -> T:
        if self._closed:
            raise StopIteration
        try:
            while True:
                raw = self._lines.readline()
                if not raw:
                    break
                line = self._text(raw)
                if not line:
                    continue
                record = self._decode(line)
                if record is not None:
                    return record
        except BaseException:
            self.close()
            raise
        self.close()
        raise StopIteration

    def _text(self, raw: bytes) -> Optional[str]:
        try:
            return raw.decode(self._encoding).strip()
        except UnicodeDecodeError as exc:
            if self._on_undecodable is None:
                raise DecodeError(f"Record is not valid {self._encoding}: {raw[:200]!r}") from exc
            self._on_undecodable(raw, exc)
            return None

    def close(self) -> None:
        """Release the underlying response. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self._lines.close()
        finally:
            self._body.close()

    def __enter__(self) -> "RecordStream[T]":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def decode_json_line(line: str) -> dict[str, Any]:
    """Strictly decode one JSON object line.

    Raises:
        DecodeError: If the line is not a JSON object.
    """
    try:
        value = json.loads(line)
    except ValueError as exc:
        raise DecodeError(f"Malformed JSON record: {line[:200]!r}") from exc
    if not isinstance(value, dict):
        raise DecodeError(f"Record is not a JSON object: {line[:200]!r}")
    return value


def decode_text_line(line: str) -> str:
    return line
