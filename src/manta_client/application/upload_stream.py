"""Writable upload streams.

ObjectUploadStream lets a caller produce an object's content with
``write`` calls instead of handing over a finished body. The PUT runs on
a worker thread whose request body is fed from a bounded queue, so a
slow connection pushes back on the writer. Closing the stream ends the
body and waits for the service's answer.
"""

from __future__ import annotations

import io
import queue
import threading
from dataclasses import replace
from typing import Any, Callable, Iterator, Optional

from manta_client.domain.entities.object_metadata import ObjectMetadata
from manta_client.domain.exceptions import ConnectionError

DEFAULT_QUEUE_SIZE = 16
# How often a blocked writer checks whether the upload already ended
POLL_INTERVAL = 0.1

Upload = Callable[[Iterator[bytes]], ObjectMetadata]

_END_OF_BODY = object()


class ObjectUploadStream(io.RawIOBase):
    """Raw writable stream that uploads everything written to one object.

    Example:
        with client.put_as_output_stream(path) as out:
            for chunk in produce():
                out.write(chunk)
        print(out.result.size)
    """

    def __init__(self, path: str, upload: Upload, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        """Start the upload.

        Args:
            path: Object path, used in errors and the worker's name.
            upload: Performs the PUT, consuming the given body iterator.
            queue_size: Number of written chunks buffered ahead of the socket.
        """
        super().__init__()
        self._path = path
        self._chunks: queue.Queue = queue.Queue(maxsize=queue_size)
        self._written = 0
        self._body_complete = False
        self._result: Optional[ObjectMetadata] = None
        self._error: Optional[BaseException] = None
        self._done = threading.Event()
        self._worker = threading.Thread(
            target=self._run,
            args=(upload,),
            name=f"manta-upload:{path}",
            daemon=True,
        )
        self._worker.start()

    @property
    def path(self) -> str:
        return self._path

    @property
    def result(self) -> Optional[ObjectMetadata]:
        """Metadata of the stored object; None until the stream is closed."""
        return self._result

    def writable(self) -> bool:
        return True

    def write(self, data: Any) -> int:
        """Queue ``data`` for upload, blocking while the queue is full.

        Raises:
            ConnectionError: If the upload ended before the stream was closed.
        """
        if self.closed:
            raise ValueError("I/O operation on closed upload stream.")
        chunk = bytes(data)
        if chunk:
            self._offer(chunk)
            self._written += len(chunk)
        return len(chunk)

    def close(self) -> None:
        """End the body and wait for the upload to finish.

        Raises:
            RemoteResponseError: If the service rejected the upload.
            ConnectionError: If the upload failed in transit.
        """
        if self.closed:
            return
        try:
            if not self._done.is_set():
                self._offer(_END_OF_BODY)
            self._worker.join()
            if self._error is not None:
                raise self._error
            if self._result is not None:
                self._result = replace(self._result, size=self._written)
        finally:
            super().close()

    def _body(self) -> Iterator[bytes]:
        while True:
            chunk = self._chunks.get()
            if chunk is _END_OF_BODY:
                self._body_complete = True
                return
            yield chunk

    def _run(self, upload: Upload) -> None:
        try:
            result = upload(self._body())
            if not self._body_complete:
                raise ConnectionError(f"Upload of {self._path} finished before the body was complete")
            self._result = result
        except BaseException as exc:
            self._error = exc
        finally:
            self._done.set()

    def _offer(self, item: object) -> None:
        while True:
            if self._done.is_set():
                if self._error is not None:
                    raise self._error
                raise ConnectionError(f"Upload of {self._path} ended before the stream was closed")
            try:
                self._chunks.put(item, timeout=POLL_INTERVAL)
                return
            except queue.Full:
                continue
