"""Manta client facade.

Thin layer over SignedRequestExecutor exposing object, directory and job
operations. Streams returned from here own a pooled connection until
they are closed or exhausted.
"""

from __future__ import annotations

import io
import os
import shutil
import tempfile
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Any, BinaryIO, Iterable, Iterator, Mapping, Optional, Union

import structlog

from manta_client.application.job_orchestrator import JobOrchestrator
from manta_client.application.request_executor import Expiry, RemoteResponse, SignedRequestExecutor
from manta_client.application.seekable_reader import SeekableRemoteReader
from manta_client.application.upload_stream import ObjectUploadStream
from manta_client.domain.entities.object_metadata import (
    DEFAULT_CONTENT_TYPE,
    DIRECTORY_REQUEST_CONTENT_TYPE,
    LINK_CONTENT_TYPE,
    ObjectMetadata,
)
from manta_client.domain.exceptions import (
    ConnectionError,
    InvalidArgumentError,
    RemoteResponseError,
)
from manta_client.domain.services.listing_parser import StreamingListingParser
from manta_client.domain.services.record_stream import RecordStream
from manta_client.domain.value_objects.headers import METADATA_PREFIX, HeaderMap
from manta_client.domain.value_objects.identifiers import JobId
from manta_client.domain.value_objects.paths import (
    ObjectPath,
    format_path,
    normalize_path,
    parent_paths,
)
from manta_client.infrastructure.logging import get_logger
from manta_client.infrastructure.metrics import ClientMetrics
from manta_client.ports.outbound import RequestBody

HTTP_NOT_FOUND = 404
# Headers that must not be changed through a metadata update
ILLEGAL_METADATA_HEADERS = ("Content-Length", "Content-MD5", "Durability-Level")
# Home directory plus one reserved top-level directory (stor, public, jobs, ...)
RESERVED_DEPTH = 2
DEFAULT_STREAM_BUFFER = io.DEFAULT_BUFFER_SIZE
UPLOAD_CHUNK_SIZE = 64 * 1024

ObjectSource = Union[bytes, bytearray, str, BinaryIO, Iterable[bytes], None]


class ObjectStream(io.BufferedReader):
    """Buffered stream over an object's body, carrying its metadata."""

    def __init__(self, response: RemoteResponse, metadata: ObjectMetadata, buffer_size: int) -> None:
        super().__init__(response, buffer_size)
        self.metadata = metadata


class MantaClient:
    """Client for a Manta-style object store.

    Example:
        with Container.get().client as client:
            client.put_directory(f"{client.home}/stor/reports", recursive=True)
            client.put(f"{client.home}/stor/reports/q1.txt", "hello")
            for entry in client.list_objects(f"{client.home}/stor/reports"):
                print(entry.path, entry.size)
    """

    def __init__(
        self,
        executor: SignedRequestExecutor,
        home: str,
        *,
        listing_parser: Optional[StreamingListingParser] = None,
        stream_buffer_size: int = DEFAULT_STREAM_BUFFER,
        metrics: Optional[ClientMetrics] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        """Initialize the client.

        Args:
            executor: Shared signed request executor.
            home: Account home directory, e.g. ``/account``.
            listing_parser: Directory listing parser.
            stream_buffer_size: Read-ahead buffer for object and seekable streams.
            metrics: Optional metrics collector.
            logger: Bound logger.
        """
        self._executor = executor
        self._home = normalize_path(home)
        self._listing_parser = listing_parser or StreamingListingParser()
        self._stream_buffer_size = stream_buffer_size
        self._metrics = metrics
        self._logger = logger or get_logger(__name__)
        self._jobs = JobOrchestrator(executor, self._home, metrics=metrics, logger=logger)

    @property
    def home(self) -> ObjectPath:
        return self._home

    @property
    def jobs(self) -> JobOrchestrator:
        return self._jobs

    @property
    def executor(self) -> SignedRequestExecutor:
        return self._executor

    # =========================================================================
    # Reads
    # =========================================================================

    def head(self, path: str) -> ObjectMetadata:
        """Get an object's metadata with HEAD."""
        response = self._executor.execute_and_release("HEAD", path)
        return ObjectMetadata.from_headers(path, response.headers)

    def get(self, path: str) -> ObjectMetadata:
        """Get an object's metadata with GET, discarding the body."""
        response = self._executor.execute_and_release("GET", path)
        return ObjectMetadata.from_headers(path, response.headers)

    def exists_and_is_accessible(self, path: str) -> bool:
        """True if HEAD succeeds; False on any error status or connection failure."""
        try:
            self.head(path)
        except (RemoteResponseError, ConnectionError):
            return False
        return True

    def get_as_stream(self, path: str) -> ObjectStream:
        """Open an object's body as a buffered binary stream.

        Raises:
            InvalidArgumentError: If the path is a directory.
        """
        response = self._executor.execute("GET", path)
        metadata = ObjectMetadata.from_headers(path, response.headers)
        if metadata.is_directory:
            response.close()
            raise InvalidArgumentError(f"Directories have no data to stream: {path}")
        return ObjectStream(response, metadata, self._stream_buffer_size)

    def get_as_bytes(self, path: str) -> bytes:
        with self.get_as_stream(path) as stream:
            return stream.read()

    def get_as_string(self, path: str, encoding: str = "utf-8") -> str:
        return self.get_as_bytes(path).decode(encoding)

    def get_to_temp_file(self, path: str) -> Path:
        """Copy an object to a new temporary file and return its path."""
        fd, temp_path = tempfile.mkstemp(prefix="manta-object-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as target, self.get_as_stream(path) as source:
                shutil.copyfileobj(source, target)
        except BaseException:
            os.unlink(temp_path)
            raise
        return Path(temp_path)

    def get_seekable(self, path: str, position: int = 0) -> io.BufferedReader:
        """Open an object for random access reads.

        No request is made until the first read.
        """
        if not path:
            raise InvalidArgumentError("Path must be present")
        reader = SeekableRemoteReader(self._executor, path, position, metrics=self._metrics)
        return io.BufferedReader(reader, self._stream_buffer_size)

    def sign_uri(self, path: str, method: str = "GET", expires: Optional[Expiry] = None) -> str:
        """Generate a URL granting ``method`` on ``path`` until ``expires``."""
        return self._executor.sign_uri(path, method, expires)

    # =========================================================================
    # Writes
    # =========================================================================

    def put(
        self,
        path: str,
        source: ObjectSource,
        headers: Optional[Mapping[str, str]] = None,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> ObjectMetadata:
        """Upload an object.

        Args:
            path: Object path.
            source: Bytes, text (UTF-8), a binary file, an iterable of byte
                chunks, or None for an empty object.
            headers: Extra request headers (e.g. Content-Type, Durability-Level).
            metadata: User metadata; every key must start with ``m-``.

        Returns:
            Metadata of the stored object.
        """
        if not path:
            raise InvalidArgumentError("Path must be present")
        request_headers = HeaderMap(headers)
        if "content-type" not in request_headers:
            request_headers = request_headers.merged({"Content-Type": DEFAULT_CONTENT_TYPE})
        user_metadata = _validate_metadata(metadata)
        request_headers = request_headers.merged(user_metadata)

        body = _request_body(source)
        response = self._executor.execute_and_release("PUT", path, request_headers, body)

        stored = _stored_metadata(path, response.headers, request_headers)
        if isinstance(body, bytes):
            stored = replace(stored, size=len(body))
        return stored

    def put_as_output_stream(
        self,
        path: str,
        headers: Optional[Mapping[str, str]] = None,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> ObjectUploadStream:
        """Open a writable stream whose content is uploaded to ``path``.

        The upload starts right away and completes when the stream is
        closed; the stored object's metadata is then on ``result``.
        """
        if not path:
            raise InvalidArgumentError("Path must be present")
        _validate_metadata(metadata)
        self._logger.debug("put_as_output_stream", path=path)
        return ObjectUploadStream(path, partial(self.put, path, headers=headers, metadata=metadata))

    def put_metadata(
        self,
        path: str,
        metadata: Mapping[str, str],
        headers: Optional[Mapping[str, str]] = None,
    ) -> ObjectMetadata:
        """Replace the user metadata of an existing object.

        Raises:
            InvalidArgumentError: If a header that cannot be changed is present.
        """
        request_headers = HeaderMap(headers)
        for name in ILLEGAL_METADATA_HEADERS:
            if name in request_headers:
                raise InvalidArgumentError(f"Critical header [{name}] can't be changed")
        request_headers = request_headers.merged(_validate_metadata(metadata))

        response = self._executor.execute_and_release(
            "PUT", path, request_headers, b"", query={"metadata": "true"}
        )
        return _stored_metadata(path, response.headers, request_headers)

    def put_directory(
        self,
        path: str,
        recursive: bool = False,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Create a directory.

        With ``recursive`` every missing ancestor below the account's
        reserved top-level directory is created as well.
        """
        if not path:
            raise InvalidArgumentError("Directory path must be present")
        if not recursive:
            self._put_directory(path, headers)
            return

        for depth, directory in enumerate(parent_paths(path)):
            if depth >= RESERVED_DEPTH:
                self._put_directory(directory, headers)

    def put_snaplink(
        self,
        link_path: str,
        object_path: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Create a snaplink at ``link_path`` pointing at ``object_path``."""
        request_headers = HeaderMap(headers).merged(
            {"Content-Type": LINK_CONTENT_TYPE, "Location": format_path(object_path)}
        )
        self._logger.debug("put_snaplink", link=link_path, target=object_path)
        self._executor.execute_and_release("PUT", link_path, request_headers, b"")

    def _put_directory(self, path: str, headers: Optional[Mapping[str, str]]) -> None:
        request_headers = HeaderMap(headers).merged({"Content-Type": DIRECTORY_REQUEST_CONTENT_TYPE})
        self._executor.execute_and_release("PUT", path, request_headers, b"")

    # =========================================================================
    # Directories and deletes
    # =========================================================================

    def list_objects(self, path: str) -> RecordStream[ObjectMetadata]:
        """Stream a directory's entries.

        Raises:
            NotADirectoryError: If the path is not a directory.
        """
        response = self._executor.execute("GET", path)
        return self._listing_parser.parse(path, response)

    def delete(self, path: str) -> None:
        self._executor.execute_and_release("DELETE", path)

    def delete_recursive(self, path: str) -> None:
        """Delete a path and, if it is a directory, everything below it.

        A path that turns out not to be a directory is deleted as a plain
        object. A path that does not exist fails on the initial listing
        request with the service's 404.
        """
        self._logger.debug("delete_recursive", path=path)
        response = self._executor.execute("GET", path)
        if not self._listing_parser.is_directory(response):
            response.close()
            self.delete(path)
            return

        # Collect first so only one connection is held at a time
        with self._listing_parser.parse(path, response) as entries:
            children = list(entries)

        for child in children:
            if child.is_directory:
                self.delete_recursive(child.path)
            else:
                self.delete(child.path)

        with self._executor.execute("DELETE", path, raise_for_status=False) as deleted:
            failure = deleted.failure()
        if failure is not None:
            if failure.status != HTTP_NOT_FOUND:
                raise failure
            self._logger.debug("delete_recursive_already_gone", path=path)
        self._logger.debug("delete_recursive_finished", path=path)

    # =========================================================================
    # Job output helpers
    # =========================================================================

    def get_job_outputs_as_streams(self, job_id: JobId) -> Iterator[ObjectStream]:
        """Lazily open each output object of a job; close each stream after use."""
        with self._jobs.list_outputs(job_id) as outputs:
            for output in outputs:
                yield self.get_as_stream(output)

    def get_job_outputs_as_strings(self, job_id: JobId, encoding: str = "utf-8") -> Iterator[str]:
        """Lazily fetch each output object of a job as text."""
        with self._jobs.list_outputs(job_id) as outputs:
            for output in outputs:
                yield self.get_as_string(output, encoding)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Close the connection pool."""
        self._executor.close()

    def __enter__(self) -> "MantaClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _validate_metadata(metadata: Optional[Mapping[str, str]]) -> HeaderMap:
    user_metadata = HeaderMap(metadata)
    for key in user_metadata:
        if not key.lower().startswith(METADATA_PREFIX):
            raise InvalidArgumentError(f"Metadata keys must start with '{METADATA_PREFIX}': {key}")
    return user_metadata


def _request_body(source: ObjectSource) -> RequestBody:
    if source is None:
        return b""
    if isinstance(source, str):
        return source.encode("utf-8")
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if hasattr(source, "read"):
        return iter(partial(source.read, UPLOAD_CHUNK_SIZE), b"")
    return source


def _stored_metadata(path: str, response_headers: HeaderMap, request_headers: HeaderMap) -> ObjectMetadata:
    # Response headers describe the write, not the object; keep only
    # what identifies the stored version and layer the request on top.
    kept = HeaderMap(
        (key, value)
        for key, value in response_headers.items()
        if key.lower() in ("etag", "last-modified", "computed-md5")
    )
    return ObjectMetadata.from_headers(path, kept.merged(request_headers))
