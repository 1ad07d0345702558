"""Inbound ports - API contracts of the Manta client.

Inbound ports define the interfaces applications program against for
object storage and compute jobs.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Iterable, Iterator, Mapping, Optional, Protocol, runtime_checkable

from manta_client.domain.entities.job import Job, JobError
from manta_client.domain.entities.object_metadata import ObjectMetadata
from manta_client.domain.value_objects.identifiers import JobId


# =============================================================================
# Object Storage Port
# =============================================================================


@runtime_checkable
class ObjectStoragePort(Protocol):
    """Protocol for object and directory operations.

    Streams:
        ``list_objects`` and ``get_as_stream`` hold a pooled connection
        until closed or exhausted.

    Example:
        client.put_directory("/acct/stor/dir", recursive=True)
        client.put("/acct/stor/dir/a.txt", b"data")
        with client.list_objects("/acct/stor/dir") as entries:
            names = [entry.name for entry in entries]
    """

    @abstractmethod
    def head(self, path: str) -> ObjectMetadata:
        """Get object metadata.

        Raises:
            RemoteResponseError: If the object does not exist.
        """
        ...

    @abstractmethod
    def put(self, path: str, source, headers: Optional[Mapping[str, str]] = None,
            metadata: Optional[Mapping[str, str]] = None) -> ObjectMetadata:
        """Upload an object."""
        ...

    @abstractmethod
    def put_as_output_stream(self, path: str, headers: Optional[Mapping[str, str]] = None,
                             metadata: Optional[Mapping[str, str]] = None):
        """Open a writable stream uploaded to ``path`` when closed."""
        ...

    @abstractmethod
    def list_objects(self, path: str) -> Iterator[ObjectMetadata]:
        """Stream a directory's entries with fully qualified paths.

        Raises:
            NotADirectoryError: If the path is not a directory.
        """
        ...

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete an object or empty directory."""
        ...

    @abstractmethod
    def delete_recursive(self, path: str) -> None:
        """Delete a directory tree, or a single object."""
        ...

    @abstractmethod
    def get_seekable(self, path: str, position: int = 0):
        """Open an object for random access reads."""
        ...

    @abstractmethod
    def sign_uri(self, path: str, method: str = "GET", expires=None) -> str:
        """Generate a time-bounded capability URL.

        Raises:
            InvalidArgumentError: If path or expires is missing.
        """
        ...


# =============================================================================
# Job Service Port
# =============================================================================


@runtime_checkable
class JobServicePort(Protocol):
    """Protocol for the compute job lifecycle.

    No method retries or polls; callers compose ``get`` with their own
    delay and bound to wait for completion.
    """

    @abstractmethod
    def create(self, job: Job) -> JobId:
        """Submit a job. Not idempotent."""
        ...

    @abstractmethod
    def add_inputs(self, job_id: JobId, inputs: Iterable[str]) -> None:
        """Stream input paths (at-least-once)."""
        ...

    @abstractmethod
    def end_input(self, job_id: JobId) -> bool:
        """Close input; True iff accepted (202)."""
        ...

    @abstractmethod
    def cancel(self, job_id: JobId) -> bool:
        """Request cancellation; True iff accepted (202)."""
        ...

    @abstractmethod
    def get(self, job_id: JobId) -> Job:
        """Fetch live status, falling back to the archive."""
        ...

    @abstractmethod
    def list_outputs(self, job_id: JobId) -> Iterator[str]:
        """Stream output object paths."""
        ...

    @abstractmethod
    def list_errors(self, job_id: JobId) -> Iterator[JobError]:
        """Stream error records."""
        ...
