"""Compute job orchestration.

Drives a job through its lifecycle on the service:

    create -> add_inputs* -> end_input -> get (caller polls) -> list_outputs
                                       `-> cancel

The service is the source of truth; nothing about a job is cached
between calls. No call is retried here and nothing polls on its own:
waiting for completion means the caller calling ``get`` with its own
delay and iteration bound.
"""

from __future__ import annotations

import json
from typing import Iterable, Iterator, Optional, Union
from uuid import UUID

import structlog

from manta_client.application.request_executor import RemoteResponse, SignedRequestExecutor
from manta_client.domain.entities.job import Job, JobError, JobState
from manta_client.domain.exceptions import DecodeError, ErrorCode, InvalidArgumentError
from manta_client.domain.services.record_stream import RecordStream, decode_json_line, decode_text_line
from manta_client.domain.value_objects.identifiers import JobId, parse_job_id
from manta_client.domain.value_objects.paths import last_item_in_path, normalize_path
from manta_client.infrastructure.logging import get_logger
from manta_client.infrastructure.metrics import ClientMetrics

INPUT_CONTENT_TYPE = "text/plain; charset=utf-8"
JOB_CONTENT_TYPE = "application/json; charset=utf-8"


class JobOrchestrator:
    """Client for the job resources under ``<home>/jobs``."""

    def __init__(
        self,
        executor: SignedRequestExecutor,
        home: str,
        metrics: Optional[ClientMetrics] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        self._executor = executor
        self._jobs_root = f"{normalize_path(home)}/jobs"
        self._metrics = metrics
        self._logger = logger or get_logger(__name__)

    @property
    def jobs_root(self) -> str:
        return self._jobs_root

    def create(self, job: Job) -> JobId:
        """Submit a new job.

        Not idempotent: calling it twice creates two jobs.

        Returns:
            Identifier of the new job, taken from the Location header.

        Raises:
            DecodeError: If the Location header holds no job id.
        """
        if job is None:
            raise InvalidArgumentError("Job must be present")

        body = json.dumps(job.to_request_dict()).encode("utf-8")
        response = self._executor.execute_and_release(
            "POST", self._jobs_root, headers={"Content-Type": JOB_CONTENT_TYPE}, body=body
        )
        location = response.headers.get("location")
        job_id = parse_job_id(last_item_in_path(location)) if location else None
        if job_id is None:
            raise DecodeError(f"Job creation returned no usable location: {location!r}")

        self._count("create")
        self._logger.info("job_created", job_id=str(job_id), name=job.name)
        return job_id

    def add_inputs(self, job_id: JobId, inputs: Iterable[str]) -> None:
        """Stream input object paths to a job.

        The paths are sent as a newline-delimited body produced lazily
        from ``inputs``. Inputs accepted before a failure stay accepted.
        """
        self._require_id(job_id)
        if inputs is None:
            raise InvalidArgumentError("Inputs must be present")

        body = (f"{path}\n".encode("utf-8") for path in inputs)
        self._executor.execute_and_release(
            "POST",
            self._job_path(job_id, "live", "in"),
            headers={"Content-Type": INPUT_CONTENT_TYPE},
            body=body,
        )
        self._count("add_inputs")

    def end_input(self, job_id: JobId) -> bool:
        """Close a job's input.

        Returns:
            True only if the service accepted the request (202).
        """
        self._require_id(job_id)
        accepted = self._post_accepted(self._job_path(job_id, "live", "in", "end"))
        self._count("end_input")
        return accepted

    def cancel(self, job_id: JobId) -> bool:
        """Ask the service to cancel a job.

        Best effort: a short job whose input is closed may still finish.

        Returns:
            True only if the service accepted the request (202).
        """
        self._require_id(job_id)
        accepted = self._post_accepted(self._job_path(job_id, "live", "cancel"))
        self._count("cancel")
        self._logger.info("job_cancel_requested", job_id=str(job_id), accepted=accepted)
        return accepted

    def get(self, job_id: JobId) -> Job:
        """Fetch a job's status.

        Tries the live status first. Finished jobs move to the archive,
        so a RESOURCE_NOT_FOUND there is answered from ``job.json``;
        every other failure is raised.
        """
        self._require_id(job_id)
        self._count("get")

        with self._executor.execute(
            "GET", self._job_path(job_id, "live", "status"), raise_for_status=False
        ) as live:
            failure = live.failure()
            if failure is None:
                return self._decode_job(live)
            if failure.service_code is not ErrorCode.RESOURCE_NOT_FOUND:
                raise failure

        if self._metrics:
            self._metrics.job_archive_fallbacks.inc()
        self._logger.debug("job_status_from_archive", job_id=str(job_id))

        with self._executor.execute("GET", self._job_path(job_id, "job.json")) as archived:
            return self._decode_job(archived)

    def list_job_ids(self, state: Union[JobState, str, None] = None) -> RecordStream[JobId]:
        """Stream the ids of all jobs, optionally filtered by state.

        Entries that cannot be decoded are skipped. Close the stream (or
        exhaust it) to release the connection.
        """
        state_value = state.value if isinstance(state, JobState) else state
        return self._job_index({"state": state_value} if state_value else None)

    def list_job_ids_by_name(self, name: str) -> RecordStream[JobId]:
        """Stream the ids of jobs with the given name."""
        if not name:
            raise InvalidArgumentError("Job name must be present")
        return self._job_index({"name": name})

    def list_jobs(self, state: Union[JobState, str, None] = None) -> Iterator[Job]:
        """Stream full job documents, one ``get`` per listed id.

        Returns a generator; closing it releases the index connection.
        """
        with self.list_job_ids(state) as job_ids:
            for job_id in job_ids:
                yield self.get(job_id)

    def list_inputs(self, job_id: JobId) -> RecordStream[str]:
        """Stream the input paths submitted to a job."""
        return self._job_lines(job_id, "in", decode_text_line)

    def list_outputs(self, job_id: JobId) -> RecordStream[str]:
        """Stream the paths of a job's output objects."""
        return self._job_lines(job_id, "out", decode_text_line)

    def list_failures(self, job_id: JobId) -> RecordStream[str]:
        """Stream the input paths whose tasks failed."""
        return self._job_lines(job_id, "fail", decode_text_line)

    def list_errors(self, job_id: JobId) -> RecordStream[JobError]:
        """Stream a job's error records. A malformed record raises DecodeError."""
        return self._job_lines(job_id, "err", _decode_job_error)

    def _job_index(self, query: Optional[dict]) -> RecordStream[JobId]:
        response = self._executor.execute("GET", self._jobs_root, query=query)
        return RecordStream(response, self._decode_job_id, on_undecodable=self._skip_undecodable)

    def _job_lines(self, job_id: JobId, resource: str, decode) -> RecordStream:
        self._require_id(job_id)
        response = self._executor.execute("GET", self._job_path(job_id, "live", resource))
        return RecordStream(response, decode)

    def _post_accepted(self, path: str) -> bool:
        response = self._executor.execute_and_release("POST", path, body=b"")
        return response.accepted

    def _decode_job_id(self, line: str) -> Optional[JobId]:
        try:
            record = json.loads(line)
        except ValueError:
            self._logger.warning("job_index_entry_skipped", reason="malformed", line=line[:200])
            return None
        job_id = parse_job_id(record.get("name")) if isinstance(record, dict) else None
        if job_id is None:
            self._logger.warning("job_index_entry_skipped", reason="no_job_id", line=line[:200])
        return job_id

    def _skip_undecodable(self, raw: bytes, error: UnicodeDecodeError) -> None:
        self._logger.warning(
            "job_index_entry_skipped", reason="undecodable", line=repr(raw[:200]), error=str(error)
        )

    @staticmethod
    def _decode_job(response: RemoteResponse) -> Job:
        return Job.from_dict(response.json())

    def _job_path(self, job_id: JobId, *parts: str) -> str:
        return "/".join([self._jobs_root, str(job_id), *parts])

    @staticmethod
    def _require_id(job_id: Optional[UUID]) -> None:
        if job_id is None:
            raise InvalidArgumentError("Job id must be present")

    def _count(self, operation: str) -> None:
        if self._metrics:
            self._metrics.job_operations.labels(operation=operation).inc()


def _decode_job_error(line: str) -> JobError:
    return JobError.from_dict(decode_json_line(line))
