"""Compute job entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from manta_client.domain.exceptions import DecodeError
from manta_client.domain.value_objects.identifiers import parse_job_id
from manta_client.domain.value_objects.timestamps import format_iso_timestamp, parse_iso_timestamp


class JobState(Enum):
    """State reported by the service."""
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"


class JobLifecycle(Enum):
    """Client-side view of where a job sits in its lifecycle."""
    CREATED = "created"
    INPUT_OPEN = "input_open"
    INPUT_CLOSED = "input_closed"
    RUNNING = "running"
    DONE = "done"
    CANCELLED = "cancelled"


class PhaseType(Enum):
    """Kind of job phase."""
    MAP = "map"
    REDUCE = "reduce"


@dataclass
class JobPhase:
    """One stage of a job."""

    exec: str
    type: PhaseType = PhaseType.MAP
    init: Optional[str] = None
    count: Optional[int] = None  # reducer count
    memory: Optional[int] = None  # MB
    disk: Optional[int] = None  # GB
    assets: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.type, PhaseType):
            self.type = PhaseType(self.type)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire shape, dropping unset hints."""
        data: dict[str, Any] = {"type": self.type.value, "exec": self.exec}
        for key in ("init", "count", "memory", "disk"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.assets:
            data["assets"] = list(self.assets)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JobPhase":
        if not isinstance(data, Mapping) or "exec" not in data:
            raise DecodeError(f"Job phase has no exec: {data!r}")
        try:
            return cls(
                exec=data["exec"],
                type=PhaseType(data.get("type", PhaseType.MAP.value)),
                init=data.get("init"),
                count=data.get("count"),
                memory=data.get("memory"),
                disk=data.get("disk"),
                assets=list(data.get("assets") or []),
            )
        except ValueError as exc:
            raise DecodeError(f"Unknown job phase type: {data.get('type')!r}") from exc


@dataclass
class Job:
    """A compute job and, once fetched, its status."""

    name: str
    phases: list[JobPhase] = field(default_factory=list)
    id: Optional[UUID] = None
    state: Optional[JobState] = None
    cancelled: bool = False
    input_done: bool = False
    time_created: Optional[datetime] = None
    time_done: Optional[datetime] = None
    stats: dict[str, int] = field(default_factory=dict)

    @property
    def map_phases(self) -> list[JobPhase]:
        return [phase for phase in self.phases if phase.type is PhaseType.MAP]

    @property
    def reduce_phases(self) -> list[JobPhase]:
        return [phase for phase in self.phases if phase.type is PhaseType.REDUCE]

    @property
    def is_done(self) -> bool:
        return self.state is JobState.DONE

    @property
    def lifecycle(self) -> JobLifecycle:
        """Derive the lifecycle stage from the reported flags."""
        if self.cancelled:
            return JobLifecycle.CANCELLED
        if self.state is JobState.DONE:
            return JobLifecycle.DONE
        if self.id is None:
            return JobLifecycle.CREATED
        if not self.input_done:
            return JobLifecycle.INPUT_OPEN
        if self.state is JobState.RUNNING:
            return JobLifecycle.RUNNING
        return JobLifecycle.INPUT_CLOSED

    def to_request_dict(self) -> dict[str, Any]:
        """Serialize the job description submitted on creation."""
        return {
            "name": self.name,
            "phases": [phase.to_dict() for phase in self.phases],
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize the full status document."""
        data = self.to_request_dict()
        data.update(
            {
                "id": str(self.id) if self.id else None,
                "state": self.state.value if self.state else None,
                "cancelled": self.cancelled,
                "inputDone": self.input_done,
                "timeCreated": format_iso_timestamp(self.time_created),
                "timeDone": format_iso_timestamp(self.time_done),
                "stats": dict(self.stats),
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Job":
        """Decode a live or archived status document.

        Raises:
            DecodeError: If the document does not describe a job.
        """
        if not isinstance(data, Mapping):
            raise DecodeError(f"Job status is not an object: {data!r}")

        raw_id = data.get("id")
        job_id = parse_job_id(raw_id)
        if raw_id is not None and job_id is None:
            raise DecodeError(f"Job id is not a UUID: {raw_id!r}")

        try:
            state = JobState(data["state"]) if data.get("state") else None
            time_created = parse_iso_timestamp(data.get("timeCreated"))
            time_done = parse_iso_timestamp(data.get("timeDone"))
        except ValueError as exc:
            raise DecodeError(f"Malformed job status: {data!r}") from exc

        return cls(
            name=data.get("name") or "",
            phases=[JobPhase.from_dict(phase) for phase in data.get("phases") or []],
            id=job_id,
            state=state,
            cancelled=bool(data.get("cancelled", False)),
            input_done=bool(data.get("inputDone", False)),
            time_created=time_created,
            time_done=time_done,
            stats=dict(data.get("stats") or {}),
        )


@dataclass(frozen=True)
class JobError:
    """An error emitted by a task of a job."""

    phase: Optional[str] = None
    what: Optional[str] = None
    code: Optional[str] = None
    message: Optional[str] = None
    stderr: Optional[str] = None
    input: Optional[str] = None
    p0input: Optional[str] = None
    core: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JobError":
        if not isinstance(data, Mapping):
            raise DecodeError(f"Job error is not an object: {data!r}")
        values = {}
        for key in ("phase", "what", "code", "message", "stderr", "input", "p0input", "core"):
            value = data.get(key)
            values[key] = None if value is None else str(value)
        return cls(**values)
