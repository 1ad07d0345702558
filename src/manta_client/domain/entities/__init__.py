"""Domain entities."""

from manta_client.domain.entities.job import (
    Job,
    JobError,
    JobLifecycle,
    JobPhase,
    JobState,
    PhaseType,
)
from manta_client.domain.entities.object_metadata import (
    DIRECTORY_CONTENT_TYPE,
    ObjectKind,
    ObjectMetadata,
)

__all__ = [
    "Job",
    "JobError",
    "JobLifecycle",
    "JobPhase",
    "JobState",
    "PhaseType",
    "DIRECTORY_CONTENT_TYPE",
    "ObjectKind",
    "ObjectMetadata",
]
