"""
Manta Client - Signed HTTP access to a Manta-style object store

Object CRUD over signed requests, streaming directory listings,
seekable remote reads and compute job orchestration.
"""

__version__ = "0.1.0"

from manta_client.application.client import MantaClient  # noqa: E402
from manta_client.domain.entities import Job, JobError, JobPhase, ObjectMetadata  # noqa: E402

__all__ = [
    "MantaClient",
    "Job",
    "JobError",
    "JobPhase",
    "ObjectMetadata",
]
