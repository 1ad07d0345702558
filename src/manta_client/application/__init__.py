"""Application layer - request execution and the client facade."""

from manta_client.application.client import MantaClient, ObjectStream
from manta_client.application.job_orchestrator import JobOrchestrator
from manta_client.application.request_executor import RemoteResponse, SignedRequestExecutor
from manta_client.application.seekable_reader import SeekableRemoteReader
from manta_client.application.upload_stream import ObjectUploadStream

__all__ = [
    "MantaClient",
    "ObjectStream",
    "JobOrchestrator",
    "RemoteResponse",
    "SignedRequestExecutor",
    "SeekableRemoteReader",
    "ObjectUploadStream",
]
