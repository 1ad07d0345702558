"""Unit tests for Manta client domain entities."""

import uuid
from datetime import datetime, timezone

import pytest

from manta_client.domain.entities import (
    DIRECTORY_CONTENT_TYPE,
    Job,
    JobError,
    JobLifecycle,
    JobPhase,
    JobState,
    ObjectKind,
    ObjectMetadata,
    PhaseType,
)
from manta_client.domain.exceptions import DecodeError

JOB_ID = uuid.UUID("7b39e12b-bb87-42d7-b2c4-a5b7e4f0e3f6")


@pytest.mark.unit
class TestObjectMetadata:
    """Test object metadata entity."""

    def test_from_headers(self):
        """Test building metadata from response headers."""
        metadata = ObjectMetadata.from_headers(
            "/alice/stor/report.txt",
            {
                "Content-Type": "text/plain",
                "Content-Length": "11",
                "ETag": "abc123",
                "Last-Modified": "Thu, 01 Jan 2015 00:00:00 GMT",
                "Durability-Level": "2",
                "m-color": "blue",
            },
        )
        assert metadata.path == "/alice/stor/report.txt"
        assert metadata.name == "report.txt"
        assert metadata.kind is ObjectKind.OBJECT
        assert metadata.size == 11
        assert metadata.etag == "abc123"
        assert metadata.durability == 2
        assert metadata.last_modified == datetime(2015, 1, 1, tzinfo=timezone.utc)
        assert dict(metadata.metadata) == {"m-color": "blue"}

    def test_directory_from_headers(self):
        """Test the directory content-type is recognised loosely."""
        metadata = ObjectMetadata.from_headers(
            "/alice/stor", {"content-type": "application/x-json-stream;type=directory"}
        )
        assert metadata.is_directory

    def test_from_listing_record(self):
        """Test listing entries are qualified with the listed directory."""
        metadata = ObjectMetadata.from_listing_record(
            "/alice/stor/",
            {
                "name": "data.csv",
                "type": "object",
                "size": 42,
                "mtime": "2015-08-14T21:06:41.321Z",
                "etag": "e1",
                "durability": 2,
            },
        )
        assert metadata.path == "/alice/stor/data.csv"
        assert metadata.size == 42
        assert metadata.etag == "e1"
        assert metadata.durability == 2
        assert metadata.last_modified.year == 2015

    def test_directory_listing_record(self):
        metadata = ObjectMetadata.from_listing_record(
            "/alice/stor", {"name": "logs", "type": "directory", "mtime": "2015-08-14T21:06:41Z"}
        )
        assert metadata.is_directory
        assert metadata.content_type == DIRECTORY_CONTENT_TYPE
        assert metadata.size is None

    @pytest.mark.parametrize(
        "record",
        [
            {"type": "object"},
            {"name": "", "type": "object"},
            {"name": "x", "type": "socket"},
            {"name": "x", "type": "object", "mtime": "not a time"},
            {"name": "x", "type": "object", "size": "many"},
        ],
    )
    def test_malformed_listing_record(self, record):
        with pytest.raises(DecodeError):
            ObjectMetadata.from_listing_record("/alice/stor", record)

    def test_with_path(self):
        metadata = ObjectMetadata(path="/alice/stor/a", size=1)
        moved = metadata.with_path("/alice/stor//b/")
        assert moved.path == "/alice/stor/b"
        assert moved.size == 1
        assert metadata.path == "/alice/stor/a"


@pytest.mark.unit
class TestJobPhase:
    """Test job phase entity."""

    def test_type_coerced_from_string(self):
        phase = JobPhase(exec="wc", type="reduce")
        assert phase.type is PhaseType.REDUCE

    def test_to_dict_drops_unset_hints(self):
        phase = JobPhase(exec="grep foo", memory=512)
        assert phase.to_dict() == {"type": "map", "exec": "grep foo", "memory": 512}

    def test_to_dict_with_assets(self):
        phase = JobPhase(exec="/assets/alice/stor/run.sh", assets=["/alice/stor/run.sh"], count=2)
        data = phase.to_dict()
        assert data["assets"] == ["/alice/stor/run.sh"]
        assert data["count"] == 2

    def test_from_dict(self):
        phase = JobPhase.from_dict({"type": "reduce", "exec": "sort", "count": 3})
        assert phase.type is PhaseType.REDUCE
        assert phase.count == 3

    def test_from_dict_requires_exec(self):
        with pytest.raises(DecodeError):
            JobPhase.from_dict({"type": "map"})

    def test_from_dict_rejects_unknown_type(self):
        with pytest.raises(DecodeError):
            JobPhase.from_dict({"type": "shuffle", "exec": "cat"})


@pytest.mark.unit
class TestJob:
    """Test job entity."""

    def status_document(self, **overrides):
        document = {
            "id": str(JOB_ID),
            "name": "word-count",
            "state": "running",
            "cancelled": False,
            "inputDone": False,
            "timeCreated": "2015-08-14T21:06:41.321Z",
            "timeDone": None,
            "phases": [{"type": "map", "exec": "wc"}, {"type": "reduce", "exec": "awk"}],
            "stats": {"errors": 0, "outputs": 1, "tasks": 2},
        }
        document.update(overrides)
        return document

    def test_request_dict(self):
        job = Job(name="word-count", phases=[JobPhase(exec="wc"), JobPhase(exec="awk", type="reduce")])
        assert job.to_request_dict() == {
            "name": "word-count",
            "phases": [{"type": "map", "exec": "wc"}, {"type": "reduce", "exec": "awk"}],
        }

    def test_from_dict(self):
        job = Job.from_dict(self.status_document())
        assert job.id == JOB_ID
        assert job.name == "word-count"
        assert job.state is JobState.RUNNING
        assert job.time_created == datetime(2015, 8, 14, 21, 6, 41, 321000, tzinfo=timezone.utc)
        assert job.time_done is None
        assert job.stats["tasks"] == 2
        assert [p.exec for p in job.map_phases] == ["wc"]
        assert [p.exec for p in job.reduce_phases] == ["awk"]

    def test_to_dict_uses_wire_names(self):
        job = Job.from_dict(self.status_document(inputDone=True))
        data = job.to_dict()
        assert data["id"] == str(JOB_ID)
        assert data["inputDone"] is True
        assert data["timeCreated"] == "2015-08-14T21:06:41.321Z"
        assert Job.from_dict(data) == job

    @pytest.mark.parametrize(
        "overrides",
        [{"id": "nope"}, {"state": "sleeping"}, {"timeCreated": "last week"}],
    )
    def test_from_dict_rejects_malformed(self, overrides):
        with pytest.raises(DecodeError):
            Job.from_dict(self.status_document(**overrides))

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(DecodeError):
            Job.from_dict(["not", "a", "job"])

    @pytest.mark.parametrize(
        "overrides,expected",
        [
            ({"id": None, "state": None}, JobLifecycle.CREATED),
            ({}, JobLifecycle.INPUT_OPEN),
            ({"inputDone": True, "state": "queued"}, JobLifecycle.INPUT_CLOSED),
            ({"inputDone": True}, JobLifecycle.RUNNING),
            ({"inputDone": True, "state": "done"}, JobLifecycle.DONE),
            ({"cancelled": True, "state": "done"}, JobLifecycle.CANCELLED),
        ],
    )
    def test_lifecycle(self, overrides, expected):
        job = Job.from_dict(self.status_document(**overrides))
        assert job.lifecycle is expected

    def test_is_done(self):
        assert Job.from_dict(self.status_document(state="done")).is_done
        assert not Job.from_dict(self.status_document()).is_done


@pytest.mark.unit
class TestJobError:
    """Test job error entity."""

    def test_from_dict(self):
        error = JobError.from_dict(
            {
                "phase": 0,
                "what": "phase 0: input \"/alice/stor/in.txt\"",
                "code": "UserTaskError",
                "message": "user command exited with code 1",
                "input": "/alice/stor/in.txt",
            }
        )
        assert error.phase == "0"
        assert error.code == "UserTaskError"
        assert error.input == "/alice/stor/in.txt"
        assert error.stderr is None

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(DecodeError):
            JobError.from_dict("boom")
