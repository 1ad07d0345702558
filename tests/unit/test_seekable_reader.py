"""Unit tests for random-access reads over remote objects."""

import io
import json

import pytest

from conftest import Route
from manta_client.application.seekable_reader import SeekableRemoteReader
from manta_client.domain.exceptions import OutOfRangeError, RemoteResponseError

PATH = "/test/stor/numbers.bin"
DATA = bytes(range(256)) * 4


def serve_ranges(data):
    """Answer ``Range: bytes=N-`` requests the way the service does."""

    def handler(request):
        start = int(request.headers["Range"].split("=", 1)[1].rstrip("-"))
        if start >= len(data):
            return Route(
                status=416,
                headers={"Content-Type": "application/json"},
                body=json.dumps({"code": "RequestedRangeNotSatisfiable", "message": "bad range"}).encode(),
            )
        return Route(
            status=206,
            headers={
                "Content-Range": f"bytes {start}-{len(data) - 1}/{len(data)}",
                "Content-Length": str(len(data) - start),
            },
            body=data[start:],
        )

    return handler


@pytest.fixture
def remote(transport):
    transport.add_handler("GET", PATH, serve_ranges(DATA))
    transport.add("HEAD", PATH, headers={"Content-Length": str(len(DATA))})
    return transport


@pytest.fixture
def reader(executor, metrics, remote):
    reader = SeekableRemoteReader(executor, PATH, metrics=metrics)
    yield reader
    reader.close()


@pytest.mark.unit
class TestSeekableRemoteReader:
    """Test ranged reads, seeking and connection reuse."""

    def test_no_request_until_read(self, reader, remote):
        reader.seek(10)
        assert remote.requests == []

    def test_sequential_reads_reuse_response(self, reader, remote):
        assert reader.read(5) == DATA[:5]
        assert reader.read(5) == DATA[5:10]
        assert reader.tell() == 10

        gets = remote.requests_for("GET", PATH)
        assert len(gets) == 1
        assert gets[0].headers["Range"] == "bytes=0-"

    def test_seek_opens_new_range_and_releases_old(self, reader, remote):
        reader.read(5)
        reader.seek(100)
        assert reader.read(4) == DATA[100:104]

        gets = remote.requests_for("GET", PATH)
        assert [g.headers["Range"] for g in gets] == ["bytes=0-", "bytes=100-"]
        assert remote.responses[0].closed
        assert not remote.responses[1].closed

    def test_seek_to_current_position_keeps_response(self, reader, remote):
        reader.read(8)
        reader.seek(8)
        reader.read(8)
        assert len(remote.requests_for("GET", PATH)) == 1

    @pytest.mark.parametrize("positions", [[0, 500, 3, 1023, 10], [1000, 0, 512, 511]])
    def test_reads_match_object_at_any_position(self, reader, positions):
        for position in positions:
            reader.seek(position)
            assert reader.read(7) == DATA[position : position + 7]

    def test_seek_relative(self, reader):
        reader.seek(10)
        reader.seek(5, io.SEEK_CUR)
        assert reader.tell() == 15
        assert reader.read(2) == DATA[15:17]

    def test_seek_from_end_uses_head_once(self, reader, remote):
        assert reader.seek(-3, io.SEEK_END) == len(DATA) - 3
        assert reader.read() == DATA[-3:]
        reader.seek(0, io.SEEK_END)

        assert len(remote.requests_for("HEAD", PATH)) == 1

    def test_size_learned_from_content_range(self, reader, remote):
        reader.read(1)
        assert reader.size() == len(DATA)
        assert remote.requests_for("HEAD", PATH) == []

    def test_eof_releases_response(self, reader, remote):
        reader.seek(len(DATA) - 4)
        assert reader.read() == DATA[-4:]
        assert reader.read(10) == b""
        assert remote.open_responses == []
        assert len(remote.requests_for("GET", PATH)) == 1

    def test_read_past_known_size_makes_no_request(self, reader, remote):
        reader.read(1)
        reader.seek(len(DATA) + 10)
        assert reader.read(4) == b""
        assert len(remote.requests_for("GET", PATH)) == 1

    def test_read_past_unknown_size_surfaces_service_error(self, reader):
        reader.seek(len(DATA) + 10)
        with pytest.raises(RemoteResponseError) as exc_info:
            reader.read(4)
        assert exc_info.value.status == 416

    def test_negative_seek_rejected(self, reader):
        with pytest.raises(OutOfRangeError):
            reader.seek(-1)
        with pytest.raises(OutOfRangeError):
            reader.seek(-1, io.SEEK_CUR)

    def test_negative_start_rejected(self, executor):
        with pytest.raises(OutOfRangeError):
            SeekableRemoteReader(executor, PATH, position=-5)

    def test_initial_position(self, executor, remote):
        with SeekableRemoteReader(executor, PATH, position=250) as reader:
            assert reader.read(3) == DATA[250:253]

    def test_close_releases_and_blocks_reads(self, reader, remote):
        reader.read(1)
        reader.close()

        assert remote.open_responses == []
        with pytest.raises(ValueError):
            reader.read(1)

    def test_ignored_range_is_skipped(self, executor, transport):
        transport.add("GET", PATH, status=200, headers={"Content-Length": str(len(DATA))}, body=DATA)

        with SeekableRemoteReader(executor, PATH, position=300) as reader:
            assert reader.read(6) == DATA[300:306]
            assert reader.size() == len(DATA)

    def test_counts_range_requests(self, reader, registry):
        reader.read(1)
        reader.seek(50)
        reader.read(1)
        assert registry.get_sample_value("manta_client_range_requests_total") == 2.0


@pytest.mark.unit
class TestBufferedSeekableReads:
    """Test seekable reads through the client's buffered wrapper."""

    def test_buffered_seek_and_read(self, client, remote):
        with client.get_seekable(PATH) as stream:
            assert stream.read(4) == DATA[:4]
            stream.seek(700)
            assert stream.tell() == 700
            assert stream.read(10) == DATA[700:710]
            stream.seek(-2, io.SEEK_END)
            assert stream.read() == DATA[-2:]

        assert remote.open_responses == []

    def test_starting_position(self, client, remote):
        with client.get_seekable(PATH, position=1020) as stream:
            assert stream.read() == DATA[1020:]
