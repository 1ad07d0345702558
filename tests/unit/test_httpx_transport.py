"""Unit tests for the httpx transport adapter."""

import json

import httpx
import pytest

from conftest import ENDPOINT, FakeSigner
from manta_client.adapters.outbound.httpx_transport import HttpxTransport
from manta_client.application.request_executor import SignedRequestExecutor
from manta_client.application.seekable_reader import SeekableRemoteReader
from manta_client.domain.exceptions import ConnectionError, ErrorCode, RemoteResponseError
from manta_client.domain.value_objects.headers import HeaderMap
from manta_client.infrastructure.config import HttpConfig
from manta_client.ports.outbound import SignedRequest


def make_transport(handler, chunk_size=4):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpxTransport(client, chunk_size=chunk_size)


@pytest.mark.unit
class TestHttpxTransport:
    """Test request translation and streamed responses."""

    def test_sends_method_url_headers_and_body(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = request.read()
            return httpx.Response(204)

        transport = make_transport(handler)
        request = SignedRequest(
            "PUT",
            f"{ENDPOINT}/test/stor/a%20b",
            HeaderMap({"Content-Type": "text/plain", "Authorization": "Signature x"}),
            b"payload",
        )

        response = transport.send(request)
        response.close()

        assert seen["method"] == "PUT"
        assert seen["url"] == f"{ENDPOINT}/test/stor/a%20b"
        assert seen["headers"]["content-type"] == "text/plain"
        assert seen["headers"]["authorization"] == "Signature x"
        assert seen["body"] == b"payload"
        assert response.status_code == 204

    def test_streams_chunked_request_body(self):
        seen = {}

        def handler(request):
            seen["body"] = request.read()
            return httpx.Response(204)

        transport = make_transport(handler)
        body = (chunk for chunk in (b"a\n", b"b\n"))
        transport.send(SignedRequest("POST", f"{ENDPOINT}/test/jobs/x/live/in", body=body)).close()

        assert seen["body"] == b"a\nb\n"

    def test_reads_body_in_pieces(self):
        transport = make_transport(lambda request: httpx.Response(200, content=b"0123456789"))
        response = transport.send(SignedRequest("GET", f"{ENDPOINT}/test/stor/f"))

        assert response.read(3) == b"012"
        assert response.read(3) == b"3"
        assert response.read() == b"456789"
        assert response.read(5) == b""
        response.close()

    def test_read_after_close(self):
        transport = make_transport(lambda request: httpx.Response(200, content=b"data"))
        response = transport.send(SignedRequest("GET", f"{ENDPOINT}/test/stor/f"))

        response.close()
        response.close()

        assert response.read() == b""

    def test_exposes_status_and_headers(self):
        transport = make_transport(
            lambda request: httpx.Response(206, headers={"Content-Range": "bytes 0-1/2"}, content=b"ab")
        )
        response = transport.send(SignedRequest("GET", f"{ENDPOINT}/test/stor/f"))

        assert response.status_code == 206
        assert response.reason_phrase == "Partial Content"
        assert response.headers["content-range"] == "bytes 0-1/2"
        response.close()

    def test_transport_failure_maps_to_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        transport = make_transport(handler)
        with pytest.raises(ConnectionError):
            transport.send(SignedRequest("GET", f"{ENDPOINT}/test/stor/f"))

    def test_close_is_idempotent(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        transport = HttpxTransport(client)

        transport.close()
        transport.close()

        assert client.is_closed

    def test_from_config(self):
        transport = HttpxTransport.from_config(HttpConfig(timeout=3.0, max_connections=2))
        transport.close()


@pytest.mark.unit
class TestExecutorOverHttpx:
    """Test the executor against the httpx adapter."""

    def test_error_body_is_decoded(self):
        def handler(request):
            body = json.dumps({"code": "ResourceNotFound", "message": "/test/stor/f was not found"})
            return httpx.Response(404, content=body, headers={"Content-Type": "application/json"})

        executor = SignedRequestExecutor(ENDPOINT, make_transport(handler), FakeSigner())

        with pytest.raises(RemoteResponseError) as exc_info:
            executor.execute("GET", "/test/stor/f")

        assert exc_info.value.service_code is ErrorCode.RESOURCE_NOT_FOUND
        assert exc_info.value.message == "/test/stor/f was not found"

    def test_signed_headers_reach_the_wire(self):
        seen = {}

        def handler(request):
            seen["authorization"] = request.headers.get("authorization")
            seen["date"] = request.headers.get("date")
            return httpx.Response(200, content=b"ok")

        executor = SignedRequestExecutor(ENDPOINT, make_transport(handler), FakeSigner())
        with executor.execute("GET", "/test/stor/f") as response:
            assert response.read() == b"ok"

        assert seen["authorization"].startswith("Signature ")
        assert seen["date"] == "Thu, 01 Jan 2015 00:00:00 GMT"

    def test_long_error_body_is_read_across_chunks(self):
        message = "object " + "x" * 500 + " was not found"

        def handler(request):
            body = json.dumps({"code": "ResourceNotFound", "message": message})
            return httpx.Response(404, content=body, headers={"Content-Type": "application/json"})

        executor = SignedRequestExecutor(ENDPOINT, make_transport(handler, chunk_size=1), FakeSigner())

        with pytest.raises(RemoteResponseError) as exc_info:
            executor.execute("GET", "/test/stor/f")

        assert exc_info.value.service_code is ErrorCode.RESOURCE_NOT_FOUND
        assert exc_info.value.message == message

    def test_plain_text_error_body_is_read_whole(self):
        transport = make_transport(lambda request: httpx.Response(500, content=b"upstream exploded"))
        executor = SignedRequestExecutor(ENDPOINT, transport, FakeSigner())

        with pytest.raises(RemoteResponseError) as exc_info:
            executor.execute("GET", "/test/stor/f")

        assert exc_info.value.service_code is ErrorCode.UNKNOWN
        assert exc_info.value.message == "upstream exploded"


class ResetAfterFirstChunk(httpx.SyncByteStream):
    """Body stream whose connection drops after the first chunk."""

    def __init__(self, first_chunk):
        self._first_chunk = first_chunk

    def __iter__(self):
        yield self._first_chunk
        raise httpx.ReadError("connection reset by peer")


@pytest.mark.unit
class TestSeekableReadsOverHttpx:
    """Test ranged reads when a connection breaks mid-body."""

    DATA = b"abcdefghij"

    def test_read_after_broken_stream_requests_again(self):
        ranges = []

        def handler(request):
            ranges.append(request.headers["range"])
            start = int(request.headers["range"][len("bytes="):].rstrip("-"))
            headers = {"Content-Range": f"bytes {start}-{len(self.DATA) - 1}/{len(self.DATA)}"}
            if len(ranges) == 1:
                return httpx.Response(206, headers=headers, stream=ResetAfterFirstChunk(self.DATA[:3]))
            return httpx.Response(206, headers=headers, content=self.DATA[start:])

        executor = SignedRequestExecutor(ENDPOINT, make_transport(handler, chunk_size=3), FakeSigner())
        reader = SeekableRemoteReader(executor, "/test/stor/f")

        assert reader.read(3) == b"abc"
        with pytest.raises(ConnectionError):
            reader.read(7)
        assert reader.tell() == 3

        remainder = b""
        while len(remainder) < 7:
            chunk = reader.read(7 - len(remainder))
            assert chunk
            remainder += chunk

        assert remainder == b"defghij"
        assert reader.read(1) == b""
        assert ranges == ["bytes=0-", "bytes=3-"]
        reader.close()
