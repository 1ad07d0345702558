"""Pytest configuration and shared fixtures for Manta client tests."""

import io
import json
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import parse_qsl, unquote, urlsplit

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from prometheus_client import CollectorRegistry

from manta_client.application.client import MantaClient
from manta_client.application.request_executor import SignedRequestExecutor
from manta_client.infrastructure.config import Config
from manta_client.infrastructure.container import Container
from manta_client.infrastructure.metrics import ClientMetrics

ENDPOINT = "https://manta.test"
HOME = "/test"


@dataclass
class RecordedRequest:
    """A request as seen by the fake transport."""

    method: str
    path: str
    query: dict
    headers: dict
    body: bytes


@dataclass
class Route:
    status: int = 200
    headers: dict = field(default_factory=dict)
    body: bytes = b""
    error: Exception | None = None


class FakeResponse:
    """In-memory TransportResponse that counts close calls."""

    def __init__(self, route: Route) -> None:
        self.status_code = route.status
        self.reason_phrase = "Reason"
        self.headers = dict(route.headers)
        self._body = io.BytesIO(route.body)
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def read(self, size: int = -1) -> bytes:
        if self.closed:
            return b""
        return self._body.read(size)

    def close(self) -> None:
        self.close_calls += 1


class FakeTransport:
    """Scripted transport: routes keyed by (method, path), FIFO per route.

    The last scripted response of a route is repeated. Unknown routes
    answer 404 ResourceNotFound.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Route]] = {}
        self.handlers: dict[tuple[str, str], Callable[[RecordedRequest], Route]] = {}
        self.requests: list[RecordedRequest] = []
        self.responses: list[FakeResponse] = []
        self.closed = False

    def add(self, method, path, status=200, headers=None, body=b"", error=None) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes.setdefault((method, path), []).append(
            Route(status=status, headers=headers or {}, body=body, error=error)
        )

    def add_handler(self, method, path, handler) -> None:
        """Answer (method, path) by calling ``handler(recorded_request)``."""
        self.handlers[(method, path)] = handler

    def add_json(self, method, path, document, status=200, headers=None) -> None:
        merged = {"Content-Type": "application/json"}
        merged.update(headers or {})
        self.add(method, path, status, merged, json.dumps(document))

    def add_error(self, method, path, status, code, message="failed") -> None:
        self.add_json(method, path, {"code": code, "message": message}, status=status)

    def send(self, request, timeout=None):
        split = urlsplit(request.url)
        body = request.body
        if body is None:
            body = b""
        elif not isinstance(body, (bytes, bytearray)):
            body = b"".join(body)
        recorded = RecordedRequest(
            method=request.method,
            path=unquote(split.path),
            query=dict(parse_qsl(split.query)),
            headers=dict(request.headers.items()),
            body=bytes(body),
        )
        self.requests.append(recorded)

        key = (recorded.method, recorded.path)
        queue = self.routes.get(key)
        if key in self.handlers:
            route = self.handlers[key](recorded)
        elif not queue:
            route = Route(
                status=404,
                headers={"Content-Type": "application/json"},
                body=json.dumps({"code": "ResourceNotFound", "message": "no route"}).encode(),
            )
        else:
            route = queue.pop(0) if len(queue) > 1 else queue[0]
        if route.error is not None:
            raise route.error

        response = FakeResponse(route)
        self.responses.append(response)
        return response

    def close(self) -> None:
        self.closed = True

    def requests_for(self, method, path=None) -> list[RecordedRequest]:
        return [
            r for r in self.requests
            if r.method == method and (path is None or r.path == path)
        ]

    @property
    def open_responses(self) -> list[FakeResponse]:
        return [r for r in self.responses if not r.closed]


class FakeSigner:
    """Deterministic signer recording what it signed."""

    def __init__(self) -> None:
        self.signed = []

    def sign_request(self, request):
        self.signed.append(request)
        return {
            "Date": "Thu, 01 Jan 2015 00:00:00 GMT",
            "Authorization": f'Signature keyId="/test/keys/fake",signature="{request.method}"',
        }

    def sign_uri(self, method, url, expires):
        return f"{url}?algorithm=FAKE&expires={expires}&keyId=%2Ftest%2Fkeys%2Ffake&signature={method}"


@pytest.fixture(autouse=True)
def reset_container():
    """Reset the DI container before each test."""
    Container.reset()
    yield
    Container.reset()


@pytest.fixture
def test_config() -> Config:
    """Provide a test configuration."""
    return Config()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry) -> ClientMetrics:
    """Metrics on a private registry so tests never collide."""
    return ClientMetrics(registry=registry)


@pytest.fixture
def executor(transport, signer, metrics) -> SignedRequestExecutor:
    return SignedRequestExecutor(ENDPOINT, transport, signer, metrics=metrics)


@pytest.fixture
def client(executor, metrics) -> MantaClient:
    return MantaClient(executor, HOME, metrics=metrics)


@pytest.fixture(scope="session")
def rsa_private_key():
    """Provide an RSA key for signer tests."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def directory_headers() -> dict:
    return {"Content-Type": "application/x-json-stream; type=directory"}


def listing_body(*records) -> str:
    """Build a newline-delimited listing body."""
    return "\n".join(json.dumps(record) for record in records) + "\n"


# Pytest markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
