"""Shared test fixtures for all test modules."""

from pathlib import Path

import pytest

try:
    import httpx
except ImportError:
    httpx = None

from telemetripy.adapters.frameworks.recording import RequestRecorder
from telemetripy.adapters.storage.in_memory import InMemoryRecordStorage
from telemetripy.adapters.storage.ring_buffer import RingBufferRecordStorage
from telemetripy.adapters.writer import BackgroundRecordWriter
from telemetripy.config import TelemetrySettings


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    """Provide a temporary path for the performance log."""
    return tmp_path / "logs" / "performance.log"


@pytest.fixture
def records_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for SQLite record storage tests."""
    return str(tmp_path / "records.db")


@pytest.fixture
def settings(log_path: Path) -> TelemetrySettings:
    """Settings isolated from the environment and .env files."""
    return TelemetrySettings(_env_file=None, log_path=log_path)


# === ASGI Test Fixtures ===


@pytest.fixture
def basic_asgi_app():
    """Basic ASGI app fixture that returns 200 OK."""
    from telemetripy.adapters.frameworks.asgi import Receive, Scope, Send

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        await send({"type": "http.response.start", "status": 200, "headers": []})
        await send({"type": "http.response.body", "body": b"OK"})

    return app


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts."""
    from telemetripy.adapters.frameworks.asgi import Scope

    def _scope(
        method: str = "GET",
        path: str = "/test",
        headers: list[tuple[bytes, bytes]] | None = None,
    ) -> Scope:
        return {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": b"",
            "headers": headers or [],
            "client": ("127.0.0.1", 54321),
        }

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture."""

    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        responses.append(message)

    return send, responses


@pytest.fixture
def asgi_receive():
    async def receive() -> dict[str, object]:
        return {"type": "http.request", "body": b"", "more_body": False}

    return receive


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            async with asgi_test_client(app) as client:
                response = await client.get("/stats")
    """
    if httpx is None:
        pytest.skip("httpx not installed")

    def _get_client(app):
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client


# === WSGI Test Fixtures ===


@pytest.fixture
def wsgi_test_client():
    """Factory fixture that creates an httpx.Client for WSGI testing."""
    if httpx is None:
        pytest.skip("httpx not installed")

    def _get_client(app):
        return httpx.Client(
            transport=httpx.WSGITransport(app=app), base_url="http://test"
        )

    return _get_client


# === Recorder Fixtures ===


@pytest.fixture
def memory_sink() -> InMemoryRecordStorage:
    """In-memory sink standing in for the durable log."""
    return InMemoryRecordStorage()


@pytest.fixture
def record_writer(memory_sink: InMemoryRecordStorage):
    """Background writer feeding memory_sink, stopped after the test."""
    writer = BackgroundRecordWriter([memory_sink])
    yield writer
    writer.stop()


@pytest.fixture
def recorder_factory(record_writer: BackgroundRecordWriter):
    """Factory fixture for RequestRecorder objects writing to memory_sink.

    Usage:
        def test_something(recorder_factory, memory_sink):
            recorder = recorder_factory(exclude_paths=["/health"])
    """

    def _recorder(
        recent: RingBufferRecordStorage | None = None, **settings: object
    ) -> RequestRecorder:
        return RequestRecorder(
            record_writer, TelemetrySettings(_env_file=None, **settings), recent
        )

    return _recorder
