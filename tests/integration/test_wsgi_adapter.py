"""Integration tests for the WSGI adapter."""

import time

import pytest

from telemetripy.adapters.frameworks.wsgi import (
    WSGIPerformanceMiddleware,
    _status_code,
    create_wsgi_app,
)
from telemetripy.adapters.storage.in_memory import InMemoryRecordStorage
from telemetripy.adapters.storage.ring_buffer import RingBufferRecordStorage
from telemetripy.core.reporting import PerformanceReporter
from tests.helpers import make_record

pytestmark = [pytest.mark.integration, pytest.mark.wsgi, pytest.mark.tier(2)]


def hello_app(environ, start_response):
    status = environ.get("HTTP_X_STATUS", "200 OK")
    start_response(status, [("Content-Type", "text/plain")])
    return [b"hello"]


def failing_app(environ, start_response):
    raise RuntimeError("view crashed")


def failing_body_app(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain")])

    def body():
        yield b"partial"
        raise RuntimeError("generator crashed")

    return body()


class TestStatusCode:
    def test_parses_leading_code(self) -> None:
        assert _status_code("404 Not Found") == 404
        assert _status_code("200 OK") == 200

    def test_garbage_gives_none(self) -> None:
        assert _status_code("OK") is None


class TestWSGIPerformanceMiddleware:
    def test_records_request(
        self, wsgi_test_client, recorder_factory, record_writer, memory_sink
    ) -> None:
        app = WSGIPerformanceMiddleware(hello_app, recorder_factory())

        with wsgi_test_client(app) as client:
            response = client.get(
                "/api/tickets", params={"page": "2"}, headers={"User-Agent": "ua/1"}
            )

        assert response.status_code == 200
        assert response.text == "hello"
        record_writer.flush(timeout=5)
        [record] = memory_sink.read(10)
        assert record.method == "GET"
        assert record.path == "/api/tickets"
        assert record.status_code == 200
        assert record.user_agent == "ua/1"

    def test_error_status_is_recorded(
        self, wsgi_test_client, recorder_factory, record_writer, memory_sink
    ) -> None:
        app = WSGIPerformanceMiddleware(hello_app, recorder_factory())

        with wsgi_test_client(app) as client:
            client.post("/api/tickets", headers={"X-Status": "422 Unprocessable"})

        record_writer.flush(timeout=5)
        [record] = memory_sink.read(10)
        assert (record.method, record.status_code) == ("POST", 422)

    def test_exception_records_500_and_reraises(
        self, recorder_factory, record_writer, memory_sink
    ) -> None:
        app = WSGIPerformanceMiddleware(failing_app, recorder_factory())
        environ = {"REQUEST_METHOD": "GET", "PATH_INFO": "/boom"}

        with pytest.raises(RuntimeError, match="view crashed"):
            app(environ, lambda status, headers, exc_info=None: None)

        record_writer.flush(timeout=5)
        [record] = memory_sink.read(10)
        assert record.status_code == 500
        assert record.path == "/boom"

    def test_failure_while_iterating_body_is_recorded_once(
        self, recorder_factory, record_writer, memory_sink
    ) -> None:
        app = WSGIPerformanceMiddleware(failing_body_app, recorder_factory())
        environ = {"REQUEST_METHOD": "GET", "PATH_INFO": "/stream"}

        body = app(environ, lambda status, headers, exc_info=None: None)
        with pytest.raises(RuntimeError, match="generator crashed"):
            list(body)
        body.close()

        record_writer.flush(timeout=5)
        [record] = memory_sink.read(10)
        assert record.status_code == 200

    def test_excluded_path_is_not_recorded(
        self, wsgi_test_client, recorder_factory, record_writer, memory_sink
    ) -> None:
        app = WSGIPerformanceMiddleware(
            hello_app, recorder_factory(exclude_paths=["/health"])
        )

        with wsgi_test_client(app) as client:
            client.get("/health")

        record_writer.flush(timeout=5)
        assert memory_sink.read(10) == []


class TestWSGIStatsApp:
    def test_stats_endpoint(self, wsgi_test_client, settings) -> None:
        source = InMemoryRecordStorage()
        source.append(make_record(status_code=503, timestamp=time.time()))
        app = create_wsgi_app(PerformanceReporter(source, settings=settings))

        with wsgi_test_client(app) as client:
            response = client.get("/stats", params={"days": "2"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        body = response.json()
        assert body["summary"]["error_rate"] == 100.0
        assert body["persistence"]["period"] == "2 days"

    def test_invalid_days_use_default(self, wsgi_test_client, settings) -> None:
        app = create_wsgi_app(
            PerformanceReporter(InMemoryRecordStorage(), settings=settings)
        )

        with wsgi_test_client(app) as client:
            response = client.get("/stats", params={"days": "soon"})

        assert response.json()["persistence"]["period"] == "7 days"

    def test_recent_endpoint(self, wsgi_test_client, settings) -> None:
        recent = RingBufferRecordStorage(max_size=5)
        recent.append(make_record(timestamp=time.time()))
        app = create_wsgi_app(
            PerformanceReporter(InMemoryRecordStorage(), settings=settings), recent
        )

        with wsgi_test_client(app) as client:
            response = client.get("/stats/recent")

        assert response.json()["summary"]["total_requests"] == 1

    def test_unknown_path_returns_404(self, wsgi_test_client, settings) -> None:
        app = create_wsgi_app(
            PerformanceReporter(InMemoryRecordStorage(), settings=settings)
        )

        with wsgi_test_client(app) as client:
            response = client.get("/metrics")

        assert response.status_code == 404
        assert response.text == "Not Found"
