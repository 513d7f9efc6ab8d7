"""WSGI generic adapter for request telemetry.

Provides a middleware that records one MetricRecord per HTTP request and a
WSGI application serving performance statistics, for synchronous hosts
such as Flask or Django.
"""

import json
from collections.abc import Callable, Iterable, Iterator
from typing import Any
from urllib.parse import parse_qs

from telemetripy.adapters.frameworks.query_params import _parse_days_param
from telemetripy.adapters.frameworks.recording import RequestRecorder
from telemetripy.adapters.storage.ring_buffer import RingBufferRecordStorage
from telemetripy.core.capture import RequestTimer
from telemetripy.core.logs import log_exception
from telemetripy.core.reporting import PerformanceReporter

Environ = dict[str, Any]
StartResponse = Callable[..., Callable[[bytes], object]]
WSGIApp = Callable[[Environ, StartResponse], Iterable[bytes]]


def _status_code(status: str) -> int | None:
    try:
        return int(status.split(" ", 1)[0])
    except ValueError:
        return None


class _RecordingIterable:
    """Response iterable that finishes capture when the server closes it.

    PEP 3333 servers call close() once the response has been sent or the
    client has gone away, which makes it the completion signal.
    """

    def __init__(
        self,
        body: Iterable[bytes],
        timer: RequestTimer,
        captured: dict[str, Any],
        recorder: RequestRecorder,
    ) -> None:
        self._body = body
        self._timer = timer
        self._captured = captured
        self._recorder = recorder

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield from self._body
        except Exception:
            if self._captured["status"] is None:
                self._captured["status"] = 500
            self._finish()
            raise

    def _finish(self) -> None:
        status = self._captured["status"]
        if status is not None and not self._timer.finished:
            self._recorder.record(self._timer.finish(status))

    def close(self) -> None:
        try:
            close = getattr(self._body, "close", None)
            if close is not None:
                close()
        finally:
            self._finish()


class WSGIPerformanceMiddleware:
    """WSGI middleware that records request performance."""

    def __init__(self, app: WSGIApp, recorder: RequestRecorder) -> None:
        """Initialize the middleware.

        Args:
            app: The WSGI application to wrap.
            recorder: Receives finished records.
        """
        self.app = app
        self.recorder = recorder

    def __call__(
        self, environ: Environ, start_response: StartResponse
    ) -> Iterable[bytes]:
        path = environ.get("PATH_INFO") or "/"
        if self.recorder.path_excluded(path):
            return self.app(environ, start_response)

        timer = RequestTimer.start(
            environ.get("REQUEST_METHOD", "GET"),
            path,
            user_agent=environ.get("HTTP_USER_AGENT"),
            client_ip=environ.get("REMOTE_ADDR"),
        )
        captured: dict[str, Any] = {"status": None}

        def wrapped_start_response(
            status: str, headers: list[tuple[str, str]], exc_info: Any = None
        ) -> Callable[[bytes], object]:
            captured["status"] = _status_code(status)
            return start_response(status, headers, exc_info)

        try:
            body = self.app(environ, wrapped_start_response)
        except Exception:
            self.recorder.record(timer.finish(captured["status"] or 500))
            raise
        return _RecordingIterable(body, timer, captured, self.recorder)


def _respond(
    start_response: StartResponse, status: str, content_type: str, body: str
) -> list[bytes]:
    payload = body.encode()
    start_response(
        status,
        [("Content-Type", content_type), ("Content-Length", str(len(payload)))],
    )
    return [payload]


def create_wsgi_app(
    reporter: PerformanceReporter,
    recent: RingBufferRecordStorage | None = None,
) -> WSGIApp:
    """Create a WSGI app with /stats and /stats/recent endpoints.

    Args:
        reporter: Builds reports from the durable record source.
        recent: Optional ring buffer served by /stats/recent.

    Returns:
        WSGI application callable.
    """
    recent_reporter = (
        PerformanceReporter(recent, settings=reporter.settings)
        if recent is not None
        else None
    )

    def _report(
        target: PerformanceReporter, environ: Environ, start_response: StartResponse
    ) -> list[bytes]:
        params = parse_qs(environ.get("QUERY_STRING", ""))
        days = _parse_days_param(params, default=target.settings.default_days)
        try:
            body = json.dumps(target.build_report(days).to_dict())
        except Exception:
            log_exception("Error building stats endpoint response", days=days)
            error_body = json.dumps({"error": "Internal Server Error"})
            return _respond(
                start_response, "500 Internal Server Error", "application/json", error_body
            )
        return _respond(start_response, "200 OK", "application/json", body)

    def app(environ: Environ, start_response: StartResponse) -> list[bytes]:
        path = environ.get("PATH_INFO", "")
        if path == "/stats":
            return _report(reporter, environ, start_response)
        if path == "/stats/recent" and recent_reporter is not None:
            return _report(recent_reporter, environ, start_response)
        return _respond(start_response, "404 Not Found", "text/plain", "Not Found")

    return app
