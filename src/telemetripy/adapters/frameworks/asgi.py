"""ASGI generic adapter for request telemetry.

Provides a middleware that records one MetricRecord per HTTP request and a
framework-agnostic ASGI application serving performance statistics. Neither
requires FastAPI or any other framework.
"""

import asyncio
import json
from collections.abc import Callable, Coroutine
from typing import Any
from urllib.parse import parse_qs

from telemetripy.adapters.frameworks.query_params import _parse_days_param
from telemetripy.adapters.frameworks.recording import RequestRecorder
from telemetripy.adapters.storage.ring_buffer import RingBufferRecordStorage
from telemetripy.core.capture import RequestTimer
from telemetripy.core.logs import log_exception
from telemetripy.core.reporting import PerformanceReporter

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]


def _parse_query_params(scope: Scope) -> dict[str, list[str]]:
    """Parse query string from ASGI scope into parameter dictionary.

    Returns an empty dict if query_string is missing or empty.
    """
    query_string = scope.get("query_string", b"").decode(errors="replace")
    return parse_qs(query_string)


def _get_header(scope: Scope, name: str) -> str | None:
    """Return the first value of a header (case-insensitive), if present."""
    header_bytes = name.lower().encode()
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    for key, value in headers:
        if key.lower() == header_bytes:
            return value.decode("utf-8", errors="replace")
    return None


def _client_ip(scope: Scope) -> str | None:
    client = scope.get("client")
    if client:
        return str(client[0])
    return None


async def _send_response(send: Send, status: int, content_type: str, body: str) -> None:
    """Send an HTTP response with headers and body."""
    headers = [(b"content-type", content_type.encode())]
    await send({"type": "http.response.start", "status": status, "headers": headers})
    await send({"type": "http.response.body", "body": body.encode()})


class ASGIPerformanceMiddleware:
    """ASGI middleware that records request performance.

    Capture starts before the wrapped app runs and finishes once the app
    has returned or raised. Responses that were started record their status;
    an exception with no response started records a 500 and is re-raised.
    A request cancelled after its response started (client disconnect
    mid-stream) records the started status. One cancelled before that, or
    one that never started a response, produces no record.
    """

    def __init__(self, app: ASGIApp, recorder: RequestRecorder) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application to wrap.
            recorder: Receives finished records.
        """
        self.app = app
        self.recorder = recorder

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self.recorder.path_excluded(scope["path"]):
            await self.app(scope, receive, send)
            return

        timer = RequestTimer.start(
            scope["method"],
            scope["path"],
            user_agent=_get_header(scope, "user-agent"),
            client_ip=_client_ip(scope),
        )
        captured: dict[str, Any] = {"status": None}

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                captured["status"] = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, wrapped_send)
        except asyncio.CancelledError:
            if captured["status"] is not None:
                self.recorder.record(timer.finish(captured["status"]))
            raise
        except Exception:
            if captured["status"] is None:
                captured["status"] = 500
            self.recorder.record(timer.finish(captured["status"]))
            raise

        if captured["status"] is not None:
            self.recorder.record(timer.finish(captured["status"]))


def create_asgi_app(
    reporter: PerformanceReporter,
    recent: RingBufferRecordStorage | None = None,
) -> ASGIApp:
    """Create an ASGI app with /stats and /stats/recent endpoints.

    Args:
        reporter: Builds reports from the durable record source.
        recent: Optional ring buffer served by /stats/recent.

    Returns:
        ASGI application callable.
    """
    recent_reporter = (
        PerformanceReporter(recent, settings=reporter.settings)
        if recent is not None
        else None
    )

    async def _report(target: PerformanceReporter, scope: Scope, send: Send) -> None:
        days = _parse_days_param(
            _parse_query_params(scope), default=target.settings.default_days
        )
        try:
            report = await asyncio.to_thread(target.build_report, days)
            body = json.dumps(report.to_dict())
        except Exception:
            log_exception("Error building stats endpoint response", days=days)
            error_body = json.dumps({"error": "Internal Server Error"})
            await _send_response(send, 500, "application/json", error_body)
            return
        await _send_response(send, 200, "application/json", body)

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        path = scope["path"]
        if path == "/stats":
            await _report(reporter, scope, send)
        elif path == "/stats/recent" and recent_reporter is not None:
            await _report(recent_reporter, scope, send)
        else:
            await _send_response(send, 404, "text/plain", "Not Found")

    return app
