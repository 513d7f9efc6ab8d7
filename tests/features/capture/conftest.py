"""BDD step definitions for request capture features."""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when

from telemetripy.adapters.frameworks.asgi import (
    ASGIPerformanceMiddleware,
    Receive,
    Scope,
    Send,
)
from telemetripy.config import TelemetrySettings
from telemetripy.core.models import MetricRecord
from telemetripy.runtime import TelemetryPipeline


@dataclass
class CaptureScenarioContext:
    """Shared state between steps in a capture scenario."""

    log_path: Path | None = None
    exclude_paths: list[str] = field(default_factory=list)
    endpoint: Any = None
    pipeline: TelemetryPipeline | None = None
    exception_raised: Exception | None = None


@pytest.fixture
def ctx():
    """Fresh scenario context for each test; stops the pipeline afterwards."""
    context = CaptureScenarioContext()
    yield context
    if context.pipeline is not None:
        context.pipeline.stop()


def run_async(coro: Any) -> Any:
    """Run a coroutine in a new event loop (for sync step functions)."""
    return asyncio.run(coro)


async def simulate_request(app: Any, method: str, target: str) -> None:
    path, _, query = target.partition("?")
    scope: Scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": query.encode(),
        "headers": [(b"user-agent", b"bdd-client")],
        "client": ("192.0.2.10", 40000),
    }

    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": b"", "more_body": False}

    async def send(message: dict[str, Any]) -> None:
        pass

    await app(scope, receive, send)


def status_endpoint(status: int, delay: float = 0.0):
    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if delay:
            await asyncio.sleep(delay)
        await send({"type": "http.response.start", "status": status, "headers": []})
        await send({"type": "http.response.body", "body": b""})

    return app


def _written(ctx: CaptureScenarioContext) -> list[MetricRecord]:
    assert ctx.pipeline is not None
    ctx.pipeline.writer.flush(timeout=5)
    return ctx.pipeline.log.read(100)


# === Given ===


@given("a telemetry pipeline writing to a temporary log")
def step_pipeline(ctx: CaptureScenarioContext, tmp_path: Path) -> None:
    ctx.log_path = tmp_path / "performance.log"


@given(parsers.parse('paths matching "{pattern}" are excluded'))
def step_exclude(ctx: CaptureScenarioContext, pattern: str) -> None:
    ctx.exclude_paths.append(pattern)


@given(parsers.parse("an endpoint that returns status {status:d}"))
def step_status_endpoint(ctx: CaptureScenarioContext, status: int) -> None:
    ctx.endpoint = status_endpoint(status)


@given("an endpoint that raises an unhandled exception")
def step_failing_endpoint(ctx: CaptureScenarioContext) -> None:
    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        raise RuntimeError("Unhandled error")

    ctx.endpoint = app


@given(parsers.parse("an endpoint that takes {ms:d} milliseconds"))
def step_slow_endpoint(ctx: CaptureScenarioContext, ms: int) -> None:
    ctx.endpoint = status_endpoint(200, delay=ms / 1000)


# === When ===


@when(parsers.parse('a {method} request is made to "{target}"'))
def step_request(ctx: CaptureScenarioContext, method: str, target: str) -> None:
    settings = TelemetrySettings(
        _env_file=None, log_path=ctx.log_path, exclude_paths=ctx.exclude_paths
    )
    ctx.pipeline = TelemetryPipeline(settings)
    ctx.pipeline.start()
    app = ASGIPerformanceMiddleware(ctx.endpoint, ctx.pipeline.recorder)
    try:
        run_async(simulate_request(app, method, target))
    except RuntimeError as e:
        ctx.exception_raised = e


# === Then ===


@then(parsers.parse("{n:d} record is written to the log"))
@then(parsers.parse("{n:d} records are written to the log"))
def step_record_count(ctx: CaptureScenarioContext, n: int) -> None:
    assert len(_written(ctx)) == n


@then(
    parsers.parse(
        'the record has method "{method}", path "{path}" and status {status:d}'
    )
)
def step_record_fields(
    ctx: CaptureScenarioContext, method: str, path: str, status: int
) -> None:
    [record] = _written(ctx)
    assert (record.method, record.path, record.status_code) == (method, path, status)
    assert record.user_agent == "bdd-client"
    assert record.client_ip == "192.0.2.10"


@then("the exception reaches the server")
def step_exception_propagated(ctx: CaptureScenarioContext) -> None:
    assert isinstance(ctx.exception_raised, RuntimeError)


@then(parsers.parse('a "{message}" warning is logged for "{path}"'))
def step_slow_warning(
    ctx: CaptureScenarioContext,
    caplog: pytest.LogCaptureFixture,
    message: str,
    path: str,
) -> None:
    warnings = [
        r
        for r in caplog.records
        if r.name == "telemetripy.requests" and r.levelno == logging.WARNING
    ]
    assert any(
        r.getMessage().startswith(message) and r.path == path  # type: ignore[attr-defined]
        for r in warnings
    )
