"""FastAPI adapter for performance statistics."""

from typing import Any

from fastapi import APIRouter, FastAPI, Query

from telemetripy.adapters.frameworks.asgi import ASGIPerformanceMiddleware
from telemetripy.adapters.frameworks.recording import RequestRecorder
from telemetripy.adapters.storage.ring_buffer import RingBufferRecordStorage
from telemetripy.core.reporting import PerformanceReporter


def create_performance_router(
    reporter: PerformanceReporter,
    recent: RingBufferRecordStorage | None = None,
) -> APIRouter:
    """Create a FastAPI router with /stats (and /stats/recent) endpoints.

    Args:
        reporter: Builds reports from the durable record source.
        recent: Optional ring buffer served by /stats/recent.

    Returns:
        APIRouter with the statistics endpoints configured.
    """
    router = APIRouter()
    default_days = reporter.settings.default_days

    # sync handlers: FastAPI runs them in its threadpool, off the event loop
    @router.get("/stats")
    def get_stats(days: int = Query(default=default_days, ge=1)) -> dict[str, Any]:
        """Return performance statistics for the last ``days`` days."""
        return reporter.build_report(days).to_dict()

    if recent is not None:
        recent_reporter = PerformanceReporter(recent, settings=reporter.settings)

        @router.get("/stats/recent")
        def get_recent_stats(
            days: int = Query(default=default_days, ge=1),
        ) -> dict[str, Any]:
            """Return statistics computed from the in-memory recent buffer."""
            return recent_reporter.build_report(days).to_dict()

    return router


def instrument_app(app: FastAPI, recorder: RequestRecorder) -> None:
    """Add request performance capture to a FastAPI application."""
    app.add_middleware(ASGIPerformanceMiddleware, recorder=recorder)
