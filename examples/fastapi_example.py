"""Example FastAPI application with request performance telemetry.

Run with:
    uvicorn examples.fastapi_example:app --reload

Endpoints:
    /                     - Fast endpoint
    /tickets              - Endpoint with simulated database latency
    /reports              - Slow endpoint (logged as a slow request)
    /error                - Raises; recorded with status 500
    /telemetry/stats      - Statistics for the last 7 days
    /telemetry/stats?days=<n> - Statistics for the last n days
    /telemetry/stats/recent   - Statistics from the in-memory recent buffer

Every request is appended to logs/performance.log (override with
TELEMETRIPY_LOG_PATH). The telemetry routes themselves are excluded from
measurement.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from telemetripy import TelemetryPipeline, TelemetrySettings, configure_logging
from telemetripy.adapters.frameworks.fastapi import (
    create_performance_router,
    instrument_app,
)

configure_logging(logging.INFO)

pipeline = TelemetryPipeline(
    TelemetrySettings(exclude_paths=["/telemetry/*"]),
    recent_buffer_size=1000,
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Start the background writer on startup and drain it on shutdown."""
    pipeline.start()
    yield
    pipeline.stop()


app = FastAPI(title="Telemetry Example", lifespan=lifespan)
instrument_app(app, pipeline.recorder)
app.include_router(
    create_performance_router(pipeline.reporter, pipeline.recent),
    prefix="/telemetry",
)


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Hello! Check /telemetry/stats."}


@app.get("/tickets")
async def get_tickets() -> dict[str, list[dict[str, str]]]:
    """Simulated database fetch."""
    await asyncio.sleep(0.05)
    return {
        "tickets": [
            {"id": "1", "title": "Printer on fire"},
            {"id": "2", "title": "VPN drops every hour"},
        ]
    }


@app.get("/reports")
async def get_reports() -> dict[str, str]:
    """Takes longer than the slow threshold."""
    await asyncio.sleep(1.2)
    return {"status": "generated"}


@app.get("/error")
async def error_endpoint() -> dict[str, str]:
    raise ValueError("Intentional error for demonstration")
