"""telemetripy: request performance telemetry for Python web applications."""

from telemetripy.adapters.frameworks.asgi import (
    ASGIPerformanceMiddleware,
    create_asgi_app,
)
from telemetripy.adapters.frameworks.recording import RequestRecorder
from telemetripy.adapters.frameworks.wsgi import (
    WSGIPerformanceMiddleware,
    create_wsgi_app,
)
from telemetripy.adapters.storage.in_memory import InMemoryRecordStorage
from telemetripy.adapters.storage.jsonl import JsonLinesRecordLog
from telemetripy.adapters.storage.ring_buffer import RingBufferRecordStorage
from telemetripy.adapters.storage.sqlite import SQLiteRecordStorage
from telemetripy.adapters.writer import BackgroundRecordWriter
from telemetripy.config import TelemetrySettings
from telemetripy.core.capture import RequestTimer
from telemetripy.core.diagnostics import TelemetryDiagnostics
from telemetripy.core.logs import configure_logging, get_logger
from telemetripy.core.models import (
    CpuUsage,
    MemorySnapshot,
    MetricRecord,
    PerformanceReport,
)
from telemetripy.core.ports import RecordSinkPort, RecordSourcePort
from telemetripy.core.reporting import PerformanceReporter
from telemetripy.runtime import TelemetryPipeline

__version__ = "0.1.0"

__all__ = [
    "ASGIPerformanceMiddleware",
    "BackgroundRecordWriter",
    "CpuUsage",
    "InMemoryRecordStorage",
    "JsonLinesRecordLog",
    "MemorySnapshot",
    "MetricRecord",
    "PerformanceReport",
    "PerformanceReporter",
    "RecordSinkPort",
    "RecordSourcePort",
    "RequestRecorder",
    "RequestTimer",
    "RingBufferRecordStorage",
    "SQLiteRecordStorage",
    "TelemetryDiagnostics",
    "TelemetryPipeline",
    "TelemetrySettings",
    "WSGIPerformanceMiddleware",
    "configure_logging",
    "create_asgi_app",
    "create_wsgi_app",
    "get_logger",
]
