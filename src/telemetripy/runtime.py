"""Wiring of a complete telemetry pipeline from settings.

TelemetryPipeline owns one diagnostics instance, the durable record store
(NDJSON file or SQLite, per settings.storage_backend), an optional
recent-record buffer, the background writer, the request recorder used by
middleware and the reporter used by stats endpoints.
"""

from telemetripy.adapters.frameworks.recording import RequestRecorder
from telemetripy.adapters.storage.jsonl import JsonLinesRecordLog
from telemetripy.adapters.storage.ring_buffer import RingBufferRecordStorage
from telemetripy.adapters.storage.sqlite import SQLiteRecordStorage
from telemetripy.adapters.writer import BackgroundRecordWriter
from telemetripy.config import TelemetrySettings
from telemetripy.core.diagnostics import TelemetryDiagnostics
from telemetripy.core.logs import get_logger
from telemetripy.core.reporting import PerformanceReporter

logger = get_logger(__name__)

DurableStore = JsonLinesRecordLog | SQLiteRecordStorage


def build_store(
    settings: TelemetrySettings, diagnostics: TelemetryDiagnostics
) -> DurableStore:
    """Create the durable record store selected by settings.storage_backend."""
    if settings.storage_backend == "sqlite":
        return SQLiteRecordStorage(settings.sqlite_path, diagnostics)
    return JsonLinesRecordLog(settings.log_path, diagnostics)


class TelemetryPipeline:
    """Request telemetry components built from one TelemetrySettings.

    Example:
        ```python
        pipeline = TelemetryPipeline(TelemetrySettings(log_path="perf.log"))
        app = ASGIPerformanceMiddleware(app, pipeline.recorder)
        ...
        report = pipeline.reporter.build_report(days=7)
        pipeline.stop()
        ```

    Args:
        settings: Pipeline configuration. Defaults to TelemetrySettings().
        recent_buffer_size: Size of the in-memory recent-record buffer;
            0 disables it.
    """

    def __init__(
        self,
        settings: TelemetrySettings | None = None,
        recent_buffer_size: int = 0,
    ) -> None:
        self.settings = settings or TelemetrySettings()
        self.diagnostics = TelemetryDiagnostics()
        self.log = build_store(self.settings, self.diagnostics)
        self.recent = (
            RingBufferRecordStorage(recent_buffer_size) if recent_buffer_size else None
        )
        self.writer = BackgroundRecordWriter(
            [self.log],
            max_queue_size=self.settings.queue_max_size,
            diagnostics=self.diagnostics,
        )
        self.recorder = RequestRecorder(self.writer, self.settings, recent=self.recent)
        self.reporter = PerformanceReporter(
            self.log, settings=self.settings, diagnostics=self.diagnostics
        )

    def start(self) -> None:
        """Start the background writer."""
        self.writer.start()
        logger.with_fields(
            backend=self.settings.storage_backend, target=str(self.log.path)
        ).info("Telemetry pipeline started")

    def stop(self, timeout: float | None = 5.0) -> None:
        """Write out pending records and stop the background writer."""
        self.writer.stop(timeout)
        logger.with_fields(**self.diagnostics.snapshot()).info(
            "Telemetry pipeline stopped"
        )
