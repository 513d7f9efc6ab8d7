"""Hand-off of completed request records, shared by framework middleware."""

import fnmatch

from telemetripy.adapters.storage.ring_buffer import RingBufferRecordStorage
from telemetripy.adapters.writer import BackgroundRecordWriter
from telemetripy.config import TelemetrySettings
from telemetripy.core.logs import get_logger, log_exception
from telemetripy.core.models import MetricRecord

logger = get_logger("telemetripy.requests")


class RequestRecorder:
    """Routes finished records to the writer and the recent-record buffer.

    Also logs slow requests: very slow ones at ERROR, slow ones at WARNING
    and the rest at DEBUG.

    Args:
        writer: Background writer for the durable sink.
        settings: Thresholds and excluded path patterns.
        recent: Optional bounded cache of the most recent records.
    """

    def __init__(
        self,
        writer: BackgroundRecordWriter,
        settings: TelemetrySettings | None = None,
        recent: RingBufferRecordStorage | None = None,
    ) -> None:
        self.writer = writer
        self.settings = settings or TelemetrySettings()
        self.recent = recent
        self.exclude_paths = list(self.settings.exclude_paths)

    def path_excluded(self, path: str) -> bool:
        """Check if path matches any pattern in exclude_paths."""
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    def _log(self, record: MetricRecord) -> None:
        bound = logger.with_fields(
            method=record.method,
            path=record.path,
            status_code=record.status_code,
            duration_ms=record.duration_ms,
        )
        summary = f"{record.method} {record.path} - {record.duration_ms}ms"
        if record.duration_ms > self.settings.very_slow_threshold_ms:
            bound.error(f"Very slow request: {summary}")
        elif record.duration_ms > self.settings.slow_threshold_ms:
            bound.warning(f"Slow request: {summary}")
        else:
            bound.debug(summary)

    def record(self, record: MetricRecord | None) -> None:
        """Dispatch a finished record. Never raises."""
        if record is None:
            return
        try:
            if self.recent is not None:
                self.recent.append(record)
            self.writer.submit(record)
            self._log(record)
        except Exception:
            log_exception("Failed to dispatch metric record", path=record.path)
