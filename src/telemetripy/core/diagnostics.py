"""Counters for telemetry-internal faults.

Write failures, dropped records and skipped lines never surface to callers,
so they are counted here and logged to the diagnostics logger. One instance
is shared by the components of a pipeline and passed to each explicitly.
"""

import threading

from telemetripy.core.logs import DIAGNOSTICS_LOGGER_NAME, get_logger

logger = get_logger(DIAGNOSTICS_LOGGER_NAME)

_COUNTERS = (
    "write_failures",
    "dropped_records",
    "skipped_lines",
    "read_failures",
    "report_failures",
)


class TelemetryDiagnostics:
    """Thread-safe counters for silent data loss and degraded reads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts = dict.fromkeys(_COUNTERS, 0)

    def _increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counts[name] += amount

    def record_write_failure(self, error: BaseException, target: str) -> None:
        self._increment("write_failures")
        logger.with_fields(target=target, error=str(error)).error(
            "Failed to persist metric record"
        )

    def record_dropped(self, reason: str) -> None:
        self._increment("dropped_records")
        logger.with_fields(reason=reason).warning("Dropped metric record")

    def record_skipped_lines(self, count: int, source: str) -> None:
        if count <= 0:
            return
        self._increment("skipped_lines", count)
        logger.with_fields(source=source, count=count).debug(
            "Skipped malformed log lines"
        )

    def record_read_failure(self, error: BaseException, source: str) -> None:
        self._increment("read_failures")
        logger.with_fields(source=source, error=str(error)).warning(
            "Metric log unavailable, treating as no data"
        )

    def record_report_failure(self) -> None:
        self._increment("report_failures")

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    @property
    def write_failures(self) -> int:
        return self.get("write_failures")

    @property
    def dropped_records(self) -> int:
        return self.get("dropped_records")

    @property
    def skipped_lines(self) -> int:
        return self.get("skipped_lines")

    @property
    def read_failures(self) -> int:
        return self.get("read_failures")

    @property
    def report_failures(self) -> int:
        return self.get("report_failures")

    def snapshot(self) -> dict[str, int]:
        """Return a copy of all counters."""
        with self._lock:
            return dict(self._counts)
