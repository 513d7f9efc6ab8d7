"""Reporting facade: performance statistics for the last N days.

The reporter reads a bounded window of records from a RecordSourcePort,
runs every aggregation over it and attaches live process information.
Reads are capped at ``max_scan_lines`` newest entries, so on very large
logs older records inside the window are not counted.

Telemetry faults never reach the caller: if reading or aggregation fails
the reporter logs the error and returns an empty report.
"""

import dataclasses
import time
from collections.abc import Callable, Sequence

from telemetripy.config import TelemetrySettings
from telemetripy.core import aggregation
from telemetripy.core.diagnostics import TelemetryDiagnostics
from telemetripy.core.logs import log_exception
from telemetripy.core.models import (
    MetricRecord,
    PerformanceReport,
    PerformanceSummary,
    PersistenceInfo,
    SystemInfo,
)
from telemetripy.core.ports import RecordSourcePort
from telemetripy.core.system import collect_system_info, cpu_count

SECONDS_PER_DAY = 24 * 60 * 60


def _period_label(days: int) -> str:
    return f"{days} day" if days == 1 else f"{days} days"


class PerformanceReporter:
    """Builds PerformanceReport objects from a record source.

    Args:
        source: Where records are read from.
        settings: Thresholds and limits. Defaults to TelemetrySettings().
        diagnostics: Counters whose snapshot is embedded in every report.
        clock: Returns the current Unix time; injectable for tests.
        system_info: Returns live process information.
    """

    def __init__(
        self,
        source: RecordSourcePort,
        settings: TelemetrySettings | None = None,
        diagnostics: TelemetryDiagnostics | None = None,
        clock: Callable[[], float] = time.time,
        system_info: Callable[[], SystemInfo] = collect_system_info,
    ) -> None:
        self._source = source
        self._settings = settings or TelemetrySettings()
        self._diagnostics = diagnostics or TelemetryDiagnostics()
        self._clock = clock
        self._system_info = system_info

    @property
    def settings(self) -> TelemetrySettings:
        return self._settings

    @property
    def source(self) -> RecordSourcePort:
        return self._source

    def build_report(self, days: int | None = None) -> PerformanceReport:
        """Build statistics for the window ``[now - days, now]``.

        Args:
            days: Window length in days, >= 1. Defaults to settings.default_days.

        Raises:
            ValueError: If days is not a positive integer.
        """
        if days is None:
            days = self._settings.default_days
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise ValueError(f"days must be a positive integer, got {days!r}")

        end = self._clock()
        start = end - days * SECONDS_PER_DAY
        persistence = PersistenceInfo(
            data_source=self._source.source_name,
            period=_period_label(days),
            scan_limit=self._settings.max_scan_lines,
            log_path=self._log_path(),
        )

        try:
            records = self._source.read(
                self._settings.max_scan_lines, start=start, end=end
            )
            report = self._aggregate(records, persistence)
        except Exception:
            self._diagnostics.record_report_failure()
            log_exception("Failed to build performance report", days=days)
            records = []
            report = self.empty_report(persistence)

        system_info = self._collect_system_info(records, days * SECONDS_PER_DAY)
        return dataclasses.replace(
            report,
            system_info=system_info,
            diagnostics=self._diagnostics.snapshot(),
        )

    def _log_path(self) -> str | None:
        path = getattr(self._source, "path", None)
        return str(path) if path is not None else None

    def _aggregate(
        self, records: Sequence[MetricRecord], persistence: PersistenceInfo
    ) -> PerformanceReport:
        s = self._settings
        limit = s.ranking_limit
        return PerformanceReport(
            summary=aggregation.summarize(
                records,
                slow_threshold_ms=s.slow_threshold_ms,
                very_slow_threshold_ms=s.very_slow_threshold_ms,
            ),
            slowest_requests=aggregation.slowest_requests(records, limit),
            error_details=aggregation.error_details(records, limit),
            status_code_distribution=aggregation.status_code_distribution(records),
            top_endpoints=aggregation.top_endpoints(records, limit),
            top_endpoints_by_avg_time=aggregation.top_endpoints_by_avg_time(
                records, limit
            ),
            error_rate_by_endpoint=aggregation.error_rate_by_endpoint(
                records, limit, min_samples=s.min_samples_for_error_rate
            ),
            persistence=persistence,
        )

    @staticmethod
    def empty_report(persistence: PersistenceInfo) -> PerformanceReport:
        """A zeroed report for when no statistics can be produced."""
        return PerformanceReport(
            summary=PerformanceSummary(),
            slowest_requests=[],
            error_details=[],
            status_code_distribution={},
            top_endpoints=[],
            top_endpoints_by_avg_time=[],
            error_rate_by_endpoint=[],
            persistence=persistence,
        )

    def _collect_system_info(
        self, records: Sequence[MetricRecord], window_seconds: float
    ) -> SystemInfo | None:
        try:
            info = self._system_info()
            window_cpu = (
                aggregation.window_cpu_seconds(records) / window_seconds / cpu_count()
            )
        except Exception:
            log_exception("Failed to collect system info")
            return None
        return dataclasses.replace(info, window_cpu_utilization=window_cpu)
