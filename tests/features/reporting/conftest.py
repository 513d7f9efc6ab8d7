"""BDD step definitions for performance report features."""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when

from telemetripy.adapters.storage.jsonl import JsonLinesRecordLog
from telemetripy.config import TelemetrySettings
from telemetripy.core.diagnostics import TelemetryDiagnostics
from telemetripy.core.models import PerformanceReport
from telemetripy.core.reporting import SECONDS_PER_DAY, PerformanceReporter
from tests.helpers import make_record


@dataclass
class ReportScenarioContext:
    """Shared state between steps in a report scenario."""

    log_path: Path | None = None
    settings: dict[str, Any] = field(default_factory=dict)
    diagnostics: TelemetryDiagnostics = field(default_factory=TelemetryDiagnostics)
    report: PerformanceReport | None = None

    @property
    def log(self) -> JsonLinesRecordLog:
        assert self.log_path is not None
        return JsonLinesRecordLog(self.log_path, self.diagnostics)


@pytest.fixture
def ctx() -> ReportScenarioContext:
    """Fresh scenario context for each test."""
    return ReportScenarioContext()


def _append_requests(ctx: ReportScenarioContext, count: int, newest: float) -> None:
    log = ctx.log
    for i in range(count):
        log.append(make_record(path=f"/p{i % 7}", timestamp=newest - count + i))


# === Given ===


@given("a performance log file")
def step_log_file(ctx: ReportScenarioContext, tmp_path: Path) -> None:
    ctx.log_path = tmp_path / "logs" / "performance.log"


@given("the log contains requests:")
def step_log_contains(
    ctx: ReportScenarioContext, datatable: list[list[str]]
) -> None:
    header, *rows = datatable
    log = ctx.log
    now = time.time()
    for row in rows:
        values = dict(zip(header, row, strict=True))
        log.append(
            make_record(
                method=values["method"],
                path=values["path"],
                status_code=int(values["status"]),
                duration_ms=int(values["duration_ms"]),
                timestamp=now - 60,
            )
        )


@given(parsers.parse("the log contains {count:d} requests from the last hour"))
def step_recent_requests(ctx: ReportScenarioContext, count: int) -> None:
    _append_requests(ctx, count, newest=time.time())


@given(parsers.parse("the log contains {count:d} requests from {days:d} days ago"))
def step_old_requests(ctx: ReportScenarioContext, count: int, days: int) -> None:
    _append_requests(ctx, count, newest=time.time() - days * SECONDS_PER_DAY)


@given(parsers.parse("the log ends with {count:d} malformed lines"))
def step_malformed_lines(ctx: ReportScenarioContext, count: int) -> None:
    assert ctx.log_path is not None
    with ctx.log_path.open("a", encoding="utf-8") as f:
        for i in range(count):
            f.write(f'{{"method": "GET", "truncated{i}\n')


@given(parsers.parse("the minimum sample count for error rates is {n:d}"))
def step_min_samples(ctx: ReportScenarioContext, n: int) -> None:
    ctx.settings["min_samples_for_error_rate"] = n


@given(parsers.parse("the ranking limit is {n:d}"))
def step_ranking_limit(ctx: ReportScenarioContext, n: int) -> None:
    ctx.settings["ranking_limit"] = n


@given(parsers.parse("the scan limit is {n:d}"))
def step_scan_limit(ctx: ReportScenarioContext, n: int) -> None:
    ctx.settings["max_scan_lines"] = n


# === When ===


@when(parsers.parse("the report for the last {days:d} days is requested"))
def step_request_report(ctx: ReportScenarioContext, days: int) -> None:
    settings = TelemetrySettings(
        _env_file=None, log_path=ctx.log_path, **ctx.settings
    )
    reporter = PerformanceReporter(
        ctx.log, settings=settings, diagnostics=ctx.diagnostics
    )
    ctx.report = reporter.build_report(days)


# === Then ===


def _report(ctx: ReportScenarioContext) -> PerformanceReport:
    assert ctx.report is not None
    return ctx.report


@then(parsers.parse('the error rate of "{method} {path}" is {rate:f}'))
def step_error_rate(
    ctx: ReportScenarioContext, method: str, path: str, rate: float
) -> None:
    rates = {
        (e.method, e.path): e.error_rate for e in _report(ctx).error_rate_by_endpoint
    }
    assert rates[(method, path)] == rate


@then(parsers.parse('the slowest request durations are "{durations}"'))
def step_slowest(ctx: ReportScenarioContext, durations: str) -> None:
    expected = [int(d) for d in durations.split(",")]
    assert [r.duration_ms for r in _report(ctx).slowest_requests] == expected


@then(parsers.parse("{n:d} request is counted as very slow"))
def step_very_slow(ctx: ReportScenarioContext, n: int) -> None:
    assert _report(ctx).summary.very_slow_requests == n


@then(parsers.parse("the report counts {n:d} requests"))
def step_total(ctx: ReportScenarioContext, n: int) -> None:
    assert _report(ctx).summary.total_requests == n


@then(parsers.parse("the average response time is {ms:d}"))
def step_average(ctx: ReportScenarioContext, ms: int) -> None:
    assert _report(ctx).summary.average_response_time == ms


@then(parsers.parse("the diagnostics show {n:d} skipped lines"))
def step_skipped(ctx: ReportScenarioContext, n: int) -> None:
    assert _report(ctx).diagnostics["skipped_lines"] == n
