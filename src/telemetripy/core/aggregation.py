"""Aggregation functions deriving statistics from metric records.

All functions are pure and accept any sequence of records, including an
empty one, for which they return zeroed or empty results.

Percentages are rounded half-up to two decimals and duration averages
half-up to whole milliseconds. Rounding is done on exact fractions so
results do not depend on binary floating point artifacts.
"""

import math
from collections import Counter
from collections.abc import Sequence
from fractions import Fraction

from telemetripy.core.models import (
    EndpointErrorRate,
    EndpointLatency,
    EndpointVolume,
    ErrorDetail,
    MetricRecord,
    PerformanceSummary,
    SlowRequest,
)

DEFAULT_SLOW_THRESHOLD_MS = 1000
DEFAULT_VERY_SLOW_THRESHOLD_MS = 3000
DEFAULT_MIN_SAMPLES_FOR_ERROR_RATE = 5
DEFAULT_RANKING_LIMIT = 10


def round_half_up(value: Fraction, places: int = 0) -> Fraction:
    """Round a fraction to ``places`` decimals, halves away from zero."""
    scale = 10**places
    scaled = abs(value) * scale
    rounded = Fraction(math.floor(scaled + Fraction(1, 2)), scale)
    return rounded if value >= 0 else -rounded


def percentage(part: int, total: int) -> float:
    """Return part/total as a percentage rounded half-up to two decimals."""
    if total == 0:
        return 0.0
    return float(round_half_up(Fraction(part * 100, total), 2))


def average_ms(total_ms: int, count: int) -> int:
    """Return the mean duration rounded half-up to whole milliseconds."""
    if count == 0:
        return 0
    return int(round_half_up(Fraction(total_ms, count)))


def summarize(
    records: Sequence[MetricRecord],
    slow_threshold_ms: int = DEFAULT_SLOW_THRESHOLD_MS,
    very_slow_threshold_ms: int = DEFAULT_VERY_SLOW_THRESHOLD_MS,
) -> PerformanceSummary:
    """Compute overall counts, average latency and rates.

    A request is slow when its duration is strictly greater than the
    threshold. The error rate counts status codes >= 400.
    """
    total = len(records)
    if total == 0:
        return PerformanceSummary()

    total_duration = sum(r.duration_ms for r in records)
    slow = sum(1 for r in records if r.duration_ms > slow_threshold_ms)
    very_slow = sum(1 for r in records if r.duration_ms > very_slow_threshold_ms)
    errors = sum(1 for r in records if r.is_error)

    return PerformanceSummary(
        total_requests=total,
        average_response_time=average_ms(total_duration, total),
        slow_requests=slow,
        very_slow_requests=very_slow,
        error_rate=percentage(errors, total),
        slow_requests_percentage=percentage(slow, total),
        very_slow_requests_percentage=percentage(very_slow, total),
    )


def slowest_requests(
    records: Sequence[MetricRecord], limit: int = DEFAULT_RANKING_LIMIT
) -> list[SlowRequest]:
    """Return the top ``limit`` records by duration, descending.

    The sort is stable so equal durations keep arrival order.
    """
    ranked = sorted(records, key=lambda r: r.duration_ms, reverse=True)
    return [
        SlowRequest(
            method=r.method,
            path=r.path,
            duration_ms=r.duration_ms,
            status_code=r.status_code,
            timestamp=r.timestamp,
        )
        for r in ranked[: max(limit, 0)]
    ]


def status_code_distribution(records: Sequence[MetricRecord]) -> dict[str, int]:
    """Histogram of exact status codes keyed by their string form."""
    counts = Counter(str(r.status_code) for r in records)
    return dict(sorted(counts.items()))


def _group_by_endpoint(
    records: Sequence[MetricRecord],
) -> dict[tuple[str, str], list[MetricRecord]]:
    groups: dict[tuple[str, str], list[MetricRecord]] = {}
    for record in records:
        groups.setdefault(record.endpoint, []).append(record)
    return groups


def top_endpoints(
    records: Sequence[MetricRecord], limit: int = DEFAULT_RANKING_LIMIT
) -> list[EndpointVolume]:
    """Rank (method, path) groups by request count, descending."""
    counts = Counter(r.endpoint for r in records)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        EndpointVolume(method=method, path=path, count=count)
        for (method, path), count in ranked[: max(limit, 0)]
    ]


def top_endpoints_by_avg_time(
    records: Sequence[MetricRecord], limit: int = DEFAULT_RANKING_LIMIT
) -> list[EndpointLatency]:
    """Rank (method, path) groups by average duration, descending."""
    rows = [
        EndpointLatency(
            method=method,
            path=path,
            avg_duration_ms=average_ms(sum(r.duration_ms for r in group), len(group)),
            count=len(group),
        )
        for (method, path), group in _group_by_endpoint(records).items()
    ]
    rows.sort(key=lambda row: (-row.avg_duration_ms, row.method, row.path))
    return rows[: max(limit, 0)]


def error_rate_by_endpoint(
    records: Sequence[MetricRecord],
    limit: int = DEFAULT_RANKING_LIMIT,
    min_samples: int = DEFAULT_MIN_SAMPLES_FOR_ERROR_RATE,
) -> list[EndpointErrorRate]:
    """Rank (method, path) groups by error percentage, descending.

    Groups with fewer than ``min_samples`` requests are left out.
    """
    rows = []
    for (method, path), group in _group_by_endpoint(records).items():
        total = len(group)
        if total < min_samples:
            continue
        errors = sum(1 for r in group if r.is_error)
        rows.append(
            EndpointErrorRate(
                method=method,
                path=path,
                error_rate=percentage(errors, total),
                total=total,
                errors=errors,
            )
        )
    rows.sort(key=lambda row: (-row.error_rate, row.method, row.path))
    return rows[: max(limit, 0)]


def error_details(
    records: Sequence[MetricRecord], limit: int = DEFAULT_RANKING_LIMIT
) -> list[ErrorDetail]:
    """Count error responses grouped by method, path and status code."""
    counts = Counter(
        (r.method, r.path, r.status_code) for r in records if r.is_error
    )
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        ErrorDetail(method=method, path=path, status_code=status, count=count)
        for (method, path, status), count in ranked[: max(limit, 0)]
    ]


def window_cpu_seconds(records: Sequence[MetricRecord]) -> float:
    """Total CPU seconds recorded by requests that carry CPU usage."""
    micros = sum(
        r.cpu_usage.user_micros + r.cpu_usage.system_micros
        for r in records
        if r.cpu_usage is not None
    )
    return micros / 1_000_000
