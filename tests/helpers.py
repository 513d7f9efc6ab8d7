"""Record builders shared by unit, integration and BDD tests."""

from telemetripy.core.models import CpuUsage, MemorySnapshot, MetricRecord

BASE_TIME = 1_702_300_000.0
DAY = 24 * 60 * 60


def make_record(
    method: str = "GET",
    path: str = "/api/tickets",
    duration_ms: int = 100,
    status_code: int = 200,
    timestamp: float = BASE_TIME,
    **kwargs,
) -> MetricRecord:
    """Build a MetricRecord with sensible defaults."""
    return MetricRecord(
        method=method,
        path=path,
        duration_ms=duration_ms,
        status_code=status_code,
        timestamp=timestamp,
        **kwargs,
    )


def make_full_record(timestamp: float = BASE_TIME) -> MetricRecord:
    """Build a MetricRecord with every optional field populated."""
    return MetricRecord(
        method="POST",
        path="/api/tickets/42/replies",
        duration_ms=1234,
        status_code=201,
        timestamp=timestamp,
        user_agent="Mozilla/5.0 (X11; Linux x86_64) été",
        client_ip="10.0.0.7",
        memory_usage=MemorySnapshot(
            heap_used=52_428_800,
            heap_total=104_857_600,
            external=1_048_576,
            rss=60_000_000,
        ),
        cpu_usage=CpuUsage(user_micros=15_000, system_micros=2_500),
        memory_delta=-4096,
    )
