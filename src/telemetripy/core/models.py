"""Core domain models for request performance telemetry."""

import math
from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class MemorySnapshot:
    """Process memory usage at a point in time.

    Attributes:
        heap_used: Private resident memory in bytes.
        heap_total: Virtual memory size in bytes.
        external: Shared resident memory in bytes.
        rss: Resident set size in bytes.
    """

    heap_used: int
    heap_total: int
    external: int
    rss: int

    def __post_init__(self) -> None:
        for name in ("heap_used", "heap_total", "external", "rss"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")


@dataclass(frozen=True)
class CpuUsage:
    """CPU time consumed while serving a request, in microseconds."""

    user_micros: int
    system_micros: int

    def __post_init__(self) -> None:
        if self.user_micros < 0 or self.system_micros < 0:
            raise ValueError("cpu usage deltas must be non-negative")


@dataclass(frozen=True)
class MetricRecord:
    """One immutable observation of a completed request.

    Attributes:
        method: HTTP verb.
        path: Request path without query string.
        duration_ms: Wall-clock duration from request start to response flush.
        status_code: HTTP status code (100-599).
        timestamp: Unix timestamp in seconds of request completion.
        user_agent: User-Agent header, if any.
        client_ip: Client address, if known.
        memory_usage: Memory snapshot taken when the request finished.
        cpu_usage: CPU time deltas over the request lifetime.
        memory_delta: Change of heap_used over the request lifetime.
    """

    method: str
    path: str
    duration_ms: int
    status_code: int
    timestamp: float
    user_agent: str | None = None
    client_ip: str | None = None
    memory_usage: MemorySnapshot | None = None
    cpu_usage: CpuUsage | None = None
    memory_delta: int | None = None

    def __post_init__(self) -> None:
        if not self.method:
            raise ValueError("method is required")
        if not self.path:
            raise ValueError("path is required")
        if self.duration_ms < 0:
            raise ValueError("duration_ms must be non-negative")
        if not 100 <= self.status_code <= 599:
            raise ValueError(f"invalid HTTP status code: {self.status_code}")
        if not math.isfinite(self.timestamp):
            raise ValueError(f"timestamp must be finite, got {self.timestamp}")

    @property
    def endpoint(self) -> tuple[str, str]:
        """Grouping key (method, path)."""
        return (self.method, self.path)

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400


@dataclass(frozen=True)
class ParsedLine:
    """A log line that decoded into a record."""

    record: MetricRecord


@dataclass(frozen=True)
class SkippedLine:
    """A log line that could not be decoded.

    Attributes:
        line_number: Position of the line counted from the end of the scan.
        reason: Why the line was skipped.
    """

    line_number: int
    reason: str


LineOutcome = ParsedLine | SkippedLine


@dataclass(frozen=True)
class RecordScan:
    """Result of scanning a record source, including skipped lines."""

    records: list[MetricRecord] = field(default_factory=list)
    skipped: list[SkippedLine] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


@dataclass(frozen=True)
class PerformanceSummary:
    """Overall statistics for a set of records."""

    total_requests: int = 0
    average_response_time: int = 0
    slow_requests: int = 0
    very_slow_requests: int = 0
    error_rate: float = 0.0
    slow_requests_percentage: float = 0.0
    very_slow_requests_percentage: float = 0.0


@dataclass(frozen=True)
class SlowRequest:
    method: str
    path: str
    duration_ms: int
    status_code: int
    timestamp: float


@dataclass(frozen=True)
class EndpointVolume:
    method: str
    path: str
    count: int


@dataclass(frozen=True)
class EndpointLatency:
    method: str
    path: str
    avg_duration_ms: int
    count: int


@dataclass(frozen=True)
class EndpointErrorRate:
    method: str
    path: str
    error_rate: float
    total: int
    errors: int


@dataclass(frozen=True)
class ErrorDetail:
    method: str
    path: str
    status_code: int
    count: int


@dataclass(frozen=True)
class SystemInfo:
    """Live process metadata attached to a report.

    Attributes:
        python_version: Interpreter version string.
        platform: Platform identifier (sys.platform).
        pid: Process id.
        uptime_seconds: Whole seconds since the process started.
        memory: Current memory snapshot, if available.
        cpu_utilization: Process CPU time / uptime / core count.
        window_cpu_utilization: CPU time recorded by requests in the report
            window / window length / core count.
    """

    python_version: str
    platform: str
    pid: int
    uptime_seconds: int
    memory: MemorySnapshot | None = None
    cpu_utilization: float | None = None
    window_cpu_utilization: float | None = None


@dataclass(frozen=True)
class PersistenceInfo:
    """Where the report data came from."""

    data_source: str
    period: str
    scan_limit: int
    log_path: str | None = None


@dataclass(frozen=True)
class PerformanceReport:
    """Composite statistics payload for one reporting window."""

    summary: PerformanceSummary
    slowest_requests: list[SlowRequest]
    error_details: list[ErrorDetail]
    status_code_distribution: dict[str, int]
    top_endpoints: list[EndpointVolume]
    top_endpoints_by_avg_time: list[EndpointLatency]
    error_rate_by_endpoint: list[EndpointErrorRate]
    persistence: PersistenceInfo
    system_info: SystemInfo | None = None
    diagnostics: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return asdict(self)
