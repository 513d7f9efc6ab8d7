"""Per-request metric capture.

A RequestTimer is started when a request begins processing and finished
when its response is flushed. Memory and CPU figures come from psutil; if
a snapshot cannot be taken the corresponding optional fields are omitted
from the record.
"""

import os
import threading
import time
from dataclasses import dataclass, field

import psutil

from telemetripy.core.logs import get_logger
from telemetripy.core.models import CpuUsage, MemorySnapshot, MetricRecord

logger = get_logger(__name__)

_process: psutil.Process | None = None
_clock_lock = threading.Lock()
_last_timestamp = 0.0


def current_process() -> psutil.Process:
    global _process
    # re-create after fork so worker processes report their own figures
    if _process is None or _process.pid != os.getpid():
        _process = psutil.Process()
    return _process


def completion_timestamp() -> float:
    """Return time.time(), never earlier than a previously returned value."""
    global _last_timestamp
    with _clock_lock:
        _last_timestamp = max(time.time(), _last_timestamp)
        return _last_timestamp


def memory_snapshot() -> MemorySnapshot | None:
    """Take a memory snapshot of the current process.

    heap_used is resident memory not shared with other processes; on
    platforms without a shared figure it equals rss.
    """
    try:
        info = current_process().memory_info()
    except (psutil.Error, OSError):
        return None
    shared = getattr(info, "shared", 0)
    return MemorySnapshot(
        heap_used=max(info.rss - shared, 0),
        heap_total=info.vms,
        external=shared,
        rss=info.rss,
    )


def cpu_times_micros() -> tuple[int, int] | None:
    """Return (user, system) CPU time of the current process in microseconds."""
    try:
        times = current_process().cpu_times()
    except (psutil.Error, OSError):
        return None
    return round(times.user * 1_000_000), round(times.system * 1_000_000)


def normalize_path(raw_path: str) -> str:
    """Strip query string and fragment from a request target."""
    path = raw_path.split("?", 1)[0].split("#", 1)[0]
    return path or "/"


@dataclass
class RequestTimer:
    """Measures one request/response cycle and builds its MetricRecord.

    Attributes:
        method: HTTP verb.
        path: Normalized request path.
        user_agent: User-Agent header, if any.
        client_ip: Client address, if known.
    """

    method: str
    path: str
    user_agent: str | None = None
    client_ip: str | None = None
    _start: float = field(default=0.0, init=False, repr=False)
    _start_memory: MemorySnapshot | None = field(default=None, init=False, repr=False)
    _start_cpu: tuple[int, int] | None = field(default=None, init=False, repr=False)
    _finished: bool = field(default=False, init=False, repr=False)

    @classmethod
    def start(
        cls,
        method: str,
        path: str,
        user_agent: str | None = None,
        client_ip: str | None = None,
    ) -> "RequestTimer":
        """Begin timing a request."""
        timer = cls(
            method=method.upper(),
            path=normalize_path(path),
            user_agent=user_agent,
            client_ip=client_ip,
        )
        timer._start_memory = memory_snapshot()
        timer._start_cpu = cpu_times_micros()
        timer._start = time.perf_counter()
        return timer

    @property
    def finished(self) -> bool:
        return self._finished

    def finish(self, status_code: int) -> MetricRecord | None:
        """Complete the measurement.

        Returns:
            The record for this request, or None if the timer was already
            finished or the status code is not a valid HTTP status.
        """
        if self._finished:
            return None
        self._finished = True
        elapsed = time.perf_counter() - self._start
        duration_ms = max(round(elapsed * 1000), 0)

        end_memory = memory_snapshot()
        end_cpu = cpu_times_micros()

        cpu_usage = None
        if self._start_cpu is not None and end_cpu is not None:
            cpu_usage = CpuUsage(
                user_micros=max(end_cpu[0] - self._start_cpu[0], 0),
                system_micros=max(end_cpu[1] - self._start_cpu[1], 0),
            )
        memory_delta = None
        if self._start_memory is not None and end_memory is not None:
            memory_delta = end_memory.heap_used - self._start_memory.heap_used

        try:
            return MetricRecord(
                method=self.method,
                path=self.path,
                duration_ms=duration_ms,
                status_code=status_code,
                timestamp=completion_timestamp(),
                user_agent=self.user_agent,
                client_ip=self.client_ip,
                memory_usage=end_memory,
                cpu_usage=cpu_usage,
                memory_delta=memory_delta,
            )
        except ValueError as e:
            logger.with_fields(
                method=self.method, path=self.path, error=str(e)
            ).warning("Discarding invalid metric record")
            return None
