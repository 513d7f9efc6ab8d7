"""Background writer that moves metric records off the request path.

Request handlers call submit(), which never blocks: the record is placed
on a bounded queue and a single worker thread appends it to every sink.
When the queue is full the incoming record is dropped and counted
(drop-newest), so sustained write pressure cannot grow memory or slow
down responses.
"""

import queue
import threading
import time
from collections.abc import Sequence

from telemetripy.core.diagnostics import TelemetryDiagnostics
from telemetripy.core.logs import get_logger, log_exception
from telemetripy.core.models import MetricRecord
from telemetripy.core.ports import RecordSinkPort

logger = get_logger(__name__)

DEFAULT_QUEUE_MAX_SIZE = 10_000

_STOP = object()


class BackgroundRecordWriter:
    """Single consumer thread feeding one or more record sinks.

    Example:
        ```python
        log = JsonLinesRecordLog("logs/performance.log")
        writer = BackgroundRecordWriter([log])
        writer.start()
        writer.submit(record)
        writer.stop()
        ```

    Args:
        sinks: Sinks every record is appended to, in order.
        max_queue_size: Pending records held before new ones are dropped.
        diagnostics: Counters for dropped records.
    """

    def __init__(
        self,
        sinks: Sequence[RecordSinkPort],
        max_queue_size: int = DEFAULT_QUEUE_MAX_SIZE,
        diagnostics: TelemetryDiagnostics | None = None,
    ) -> None:
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be at least 1")
        self._sinks = list(sinks)
        self._queue: queue.Queue[object] = queue.Queue(maxsize=max_queue_size)
        self._diagnostics = diagnostics or TelemetryDiagnostics()
        self._thread: threading.Thread | None = None
        self._state_lock = threading.Lock()
        self._stopping = False

    @property
    def diagnostics(self) -> TelemetryDiagnostics:
        return self._diagnostics

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def pending(self) -> int:
        """Approximate number of records waiting to be written."""
        return self._queue.qsize()

    def start(self) -> None:
        """Start the worker thread. Calling it on a running writer is a no-op."""
        with self._state_lock:
            if self.running:
                return
            self._stopping = False
            self._thread = threading.Thread(
                target=self._run, name="telemetripy-writer", daemon=True
            )
            self._thread.start()

    def submit(self, record: MetricRecord) -> bool:
        """Queue a record for writing without blocking.

        Starts the worker on first use.

        Returns:
            True if queued, False if dropped because the queue is full or
            the writer is stopping.
        """
        if self._stopping:
            self._diagnostics.record_dropped("writer stopped")
            return False
        if not self.running:
            self.start()
        try:
            self._queue.put_nowait(record)
        except queue.Full:
            self._diagnostics.record_dropped("queue full")
            return False
        return True

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until every queued record has been handed to the sinks.

        Returns:
            True if the queue drained, False on timeout.
        """
        if timeout is None:
            self._queue.join()
            return True
        deadline = time.monotonic() + timeout
        # same condition Queue.join waits on, with a deadline
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def stop(self, timeout: float | None = 5.0) -> None:
        """Write out pending records and stop the worker thread."""
        with self._state_lock:
            thread = self._thread
            if thread is None or not thread.is_alive():
                return
            self._stopping = True
        # blocking put: the stop marker must land after every pending record
        self._queue.put(_STOP)
        thread.join(timeout)
        if thread.is_alive():
            logger.with_fields(pending=self.pending).warning(
                "Record writer did not stop within timeout"
            )

    def _write(self, record: MetricRecord) -> None:
        for sink in self._sinks:
            try:
                sink.append(record)
            except Exception:
                log_exception(
                    "Record sink raised during append", sink=type(sink).__name__
                )

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._write(item)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()
