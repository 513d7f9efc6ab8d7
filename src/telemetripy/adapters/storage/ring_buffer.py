"""Ring buffer storage adapter for recent metric records.

Provides bounded in-memory storage that automatically evicts the oldest
records when the buffer is full. Used as a fast cache of very recent
requests next to the durable log; it is never the system of record.
"""

import threading
from collections import deque

from telemetripy.adapters.storage.in_memory import select_window
from telemetripy.core.models import MetricRecord


class RingBufferRecordStorage:
    """Ring buffer implementation of RecordSinkPort and RecordSourcePort.

    Stores records in a fixed-size circular buffer. When the buffer is
    full, the oldest record is evicted to make room for the new one.

    Args:
        max_size: Maximum number of records to keep.
    """

    source_name = "recent"

    def __init__(self, max_size: int) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._buffer: deque[MetricRecord] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._buffer.maxlen or 0

    def append(self, record: MetricRecord) -> None:
        """Append a record, evicting the oldest one when full."""
        with self._lock:
            self._buffer.append(record)

    def read(
        self,
        limit: int,
        start: float | None = None,
        end: float | None = None,
    ) -> list[MetricRecord]:
        """Read the newest ``limit`` buffered records in the window."""
        with self._lock:
            snapshot = list(self._buffer)
        return select_window(snapshot, limit, start, end)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)
