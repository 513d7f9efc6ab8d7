"""In-memory storage adapter for metric records."""

import threading

from telemetripy.core.models import MetricRecord


def select_window(
    records: list[MetricRecord],
    limit: int,
    start: float | None,
    end: float | None,
) -> list[MetricRecord]:
    """Apply the RecordSourcePort read contract to records in arrival order."""
    if limit <= 0:
        return []
    recent = records[-limit:]
    selected = [
        r
        for r in recent
        if (start is None or r.timestamp >= start)
        and (end is None or r.timestamp <= end)
    ]
    return sorted(selected, key=lambda r: r.timestamp)


class InMemoryRecordStorage:
    """In-memory implementation of RecordSinkPort and RecordSourcePort.

    Stores records in a list. Suitable for testing and short-lived
    processes where persistence is not required.
    """

    source_name = "memory"

    def __init__(self) -> None:
        self._records: list[MetricRecord] = []
        self._lock = threading.Lock()

    def append(self, record: MetricRecord) -> None:
        """Append a record to storage."""
        with self._lock:
            self._records.append(record)

    def read(
        self,
        limit: int,
        start: float | None = None,
        end: float | None = None,
    ) -> list[MetricRecord]:
        """Read the newest ``limit`` records in the window, oldest first."""
        with self._lock:
            snapshot = list(self._records)
        return select_window(snapshot, limit, start, end)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
