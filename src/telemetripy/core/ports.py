"""Port interfaces for record storage adapters.

These protocols define the contracts that storage adapters must implement.
The core domain depends only on these interfaces, not concrete implementations.
"""

from typing import Protocol, runtime_checkable

from telemetripy.core.models import MetricRecord


@runtime_checkable
class RecordSinkPort(Protocol):
    """Port for appending metric records.

    Adapters must never raise from append; failures are counted and logged.
    Examples: JsonLinesRecordLog, SQLiteRecordStorage, RingBufferRecordStorage.
    """

    def append(self, record: MetricRecord) -> None:
        """Append a record to storage."""
        ...


@runtime_checkable
class RecordSourcePort(Protocol):
    """Port for reading historical metric records."""

    @property
    def source_name(self) -> str:
        """Short name of the backing store (e.g. "file", "memory")."""
        ...

    def read(
        self,
        limit: int,
        start: float | None = None,
        end: float | None = None,
    ) -> list[MetricRecord]:
        """Read the most recent records within a time window.

        Args:
            limit: Maximum number of stored entries to scan, newest first.
            start: Unix timestamp. Only records with timestamp >= start.
            end: Unix timestamp. Only records with timestamp <= end.

        Returns:
            Records ordered by timestamp ascending. Empty when no data is
            available.
        """
        ...
