"""SQLite storage adapter for metric records.

Each record is stored as its NDJSON line next to an indexed timestamp, so
reads go through the same tolerant decoder as the file log.
"""

import sqlite3

from telemetripy.adapters.storage.sqlite_base import RecordDatabase
from telemetripy.core.diagnostics import TelemetryDiagnostics
from telemetripy.core.encoding.ndjson import decode_line, encode_record
from telemetripy.core.models import MetricRecord, RecordScan, SkippedLine

_RECORDS_SCHEMA = """
CREATE TABLE IF NOT EXISTS request_metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp REAL NOT NULL,
    line TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_request_metrics_timestamp
    ON request_metrics(timestamp);
"""

_INSERT_RECORD = """
INSERT INTO request_metrics (timestamp, line) VALUES (?, ?)
"""

# newest rows first; the scan limit bounds rows read, not rows returned
_SELECT_RECENT = """
SELECT line FROM request_metrics ORDER BY id DESC LIMIT ?
"""

_COUNT_RECORDS = """
SELECT COUNT(*) FROM request_metrics
"""


def _scan_rows(
    lines: list[str], start: float | None, end: float | None
) -> RecordScan:
    records: list[MetricRecord] = []
    skipped: list[SkippedLine] = []
    for number, line in enumerate(lines, start=1):
        outcome = decode_line(line, line_number=number)
        if isinstance(outcome, SkippedLine):
            skipped.append(outcome)
            continue
        record = outcome.record
        if start is not None and record.timestamp < start:
            continue
        if end is not None and record.timestamp > end:
            continue
        records.append(record)
    records.reverse()
    records.sort(key=lambda r: r.timestamp)
    return RecordScan(records=records, skipped=skipped)


class SQLiteRecordStorage:
    """SQLite implementation of RecordSinkPort and RecordSourcePort.

    Sync methods (append, read, scan, count) use the standard sqlite3 module
    and are what the background writer and the reporter call. Async
    variants (append_async, read_async, count_async) use aiosqlite for
    callers running on an event loop. Both see the same rows, including for
    ":memory:" databases.

    Args:
        db_path: SQLite database path or ":memory:".
        diagnostics: Counters for write and read failures.
    """

    source_name = "sqlite"

    def __init__(
        self,
        db_path: str,
        diagnostics: TelemetryDiagnostics | None = None,
    ) -> None:
        self._db_path = db_path
        self._diagnostics = diagnostics or TelemetryDiagnostics()
        self._db = RecordDatabase(db_path, _RECORDS_SCHEMA)

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def diagnostics(self) -> TelemetryDiagnostics:
        return self._diagnostics

    def append(self, record: MetricRecord) -> None:
        """Insert one record. Never raises on database errors."""
        try:
            with self._db.connect() as conn, conn:
                conn.execute(_INSERT_RECORD, (record.timestamp, encode_record(record)))
        except (sqlite3.Error, OSError, UnicodeError) as e:
            self._diagnostics.record_write_failure(e, target=self._db_path)

    def scan(
        self,
        limit: int,
        start: float | None = None,
        end: float | None = None,
    ) -> RecordScan:
        """Scan the newest ``limit`` rows and keep track of skipped ones.

        Raises:
            sqlite3.Error: If the database cannot be read.
            OSError: If the database directory cannot be created.
        """
        if limit <= 0:
            return RecordScan()
        with self._db.connect() as conn:
            lines = [row[0] for row in conn.execute(_SELECT_RECENT, (limit,))]
        return _scan_rows(lines, start, end)

    def read(
        self,
        limit: int,
        start: float | None = None,
        end: float | None = None,
    ) -> list[MetricRecord]:
        """Read records in a window, oldest first. Empty on database errors."""
        try:
            result = self.scan(limit, start=start, end=end)
        except (sqlite3.Error, OSError) as e:
            self._diagnostics.record_read_failure(e, source=self._db_path)
            return []
        self._diagnostics.record_skipped_lines(result.skipped_count, self._db_path)
        return result.records

    def count(self) -> int:
        """Return the number of stored rows."""
        with self._db.connect() as conn:
            row = conn.execute(_COUNT_RECORDS).fetchone()
            return row[0] if row else 0

    # --- Async methods ---

    async def append_async(self, record: MetricRecord) -> None:
        """Insert one record from async code. Never raises on database errors."""
        try:
            async with self._db.connect_async() as db:
                await db.execute(
                    _INSERT_RECORD, (record.timestamp, encode_record(record))
                )
                await db.commit()
        except (sqlite3.Error, OSError, UnicodeError) as e:
            self._diagnostics.record_write_failure(e, target=self._db_path)

    async def read_async(
        self,
        limit: int,
        start: float | None = None,
        end: float | None = None,
    ) -> list[MetricRecord]:
        """Async counterpart of read()."""
        if limit <= 0:
            return []
        try:
            async with self._db.connect_async() as db:
                async with db.execute(_SELECT_RECENT, (limit,)) as cursor:
                    lines = [row[0] async for row in cursor]
        except (sqlite3.Error, OSError) as e:
            self._diagnostics.record_read_failure(e, source=self._db_path)
            return []
        result = _scan_rows(lines, start, end)
        self._diagnostics.record_skipped_lines(result.skipped_count, self._db_path)
        return result.records

    async def count_async(self) -> int:
        """Return the number of stored rows."""
        async with self._db.connect_async() as db:
            async with db.execute(_COUNT_RECORDS) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    def close(self) -> None:
        """Release a ':memory:' database. File databases hold no open connection."""
        self._db.close()
