"""Append-only NDJSON file storage for metric records.

The file is the system of record. Writers append one complete line per
record with a single write on an O_APPEND descriptor, so concurrent
appends from threads or processes never interleave partial lines. Readers
scan backward from the end of the file, which bounds the cost of a read on
large logs. Rotation and retention are left to external tooling; the file
is reopened on every append so a rotated file is picked up.
"""

import os
import threading
from collections.abc import Iterator
from pathlib import Path

from telemetripy.core.diagnostics import TelemetryDiagnostics
from telemetripy.core.encoding.ndjson import decode_line, encode_record
from telemetripy.core.models import (
    MetricRecord,
    ParsedLine,
    RecordScan,
    SkippedLine,
)

_BLOCK_SIZE = 64 * 1024
_OPEN_FLAGS = os.O_WRONLY | os.O_APPEND | os.O_CREAT


def _tail_lines(path: Path, limit: int, block_size: int = _BLOCK_SIZE) -> list[bytes]:
    """Return up to ``limit`` non-empty lines from the end of a file.

    Lines are returned newest first. A final line without a trailing newline
    is included as-is.
    """
    lines: list[bytes] = []
    if limit <= 0:
        return lines
    with path.open("rb") as f:
        f.seek(0, os.SEEK_END)
        position = f.tell()
        remainder = b""
        while position > 0 and len(lines) < limit:
            read_size = min(block_size, position)
            position -= read_size
            f.seek(position)
            chunk = f.read(read_size) + remainder
            parts = chunk.split(b"\n")
            # parts[0] may be cut mid-line unless we reached the file start
            remainder = parts[0]
            for part in reversed(parts[1:]):
                if part.strip():
                    lines.append(part)
                    if len(lines) >= limit:
                        break
        if position == 0 and len(lines) < limit and remainder.strip():
            lines.append(remainder)
    return lines


def _within(record: MetricRecord, start: float | None, end: float | None) -> bool:
    if start is not None and record.timestamp < start:
        return False
    if end is not None and record.timestamp > end:
        return False
    return True


class JsonLinesRecordLog:
    """NDJSON file implementation of RecordSinkPort and RecordSourcePort.

    Args:
        path: Location of the log file. Parent directories are created on the
            first append.
        diagnostics: Counters for write failures and skipped lines. A private
            instance is used when omitted.
    """

    source_name = "file"

    def __init__(
        self,
        path: str | Path,
        diagnostics: TelemetryDiagnostics | None = None,
    ) -> None:
        self._path = Path(path)
        self._diagnostics = diagnostics or TelemetryDiagnostics()
        self._write_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def diagnostics(self) -> TelemetryDiagnostics:
        return self._diagnostics

    def append(self, record: MetricRecord) -> None:
        """Append one record as a single line. Never raises on I/O errors."""
        try:
            data = encode_record(record).encode("utf-8")
            with self._write_lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd = os.open(self._path, _OPEN_FLAGS, 0o644)
                try:
                    os.write(fd, data)
                finally:
                    os.close(fd)
        except (OSError, UnicodeError) as e:
            self._diagnostics.record_write_failure(e, target=str(self._path))

    def _outcomes(self, limit: int) -> Iterator[ParsedLine | SkippedLine]:
        for number, raw in enumerate(_tail_lines(self._path, limit), start=1):
            yield decode_line(raw.decode("utf-8", errors="replace"), line_number=number)

    def scan(
        self,
        limit: int,
        start: float | None = None,
        end: float | None = None,
    ) -> RecordScan:
        """Scan the newest ``limit`` lines and keep track of skipped ones.

        Raises:
            OSError: If the file exists but cannot be read.
        """
        if not self._path.exists():
            return RecordScan()
        records: list[MetricRecord] = []
        skipped: list[SkippedLine] = []
        for outcome in self._outcomes(limit):
            if isinstance(outcome, SkippedLine):
                skipped.append(outcome)
            elif _within(outcome.record, start, end):
                records.append(outcome.record)
        # scanned newest first; reverse to arrival order before sorting so
        # equal timestamps keep their physical order
        records.reverse()
        records.sort(key=lambda r: r.timestamp)
        return RecordScan(records=records, skipped=skipped)

    def read(
        self,
        limit: int,
        start: float | None = None,
        end: float | None = None,
    ) -> list[MetricRecord]:
        """Read records in a window, oldest first.

        A missing or unreadable file yields an empty list.
        """
        try:
            result = self.scan(limit, start=start, end=end)
        except OSError as e:
            self._diagnostics.record_read_failure(e, source=str(self._path))
            return []
        self._diagnostics.record_skipped_lines(
            result.skipped_count, source=str(self._path)
        )
        return result.records
