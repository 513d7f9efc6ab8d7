"""Shared SQLite database handle for the record storage adapter.

One RecordDatabase serves both the sqlite3 connections used by the
background writer and the aiosqlite connections used from event loops.
In-memory databases are opened as a named shared-cache URI, so both kinds
of connection see the same rows while an anchor connection keeps the
database alive.
"""

import asyncio
import sqlite3
import threading
import uuid
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any

import aiosqlite

MEMORY = ":memory:"

# seconds a connection waits on a locked file before failing
BUSY_TIMEOUT = 5.0


class RecordDatabase:
    """Schema setup and connection access for one SQLite database.

    Args:
        db_path: Database file path or ":memory:".
        schema: Script run once before the first connection is handed out.
    """

    def __init__(self, db_path: str, schema: str) -> None:
        self._db_path = db_path
        self._schema = schema
        self._lock = threading.RLock()
        self._ready = False
        self._anchor: sqlite3.Connection | None = None
        if db_path == MEMORY:
            name = f"telemetripy-{uuid.uuid4().hex}"
            self._target = f"file:{name}?mode=memory&cache=shared"
            self._connect_kwargs: dict[str, Any] = {"uri": True}
        else:
            self._target = db_path
            self._connect_kwargs = {}

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def in_memory(self) -> bool:
        return self._db_path == MEMORY

    def _open(self) -> sqlite3.Connection:
        return sqlite3.connect(
            self._target,
            timeout=BUSY_TIMEOUT,
            check_same_thread=False,
            **self._connect_kwargs,
        )

    def ensure_schema(self) -> None:
        """Create the schema once. Safe to call from any thread.

        Raises:
            sqlite3.Error: The database cannot be opened or migrated.
            OSError: The parent directory of a database file cannot be created.
        """
        if self._ready:
            return
        with self._lock:
            if self._ready:
                return
            if self.in_memory:
                self._anchor = self._open()
                self._anchor.executescript(self._schema)
            else:
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
                conn = self._open()
                try:
                    conn.execute("PRAGMA journal_mode=WAL")
                    conn.executescript(self._schema)
                finally:
                    conn.close()
            self._ready = True

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a sqlite3 connection.

        The in-memory anchor is shared between threads, so it is handed out
        under the lock. File databases get a fresh connection per use.
        """
        self.ensure_schema()
        if self._anchor is not None:
            with self._lock:
                yield self._anchor
            return
        conn = self._open()
        try:
            yield conn
        finally:
            conn.close()

    @asynccontextmanager
    async def connect_async(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield an aiosqlite connection to the same database."""
        if not self._ready:
            await asyncio.to_thread(self.ensure_schema)
        async with aiosqlite.connect(
            self._target, timeout=BUSY_TIMEOUT, **self._connect_kwargs
        ) as db:
            yield db

    def close(self) -> None:
        """Release the in-memory anchor. Its rows are gone afterwards."""
        with self._lock:
            if self._anchor is not None:
                self._anchor.close()
                self._anchor = None
                self._ready = False
