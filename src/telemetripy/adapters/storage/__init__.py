"""Storage adapters implementing core ports."""

from telemetripy.adapters.storage.in_memory import InMemoryRecordStorage
from telemetripy.adapters.storage.jsonl import JsonLinesRecordLog
from telemetripy.adapters.storage.ring_buffer import RingBufferRecordStorage
from telemetripy.adapters.storage.sqlite import SQLiteRecordStorage

__all__ = [
    "InMemoryRecordStorage",
    "JsonLinesRecordLog",
    "RingBufferRecordStorage",
    "SQLiteRecordStorage",
]
