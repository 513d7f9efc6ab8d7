"""NDJSON codec for metric records.

Each record is one JSON object on its own line. Field names are shared only
between the sinks and readers of this package.
"""

import json
from collections.abc import Iterable
from typing import Any

from telemetripy.core.models import (
    CpuUsage,
    LineOutcome,
    MemorySnapshot,
    MetricRecord,
    ParsedLine,
    SkippedLine,
)


def record_to_dict(record: MetricRecord) -> dict[str, Any]:
    """Convert a record to its log-line dict, omitting absent optional fields."""
    obj: dict[str, Any] = {
        "timestamp": record.timestamp,
        "method": record.method,
        "path": record.path,
        "duration_ms": record.duration_ms,
        "status_code": record.status_code,
    }
    if record.user_agent is not None:
        obj["user_agent"] = record.user_agent
    if record.client_ip is not None:
        obj["client_ip"] = record.client_ip
    if record.memory_usage is not None:
        mem = record.memory_usage
        obj["memory_usage"] = {
            "heap_used": mem.heap_used,
            "heap_total": mem.heap_total,
            "external": mem.external,
            "rss": mem.rss,
        }
    if record.cpu_usage is not None:
        obj["cpu_usage"] = {
            "user_micros": record.cpu_usage.user_micros,
            "system_micros": record.cpu_usage.system_micros,
        }
    if record.memory_delta is not None:
        obj["memory_delta"] = record.memory_delta
    return obj


def encode_record(record: MetricRecord) -> str:
    """Encode a record as a single newline-terminated JSON line."""
    return json.dumps(record_to_dict(record), ensure_ascii=False) + "\n"


def encode_records(records: Iterable[MetricRecord]) -> str:
    """Encode records to newline-delimited JSON.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no records.
    """
    return "".join(encode_record(record) for record in records)


def _require_int(obj: dict[str, Any], key: str) -> int:
    value = obj[key]
    # bool is an int subclass and never a valid measurement
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{key} must be an integer")
    return value


def _optional_str(obj: dict[str, Any], key: str) -> str | None:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string")
    return value


def record_from_dict(obj: dict[str, Any]) -> MetricRecord:
    """Build a record from a decoded log-line dict.

    Raises:
        KeyError: A required field is missing.
        TypeError: A field has the wrong type.
        ValueError: A field violates a record invariant.
    """
    method = obj["method"]
    path = obj["path"]
    if not isinstance(method, str) or not isinstance(path, str):
        raise TypeError("method and path must be strings")
    timestamp = obj["timestamp"]
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        raise TypeError("timestamp must be a number")

    memory_usage = None
    if obj.get("memory_usage") is not None:
        mem = obj["memory_usage"]
        memory_usage = MemorySnapshot(
            heap_used=_require_int(mem, "heap_used"),
            heap_total=_require_int(mem, "heap_total"),
            external=_require_int(mem, "external"),
            rss=_require_int(mem, "rss"),
        )
    cpu_usage = None
    if obj.get("cpu_usage") is not None:
        cpu = obj["cpu_usage"]
        cpu_usage = CpuUsage(
            user_micros=_require_int(cpu, "user_micros"),
            system_micros=_require_int(cpu, "system_micros"),
        )
    memory_delta = None
    if obj.get("memory_delta") is not None:
        memory_delta = _require_int(obj, "memory_delta")

    return MetricRecord(
        method=method,
        path=path,
        duration_ms=_require_int(obj, "duration_ms"),
        status_code=_require_int(obj, "status_code"),
        timestamp=float(timestamp),
        user_agent=_optional_str(obj, "user_agent"),
        client_ip=_optional_str(obj, "client_ip"),
        memory_usage=memory_usage,
        cpu_usage=cpu_usage,
        memory_delta=memory_delta,
    )


def decode_line(line: str, line_number: int = 0) -> LineOutcome:
    """Decode one log line into a tagged outcome.

    Never raises: malformed JSON, non-object values, missing fields and
    invariant violations all produce a SkippedLine.

    Args:
        line: Raw line, with or without trailing newline.
        line_number: Position used in the SkippedLine for diagnostics.
    """
    try:
        obj = json.loads(line)
    except json.JSONDecodeError as e:
        return SkippedLine(line_number=line_number, reason=f"invalid json: {e.msg}")
    except (ValueError, RecursionError) as e:
        # oversized integer literals and deeply nested arrays
        return SkippedLine(line_number=line_number, reason=f"invalid json: {e}")
    if not isinstance(obj, dict):
        return SkippedLine(line_number=line_number, reason="not a json object")
    try:
        return ParsedLine(record=record_from_dict(obj))
    except KeyError as e:
        return SkippedLine(line_number=line_number, reason=f"missing field: {e}")
    except (TypeError, ValueError, OverflowError) as e:
        return SkippedLine(line_number=line_number, reason=str(e))
