"""Encoders for metric records."""

from telemetripy.core.encoding.ndjson import (
    decode_line,
    encode_record,
    encode_records,
)

__all__ = ["decode_line", "encode_record", "encode_records"]
