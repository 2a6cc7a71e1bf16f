"""
kafka_avro.tier1_runtime.serialize
───────────────────────────────────
Untyped byte encoding for values with no schema: used by the permissive
produce path and by consumers when a message is not in the wire format.

Mappings and lists become JSON (record tag stripped), strings UTF-8, bytes
pass through, Pydantic models use their own JSON dump.
"""
from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel

from kafka_avro.tier1_runtime.subjects import strip_record_tag


def to_untyped_bytes(value: Any) -> bytes:
    """
    Serialize a value with no Avro schema.

    Usage:
        to_untyped_bytes({"id": 1})   # → b'{"id": 1}'
        to_untyped_bytes("key-1")     # → b'key-1'
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode()
    if isinstance(value, BaseModel):
        return value.model_dump_json().encode()
    return json.dumps(strip_record_tag(value), default=str).encode()


def from_untyped_bytes(data: bytes | None) -> Any:
    """Parse JSON when possible, else return the decoded text."""
    if data is None:
        return None
    text = bytes(data).decode(errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


__all__ = ["to_untyped_bytes", "from_untyped_bytes"]
