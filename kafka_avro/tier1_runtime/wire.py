"""
kafka_avro.tier1_runtime.wire
──────────────────────────────
Confluent-compatible message envelope:

    [0x00][int32 big-endian schema id][Avro binary payload]

Encoding grows its buffer until the payload fits; decoding validates the
envelope, resolves the writer type by schema id and optionally resolves into
a reader type. The codec holds no state and never retries a failed decode.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, Callable

from kafka_avro.tier0_core.errors import (
    PayloadDecodeError,
    UnknownSchemaIdError,
    ValidationError,
    WireFormatError,
)
from kafka_avro.tier1_runtime.avro_types import AvroType

MAGIC_BYTE = 0
HEADER_SIZE = 5
DEFAULT_BUFFER_SIZE = 1024
MAX_SCHEMA_ID = 2**31 - 1

_SCHEMA_ID = struct.Struct(">i")

SchemaLookup = Callable[[int], AvroType | None]


@dataclass(frozen=True)
class DecodedMessage:
    value: Any
    schema_id: int


def encode(
    value: Any,
    avro_type: AvroType,
    schema_id: int,
    initial_buffer_size: int = DEFAULT_BUFFER_SIZE,
) -> bytes:
    """
    Encode ``value`` into a framed message for ``schema_id``.

    Set ``initial_buffer_size`` high enough to avoid resizing; undersized
    buffers are grown and the encode retried, so any size is correct.
    """
    if not isinstance(schema_id, int) or not 0 <= schema_id <= MAX_SCHEMA_ID:
        raise ValidationError(
            f"Schema id must be an int between 0 and {MAX_SCHEMA_ID}, got {schema_id!r}",
            schema_id=schema_id,
        )
    length = max(initial_buffer_size, HEADER_SIZE)
    while True:
        buf = bytearray(length)
        buf[0] = MAGIC_BYTE
        _SCHEMA_ID.pack_into(buf, 1, schema_id)

        pos = avro_type.encode(value, buf, HEADER_SIZE)
        if pos >= 0:
            return bytes(buf[:pos])
        length -= pos


def read_schema_id(data: bytes | bytearray | memoryview) -> int:
    """Validate the envelope of ``data`` and return its schema id."""
    if data is None or len(data) < HEADER_SIZE:
        raise WireFormatError(
            "Message is too short to contain a schema envelope",
            length=0 if data is None else len(data),
        )
    if data[0] != MAGIC_BYTE:
        raise WireFormatError(
            f"Unknown magic byte {data[0]:#04x}",
            magic_byte=data[0],
        )
    return _SCHEMA_ID.unpack_from(data, 1)[0]


def decode(
    data: bytes | bytearray | memoryview,
    lookup: SchemaLookup,
    fallback_writer_type: AvroType | None = None,
    reader_type: AvroType | None = None,
) -> DecodedMessage:
    """
    Decode a framed message.

    The writer type is ``lookup(schema_id)``, else ``fallback_writer_type``.
    With a ``reader_type`` the payload is resolved into the reader's shape:
    reader fields missing from the writer take their defaults.
    A corrupt body behind a valid envelope raises ``PayloadDecodeError``.
    """
    schema_id = read_schema_id(data)

    writer_type = lookup(schema_id)
    if writer_type is None:
        if fallback_writer_type is None:
            raise UnknownSchemaIdError(schema_id)
        writer_type = fallback_writer_type

    try:
        if reader_type is not None:
            value, _ = writer_type.create_resolver(reader_type).decode(data, HEADER_SIZE)
        else:
            value, _ = writer_type.decode(data, HEADER_SIZE)
    except PayloadDecodeError as exc:
        exc.schema_id = schema_id
        exc.metadata["schema_id"] = schema_id
        raise
    return DecodedMessage(value=value, schema_id=schema_id)


__all__ = [
    "MAGIC_BYTE",
    "HEADER_SIZE",
    "DEFAULT_BUFFER_SIZE",
    "MAX_SCHEMA_ID",
    "DecodedMessage",
    "SchemaLookup",
    "encode",
    "decode",
    "read_schema_id",
]
