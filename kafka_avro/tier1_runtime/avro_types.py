"""
kafka_avro.tier1_runtime.avro_types
────────────────────────────────────
Compiled Avro types used by the wire codec. Wraps fastavro so the rest of
the library works against one small interface: encode into a caller-owned
buffer, decode from an offset, and build writer→reader resolvers.

Each ``parse_type()`` call compiles into its own named-type table. Parsing
never registers names globally, so two subjects declaring the same record
name do not collide.

Minimal stack: fastavro
"""
from __future__ import annotations

import io
import json
import struct
from dataclasses import dataclass
from typing import Any

import fastavro
from fastavro.read import SchemaResolutionError as _FastavroResolutionError
from fastavro.schema import SchemaParseException

from kafka_avro.tier0_core.errors import (
    PayloadDecodeError,
    SchemaParseError,
    SchemaResolutionError,
    ValidationError,
)


@dataclass(frozen=True)
class ParseOptions:
    """Options applied to every schema the catalog compiles."""
    # Decode union branches holding named types as (name, value) pairs.
    # Off by default, unlike Node kafka-avro clients where wrapping is the default.
    wrap_unions: bool = False


class AvroType:
    """A compiled Avro schema able to encode and decode binary payloads."""

    def __init__(
        self,
        schema: Any,
        parsed: Any,
        options: ParseOptions | None = None,
    ) -> None:
        self.schema = schema
        self._parsed = parsed
        self.options = options or ParseOptions()

    @property
    def name(self) -> str:
        """Fully-qualified name for named types, the type name otherwise."""
        if isinstance(self._parsed, dict):
            return self._parsed.get("name") or self._parsed.get("type", "")
        if isinstance(self._parsed, str):
            return self._parsed
        return "union"

    @property
    def parsed_schema(self) -> Any:
        return self._parsed

    def to_bytes(self, value: Any) -> bytes:
        """Binary-encode ``value`` with no envelope."""
        buf = io.BytesIO()
        try:
            fastavro.schemaless_writer(buf, self._parsed, value)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            raise ValidationError(
                f"Value does not match Avro type {self.name!r}: {exc}",
                avro_type=self.name,
            ) from exc
        return buf.getvalue()

    def encode(self, value: Any, buf: bytearray, pos: int = 0) -> int:
        """
        Write ``value`` into ``buf`` starting at ``pos``.

        Returns the position right after the written bytes. When ``buf`` is
        too short nothing is written and the result is negative: its
        magnitude is the number of additional bytes needed.
        """
        payload = self.to_bytes(value)
        end = pos + len(payload)
        if end > len(buf):
            return len(buf) - end
        buf[pos:end] = payload
        return end

    def decode(self, buf: bytes | bytearray | memoryview, pos: int = 0) -> tuple[Any, int]:
        """Decode one value starting at ``pos``; returns ``(value, end)``."""
        return self._read(buf, pos, None)

    def create_resolver(self, reader: AvroType) -> Resolver:
        """Return a resolver decoding data written with this type as ``reader``."""
        return Resolver(writer=self, reader=reader)

    def _read(
        self,
        buf: bytes | bytearray | memoryview,
        pos: int,
        reader: AvroType | None,
    ) -> tuple[Any, int]:
        stream = io.BytesIO(bytes(buf))
        stream.seek(pos)
        reader_schema = reader.parsed_schema if reader is not None else None
        try:
            value = fastavro.schemaless_reader(
                stream,
                self._parsed,
                reader_schema,
                return_record_name=self.options.wrap_unions,
            )
        except _FastavroResolutionError as exc:
            raise SchemaResolutionError(
                f"Cannot resolve writer {self.name!r} to reader {reader.name if reader else self.name!r}: {exc}",
                writer=self.name,
            ) from exc
        except (EOFError, ValueError, TypeError, IndexError, OverflowError, struct.error) as exc:
            raise PayloadDecodeError(
                f"Avro payload is truncated or does not match {self.name!r}: {exc}",
                writer=self.name,
            ) from exc
        return value, stream.tell()

    def __repr__(self) -> str:
        return f"AvroType({self.name!r})"


class Resolver:
    """Decodes data written with ``writer`` into the shape of ``reader``."""

    def __init__(self, writer: AvroType, reader: AvroType) -> None:
        self.writer = writer
        self.reader = reader

    def decode(self, buf: bytes | bytearray | memoryview, pos: int = 0) -> tuple[Any, int]:
        return self.writer._read(buf, pos, self.reader)


def parse_type(raw_schema: str | dict | list, options: ParseOptions | None = None) -> AvroType:
    """
    Compile a schema definition into an ``AvroType``.

    ``raw_schema`` is either the JSON text returned by the registry or an
    already-decoded schema object. Raises ``SchemaParseError`` when the text
    is not JSON or does not describe a valid Avro schema.
    """
    if isinstance(raw_schema, str):
        try:
            schema = json.loads(raw_schema)
        except json.JSONDecodeError as exc:
            raise SchemaParseError(f"Schema is not valid JSON: {exc}") from exc
    else:
        schema = raw_schema

    try:
        parsed = fastavro.parse_schema(schema, named_schemas={})
    except (SchemaParseException, ValueError, TypeError, KeyError) as exc:
        raise SchemaParseError(f"Invalid Avro schema: {exc}") from exc
    return AvroType(schema, parsed, options)


__all__ = ["ParseOptions", "AvroType", "Resolver", "parse_type"]
