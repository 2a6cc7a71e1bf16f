"""
kafka_avro.tier4_advanced.messaging
────────────────────────────────────
Producer and consumer adapters that put the schema catalog and the wire
codec in front of a message-bus transport. The adapters wrap the transport;
they never patch it. Any client exposing ``send()`` / ``receive()`` (a
confluent-kafka or aiokafka wrapper, or the in-memory transport below) can be
plugged in.

Producing:  subject strategy → catalog.resolve_by_subject → wire.encode
Consuming:  wire.decode (catalog id lookup, optional reader type) with an
            untyped JSON/text fallback for messages not in the wire format.
            A corrupt body behind a valid envelope is not a fallback case:
            PayloadDecodeError reaches the caller, which owns skip / dead-letter.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Mapping, Protocol, runtime_checkable

from kafka_avro.tier0_core.errors import (
    ConfigurationError,
    MissingSchemaError,
    PayloadDecodeError,
    UnknownSchemaIdError,
    WireFormatError,
)
from kafka_avro.tier0_core.logging import get_logger
from kafka_avro.tier1_runtime import wire
from kafka_avro.tier1_runtime.avro_types import AvroType
from kafka_avro.tier1_runtime.serialize import from_untyped_bytes, to_untyped_bytes
from kafka_avro.tier1_runtime.subjects import SubjectNameStrategy, strip_record_tag
from kafka_avro.tier4_advanced.schemas import SchemaCatalog

logger = get_logger(__name__)


def _require(transport: MessageTransport | None) -> MessageTransport:
    if transport is None:
        raise ConfigurationError("Adapter has no message transport attached")
    return transport


@dataclass
class RawMessage:
    topic: str
    value: bytes | None
    key: bytes | None = None
    partition: int | None = None
    offset: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ConsumedMessage:
    """A deserialized message plus the raw record it came from."""
    topic: str
    value: Any
    key: Any
    schema_id: int | None
    raw: RawMessage

    @property
    def is_typed(self) -> bool:
        return self.schema_id is not None


@runtime_checkable
class MessageTransport(Protocol):
    async def send(self, message: RawMessage) -> None: ...
    def receive(self, topic: str) -> AsyncIterator[RawMessage]: ...


class InMemoryTransport:
    """In-process topic log for tests. NOT suitable for production."""

    def __init__(self) -> None:
        self._topics: dict[str, list[RawMessage]] = {}

    async def send(self, message: RawMessage) -> None:
        log = self._topics.setdefault(message.topic, [])
        message.offset = len(log)
        log.append(message)

    async def receive(self, topic: str) -> AsyncIterator[RawMessage]:
        # Replays everything published to the topic so far.
        for message in list(self._topics.get(topic, [])):
            yield message

    def messages(self, topic: str) -> list[RawMessage]:
        return list(self._topics.get(topic, []))


# ── Producer ──────────────────────────────────────────────────────────────────

class AvroProducer:
    """
    Serialize keys and values against the catalog before sending.

    With ``fail_on_missing_schema`` a payload whose subject has no schema
    raises ``MissingSchemaError``; otherwise it is sent as untyped bytes
    (JSON for mappings) and a warning is logged.

    Usage::

        producer = AvroProducer(transport, catalog)
        await producer.produce("orders", {"name": "Alice", "long": 540}, key="o-1")
    """

    def __init__(
        self,
        transport: MessageTransport | None,
        catalog: SchemaCatalog,
        *,
        key_strategy: SubjectNameStrategy | None = None,
        value_strategy: SubjectNameStrategy | None = None,
        fail_on_missing_schema: bool = False,
        initial_buffer_size: int = wire.DEFAULT_BUFFER_SIZE,
    ) -> None:
        self._transport = transport
        self._catalog = catalog
        self.key_strategy = key_strategy or SubjectNameStrategy()
        self.value_strategy = value_strategy or SubjectNameStrategy()
        self.fail_on_missing_schema = fail_on_missing_schema
        self.initial_buffer_size = initial_buffer_size

    def serialize(self, topic: str, payload: Any, is_key: bool = False) -> bytes:
        strategy = self.key_strategy if is_key else self.value_strategy
        subject = strategy.prepare_subject_name(topic, payload, is_key)
        record = self._catalog.resolve_by_subject(subject, is_key)

        if record is None or record.parsed_type is None:
            role = "key" if is_key else "value"
            if self.fail_on_missing_schema:
                raise MissingSchemaError(
                    f"No {role} schema registered for subject {subject!r}",
                    topic=topic,
                    subject=subject,
                    role=role,
                )
            logger.warning(
                "producer.schema_missing",
                topic=topic,
                subject=subject,
                role=role,
            )
            return to_untyped_bytes(payload)

        return wire.encode(
            strip_record_tag(payload),
            record.parsed_type,
            record.id,
            self.initial_buffer_size,
        )

    async def produce(
        self,
        topic: str,
        value: Any,
        key: Any = None,
        *,
        partition: int | None = None,
        timestamp: datetime | None = None,
        headers: dict[str, str] | None = None,
    ) -> RawMessage:
        message = RawMessage(
            topic=topic,
            value=self.serialize(topic, value, is_key=False) if value is not None else None,
            key=self.serialize(topic, key, is_key=True) if key is not None else None,
            partition=partition,
            headers=dict(headers or {}),
        )
        if timestamp is not None:
            message.timestamp = timestamp
        await _require(self._transport).send(message)
        return message


# ── Consumer ──────────────────────────────────────────────────────────────────

class AvroConsumer:
    """
    Deserialize messages read from the transport.

    ``reader_types`` maps a topic to the schema the application wants values
    decoded into; writer data is resolved into it (defaults fill new fields).
    """

    def __init__(
        self,
        transport: MessageTransport | None,
        catalog: SchemaCatalog,
        *,
        reader_types: Mapping[str, AvroType] | None = None,
    ) -> None:
        self._transport = transport
        self._catalog = catalog
        self.reader_types = dict(reader_types or {})

    def deserialize(self, message: RawMessage) -> ConsumedMessage:
        value, schema_id = self._decode(message.topic, message.value, is_key=False)
        key, _ = self._decode(message.topic, message.key, is_key=True)
        return ConsumedMessage(
            topic=message.topic,
            value=value,
            key=key,
            schema_id=schema_id,
            raw=message,
        )

    async def consume(self, topic: str) -> AsyncIterator[ConsumedMessage]:
        async for message in _require(self._transport).receive(topic):
            yield self.deserialize(message)

    def _decode(self, topic: str, data: bytes | None, is_key: bool) -> tuple[Any, int | None]:
        if data is None:
            return None, None

        role = "key" if is_key else "value"
        latest = self._catalog.resolve_by_subject(topic, is_key)
        fallback = latest.parsed_type if latest is not None else None
        reader = None if is_key else self.reader_types.get(topic)
        try:
            decoded = wire.decode(data, self._catalog.resolve_by_id, fallback, reader)
        except (WireFormatError, UnknownSchemaIdError) as exc:
            logger.debug(
                "consumer.untyped_message",
                topic=topic,
                role=role,
                reason=exc.code,
            )
            return from_untyped_bytes(data), None
        except PayloadDecodeError as exc:
            exc.metadata.update(topic=topic, role=role)
            logger.warning(
                "consumer.payload_corrupt",
                topic=topic,
                role=role,
                schema_id=exc.schema_id,
            )
            raise
        return decoded.value, decoded.schema_id


__all__ = [
    "RawMessage",
    "ConsumedMessage",
    "MessageTransport",
    "InMemoryTransport",
    "AvroProducer",
    "AvroConsumer",
]
