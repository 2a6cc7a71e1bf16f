"""
kafka_avro.client
──────────────────
``KafkaAvro`` is the one object an application wires up. It owns the schema
catalog (and its refresh scheduler) and hands out producer/consumer adapters
that share it.

Usage::

    kafka_avro = KafkaAvro(KafkaAvroConfig(schema_registry_url="http://sr:8081"),
                           transport=my_transport)
    await kafka_avro.init()
    producer = kafka_avro.get_producer()
    await producer.produce("orders", {"name": "Alice", "long": 540})
    ...
    await kafka_avro.dispose()
"""
from __future__ import annotations

from typing import Any, Mapping

import httpx

from kafka_avro.tier0_core.config import KafkaAvroConfig, get_config
from kafka_avro.tier0_core.errors import ConfigurationError
from kafka_avro.tier0_core.logging import configure_logging, get_logger
from kafka_avro.tier1_runtime.avro_types import AvroType
from kafka_avro.tier1_runtime.subjects import SubjectNameStrategy
from kafka_avro.tier3_platform.registry_client import RegistryClient
from kafka_avro.tier4_advanced.messaging import (
    AvroConsumer,
    AvroProducer,
    ConsumedMessage,
    MessageTransport,
    RawMessage,
)
from kafka_avro.tier4_advanced.schemas import CatalogSnapshot, SchemaCatalog

logger = get_logger(__name__)


class KafkaAvro:
    """Schema-aware serialization around a message-bus transport."""

    def __init__(
        self,
        config: KafkaAvroConfig | None = None,
        *,
        registry_client: RegistryClient | None = None,
        registry_transport: httpx.AsyncBaseTransport | None = None,
        transport: MessageTransport | None = None,
        reader_types: Mapping[str, AvroType] | None = None,
    ) -> None:
        self.config = config or get_config()
        configure_logging(self.config.log_level, self.config.log_format)
        # Strategy names fail fast, before any network I/O.
        self.key_strategy = SubjectNameStrategy(self.config.key_subject_strategy)
        self.value_strategy = SubjectNameStrategy(self.config.value_subject_strategy)
        self.catalog = SchemaCatalog.from_config(
            self.config,
            registry=registry_client,
            transport=registry_transport,
        )
        self.transport = transport
        self.reader_types = dict(reader_types or {})

    async def init(self) -> CatalogSnapshot:
        """Fetch every schema; the instance is usable once this returns."""
        return await self.catalog.initialize()

    def get_producer(self, transport: MessageTransport | None = None) -> AvroProducer:
        return AvroProducer(
            self._require_transport(transport),
            self.catalog,
            key_strategy=self.key_strategy,
            value_strategy=self.value_strategy,
            fail_on_missing_schema=self.config.should_fail_when_schema_is_missing,
        )

    def get_consumer(self, transport: MessageTransport | None = None) -> AvroConsumer:
        return AvroConsumer(
            self._require_transport(transport),
            self.catalog,
            reader_types=self.reader_types,
        )

    def serialize(self, topic: str, payload: Any, is_key: bool = False) -> bytes:
        """Serialize without sending; same rules as ``AvroProducer.serialize``."""
        return AvroProducer(
            None,
            self.catalog,
            key_strategy=self.key_strategy,
            value_strategy=self.value_strategy,
            fail_on_missing_schema=self.config.should_fail_when_schema_is_missing,
        ).serialize(topic, payload, is_key)

    def deserialize(self, message: RawMessage) -> ConsumedMessage:
        return AvroConsumer(
            None, self.catalog, reader_types=self.reader_types
        ).deserialize(message)

    async def dispose(self) -> None:
        await self.catalog.dispose()
        logger.info("kafka_avro.disposed")

    def _require_transport(self, transport: MessageTransport | None) -> MessageTransport:
        transport = transport or self.transport
        if transport is None:
            raise ConfigurationError(
                "No message transport configured: pass transport= to KafkaAvro "
                "or to get_producer()/get_consumer()"
            )
        return transport


__all__ = ["KafkaAvro"]
