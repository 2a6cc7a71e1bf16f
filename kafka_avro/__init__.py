"""
kafka_avro
──────────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from kafka_avro.tier0_core.logging import configure_logging, get_logger
from kafka_avro.tier0_core.errors import (
    KafkaAvroError,
    ConfigurationError,
    ValidationError,
    InvalidStrategyNameError,
    MissingRecordNameError,
    CatalogDisposedError,
    RegistryError,
    RegistryUnreachableError,
    RegistryResponseError,
    SubjectNotFoundError,
    SchemaParseError,
    SchemaResolutionError,
    MissingSchemaError,
    WireFormatError,
    PayloadDecodeError,
    UnknownSchemaIdError,
)
from kafka_avro.tier0_core.config import get_config, KafkaAvroConfig

from kafka_avro.tier1_runtime.avro_types import AvroType, ParseOptions, parse_type
from kafka_avro.tier1_runtime.wire import DecodedMessage, encode, decode, MAGIC_BYTE
from kafka_avro.tier1_runtime.subjects import (
    SubjectNameStrategy,
    StrategyName,
    tag_record,
    strip_record_tag,
)
from kafka_avro.tier1_runtime.serialize import to_untyped_bytes, from_untyped_bytes

from kafka_avro.tier2_reliability.refresh import RefreshScheduler

from kafka_avro.tier3_platform.registry_client import HttpRegistryClient, RegistryClient

from kafka_avro.tier4_advanced.schemas import CatalogSnapshot, SchemaCatalog, SchemaRecord
from kafka_avro.tier4_advanced.messaging import (
    AvroConsumer,
    AvroProducer,
    ConsumedMessage,
    InMemoryTransport,
    MessageTransport,
    RawMessage,
)

from kafka_avro.client import KafkaAvro

__version__ = "0.1.0"
__all__ = [
    # facade
    "KafkaAvro",
    # logging
    "get_logger", "configure_logging",
    # errors
    "KafkaAvroError", "ConfigurationError", "ValidationError",
    "InvalidStrategyNameError", "MissingRecordNameError", "CatalogDisposedError",
    "RegistryError", "RegistryUnreachableError", "RegistryResponseError",
    "SubjectNotFoundError", "SchemaParseError", "SchemaResolutionError",
    "MissingSchemaError", "WireFormatError", "PayloadDecodeError", "UnknownSchemaIdError",
    # config
    "get_config", "KafkaAvroConfig",
    # avro types
    "AvroType", "ParseOptions", "parse_type",
    # wire
    "DecodedMessage", "encode", "decode", "MAGIC_BYTE",
    # subjects
    "SubjectNameStrategy", "StrategyName", "tag_record", "strip_record_tag",
    # serialize
    "to_untyped_bytes", "from_untyped_bytes",
    # refresh
    "RefreshScheduler",
    # registry
    "HttpRegistryClient", "RegistryClient",
    # catalog
    "CatalogSnapshot", "SchemaCatalog", "SchemaRecord",
    # messaging
    "AvroConsumer", "AvroProducer", "ConsumedMessage",
    "InMemoryTransport", "MessageTransport", "RawMessage",
]
