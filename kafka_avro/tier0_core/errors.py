"""
kafka_avro.tier0_core.errors
─────────────────────────────
Error taxonomy for the schema catalog, the wire codec and the adapters.
Every error has a stable machine-readable ``code`` so transport-level
consumers can route failures (skip, dead-letter, abort) without string
matching.

Propagation rules:
  - registry failures are fatal during ``initialize()`` and logged during
    background refresh
  - ``SubjectNotFoundError`` and ``SchemaParseError`` are suppressed by the
    catalog, one subject/record at a time
  - decode-time errors are raised to the immediate caller; a corrupt body
    behind a valid envelope is a ``PayloadDecodeError``, never a fallback
"""
from __future__ import annotations

from typing import Any


# ── Base error ────────────────────────────────────────────────────────────────

class KafkaAvroError(Exception):
    """
    Base class for all kafka_avro errors. Every error has:
    - code: stable machine-readable string (snake_case)
    - user_message: short human-readable description
    - detail: internal context, defaults to user_message
    - metadata: structured fields (subject, schema_id, url, ...)
    """

    code: str = "kafka_avro_error"

    def __init__(
        self,
        user_message: str = "An unexpected error occurred.",
        *,
        code: str | None = None,
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        self.code = code or self.__class__.code
        self.user_message = user_message
        self.detail = detail or user_message
        self.metadata = metadata
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.user_message,
                **self.metadata,
            }
        }


# ── Caller / configuration errors ─────────────────────────────────────────────

class ConfigurationError(KafkaAvroError):
    """Misconfiguration detected at construction time."""
    code = "configuration_error"


class ValidationError(KafkaAvroError):
    """A caller passed something the library cannot work with."""
    code = "validation_error"


class InvalidStrategyNameError(ConfigurationError):
    """Unrecognized subject naming strategy name."""
    code = "invalid_strategy_name"

    def __init__(self, name: str, allowed: list[str]) -> None:
        self.name = name
        self.allowed = list(allowed)
        super().__init__(
            f"Invalid subject name strategy {name!r}. "
            f"Allowed strategies are {', '.join(self.allowed)}",
            strategy=name,
        )


class MissingRecordNameError(ValidationError):
    """A record-name strategy was asked for a payload without a record tag."""
    code = "missing_record_name"


class CatalogDisposedError(KafkaAvroError):
    """The schema catalog was used after ``dispose()``."""
    code = "catalog_disposed"


# ── Registry errors ───────────────────────────────────────────────────────────

class RegistryError(KafkaAvroError):
    """Base class for schema registry failures."""
    code = "registry_error"


class RegistryUnreachableError(RegistryError):
    """Network, DNS or TLS failure talking to the registry."""
    code = "registry_unreachable"


class RegistryResponseError(RegistryError):
    """The registry answered with an unexpected HTTP status."""
    code = "registry_response_error"

    def __init__(self, user_message: str, *, status_code: int, **metadata: Any) -> None:
        self.status_code = status_code
        super().__init__(user_message, status_code=status_code, **metadata)


class SubjectNotFoundError(RegistryError):
    """The registry answered 404 for a subject or version."""
    code = "subject_not_found"


# ── Schema errors ─────────────────────────────────────────────────────────────

class SchemaParseError(KafkaAvroError):
    """A schema definition could not be compiled."""
    code = "schema_parse_error"


class SchemaResolutionError(KafkaAvroError):
    """Writer and reader schemas are not compatible."""
    code = "schema_resolution_error"


class MissingSchemaError(KafkaAvroError):
    """No schema resolves for a subject on the strict encode path."""
    code = "missing_schema"


# ── Wire format errors ────────────────────────────────────────────────────────

class WireFormatError(KafkaAvroError):
    """Missing magic byte or truncated envelope."""
    code = "wire_format_error"


class PayloadDecodeError(KafkaAvroError):
    """A well-formed envelope whose Avro body is truncated or corrupt."""
    code = "payload_decode_error"

    def __init__(self, user_message: str, *, schema_id: int | None = None, **metadata: Any) -> None:
        self.schema_id = schema_id
        super().__init__(user_message, schema_id=schema_id, **metadata)


class UnknownSchemaIdError(KafkaAvroError):
    """A message references a schema id the catalog does not hold."""
    code = "unknown_schema_id"

    def __init__(self, schema_id: int) -> None:
        self.schema_id = schema_id
        super().__init__(
            f"Schema id {schema_id} is not registered in the local catalog",
            schema_id=schema_id,
        )


__all__ = [
    "KafkaAvroError",
    "ConfigurationError",
    "ValidationError",
    "InvalidStrategyNameError",
    "MissingRecordNameError",
    "CatalogDisposedError",
    "RegistryError",
    "RegistryUnreachableError",
    "RegistryResponseError",
    "SubjectNotFoundError",
    "SchemaParseError",
    "SchemaResolutionError",
    "MissingSchemaError",
    "WireFormatError",
    "PayloadDecodeError",
    "UnknownSchemaIdError",
]
