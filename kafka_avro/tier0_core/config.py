"""
kafka_avro.tier0_core.config
─────────────────────────────
Typed configuration with env layering. Reads from .env → environment
variables. All fields are typed via Pydantic; every variable is prefixed
with KAFKA_AVRO_ (e.g. KAFKA_AVRO_SCHEMA_REGISTRY_URL).

Minimal stack: pydantic-settings + python-dotenv
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class KafkaAvroConfig(BaseSettings):
    """
    Configuration accepted by ``KafkaAvro`` and ``SchemaCatalog``.
    Construct directly for explicit wiring, or use ``get_config()`` to read
    the environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="KAFKA_AVRO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Bus ───────────────────────────────────────────────────────────────────
    kafka_broker: str = "localhost:9092"

    # ── Registry ──────────────────────────────────────────────────────────────
    schema_registry_url: str = "http://localhost:8081"
    schema_registry_username: str | None = None
    schema_registry_password: SecretStr | None = None
    http_timeout: float = 30.0

    # ── Catalog ───────────────────────────────────────────────────────────────
    # None discovers every subject registered in the registry.
    topics: list[str] | None = None
    fetch_all_versions: bool = False
    fetch_refresh_rate: float = Field(default=0.0, ge=0.0)
    concurrency_limit: int = Field(default=10, ge=1)
    # Off by default: unions decode to plain values. Node kafka-avro clients wrap
    # unions by default; set True to read named branches as (name, value) pairs.
    wrap_unions: bool = False

    # ── Serialization ─────────────────────────────────────────────────────────
    key_subject_strategy: str | None = None
    value_subject_strategy: str | None = None
    should_fail_when_schema_is_missing: bool = False

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("schema_registry_url")
    @classmethod
    def validate_registry_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"schema_registry_url must be an http(s) URL, got {v!r}")
        return v.rstrip("/")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = {"json", "console"}
        if v.lower() not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got {v!r}")
        return v.lower()

    @property
    def basic_auth(self) -> tuple[str, str] | None:
        if not self.schema_registry_username:
            return None
        password = (
            self.schema_registry_password.get_secret_value()
            if self.schema_registry_password
            else ""
        )
        return (self.schema_registry_username, password)

    @property
    def refresh_enabled(self) -> bool:
        return self.fetch_refresh_rate > 0


@lru_cache(maxsize=1)
def get_config() -> KafkaAvroConfig:
    """
    Return the singleton config read from the environment. Cached after
    first call. Call _reset_config() in tests to pick up new env vars.
    """
    return KafkaAvroConfig()


def _reset_config() -> None:
    """Clear the cached config (tests)."""
    get_config.cache_clear()
