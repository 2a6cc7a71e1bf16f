"""
kafka_avro.tier4_advanced.schemas
──────────────────────────────────
Local schema catalog synchronized from a Confluent Schema Registry.

``initialize()`` discovers subjects, fetches the latest version of each with
bounded concurrency, compiles every schema and publishes an immutable
``CatalogSnapshot`` indexed by schema id, by subject and by version. A
``refresh()`` builds a brand-new snapshot and swaps the reference; readers
always see either the old or the new snapshot, never a mix. Builds are
serialized: concurrent refreshes publish in the order they started.

Failure policy:
  - registry unreachable / unexpected HTTP status → fatal for initialize(),
    logged and retried next cycle for refresh()
  - 404 on a subject's versions → subject skipped for this cycle
  - schema that does not compile → record dropped, warning logged

Backed by: httpx (registry client) + fastavro (schema compilation).
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Mapping, TypeVar

import httpx

from kafka_avro.tier0_core.config import KafkaAvroConfig
from kafka_avro.tier0_core.errors import (
    CatalogDisposedError,
    SchemaParseError,
    SubjectNotFoundError,
)
from kafka_avro.tier0_core.logging import get_logger
from kafka_avro.tier1_runtime.avro_types import AvroType, ParseOptions, parse_type
from kafka_avro.tier2_reliability.refresh import RefreshScheduler
from kafka_avro.tier3_platform.registry_client import HttpRegistryClient, RegistryClient

T = TypeVar("T")
R = TypeVar("R")

logger = get_logger(__name__)

DEFAULT_CONCURRENCY = 10

_KEY_SUFFIX = "-key"
_VALUE_SUFFIX = "-value"


# ── Data model ────────────────────────────────────────────────────────────────

def split_subject(subject: str) -> tuple[str, bool]:
    """Return ``(bare_subject, is_key)``; unsuffixed subjects are values."""
    if subject.endswith(_KEY_SUFFIX):
        return subject[: -len(_KEY_SUFFIX)], True
    if subject.endswith(_VALUE_SUFFIX):
        return subject[: -len(_VALUE_SUFFIX)], False
    return subject, False


@dataclass(frozen=True)
class SchemaRecord:
    """One registry entry together with its compiled type."""
    subject: str
    version: int
    id: int
    raw_schema: str
    parsed_type: AvroType | None = None
    parse_error: str | None = None

    @property
    def is_key(self) -> bool:
        return split_subject(self.subject)[1]

    @property
    def bare_subject(self) -> str:
        """Subject without its ``-key`` / ``-value`` role suffix."""
        return split_subject(self.subject)[0]

    @property
    def metadata(self) -> dict[str, Any]:
        """The registry response this record was built from."""
        return {
            "subject": self.subject,
            "version": self.version,
            "id": self.id,
            "schema": self.raw_schema,
        }


def _read_only(mapping: dict) -> Mapping:
    return MappingProxyType(mapping)


@dataclass(frozen=True)
class CatalogSnapshot:
    """Immutable lookup indices built from a set of ``SchemaRecord``s."""
    by_id: Mapping[int, SchemaRecord] = field(default_factory=lambda: _read_only({}))
    latest_by_subject: Mapping[tuple[str, bool], SchemaRecord] = field(
        default_factory=lambda: _read_only({})
    )
    by_version: Mapping[tuple[str, int], SchemaRecord] = field(
        default_factory=lambda: _read_only({})
    )
    subjects: tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        latest: Iterable[SchemaRecord],
        history: Iterable[SchemaRecord] = (),
        subjects: Iterable[str] = (),
    ) -> CatalogSnapshot:
        by_id: dict[int, SchemaRecord] = {}
        latest_by_subject: dict[tuple[str, bool], SchemaRecord] = {}
        by_version: dict[tuple[str, int], SchemaRecord] = {}

        for record in latest:
            if record.parsed_type is None:
                continue
            by_id[record.id] = record
            by_version[(record.subject, record.version)] = record
            key = (record.bare_subject, record.is_key)
            current = latest_by_subject.get(key)
            if current is None or record.version > current.version:
                latest_by_subject[key] = record

        # History never evicts an entry published from the latest versions.
        for record in history:
            if record.parsed_type is None:
                continue
            by_id.setdefault(record.id, record)
            by_version.setdefault((record.subject, record.version), record)

        return cls(
            by_id=_read_only(by_id),
            latest_by_subject=_read_only(latest_by_subject),
            by_version=_read_only(by_version),
            subjects=tuple(subjects),
        )

    def __len__(self) -> int:
        return len(self.by_id)


# ── Catalog ───────────────────────────────────────────────────────────────────

class SchemaCatalog:
    """
    Registry-synchronized schema cache.

    Usage::

        catalog = SchemaCatalog(HttpRegistryClient("http://localhost:8081"))
        await catalog.initialize()
        avro_type = catalog.resolve_by_id(42)
        record = catalog.resolve_by_subject("orders")
        await catalog.dispose()
    """

    def __init__(
        self,
        registry: RegistryClient,
        *,
        topics: Iterable[str] | None = None,
        fetch_all_versions: bool = False,
        concurrency_limit: int = DEFAULT_CONCURRENCY,
        parse_options: ParseOptions | None = None,
        refresh_interval: float = 0.0,
    ) -> None:
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")
        self._registry = registry
        self.topics = tuple(topics) if topics is not None else None
        self.fetch_all_versions = fetch_all_versions
        self.concurrency_limit = concurrency_limit
        self.parse_options = parse_options or ParseOptions()
        self._snapshot = CatalogSnapshot()
        self._scheduler = RefreshScheduler(self, refresh_interval)
        # Held across build and swap.
        self._sync_lock = asyncio.Lock()
        self._disposed = False

    @classmethod
    def from_config(
        cls,
        config: KafkaAvroConfig,
        *,
        registry: RegistryClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SchemaCatalog:
        if registry is None:
            registry = HttpRegistryClient(
                config.schema_registry_url,
                auth=config.basic_auth,
                timeout=config.http_timeout,
                transport=transport,
            )
        return cls(
            registry,
            topics=config.topics,
            fetch_all_versions=config.fetch_all_versions,
            concurrency_limit=config.concurrency_limit,
            parse_options=ParseOptions(wrap_unions=config.wrap_unions),
            refresh_interval=config.fetch_refresh_rate,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    @property
    def snapshot(self) -> CatalogSnapshot:
        return self._snapshot

    @property
    def scheduler(self) -> RefreshScheduler:
        return self._scheduler

    async def initialize(self) -> CatalogSnapshot:
        """
        Fetch and compile all schemas, publish the first snapshot and start
        periodic refresh when configured. Registry failures propagate.
        """
        if self._disposed:
            raise CatalogDisposedError("Schema catalog was disposed")

        logger.info(
            "catalog.initializing",
            registry=getattr(self._registry, "base_url", None),
            topics=list(self.topics) if self.topics is not None else None,
            fetch_all_versions=self.fetch_all_versions,
        )
        async with self._sync_lock:
            self._snapshot = await self._build_snapshot()
        logger.info(
            "catalog.initialized",
            subjects=len(self._snapshot.latest_by_subject),
            schemas=len(self._snapshot.by_id),
            versions=len(self._snapshot.by_version),
        )
        self._scheduler.start()
        return self._snapshot

    async def refresh(self) -> bool:
        """Rebuild and swap the snapshot. Returns False (and logs) on failure."""
        if self._disposed:
            logger.warning("catalog.refresh_skipped", reason="disposed")
            return False
        async with self._sync_lock:
            try:
                snapshot = await self._build_snapshot()
            except Exception as exc:
                logger.warning(
                    "catalog.refresh_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return False
            if self._disposed:
                return False
            self._snapshot = snapshot
        logger.info("catalog.refreshed", schemas=len(snapshot.by_id))
        return True

    async def dispose(self) -> None:
        """Stop background refresh and release the registry client."""
        self._disposed = True
        await self._scheduler.stop()
        await self._registry.aclose()
        self._snapshot = CatalogSnapshot()
        logger.info("catalog.disposed")

    # ── Lookups ───────────────────────────────────────────────────────────────

    def resolve_by_id(self, schema_id: int) -> AvroType | None:
        record = self._snapshot.by_id.get(schema_id)
        return record.parsed_type if record is not None else None

    def resolve_by_subject(self, subject: str, is_key: bool = False) -> SchemaRecord | None:
        """
        Latest schema for ``subject``. Accepts the bare subject (``orders``
        with ``is_key`` picking the role) or the full registry subject
        (``orders-value``).
        """
        snapshot = self._snapshot
        record = snapshot.latest_by_subject.get((subject, is_key))
        if record is None and subject.endswith((_KEY_SUFFIX, _VALUE_SUFFIX)):
            record = snapshot.latest_by_subject.get(split_subject(subject))
        return record

    def resolve_by_version(self, subject: str, version: int) -> AvroType | None:
        record = self._snapshot.by_version.get((subject, version))
        return record.parsed_type if record is not None else None

    # ── Synchronization ───────────────────────────────────────────────────────

    async def _build_snapshot(self) -> CatalogSnapshot:
        subjects = await self._discover_subjects()

        latest_versions = await self._gather(self._fetch_latest_version, subjects)
        pairs = [pair for pair in latest_versions if pair is not None]
        responses = await self._gather(self._fetch_schema, pairs)
        latest = [self._register(response) for response in responses]

        history: list[SchemaRecord] = []
        if self.fetch_all_versions:
            version_lists = await self._gather(self._fetch_all_versions, subjects)
            all_pairs = [pair for versions in version_lists for pair in versions]
            responses = await self._gather(self._fetch_schema, all_pairs)
            history = [self._register(response) for response in responses]

        return CatalogSnapshot.build(latest, history, subjects)

    async def _discover_subjects(self) -> list[str]:
        if self.topics is not None:
            subjects = []
            for topic in self.topics:
                subjects.append(topic + _VALUE_SUFFIX)
                subjects.append(topic + _KEY_SUFFIX)
            return subjects

        subjects = await self._registry.get_subjects()
        logger.info("catalog.subjects_fetched", count=len(subjects))
        return list(subjects)

    async def _fetch_latest_version(self, subject: str) -> tuple[str, int] | None:
        try:
            response = await self._registry.get_schema(subject, "latest")
        except SubjectNotFoundError:
            logger.debug("catalog.subject_not_registered", subject=subject)
            return None
        return subject, int(response["version"])

    async def _fetch_all_versions(self, subject: str) -> list[tuple[str, int]]:
        try:
            versions = await self._registry.get_versions(subject)
        except SubjectNotFoundError:
            logger.debug("catalog.subject_not_registered", subject=subject)
            return []
        return [(subject, int(version)) for version in versions]

    async def _fetch_schema(self, pair: tuple[str, int]) -> dict[str, Any]:
        subject, version = pair
        response = await self._registry.get_schema(subject, version)
        return {"subject": subject, "version": version, **response}

    def _register(self, response: dict[str, Any]) -> SchemaRecord:
        subject = response["subject"]
        raw_schema = response["schema"]
        base = dict(
            subject=subject,
            version=int(response["version"]),
            id=int(response["id"]),
            raw_schema=raw_schema,
        )
        try:
            parsed = parse_type(raw_schema, self.parse_options)
        except SchemaParseError as exc:
            logger.warning(
                "catalog.schema_parse_failed",
                subject=subject,
                version=base["version"],
                schema_id=base["id"],
                error=str(exc),
            )
            return SchemaRecord(**base, parse_error=str(exc))
        return SchemaRecord(**base, parsed_type=parsed)

    async def _gather(
        self, fn: Callable[[T], Awaitable[R]], items: Iterable[T]
    ) -> list[R]:
        """Run ``fn`` over ``items`` with at most ``concurrency_limit`` in flight."""
        semaphore = asyncio.Semaphore(self.concurrency_limit)

        async def bounded(item: T) -> R:
            async with semaphore:
                return await fn(item)

        tasks = [asyncio.ensure_future(bounded(item)) for item in items]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise


__all__ = ["DEFAULT_CONCURRENCY", "split_subject", "SchemaRecord", "CatalogSnapshot", "SchemaCatalog"]
