"""
kafka_avro test configuration.

All tests run offline: the schema registry is an in-process fake served
through ``httpx.MockTransport`` and the message bus is ``InMemoryTransport``.
"""
from __future__ import annotations

import asyncio
import copy
import json
import os
from typing import Any

import httpx
import pytest

# ── Test environment ──────────────────────────────────────────────────────
# Must be set before kafka_avro configures logging on first use.

os.environ.setdefault("KAFKA_AVRO_LOG_LEVEL", "DEBUG")
os.environ.setdefault("KAFKA_AVRO_LOG_FORMAT", "console")

REGISTRY_URL = "http://registry.test"


# ── Schema fixtures ───────────────────────────────────────────────────────

NODE_SCHEMA: dict[str, Any] = {
    "type": "record",
    "name": "node",
    "namespace": "com.example",
    "fields": [
        {"name": "name", "type": "string"},
        {"name": "long", "type": "long"},
    ],
}

NODE_SCHEMA_V2: dict[str, Any] = {
    **NODE_SCHEMA,
    "fields": NODE_SCHEMA["fields"] + [
        {"name": "anotherString", "type": "string", "default": "defaultValue"},
    ],
}

STUDENT_SCHEMA: dict[str, Any] = {
    "type": "record",
    "name": "Student",
    "fields": [
        {"name": "name", "type": "string"},
        {"name": "grade", "type": "int"},
    ],
}

# Registry bodies are JSON text, so a primitive schema is a quoted string.
KEY_SCHEMA = '"string"'


# ── Fake registry ─────────────────────────────────────────────────────────

class FakeRegistry:
    """Answers the read-only Schema Registry endpoints from memory."""

    def __init__(self) -> None:
        self.subjects: dict[str, list[tuple[int, str]]] = {}
        self.hidden: set[str] = set()
        self.unreachable = False
        self.requests: list[httpx.Request] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._next_id = 1

    def register(self, subject: str, schema: Any) -> int:
        raw = schema if isinstance(schema, str) else json.dumps(schema)
        schema_id = self._next_id
        self._next_id += 1
        self.subjects.setdefault(subject, []).append((schema_id, raw))
        return schema_id

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            return self._route(request)
        finally:
            self.in_flight -= 1

    def _route(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        if parts == ["subjects"]:
            return httpx.Response(200, json=sorted(self.subjects))

        if len(parts) in (3, 4) and parts[0] == "subjects" and parts[2] == "versions":
            subject = parts[1]
            versions = self.subjects.get(subject)
            if not versions or subject in self.hidden:
                return _not_found("Subject not found.")
            if len(parts) == 3:
                return httpx.Response(200, json=list(range(1, len(versions) + 1)))

            version = len(versions) if parts[3] == "latest" else int(parts[3])
            if not 1 <= version <= len(versions):
                return _not_found("Version not found.")
            schema_id, raw = versions[version - 1]
            return httpx.Response(200, json={
                "subject": subject,
                "version": version,
                "id": schema_id,
                "schema": raw,
            })

        return httpx.Response(500, json={"error_code": 500, "message": "unexpected path"})


def _not_found(message: str) -> httpx.Response:
    return httpx.Response(404, json={"error_code": 40401, "message": message})


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
def registry_url() -> str:
    return REGISTRY_URL


@pytest.fixture
def node_schema() -> dict[str, Any]:
    """``com.example.node`` with fields name:string and long:long."""
    return copy.deepcopy(NODE_SCHEMA)


@pytest.fixture
def node_schema_v2() -> dict[str, Any]:
    """``node`` plus anotherString, defaulting to "defaultValue"."""
    return copy.deepcopy(NODE_SCHEMA_V2)


@pytest.fixture
def student_schema() -> dict[str, Any]:
    return copy.deepcopy(STUDENT_SCHEMA)


@pytest.fixture
def fake_registry() -> FakeRegistry:
    """Registry holding a value+key schema for topic ``node`` and a student value."""
    registry = FakeRegistry()
    registry.register("node-value", NODE_SCHEMA)
    registry.register("node-key", KEY_SCHEMA)
    registry.register("students-Student-value", STUDENT_SCHEMA)
    return registry


@pytest.fixture
def registry_client(fake_registry):
    from kafka_avro.tier3_platform.registry_client import HttpRegistryClient
    return HttpRegistryClient(REGISTRY_URL, transport=fake_registry.transport())


@pytest.fixture
def make_catalog(fake_registry):
    """Return a factory building a SchemaCatalog against the fake registry."""
    from kafka_avro.tier3_platform.registry_client import HttpRegistryClient
    from kafka_avro.tier4_advanced.schemas import SchemaCatalog

    def factory(**kwargs: Any) -> SchemaCatalog:
        client = HttpRegistryClient(REGISTRY_URL, transport=fake_registry.transport())
        return SchemaCatalog(client, **kwargs)

    return factory


@pytest.fixture
def node_type():
    from kafka_avro.tier1_runtime.avro_types import parse_type
    return parse_type(NODE_SCHEMA)


@pytest.fixture
def node_type_v2():
    from kafka_avro.tier1_runtime.avro_types import parse_type
    return parse_type(NODE_SCHEMA_V2)
