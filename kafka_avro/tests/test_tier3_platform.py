"""Tests for tier3_platform modules."""
from __future__ import annotations

import httpx
import pytest

from kafka_avro.tier0_core.errors import (
    RegistryResponseError,
    RegistryUnreachableError,
    SubjectNotFoundError,
)
from kafka_avro.tier3_platform.registry_client import HttpRegistryClient, RegistryClient


# ── registry_client ────────────────────────────────────────────────────────

class TestRegistryClient:
    def test_satisfies_protocol(self, registry_client):
        assert isinstance(registry_client, RegistryClient)

    @pytest.mark.asyncio
    async def test_get_subjects(self, registry_client):
        subjects = await registry_client.get_subjects()
        assert set(subjects) == {"node-value", "node-key", "students-Student-value"}
        await registry_client.aclose()

    @pytest.mark.asyncio
    async def test_get_latest_schema(self, registry_client):
        meta = await registry_client.get_schema("node-value")
        assert set(meta) == {"subject", "version", "id", "schema"}
        assert meta["version"] == 1
        await registry_client.aclose()

    @pytest.mark.asyncio
    async def test_get_versions(self, fake_registry, registry_client):
        fake_registry.register("node-value", {"type": "string"})
        assert await registry_client.get_versions("node-value") == [1, 2]
        await registry_client.aclose()

    @pytest.mark.asyncio
    async def test_not_found(self, registry_client):
        with pytest.raises(SubjectNotFoundError):
            await registry_client.get_schema("missing-value")
        await registry_client.aclose()

    @pytest.mark.asyncio
    async def test_server_error(self, registry_url):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, json={}))
        client = HttpRegistryClient(registry_url, transport=transport)
        with pytest.raises(RegistryResponseError) as excinfo:
            await client.get_subjects()
        assert excinfo.value.status_code == 500
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unreachable(self, fake_registry, registry_client):
        fake_registry.unreachable = True
        with pytest.raises(RegistryUnreachableError):
            await registry_client.get_subjects()
        await registry_client.aclose()

    @pytest.mark.asyncio
    async def test_basic_auth_header(self, registry_url):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        client = HttpRegistryClient(
            registry_url,
            auth=("svc", "s3cr3t"),
            transport=httpx.MockTransport(handler),
        )
        await client.get_subjects()
        assert seen[0].headers["authorization"].startswith("Basic ")
        assert str(seen[0].url) == f"{registry_url}/subjects"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_subject_is_url_quoted(self, registry_url):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[1])

        client = HttpRegistryClient(registry_url, transport=httpx.MockTransport(handler))
        await client.get_versions("team a/orders-value")
        assert b"/subjects/team%20a%2Forders-value/versions" in seen[0].url.raw_path
        await client.aclose()
