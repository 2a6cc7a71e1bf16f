"""
kafka_avro.tier3_platform.registry_client
──────────────────────────────────────────
Read-only client for the Confluent Schema Registry REST surface:

    GET /subjects
    GET /subjects/{subject}/versions
    GET /subjects/{subject}/versions/{version|latest}

Transport failures map to RegistryUnreachableError, 404 to
SubjectNotFoundError, any other HTTP error to RegistryResponseError. The
caller decides which of those are fatal.

Backed by: httpx (async HTTP). Pass ``transport=`` to plug in a custom TLS
transport or an ``httpx.MockTransport`` in tests.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from kafka_avro.tier0_core.errors import (
    RegistryResponseError,
    RegistryUnreachableError,
    SubjectNotFoundError,
)
from kafka_avro.tier0_core.logging import get_logger

logger = get_logger(__name__)

_ACCEPT = "application/vnd.schemaregistry.v1+json, application/json"


@runtime_checkable
class RegistryClient(Protocol):
    """What the schema catalog needs from a registry."""

    async def get_subjects(self) -> list[str]: ...
    async def get_versions(self, subject: str) -> list[int]: ...
    async def get_schema(self, subject: str, version: int | str = "latest") -> dict[str, Any]: ...
    async def aclose(self) -> None: ...


class HttpRegistryClient:
    """
    Async HTTP client for the schema registry.

    Usage::

        client = HttpRegistryClient("http://localhost:8081", auth=("user", "pw"))
        subjects = await client.get_subjects()
        meta = await client.get_schema("orders-value")
        await client.aclose()
    """

    def __init__(
        self,
        base_url: str,
        *,
        auth: tuple[str, str] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        verify: Any = True,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = auth
        self._timeout = timeout
        self._transport = transport
        self._verify = verify
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            kwargs: dict[str, Any] = {
                "base_url": self._base_url,
                "timeout": self._timeout,
                "headers": {"Accept": _ACCEPT},
                "verify": self._verify,
            }
            if self._auth is not None:
                kwargs["auth"] = httpx.BasicAuth(*self._auth)
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def get_subjects(self) -> list[str]:
        return await self._get("/subjects")

    async def get_versions(self, subject: str) -> list[int]:
        return await self._get(f"/subjects/{quote(subject, safe='')}/versions")

    async def get_schema(self, subject: str, version: int | str = "latest") -> dict[str, Any]:
        return await self._get(f"/subjects/{quote(subject, safe='')}/versions/{version}")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str) -> Any:
        url = f"{self._base_url}{path}"
        logger.debug("registry.request", method="GET", url=url)
        try:
            response = await self._get_client().get(path)
        except httpx.TransportError as exc:
            raise RegistryUnreachableError(
                f"Schema registry unreachable at {url}: {exc}",
                url=url,
            ) from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            raise SubjectNotFoundError(f"Registry has no entry at {url}", url=url)
        if response.is_error:
            raise RegistryResponseError(
                f"Registry request to {url} failed with HTTP {response.status_code}",
                status_code=response.status_code,
                url=url,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise RegistryResponseError(
                f"Registry returned a non-JSON body for {url}",
                status_code=response.status_code,
                url=url,
            ) from exc


__all__ = ["RegistryClient", "HttpRegistryClient"]
