"""
registry_sdk test configuration.

All tests run against in-memory registries, either directly through
InMemorySchemaRegistry or through an httpx.MockTransport that serves the
registry HTTP API from one. No external services required.
"""
from __future__ import annotations

import base64
import json
import os
from typing import Callable
from urllib.parse import unquote

import httpx
import pytest
from prometheus_client import REGISTRY

# ── Force test settings ────────────────────────────────────────────────────
# These must be set before any registry_sdk modules are imported.

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("APP_NAME", "registry-sdk-tests")
os.environ.setdefault("REGISTRY_SDK_ERROR_BACKEND", "none")
os.environ.setdefault("REGISTRY_SDK_LOG_LEVEL", "WARNING")

from registry_sdk.tier0_core.errors import SpecParseError  # noqa: E402
from registry_sdk.tier0_core.http import HTTP, REGISTRY_CONTENT_TYPE, RegistryErrorCode  # noqa: E402
from registry_sdk.tier0_core.metrics import _DEFAULT_LABEL_VALUES  # noqa: E402
from registry_sdk.tier1_runtime.document import SchemaDocument  # noqa: E402
from registry_sdk.tier3_platform.registry_client import RegistryClient  # noqa: E402
from registry_sdk.tier4_advanced.schemas import InMemorySchemaRegistry  # noqa: E402


TRANSMISSION_V1 = json.dumps({
    "type": "record",
    "name": "Transmission",
    "namespace": "link.monitoring",
    "fields": [
        {"name": "feed", "type": "string"},
        {"name": "answer", "type": "long"},
    ],
})

TRANSMISSION_V2 = json.dumps({
    "type": "record",
    "name": "Transmission",
    "namespace": "link.monitoring",
    "fields": [
        {"name": "feed", "type": "string"},
        {"name": "answer", "type": "long"},
        {"name": "round", "type": ["null", "int"], "default": None},
    ],
})


# ── Registry HTTP fake ─────────────────────────────────────────────────────

def _json(status: int, body: object) -> httpx.Response:
    return httpx.Response(
        status,
        content=json.dumps(body).encode(),
        headers={"content-type": REGISTRY_CONTENT_TYPE},
    )


def _schema_body(schema) -> dict:
    return {
        "subject": schema.subject,
        "id": schema.id,
        "version": schema.version,
        "schema": schema.document.text,
    }


def make_registry_handler(
    registry: InMemorySchemaRegistry,
    *,
    credentials: tuple[str, str] | None = None,
    version_in_create: bool = False,
) -> Callable[[httpx.Request], httpx.Response]:
    """
    Serve the registry HTTP API from `registry`. `requests` on the returned
    handler records every request seen.
    """
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if credentials is not None:
            token = base64.b64encode(":".join(credentials).encode()).decode()
            if request.headers.get("authorization") != f"Basic {token}":
                return _json(HTTP.UNAUTHORIZED, {"error_code": 40101, "message": "Unauthorized"})

        raw_path = request.url.raw_path.decode().split("?")[0]
        parts = [unquote(p) for p in raw_path.strip("/").split("/")]

        if request.method == "GET" and len(parts) == 4 and parts[0] == "subjects" \
                and parts[2:] == ["versions", "latest"]:
            registry.fetch_calls += 1
            schema = registry.latest(parts[1])
            if schema is None:
                return _json(HTTP.NOT_FOUND, {
                    "error_code": RegistryErrorCode.SUBJECT_NOT_FOUND,
                    "message": f"Subject '{parts[1]}' not found.",
                })
            return _json(HTTP.OK, _schema_body(schema))

        if request.method == "POST" and len(parts) in (2, 3) and parts[0] == "subjects":
            body = json.loads(request.content)
            try:
                document = SchemaDocument.parse(body["schema"])
            except SpecParseError:
                return _json(HTTP.UNPROCESSABLE_ENTITY, {
                    "error_code": RegistryErrorCode.INVALID_SCHEMA,
                    "message": "Invalid schema",
                })

            if len(parts) == 3 and parts[2] == "versions":
                registry.create_calls += 1
                schema = registry.register(parts[1], document)
                if version_in_create:
                    return _json(HTTP.OK, {"id": schema.id, "version": schema.version})
                return _json(HTTP.OK, {"id": schema.id})

            if len(parts) == 2:
                for version in range(1, 1000):
                    schema = registry.get_by_version(parts[1], version)
                    if schema is None:
                        break
                    if schema.document == document:
                        return _json(HTTP.OK, _schema_body(schema))
                return _json(HTTP.NOT_FOUND, {
                    "error_code": RegistryErrorCode.SCHEMA_NOT_FOUND,
                    "message": "Schema not found",
                })

        return _json(HTTP.NOT_FOUND, {"error_code": HTTP.NOT_FOUND, "message": "HTTP 404 Not Found"})

    handler.requests = seen  # type: ignore[attr-defined]
    return handler


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
def memory_registry() -> InMemorySchemaRegistry:
    """Return a fresh, empty InMemorySchemaRegistry."""
    return InMemorySchemaRegistry()


@pytest.fixture
def registry_handler(memory_registry):
    """HTTP handler serving `memory_registry`."""
    return make_registry_handler(memory_registry)


@pytest.fixture
def registry_client(registry_handler) -> RegistryClient:
    """RegistryClient wired to the in-memory HTTP fake."""
    return RegistryClient(
        "http://registry.test",
        transport=httpx.MockTransport(registry_handler),
    )


@pytest.fixture
def make_client():
    """Factory for RegistryClients over an arbitrary handler."""
    def _make(handler, **kwargs) -> RegistryClient:
        return RegistryClient(
            "http://registry.test",
            transport=httpx.MockTransport(handler),
            **kwargs,
        )
    return _make


@pytest.fixture
def transmission_v1() -> str:
    return TRANSMISSION_V1


@pytest.fixture
def transmission_v2() -> str:
    return TRANSMISSION_V2


@pytest.fixture
def handler_factory():
    """Expose make_registry_handler to tests that need custom options."""
    return make_registry_handler


@pytest.fixture
def metric_value():
    """
    Read a registry_sdk collector sample, with the standard service/env
    labels filled in. Missing samples read as 0.0.
    """
    def _read(name: str, **labels: str) -> float:
        value = REGISTRY.get_sample_value(name, {**_DEFAULT_LABEL_VALUES, **labels})
        return value or 0.0
    return _read
