"""
registry_sdk.tier4_advanced.schemas
─────────────────────────────────────
Schema negotiation. Ensures a subject's latest registered schema matches
the schema a producer is about to publish with, registering a new version
only when the document actually changed:

  1. nothing registered under the subject   → create it (version 1)
  2. registered, but structurally different → create a new version
  3. registered and structurally equal      → reuse it, no write

Backed by: any RegistryBackend: RegistryClient against a real registry,
or InMemorySchemaRegistry for tests and local dev.

No locking and no retries: two processes negotiating the same subject at
once may both register, and the registry decides the final version.
"""
from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Protocol, Type, TypeVar, runtime_checkable

from pydantic import BaseModel

from registry_sdk.tier0_core.errors import (
    NotFoundError,
    SDKError,
    TransportError,
    ValidationError,
)
from registry_sdk.tier0_core.http import RegistryErrorCode
from registry_sdk.tier0_core.logging import get_logger
from registry_sdk.tier0_core.metrics import negotiations_total
from registry_sdk.tier1_runtime.document import Schema, SchemaDocument
from registry_sdk.tier1_runtime.serialize import WireCodec
from registry_sdk.tier2_reliability.cache import SchemaCache

T = TypeVar("T", bound=BaseModel)

log = get_logger(__name__)


@runtime_checkable
class RegistryBackend(Protocol):
    async def fetch_latest(self, subject: str, *, timeout: float | None = None) -> Schema: ...
    async def create(self, subject: str, spec: str, *, timeout: float | None = None) -> Schema: ...


# ── In-memory backend ─────────────────────────────────────────────────────────

class InMemorySchemaRegistry:
    """
    In-memory schema registry for tests and local dev. Follows the
    registry's rules: ids are global and shared by identical documents,
    versions count up per subject, and registering a document a subject
    already holds returns the existing version.
    """

    def __init__(self) -> None:
        self._schemas: dict[str, list[Schema]] = {}
        self._ids: dict[SchemaDocument, int] = {}
        self._id_counter = 1
        self.create_calls = 0
        self.fetch_calls = 0

    async def fetch_latest(self, subject: str, *, timeout: float | None = None) -> Schema:
        self.fetch_calls += 1
        schema = self.latest(subject)
        if schema is None:
            raise NotFoundError(
                "No schema registered: Subject not found.",
                subject=subject,
                operation="fetch_latest",
                error_code=RegistryErrorCode.SUBJECT_NOT_FOUND,
            )
        return schema

    async def create(self, subject: str, spec: str, *, timeout: float | None = None) -> Schema:
        self.create_calls += 1
        return self.register(subject, SchemaDocument.parse(spec))

    def register(self, subject: str, document: SchemaDocument) -> Schema:
        existing = self._schemas.setdefault(subject, [])
        for schema in existing:
            if schema.document == document:
                return schema
        schema_id = self._ids.get(document)
        if schema_id is None:
            schema_id = self._id_counter
            self._id_counter += 1
            self._ids[document] = schema_id
        schema = Schema(
            subject=subject,
            version=len(existing) + 1,
            id=schema_id,
            document=document,
        )
        existing.append(schema)
        return schema

    def latest(self, subject: str) -> Schema | None:
        schemas = self._schemas.get(subject)
        return schemas[-1] if schemas else None

    def get_by_version(self, subject: str, version: int) -> Schema | None:
        schemas = self._schemas.get(subject, [])
        return next((s for s in schemas if s.version == version), None)

    def get_by_id(self, schema_id: int) -> Schema | None:
        for schemas in self._schemas.values():
            for schema in schemas:
                if schema.id == schema_id:
                    return schema
        return None


# ── Negotiator ────────────────────────────────────────────────────────────────

class SchemaNegotiator:
    """
    Resolves subjects to registered schemas against a registry backend.

    Usage::

        negotiator = SchemaNegotiator(RegistryClient.from_config())
        schema = await negotiator.ensure_schema("transmission-value", TRANSMISSION_AVRO)
        codec = await negotiator.codec("transmission-value", TRANSMISSION_AVRO, model=Transmission)
    """

    def __init__(self, backend: RegistryBackend, cache: SchemaCache | None = None) -> None:
        self._backend = backend
        self._cache = cache if cache is not None else SchemaCache()

    @property
    def cache(self) -> SchemaCache:
        """Every schema this negotiator has resolved, keyed by id."""
        return self._cache

    async def ensure_schema(
        self,
        subject: str,
        spec: str,
        *,
        timeout: float | None = None,
    ) -> Schema:
        """
        Return the registered schema for `subject` matching `spec`,
        creating a new version only when the registry's latest differs.
        `timeout` bounds the whole negotiation, both round trips included.
        """
        if not isinstance(subject, str) or not subject.strip():
            raise ValidationError(
                "Subject must be a non-empty string.",
                fields={"subject": "must be a non-empty string"},
            )
        document = SchemaDocument.parse(spec, origin="local")

        try:
            async with asyncio.timeout(timeout):
                schema, outcome = await self._negotiate(subject, spec, document)
            self._remember(schema)
        except TimeoutError as exc:
            negotiations_total(outcome="failed").inc()
            log.warning("schema.negotiation_failed", subject=subject, reason="deadline exceeded")
            raise TransportError(
                "Schema negotiation exceeded its deadline.",
                subject=subject,
                operation="ensure_schema",
                timeout=timeout,
            ) from exc
        except SDKError as exc:
            negotiations_total(outcome="failed").inc()
            log.warning("schema.negotiation_failed", subject=subject, error=exc.code, detail=str(exc))
            raise

        negotiations_total(outcome=outcome).inc()
        log.info(f"schema.{outcome}", subject=subject, schema_id=schema.id, version=schema.version)
        return schema

    def _remember(self, schema: Schema) -> None:
        # The registry owns the id space: an id it returns is never a conflict.
        cached = self._cache.get(schema.id)
        if cached is not None and cached.document != schema.document:
            log.warning(
                "schema.cache_mismatch",
                subject=schema.subject,
                schema_id=schema.id,
                cached_subject=cached.subject,
            )
        self._cache.put(schema, trusted=True)

    async def _negotiate(
        self,
        subject: str,
        spec: str,
        document: SchemaDocument,
    ) -> tuple[Schema, str]:
        try:
            registered = await self._backend.fetch_latest(subject)
        except NotFoundError:
            return await self._backend.create(subject, spec), "created"

        if registered.document == document:
            return registered, "reused"
        return await self._backend.create(subject, spec), "updated"

    async def codec(
        self,
        subject: str,
        spec: str,
        *,
        model: Type[T] | None = None,
        timeout: float | None = None,
    ) -> WireCodec[T]:
        """Ensure the schema, then bind a codec that resolves ids via the cache."""
        schema = await self.ensure_schema(subject, spec, timeout=timeout)
        return WireCodec(schema, resolver=self._cache, model=model)


# ── Startup helpers ───────────────────────────────────────────────────────────

async def ensure_schemas(
    negotiator: SchemaNegotiator,
    specs: Mapping[str, str],
    *,
    timeout: float | None = None,
) -> dict[str, Schema]:
    """
    Negotiate every subject in `specs`, in order, stopping at the first
    failure. Meant for process startup, where publishing under an
    unregistered schema is unsafe and any error should be fatal.
    """
    resolved: dict[str, Schema] = {}
    for subject, spec in specs.items():
        resolved[subject] = await negotiator.ensure_schema(subject, spec, timeout=timeout)
    return resolved


def topic_subject(topic: str, *, key: bool = False) -> str:
    """Subject name for a topic's value (or key) schema: `<topic>-value`."""
    if not topic:
        raise ValidationError("Topic must be a non-empty string.", fields={"topic": "required"})
    return f"{topic}-{'key' if key else 'value'}"


__all__ = [
    "Schema", "SchemaDocument", "RegistryBackend", "InMemorySchemaRegistry",
    "SchemaNegotiator", "ensure_schemas", "topic_subject",
]
