"""
registry_sdk.tier3_platform.registry_client
────────────────────────────────────────────
HTTP client for a Confluent-compatible schema registry. Two operations:
read the latest schema for a subject, and register a schema under a
subject. Every failure is mapped onto the SDK error taxonomy by HTTP status
and registry error code, never by error text.

Backed by: httpx (async HTTP).

The client is an explicit object carrying its endpoint and credentials.
It holds no per-call state, so one instance can serve concurrent calls.
"""
from __future__ import annotations

import time
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import SecretStr

from registry_sdk.tier0_core.config import RegistryConfig, get_config
from registry_sdk.tier0_core.errors import (
    AuthError,
    ConfigurationError,
    NotFoundError,
    SpecParseError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from registry_sdk.tier0_core.http import (
    ABSENT_SUBJECT_CODES,
    HTTP,
    REGISTRY_CONTENT_TYPE,
    SCHEMA_TYPE_AVRO,
)
from registry_sdk.tier0_core.logging import get_logger
from registry_sdk.tier0_core.metrics import registry_request_seconds, registry_requests_total
from registry_sdk.tier1_runtime.document import Schema, SchemaDocument

log = get_logger(__name__)


class RegistryClient:
    """
    Async client for the schema registry.

    Usage::

        client = RegistryClient("http://registry:8081", username="svc", password="...")
        latest = await client.fetch_latest("transmission-value")
        created = await client.create("transmission-value", spec_text)
    """

    def __init__(
        self,
        base_url: str,
        *,
        username: str | None = None,
        password: str | SecretStr | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ConfigurationError("Schema registry URL is not configured.")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        if isinstance(password, SecretStr):
            password = password.get_secret_value()
        self._auth = httpx.BasicAuth(username, password) if username and password else None

    @classmethod
    def from_config(
        cls,
        config: RegistryConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> RegistryClient:
        cfg = config or get_config()
        return cls(
            cfg.registry_url,
            username=cfg.registry_username,
            password=cfg.registry_password,
            timeout=cfg.registry_timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def has_credentials(self) -> bool:
        return self._auth is not None

    def __repr__(self) -> str:
        return f"RegistryClient({self._base_url!r}, credentials={self.has_credentials})"

    # ── Operations ────────────────────────────────────────────────────────────

    async def fetch_latest(self, subject: str, *, timeout: float | None = None) -> Schema:
        """
        Return the latest schema registered under `subject`.
        Raises NotFoundError when nothing is registered yet.
        """
        _check_subject(subject)
        body = await self._request(
            "GET",
            f"/subjects/{_escape(subject)}/versions/latest",
            operation="fetch_latest",
            subject=subject,
            timeout=timeout,
        )
        return _schema_from_body(body, subject, operation="fetch_latest")

    async def create(self, subject: str, spec: str, *, timeout: float | None = None) -> Schema:
        """
        Register `spec` under `subject`. The registry allocates the id and
        version, or returns the existing ones if the document is already
        registered for the subject.
        """
        _check_subject(subject)
        document = SchemaDocument.parse(spec, origin="local")
        payload = {"schema": document.text, "schemaType": SCHEMA_TYPE_AVRO}
        body = await self._request(
            "POST",
            f"/subjects/{_escape(subject)}/versions",
            operation="create",
            subject=subject,
            json=payload,
            timeout=timeout,
        )
        schema_id = _require_int(body, "id", subject=subject, operation="create")
        if isinstance(body, dict) and isinstance(body.get("version"), int):
            return Schema(subject=subject, id=schema_id, version=body["version"], document=document)

        # Older registries answer with the id only; look the document up to
        # learn the version it was filed under.
        body = await self._request(
            "POST",
            f"/subjects/{_escape(subject)}",
            operation="lookup",
            subject=subject,
            json=payload,
            timeout=timeout,
        )
        schema = _schema_from_body(body, subject, operation="lookup", fallback=document)
        if schema.id != schema_id:
            raise UpstreamError(
                "Registry returned a different id on lookup than on create.",
                subject=subject,
                operation="create",
                created_id=schema_id,
                lookup_id=schema.id,
            )
        return schema

    # ── Transport ─────────────────────────────────────────────────────────────

    def _build_headers(self) -> dict[str, str]:
        return {
            "Accept": f"{REGISTRY_CONTENT_TYPE}, application/json",
            "Content-Type": REGISTRY_CONTENT_TYPE,
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        subject: str,
        json: Any = None,
        timeout: float | None = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        started = time.monotonic()
        try:
            async with httpx.AsyncClient(
                timeout=timeout if timeout is not None else self._timeout,
                auth=self._auth,
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, headers=self._build_headers(), json=json)
        except httpx.TimeoutException as exc:
            registry_requests_total(operation=operation, result="timeout").inc()
            raise TransportError(
                f"Registry request timed out: {exc.__class__.__name__}",
                subject=subject,
                operation=operation,
            ) from exc
        except httpx.HTTPError as exc:
            registry_requests_total(operation=operation, result="transport_error").inc()
            raise TransportError(
                f"Registry request failed: {exc}",
                subject=subject,
                operation=operation,
            ) from exc
        finally:
            registry_request_seconds(operation=operation).observe(time.monotonic() - started)

        log.debug(
            "registry.request",
            method=method,
            path=path,
            status=response.status_code,
            elapsed_ms=round((time.monotonic() - started) * 1000, 2),
        )
        body = _json_or_none(response)
        if response.is_success:
            registry_requests_total(operation=operation, result="ok").inc()
            return body

        error_code = body.get("error_code") if isinstance(body, dict) else None
        if not isinstance(error_code, int):
            error_code = None
        message = body.get("message") if isinstance(body, dict) else None
        message = message or response.reason_phrase or "registry error"
        context = {
            "subject": subject,
            "operation": operation,
            "http_status": response.status_code,
            "error_code": error_code,
        }

        if (
            operation == "fetch_latest"
            and response.status_code == HTTP.NOT_FOUND
            and error_code in ABSENT_SUBJECT_CODES
        ):
            registry_requests_total(operation=operation, result="not_found").inc()
            raise NotFoundError(f"No schema registered: {message}", **context)

        registry_requests_total(operation=operation, result="error").inc()
        if response.status_code in (HTTP.UNAUTHORIZED, HTTP.FORBIDDEN):
            raise AuthError(f"Registry rejected the credentials: {message}", **context)
        raise UpstreamError(f"Registry error: {message}", **context)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _check_subject(subject: str) -> None:
    if not isinstance(subject, str) or not subject.strip():
        raise ValidationError(
            "Subject must be a non-empty string.",
            fields={"subject": "must be a non-empty string"},
        )


def _escape(subject: str) -> str:
    return quote(subject, safe="")


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _require_int(body: Any, key: str, *, subject: str, operation: str) -> int:
    value = body.get(key) if isinstance(body, dict) else None
    if not isinstance(value, int) or isinstance(value, bool):
        raise UpstreamError(
            f"Malformed registry response: missing integer {key!r}.",
            subject=subject,
            operation=operation,
        )
    return value


def _schema_from_body(
    body: Any,
    subject: str,
    *,
    operation: str,
    fallback: SchemaDocument | None = None,
) -> Schema:
    schema_id = _require_int(body, "id", subject=subject, operation=operation)
    version = _require_int(body, "version", subject=subject, operation=operation)

    schema_type = body.get("schemaType") or SCHEMA_TYPE_AVRO
    if schema_type != SCHEMA_TYPE_AVRO:
        raise SpecParseError(
            f"Registry schema type {schema_type!r} is not supported.",
            subject=subject,
            operation=operation,
            schema_id=schema_id,
        )

    text = body.get("schema")
    if text is None and fallback is not None:
        document = fallback
    else:
        try:
            document = SchemaDocument.parse(text, origin="registry")
        except SpecParseError as exc:
            raise SpecParseError(
                exc.user_message,
                subject=subject,
                operation=operation,
                schema_id=schema_id,
                **exc.metadata,
            ) from exc

    return Schema(
        subject=body.get("subject") or subject,
        id=schema_id,
        version=version,
        document=document,
    )


__all__ = ["RegistryClient"]
