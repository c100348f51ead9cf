"""
registry_sdk.tier0_core.http
─────────────────────────────
HTTP primitives shared by the registry client and its test fakes:
status codes, the registry's own error codes, and the registry media type.
"""
from __future__ import annotations


# ── Status code constants ──────────────────────────────────────────────────

class HTTP:
    """HTTP status codes the registry client distinguishes."""

    # 2xx
    OK = 200

    # 4xx
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422

    # 5xx
    INTERNAL_SERVER_ERROR = 500


# ── Registry error codes ───────────────────────────────────────────────────

class RegistryErrorCode:
    """`error_code` values carried in registry error bodies."""

    SUBJECT_NOT_FOUND = 40401
    VERSION_NOT_FOUND = 40402
    SCHEMA_NOT_FOUND = 40403
    INCOMPATIBLE_SCHEMA = 409
    INVALID_SCHEMA = 42201
    BACKEND_STORE_ERROR = 50001


# 404 codes that mean "nothing registered yet" for a latest-version lookup.
ABSENT_SUBJECT_CODES = frozenset({
    RegistryErrorCode.SUBJECT_NOT_FOUND,
    RegistryErrorCode.VERSION_NOT_FOUND,
})

REGISTRY_CONTENT_TYPE = "application/vnd.schemaregistry.v1+json"

SCHEMA_TYPE_AVRO = "AVRO"


__all__ = [
    "HTTP", "RegistryErrorCode", "ABSENT_SUBJECT_CODES",
    "REGISTRY_CONTENT_TYPE", "SCHEMA_TYPE_AVRO",
]
