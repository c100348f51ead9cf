"""
registry_sdk
────────────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from registry_sdk.tier0_core.logging import get_logger, bind_context, clear_context
from registry_sdk.tier0_core.errors import (
    SDKError,
    ValidationError,
    ConfigurationError,
    SpecParseError,
    ConflictError,
    TransportError,
    NotFoundError,
    AuthError,
    UpstreamError,
    CodecError,
    FormatError,
    UnknownSchemaError,
    EncodingError,
    DecodingError,
)
from registry_sdk.tier0_core.config import get_config, RegistryConfig

from registry_sdk.tier1_runtime.document import Schema, SchemaDocument
from registry_sdk.tier1_runtime.serialize import encode, decode, WireCodec

from registry_sdk.tier2_reliability.cache import SchemaCache

from registry_sdk.tier3_platform.registry_client import RegistryClient

from registry_sdk.tier4_advanced.schemas import (
    InMemorySchemaRegistry,
    RegistryBackend,
    SchemaNegotiator,
    ensure_schemas,
    topic_subject,
)

__version__ = "0.1.0"
__all__ = [
    # logging
    "get_logger", "bind_context", "clear_context",
    # errors
    "SDKError", "ValidationError", "ConfigurationError", "SpecParseError",
    "ConflictError", "TransportError", "NotFoundError", "AuthError",
    "UpstreamError", "CodecError", "FormatError", "UnknownSchemaError",
    "EncodingError", "DecodingError",
    # config
    "get_config", "RegistryConfig",
    # schema documents
    "Schema", "SchemaDocument",
    # wire codec
    "encode", "decode", "WireCodec",
    # cache
    "SchemaCache",
    # registry client
    "RegistryClient",
    # negotiation
    "InMemorySchemaRegistry", "RegistryBackend", "SchemaNegotiator",
    "ensure_schemas", "topic_subject",
]
