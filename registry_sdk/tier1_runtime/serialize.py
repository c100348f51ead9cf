"""
registry_sdk.tier1_runtime.serialize
───────────────────────────────────────
Avro wire codec. Every encoded payload is framed in the registry envelope:

    byte 0       : 0x00 marker
    bytes 1..4   : schema id, unsigned 32-bit big-endian
    bytes 5..end : Avro binary payload (fastavro schemaless encoding)

Decoding validates the header and resolves the id to the schema that
produced the payload before reading it. Failures raise CodecError
subclasses so a consumer can drop one bad message and carry on.
"""
from __future__ import annotations

import io
import struct
from collections.abc import Callable, Mapping
from typing import Any, Generic, Type, TypeVar

import fastavro
from fastavro.read import SchemaResolutionError
from pydantic import BaseModel

from registry_sdk.tier0_core.errors import (
    CodecError,
    DecodingError,
    EncodingError,
    FormatError,
    UnknownSchemaError,
)
from registry_sdk.tier0_core.metrics import codec_errors_total
from registry_sdk.tier1_runtime.document import Schema
from registry_sdk.tier1_runtime.validate import coerce_record, to_record, validate_record

T = TypeVar("T", bound=BaseModel)

MAGIC_BYTE = 0
HEADER_SIZE = 5
MAX_SCHEMA_ID = 0xFFFFFFFF

_HEADER = struct.Struct(">BI")

SchemaResolver = Callable[[int], Schema | None]

# Errors fastavro's reader raises on payloads that don't match the schema.
_READ_ERRORS = (
    EOFError,
    ValueError,
    TypeError,
    IndexError,
    KeyError,
    UnicodeDecodeError,
    struct.error,
    SchemaResolutionError,
)


# ── Envelope ──────────────────────────────────────────────────────────────────

def pack_header(schema_id: int) -> bytes:
    """Return the 5-byte envelope header for `schema_id`."""
    if not isinstance(schema_id, int) or not 0 <= schema_id <= MAX_SCHEMA_ID:
        raise EncodingError(
            "Schema id does not fit the envelope.",
            schema_id=schema_id,
        )
    return _HEADER.pack(MAGIC_BYTE, schema_id)


def unpack_header(data: bytes) -> tuple[int, bytes]:
    """
    Split an envelope into (schema_id, payload).
    Raises FormatError when it is too short or the marker byte is wrong.
    """
    if len(data) < HEADER_SIZE:
        raise FormatError(
            f"Envelope is shorter than the {HEADER_SIZE}-byte header.",
            byte_length=len(data),
        )
    marker, schema_id = _HEADER.unpack_from(data)
    if marker != MAGIC_BYTE:
        raise FormatError(
            f"Envelope marker byte is {marker:#04x}, expected {MAGIC_BYTE:#04x}.",
            byte_length=len(data),
        )
    return schema_id, bytes(data[HEADER_SIZE:])


# ── Encode / decode ───────────────────────────────────────────────────────────

def encode(schema: Schema, value: Any) -> bytes:
    """
    Encode `value` under `schema` and frame it in the wire envelope.

    Usage:
        data = encode(schema, {"feed": "ETH/USD", "answer": 42})
        data = encode(schema, Transmission(feed="ETH/USD", answer=42))
    """
    try:
        header = pack_header(schema.id)
        record = to_record(value)
        validate_record(schema.document, record, subject=schema.subject, schema_id=schema.id)
        buf = io.BytesIO()
        buf.write(header)
        try:
            fastavro.schemaless_writer(buf, schema.document.avro, record)
        except (ValueError, TypeError, KeyError, AttributeError, OverflowError, struct.error) as exc:
            raise EncodingError(
                f"Failed to encode value in avro: {exc}",
                subject=schema.subject,
                schema_id=schema.id,
            ) from exc
    except CodecError as exc:
        codec_errors_total(operation="encode", kind=exc.code).inc()
        raise
    return buf.getvalue()


def decode(
    data: bytes,
    resolver: SchemaResolver,
    *,
    model: Type[T] | None = None,
    reader_schema: Schema | None = None,
) -> Any:
    """
    Decode an envelope. `resolver` maps the envelope's schema id to the
    Schema that wrote it, returning None when it cannot. With
    `reader_schema`, the record is projected onto that schema using Avro
    schema resolution; with `model`, it is validated into that model.
    """
    try:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise FormatError(
                "Envelope must be a bytes-like object.",
                got=type(data).__name__,
            )
        return _decode(bytes(data), resolver, model, reader_schema)
    except CodecError as exc:
        codec_errors_total(operation="decode", kind=exc.code).inc()
        raise


def _decode(
    data: bytes,
    resolver: SchemaResolver,
    model: Type[T] | None,
    reader_schema: Schema | None,
) -> Any:
    schema_id, payload = unpack_header(data)
    writer = resolver(schema_id)
    if writer is None:
        raise UnknownSchemaError(
            "Envelope references a schema id that cannot be resolved.",
            schema_id=schema_id,
            byte_length=len(data),
        )

    reader = None
    if reader_schema is not None and reader_schema.document != writer.document:
        reader = reader_schema.document.avro

    buf = io.BytesIO(payload)
    try:
        value = fastavro.schemaless_reader(buf, writer.document.avro, reader)
    except _READ_ERRORS as exc:
        raise DecodingError(
            f"Payload does not match the writer schema: {exc}",
            subject=writer.subject,
            schema_id=schema_id,
            byte_length=len(data),
        ) from exc
    if buf.tell() != len(payload):
        raise DecodingError(
            "Payload has trailing bytes after the record.",
            subject=writer.subject,
            schema_id=schema_id,
            byte_length=len(data),
            unread=len(payload) - buf.tell(),
        )

    if model is not None:
        return coerce_record(model, value, subject=writer.subject, schema_id=schema_id)
    return value


# ── Bound codec ───────────────────────────────────────────────────────────────

class WireCodec(Generic[T]):
    """
    Codec bound to one schema. Encodes with that schema; decodes any
    envelope whose id is the bound schema or is known to `resolver`,
    reading older writer schemas into the bound schema's shape.

    Usage::

        codec = WireCodec(schema, model=Transmission)
        data = codec.encode(Transmission(feed="ETH/USD", answer=42))
        record = codec.decode(data)   # → Transmission
    """

    def __init__(
        self,
        schema: Schema,
        resolver: SchemaResolver | None = None,
        model: Type[T] | None = None,
    ) -> None:
        self._schema = schema
        self._resolver = resolver
        self._model = model

    @property
    def schema(self) -> Schema:
        return self._schema

    def resolve(self, schema_id: int) -> Schema | None:
        if schema_id == self._schema.id:
            return self._schema
        if self._resolver is None:
            return None
        return self._resolver(schema_id)

    def encode(self, value: T | Mapping[str, Any]) -> bytes:
        return encode(self._schema, value)

    def decode(self, data: bytes) -> T | Any:
        return decode(data, self.resolve, model=self._model, reader_schema=self._schema)


__all__ = [
    "MAGIC_BYTE", "HEADER_SIZE", "SchemaResolver", "pack_header",
    "unpack_header", "encode", "decode", "WireCodec",
]
