"""
registry_sdk.tier1_runtime.validate
──────────────────────────────────────
Shape checks on both sides of the wire. Values are validated against the
Avro schema before encoding; decoded records are validated into a Pydantic
model when the caller asks for one. Raises SDK codec errors, never the raw
fastavro or Pydantic ones.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Type, TypeVar

from fastavro.validation import ValidationError as AvroValidationError
from fastavro.validation import validate
from pydantic import BaseModel, ValidationError as PydanticValidationError

from registry_sdk.tier0_core.errors import DecodingError, EncodingError
from registry_sdk.tier1_runtime.document import SchemaDocument

T = TypeVar("T", bound=BaseModel)


def to_record(value: Any) -> Any:
    """
    Convert a value into the plain Python shape fastavro writes.
    Pydantic models are dumped; mappings are copied into a dict.
    """
    if isinstance(value, BaseModel):
        return value.model_dump(mode="python")
    if isinstance(value, Mapping):
        return dict(value)
    return value


def validate_record(document: SchemaDocument, record: Any, **context: Any) -> None:
    """
    Check that `record` conforms to `document`.
    Raises EncodingError listing the offending fields on failure.

    Usage:
        validate_record(schema.document, {"a": 1}, subject=schema.subject)
    """
    try:
        validate(record, document.avro, raise_errors=True)
    except AvroValidationError as exc:
        fields = [str(e) for e in exc.errors] if exc.errors else [str(exc)]
        raise EncodingError(
            "Value does not conform to the schema.",
            detail=f"Value does not conform to schema {document.name or document.canonical}: "
                   + "; ".join(fields),
            **context,
        ) from exc


def coerce_record(model: Type[T], record: Any, **context: Any) -> T:
    """
    Validate a decoded record into `model`.
    Raises DecodingError (not Pydantic's) on failure.
    """
    try:
        return model.model_validate(record)
    except PydanticValidationError as exc:
        fields = {
            ".".join(str(loc) for loc in err["loc"]): err["msg"]
            for err in exc.errors()
        }
        raise DecodingError(
            f"Decoded record does not fit {model.__name__}.",
            fields=fields,
            **context,
        ) from exc


__all__ = ["to_record", "validate_record", "coerce_record"]
