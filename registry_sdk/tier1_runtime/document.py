"""
registry_sdk.tier1_runtime.document
─────────────────────────────────────
Parsed, immutable Avro schema definitions and their registry identity.

Two documents are equal when their parsed JSON is equal: object key order
and whitespace never matter, array order (including record field order)
does, since it changes the binary encoding.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

import fastavro
from fastavro.schema import SchemaParseException

from registry_sdk.tier0_core.errors import SpecParseError


@dataclass(frozen=True)
class SchemaDocument:
    """
    Canonical form of an Avro schema. Build with SchemaDocument.parse();
    `canonical` is sorted-key compact JSON and is the only compared field.
    """

    canonical: str
    source: str = field(default="", compare=False, repr=False)

    @classmethod
    def parse(cls, text: str, *, origin: str = "local") -> SchemaDocument:
        """
        Parse schema text. Raises SpecParseError if it is not JSON or not a
        valid Avro schema. `origin` names where the text came from and ends
        up in the error context.
        """
        if not isinstance(text, str):
            raise SpecParseError(
                "Schema text must be a string.",
                origin=origin,
                got=type(text).__name__,
            )
        try:
            definition = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SpecParseError(
                f"Schema is not valid JSON: {exc.msg}",
                origin=origin,
                line=exc.lineno,
                column=exc.colno,
            ) from exc
        doc = cls(
            canonical=json.dumps(definition, sort_keys=True, separators=(",", ":"), ensure_ascii=False),
            source=text,
        )
        # Force Avro validation now so a bad document never reaches the codec.
        try:
            doc.avro
        except (SchemaParseException, ValueError, TypeError, KeyError) as exc:
            raise SpecParseError(
                f"Schema is not a valid Avro schema: {exc}",
                origin=origin,
            ) from exc
        return doc

    @property
    def definition(self) -> Any:
        """A fresh copy of the parsed JSON definition."""
        return json.loads(self.canonical)

    @cached_property
    def avro(self) -> Any:
        """fastavro-parsed schema used by the codec."""
        return fastavro.parse_schema(self.definition)

    @property
    def name(self) -> str | None:
        """Full name of a named schema (record, enum, fixed), else None."""
        definition = self.definition
        if not isinstance(definition, dict) or "name" not in definition:
            return None
        name = definition["name"]
        namespace = definition.get("namespace")
        if namespace and "." not in name:
            return f"{namespace}.{name}"
        return name

    @property
    def text(self) -> str:
        """Text to send to the registry: the original source when known."""
        return self.source or self.canonical

    def __str__(self) -> str:
        return self.canonical


@dataclass(frozen=True)
class Schema:
    """A schema document bound to its registry identity."""

    subject: str
    id: int
    version: int
    document: SchemaDocument

    def __str__(self) -> str:
        return f"{self.subject} (v{self.version}, id={self.id})"


__all__ = ["SchemaDocument", "Schema"]
