"""
registry_sdk.tier2_reliability.cache
───────────────────────────────────────
In-process schema cache: schema id → Schema, plus the latest version seen
per subject. Used as the resolver when decoding envelopes, so a consumer
never needs a registry round trip per message.

Lives for the process only; nothing is persisted across restarts.
"""
from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator

from registry_sdk.tier0_core.errors import ConflictError
from registry_sdk.tier1_runtime.document import Schema


class SchemaCache:
    """
    Thread-safe id → Schema map. A cache instance is callable with a
    schema id, so it can be handed to decode() as the resolver.
    """

    def __init__(self, schemas: Iterable[Schema] = ()) -> None:
        self._by_id: dict[int, Schema] = {}
        self._latest: dict[str, Schema] = {}
        self._lock = threading.Lock()
        for schema in schemas:
            self.put(schema)

    def get(self, schema_id: int) -> Schema | None:
        with self._lock:
            return self._by_id.get(schema_id)

    __call__ = get

    def put(self, schema: Schema, *, trusted: bool = False) -> Schema:
        """
        Add a schema. Re-adding the same id is a no-op; an id arriving with
        a different document raises ConflictError, since ids never change
        meaning. Returns the cached instance.

        `trusted` marks an id the registry itself just assigned. The registry
        matches documents on their parsed Avro form, so it may hand out a
        cached id for a document that differs only in JSON spelling
        (`"string"` vs `{"type": "string"}`). Such an id keeps its cached
        document and the subject's latest entry points at `schema`.
        """
        with self._lock:
            existing = self._by_id.get(schema.id)
            if existing is not None and existing.document != schema.document:
                if trusted:
                    self._track_latest(schema)
                    return schema
                raise ConflictError(
                    "Schema id is already bound to a different document.",
                    schema_id=schema.id,
                    subject=schema.subject,
                    cached_subject=existing.subject,
                )
            if existing is None:
                self._by_id[schema.id] = schema
            self._track_latest(schema)
            return existing or schema

    def _track_latest(self, schema: Schema) -> None:
        latest = self._latest.get(schema.subject)
        if latest is None or schema.version >= latest.version:
            self._latest[schema.subject] = schema

    def latest(self, subject: str) -> Schema | None:
        """Highest version seen for `subject`."""
        with self._lock:
            return self._latest.get(subject)

    def clear(self) -> None:
        with self._lock:
            self._by_id.clear()
            self._latest.clear()

    def __contains__(self, schema_id: object) -> bool:
        with self._lock:
            return schema_id in self._by_id

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def __iter__(self) -> Iterator[Schema]:
        with self._lock:
            return iter(list(self._by_id.values()))


__all__ = ["SchemaCache"]
