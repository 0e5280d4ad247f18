from __future__ import annotations

import copy
import threading
from collections.abc import Callable, Sequence
from typing import Any

from ..models.schema import EntityKind, get_schema
from .base import GetResult, StoreClient, StoreError

"""In-memory StoreClient.

Used by the CLI ``--store memory`` dry-run mode and by the test-suite. Every
call is recorded (get_calls / put_calls) so chunking can be asserted, and
failures can be injected through ``put_hook`` / ``get_hook``.
"""

__all__ = [
    "InMemoryStore",
]

PutHook = Callable[[EntityKind, list[dict[str, Any]]], list[dict[str, Any]] | None]
GetHook = Callable[[EntityKind, list[str]], None]


class InMemoryStore(StoreClient):
    def __init__(
        self,
        initial: dict[EntityKind, list[dict[str, Any]]] | None = None,
        *,
        put_hook: PutHook | None = None,
        get_hook: GetHook | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._tables: dict[EntityKind, dict[str, dict[str, Any]]] = {k: {} for k in EntityKind}
        self.get_calls: list[tuple[EntityKind, list[str]]] = []
        self.put_calls: list[tuple[EntityKind, list[dict[str, Any]]]] = []
        self.put_hook = put_hook
        self.get_hook = get_hook
        for kind, records in (initial or {}).items():
            for record in records:
                self.seed(kind, record)

    def seed(self, kind: EntityKind, record: dict[str, Any]) -> None:
        key_field = get_schema(kind).key_field
        self._tables[kind][str(record[key_field])] = copy.deepcopy(record)

    def get(self, kind: EntityKind, key: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._tables[kind].get(key)
            return copy.deepcopy(record) if record is not None else None

    def count(self, kind: EntityKind) -> int:
        return len(self._tables[kind])

    def get_items(self, kind: EntityKind, keys: Sequence[str]) -> GetResult:
        keys = list(keys)
        with self._lock:
            self.get_calls.append((kind, keys))
        if self.get_hook is not None:
            self.get_hook(kind, keys)  # may raise StoreError
        with self._lock:
            table = self._tables[kind]
            items = [copy.deepcopy(table[k]) for k in keys if k in table]
        return GetResult(items=items)

    def put_items(self, kind: EntityKind, records: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        records = [copy.deepcopy(r) for r in records]
        with self._lock:
            self.put_calls.append((kind, records))
        unprocessed: list[dict[str, Any]] = []
        if self.put_hook is not None:
            unprocessed = self.put_hook(kind, records) or []
        key_field = get_schema(kind).key_field
        skipped = {id(r) for r in unprocessed}
        with self._lock:
            for record in records:
                if id(record) not in skipped:
                    self._tables[kind][str(record[key_field])] = record
        return unprocessed

    def increment_counter(self, kind: EntityKind, key: str, field_name: str, amount: int = 1) -> int:
        with self._lock:
            record = self._tables[kind].get(key)
            if record is None:
                raise StoreError(f"{kind.value} record not found: {key}")
            record[field_name] = (record.get(field_name) or 0) + amount
            return record[field_name]
