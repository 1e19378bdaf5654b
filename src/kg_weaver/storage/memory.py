"""In-process implementation of the storage abstraction."""

from __future__ import annotations

import copy
import threading
from typing import Any
from uuid import uuid4

from kg_weaver.errors import DuplicateRecordError
from kg_weaver.storage.base import Record, StorageBackend


class MemoryBackend(StorageBackend):
    """Dict-backed store, safe to share between threads.

    Tables are plain ``dict`` objects, so iteration follows insertion order
    and replacing an existing id keeps its original position.  Records are
    deep-copied in and out so callers never alias stored state.
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Record]] = {}
        self._unique: dict[str, set[str]] = {}
        self._lock = threading.RLock()

    def _table(self, table: str) -> dict[str, Record]:
        return self._tables.setdefault(table, {})

    def _check_unique(self, table: str, data: Record, record_id: str) -> None:
        for field in self._unique.get(table, ()):
            value = data.get(field)
            if value is None:
                continue
            for other_id, other in self._table(table).items():
                if other_id != record_id and other.get(field) == value:
                    raise DuplicateRecordError(table, field, str(value))

    # -- StorageBackend overrides ---------------------------------------------

    def create(self, table: str, data: Record, record_id: str | None = None) -> Record:
        record_id = record_id or uuid4().hex
        with self._lock:
            rows = self._table(table)
            if record_id in rows:
                raise DuplicateRecordError(table, "id", record_id)
            self._check_unique(table, data, record_id)
            record = {**copy.deepcopy(data), "id": record_id}
            rows[record_id] = record
            return copy.deepcopy(record)

    def replace(self, table: str, record_id: str, data: Record) -> Record:
        with self._lock:
            self._check_unique(table, data, record_id)
            record = {**copy.deepcopy(data), "id": record_id}
            self._table(table)[record_id] = record
            return copy.deepcopy(record)

    def select(self, table: str, record_id: str) -> Record | None:
        with self._lock:
            record = self._table(table).get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def select_all(self, table: str) -> list[Record]:
        with self._lock:
            return copy.deepcopy(list(self._table(table).values()))

    def find(self, table: str, field: str, value: Any) -> list[Record]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._table(table).values() if r.get(field) == value]

    def merge(self, table: str, record_id: str, partial: Record) -> Record | None:
        with self._lock:
            rows = self._table(table)
            if record_id not in rows:
                return None
            merged = {**rows[record_id], **copy.deepcopy(partial), "id": record_id}
            self._check_unique(table, merged, record_id)
            rows[record_id] = merged
            return copy.deepcopy(merged)

    def delete(self, table: str, record_id: str) -> Record | None:
        with self._lock:
            return self._table(table).pop(record_id, None)

    def ensure_unique(self, table: str, field: str) -> None:
        with self._lock:
            self._unique.setdefault(table, set()).add(field)
