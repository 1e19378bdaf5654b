"""Abstract base class for storage backends.

The stores in :mod:`kg_weaver.storage` talk to persistence only through
:class:`StorageBackend`.  A backend keeps named tables of JSON-like records,
each carrying its identifier under the ``"id"`` key, and can rank a table's
records by cosine similarity against a query vector.

Adding a backend only requires subclassing :class:`StorageBackend`; the
stores, the weaver and the retriever are backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

Record = dict[str, Any]


class SimilarityQuery(BaseModel):
    """Declarative vector query.

    Attributes
    ----------
    table:
        Table to scan.
    vector:
        Query embedding.
    field:
        Record key holding each candidate's embedding.
    ids:
        Restrict the scan to these record ids (``None`` scans the table).
    min_score:
        Candidates scoring below this are discarded before truncation.
    limit:
        Maximum number of hits returned.
    """

    table: str
    vector: list[float] = Field(min_length=1)
    field: str = "embedding"
    ids: list[str] | None = None
    min_score: float | None = None
    limit: int | None = Field(default=None, ge=0)


class StorageBackend(ABC):
    """Backend-agnostic record storage.

    Reads of missing ids return ``None`` (or omit the id), and deletes of
    missing ids are no-ops; neither is an error.
    """

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def create(self, table: str, data: Record, record_id: str | None = None) -> Record:
        """Insert a new record and return it with its ``"id"``.

        A fresh id is generated when *record_id* is ``None``.  Raises
        :class:`~kg_weaver.errors.DuplicateRecordError` when the id or a
        field declared with :meth:`ensure_unique` is already taken.
        """
        ...

    @abstractmethod
    def replace(self, table: str, record_id: str, data: Record) -> Record:
        """Insert *data* under *record_id*, fully replacing any existing record."""
        ...

    @abstractmethod
    def select(self, table: str, record_id: str) -> Record | None:
        """Return one record, or ``None`` if it does not exist."""
        ...

    @abstractmethod
    def select_all(self, table: str) -> list[Record]:
        """Return every record of *table* in storage (insertion) order."""
        ...

    @abstractmethod
    def find(self, table: str, field: str, value: Any) -> list[Record]:
        """Return records whose top-level *field* equals *value*."""
        ...

    @abstractmethod
    def merge(self, table: str, record_id: str, partial: Record) -> Record | None:
        """Shallow-merge *partial* into an existing record; ``None`` if missing."""
        ...

    @abstractmethod
    def delete(self, table: str, record_id: str) -> Record | None:
        """Delete one record and return it, or ``None`` if it did not exist."""
        ...

    @abstractmethod
    def ensure_unique(self, table: str, field: str) -> None:
        """Declare *field* unique within *table*; later writes must honour it."""
        ...

    # -- optional overrides ---------------------------------------------------

    def select_many(self, table: str, ids: list[str]) -> list[Record]:
        """Return the existing subset of *ids*, in storage order."""
        wanted = set(ids)
        if not wanted:
            return []
        return [r for r in self.select_all(table) if r["id"] in wanted]

    def delete_many(self, table: str, ids: list[str]) -> int:
        """Delete every existing id in *ids*; return how many were removed."""
        removed = 0
        for record_id in dict.fromkeys(ids):
            if self.delete(table, record_id) is not None:
                removed += 1
        return removed

    def query(self, query: SimilarityQuery) -> list[tuple[Record, float]]:
        """Exhaustively score *query.table* and return ``(record, score)`` pairs."""
        from kg_weaver.storage.similarity import rank_by_similarity

        if query.ids is not None:
            candidates = self.select_many(query.table, query.ids)
        else:
            candidates = self.select_all(query.table)
        return rank_by_similarity(
            candidates,
            query.vector,
            field=query.field,
            min_score=query.min_score,
            limit=query.limit,
        )

    def close(self) -> None:
        """Release connections held by the backend."""
