"""Persistence and similarity search over embedded chunks."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from kg_weaver.errors import DimensionMismatchError, StorageError, TransportError
from kg_weaver.ingestion.embedder import EmbeddingFunction
from kg_weaver.storage.base import SimilarityQuery, StorageBackend
from kg_weaver.storage.models import ChunkDocument, QueryResult, ScoredChunk

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.2


class ChunkStore:
    """CRUD and cosine-similarity query over :class:`ChunkDocument` records.

    Every embedding in one store must have the same dimension.  The first
    write (or the first stored record) fixes it; later writes with another
    dimension raise :class:`~kg_weaver.errors.DimensionMismatchError`.

    Parameters
    ----------
    backend:
        Storage backend.
    embed:
        Callable turning query text into a vector; raises
        :class:`~kg_weaver.errors.TransportError` on failure.
        :class:`~kg_weaver.ingestion.embedder.EmbeddingGateway` instances
        qualify.
    table:
        Name of the chunk table.
    similarity_threshold:
        Query hits scoring below this are discarded.
    """

    def __init__(
        self,
        backend: StorageBackend,
        embed: EmbeddingFunction,
        *,
        table: str = "chunks",
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> None:
        self._backend = backend
        self._embed = embed
        self.table = table
        self.similarity_threshold = similarity_threshold
        self._dimension: int | None = None

    # -- writes ---------------------------------------------------------------

    def create(self, chunk: ChunkDocument) -> ChunkDocument:
        """Persist one chunk (a new id is generated when ``chunk.id`` is unset)."""
        self._check_dimension([chunk])
        record = self._backend.create(self.table, self._payload(chunk), record_id=chunk.id)
        return ChunkDocument.model_validate(record)

    def upsert(self, chunks: Mapping[str, ChunkDocument]) -> list[str]:
        """Write every ``id → chunk`` pair, replacing existing records wholesale.

        The batch is validated up front; the writes themselves are not
        atomic, so a backend failure part-way leaves earlier ids stored.
        Returns the ids written.
        """
        if not chunks:
            return []
        self._check_dimension(chunks.values())

        written: list[str] = []
        for chunk_id, chunk in chunks.items():
            self._backend.replace(self.table, chunk_id, self._payload(chunk))
            written.append(chunk_id)
        logger.info("Upserted %d chunks into %s", len(written), self.table)
        return written

    def update(self, chunk_id: str, partial: Mapping[str, Any]) -> ChunkDocument | None:
        """Merge *partial* fields into a stored chunk; ``None`` if it is missing."""
        current = self.get(chunk_id)
        if current is None:
            return None
        try:
            merged = ChunkDocument.model_validate({**current.model_dump(), **partial, "id": chunk_id})
        except ValidationError as exc:
            raise StorageError(f"invalid update for chunk {chunk_id!r}: {exc}") from exc
        self._check_dimension([merged])
        record = self._backend.merge(self.table, chunk_id, self._payload(merged))
        return ChunkDocument.model_validate(record) if record is not None else None

    def delete(self, chunk_id: str) -> None:
        self._backend.delete(self.table, chunk_id)
        self._dimension = None

    def delete_many(self, chunk_ids: list[str]) -> int:
        """Delete the existing subset of *chunk_ids*; an empty list is a no-op."""
        if not chunk_ids:
            return 0
        removed = self._backend.delete_many(self.table, chunk_ids)
        self._dimension = None
        logger.info("Deleted %d of %d requested chunks", removed, len(chunk_ids))
        return removed

    def delete_entity(self, entity_name: str) -> None:
        """Delete the chunk stored under *entity_name*."""
        self._backend.delete(self.table, entity_name)
        self._dimension = None

    def delete_entity_relation(self, entity_name: str) -> None:
        """Relation cleanup hook; intentionally does not cascade to anything."""
        logger.warning("delete_entity_relation has no relation model; nothing removed for %r", entity_name)

    # -- reads ----------------------------------------------------------------

    def get(self, chunk_id: str) -> ChunkDocument | None:
        record = self._backend.select(self.table, chunk_id)
        return ChunkDocument.model_validate(record) if record is not None else None

    def get_many(self, chunk_ids: list[str]) -> list[ChunkDocument]:
        """Return the chunks that exist among *chunk_ids*; missing ids are omitted."""
        return [ChunkDocument.model_validate(r) for r in self._backend.select_many(self.table, chunk_ids)]

    def list(self) -> list[ChunkDocument]:
        return [ChunkDocument.model_validate(r) for r in self._backend.select_all(self.table)]

    @property
    def dimension(self) -> int | None:
        """Embedding dimension of the stored chunks; ``None`` while the table is empty.

        Cached after the first lookup and re-derived after any delete, so an
        emptied table accepts a new dimension.
        """
        if self._dimension is None:
            for record in self._backend.select_all(self.table):
                if record.get("embedding"):
                    self._dimension = len(record["embedding"])
                    break
        return self._dimension

    def ids_for_reference(self, reference_id: str) -> list[str]:
        """Ids of chunks whose ``reference_ids`` include *reference_id*."""
        return [
            r["id"]
            for r in self._backend.select_all(self.table)
            if reference_id in r.get("reference_ids", ())
        ]

    def query(self, query: str, top_k: int, ids: list[str] | None = None) -> QueryResult:
        """Return up to *top_k* chunks most similar to *query*.

        Parameters
        ----------
        query:
            Natural-language query; embedded through the store's embed function.
        top_k:
            Maximum number of matches.
        ids:
            Restrict the search to these chunk ids; empty or ``None`` searches all.

        Returns
        -------
        QueryResult
            Matches sorted by descending cosine score, all at or above
            :attr:`similarity_threshold`.  If the query cannot be embedded
            the result is empty and ``error`` describes the failure.
        """
        try:
            vector = self._embed(query)
        except TransportError as exc:
            logger.error("Failed to embed query; cannot run vector search: %s", exc)
            return QueryResult(error=str(exc))

        expected = self.dimension
        if expected is not None and len(vector) != expected:
            message = f"query embedding dimension {len(vector)} != {expected} stored in {self.table}"
            logger.error("Cannot run vector search: %s", message)
            return QueryResult(error=message)

        hits = self._backend.query(
            SimilarityQuery(
                table=self.table,
                vector=vector,
                ids=ids or None,
                min_score=self.similarity_threshold,
                limit=top_k,
            )
        )
        matches = [ScoredChunk.model_validate({**record, "score": score}) for record, score in hits]
        logger.debug("Query matched %d chunks (top_k=%d)", len(matches), top_k)
        return QueryResult(matches=matches)

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _payload(chunk: ChunkDocument) -> dict[str, Any]:
        return chunk.model_dump(mode="json", exclude={"id"})

    def _check_dimension(self, chunks) -> None:  # noqa: ANN001
        expected = self.dimension
        for chunk in chunks:
            if expected is None:
                expected = chunk.dimension
            elif chunk.dimension != expected:
                raise DimensionMismatchError(
                    f"{self.table}: embedding dimension {chunk.dimension} != {expected}"
                )
        self._dimension = expected
