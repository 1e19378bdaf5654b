"""Ingestion pipeline: file → reference document → chunks → embeddings → chunk store.

Usage::

    from kg_weaver.config import load_settings
    from kg_weaver.ingestion.weaver import KnowledgeWeaver

    weaver = KnowledgeWeaver.from_settings(load_settings())
    report = weaver.ingest("docs/handbook.md")
    print(report.stored, "chunks stored,", len(report.failed_positions), "dropped")

Only the embedding stage runs in parallel: a thread pool with
``concurrency_limit`` workers keeps at most that many embedding calls in
flight.  Each task returns its own result and nothing is shared between
tasks; results are merged after every task has settled, keyed by the
chunk's position in the chunked sequence, so completion order never leaks
into stored ids.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from pydantic import BaseModel, Field

from kg_weaver.config import Settings
from kg_weaver.errors import TransportError
from kg_weaver.ingestion.chunker import TextChunk, chunk_text
from kg_weaver.ingestion.embedder import EmbeddingFunction, EmbeddingGateway
from kg_weaver.ingestion.loader import load_reference_document
from kg_weaver.storage import build_backend
from kg_weaver.storage.chunk_store import ChunkStore
from kg_weaver.storage.models import ChunkDocument, ReferenceDocument
from kg_weaver.storage.reference_store import ReferenceDocumentStore

logger = logging.getLogger(__name__)


def chunk_id_for(document_id: str, position: int) -> str:
    """Deterministic chunk id: re-ingesting a document overwrites its chunks."""
    return f"{document_id}_chunk_{position}"


class IngestionReport(BaseModel):
    """Summary of one document's chunk-and-embed run.

    Attributes
    ----------
    document_id:
        Reference document that was processed.
    total_chunks:
        Number of chunks the chunker produced.
    chunk_ids:
        Ids persisted to the chunk store, in chunk order.
    failed_positions:
        Chunk positions dropped because their embedding failed or came back
        with the wrong dimension.
    elapsed_seconds:
        Wall time of the run.
    """

    document_id: str
    total_chunks: int = 0
    chunk_ids: list[str] = Field(default_factory=list)
    failed_positions: list[int] = Field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def stored(self) -> int:
        return len(self.chunk_ids)


class KnowledgeWeaver:
    """Orchestrates ingestion of source files into the reference and chunk stores.

    Parameters
    ----------
    reference_store:
        Deduplicating store for whole documents.
    chunk_store:
        Store receiving embedded chunks.
    embed:
        Text → vector callable; raises :class:`~kg_weaver.errors.TransportError`
        on failure.
    concurrency_limit:
        Maximum number of embedding calls in flight.
    chunk_size / chunk_overlap:
        Chunker parameters.
    """

    def __init__(
        self,
        reference_store: ReferenceDocumentStore,
        chunk_store: ChunkStore,
        embed: EmbeddingFunction,
        *,
        concurrency_limit: int = 5,
        chunk_size: int = 512,
        chunk_overlap: int = 8,
    ) -> None:
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")
        self.reference_store = reference_store
        self.chunk_store = chunk_store
        self._embed = embed
        self.concurrency_limit = concurrency_limit
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    @classmethod
    def from_settings(cls, settings: Settings) -> KnowledgeWeaver:
        """Wire backend, gateway and stores from *settings*.

        Raises :class:`~kg_weaver.errors.ConfigurationError` when the
        embedding service is not configured.
        """
        gateway = EmbeddingGateway(settings.embedding)
        backend = build_backend(settings.storage_url)
        return cls(
            ReferenceDocumentStore(backend, table=settings.reference_table),
            ChunkStore(
                backend,
                gateway,
                table=settings.chunk_table,
                similarity_threshold=settings.similarity_threshold,
            ),
            gateway,
            concurrency_limit=settings.concurrency_limit,
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
        )

    # -- public API -----------------------------------------------------------

    def ingest(self, path: str | Path) -> IngestionReport:
        """Save the file at *path* as a reference document, then chunk and embed it."""
        document = self.save_reference_document(path)
        return self.chunk_and_embed(document.id)

    def save_reference_document(self, path: str | Path) -> ReferenceDocument:
        """Read *path* and persist it; identical content resolves to the stored record.

        Read errors propagate as :class:`~kg_weaver.errors.DocumentReadError`
        and nothing is stored.
        """
        document = self.reference_store.add(load_reference_document(path))
        logger.info("Reference document for %s: %s", path, document.id)
        return document

    def chunk_and_embed(self, document_id: str) -> IngestionReport:
        """Chunk a stored document, embed every chunk, and upsert the survivors.

        A chunk whose embedding fails is logged and left out; its siblings
        are unaffected.  A missing document yields an empty report.
        """
        started = time.monotonic()
        document = self.reference_store.get(document_id)
        if document is None:
            logger.error("Reference document %s not found; nothing to ingest", document_id)
            return IngestionReport(document_id=document_id)

        chunks = chunk_text(document.plain_text, self.chunk_size, self.chunk_overlap)
        logger.info("Chunked document %s into %d chunks", document_id, len(chunks))

        vectors = self._drop_mismatched(document_id, self._embed_all(document_id, chunks))

        records: dict[str, ChunkDocument] = {}
        failed: list[int] = []
        for position, (chunk, vector) in enumerate(zip(chunks, vectors)):
            if vector is None:
                failed.append(position)
                continue
            chunk_id = chunk_id_for(document_id, position)
            records[chunk_id] = ChunkDocument(
                id=chunk_id,
                reference_ids=[document_id],
                embedding=vector,
                content=chunk.content,
                metadata={
                    "reference_document_id": document_id,
                    "chunk_index": position,
                    "word_offset": chunk.index,
                    "source": document.metadata.get("source"),
                },
            )

        stored = self.chunk_store.upsert(records)
        elapsed = time.monotonic() - started
        logger.info(
            "Stored %d/%d chunks for %s in %.2fs (%d dropped)",
            len(stored), len(chunks), document_id, elapsed, len(failed),
        )
        return IngestionReport(
            document_id=document_id,
            total_chunks=len(chunks),
            chunk_ids=stored,
            failed_positions=failed,
            elapsed_seconds=round(elapsed, 3),
        )

    def remove_document(self, document_id: str) -> int:
        """Delete a reference document and every chunk that points at it.

        Returns the number of chunks removed.
        """
        removed = self.chunk_store.delete_many(self.chunk_store.ids_for_reference(document_id))
        self.reference_store.remove(document_id)
        return removed

    # -- internals ------------------------------------------------------------

    def _embed_one(self, document_id: str, position: int, text: str) -> list[float] | None:
        try:
            return self._embed(text)
        except TransportError as exc:
            logger.warning(
                "Embedding failed for chunk %d of %s; dropping it: %s", position, document_id, exc
            )
            return None

    def _embed_all(self, document_id: str, chunks: list[TextChunk]) -> list[list[float] | None]:
        """Embed *chunks* with at most ``concurrency_limit`` calls in flight.

        The returned list is aligned with *chunks*; ``None`` marks a failure.
        """
        if not chunks:
            return []
        workers = min(self.concurrency_limit, len(chunks))
        logger.debug("Embedding %d chunks with %d workers", len(chunks), workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="embed") as pool:
            futures = [
                pool.submit(self._embed_one, document_id, position, chunk.content)
                for position, chunk in enumerate(chunks)
            ]
            return [future.result() for future in futures]

    def _drop_mismatched(
        self, document_id: str, vectors: list[list[float] | None]
    ) -> list[list[float] | None]:
        """Replace vectors whose dimension disagrees with the collection by ``None``.

        The expected dimension is the chunk store's; for an empty store it is
        the most common dimension in this batch (earliest wins a tie).
        """
        expected = self.chunk_store.dimension
        if expected is None:
            counts = Counter(len(v) for v in vectors if v is not None)
            if not counts:
                return vectors
            expected = counts.most_common(1)[0][0]

        checked: list[list[float] | None] = []
        for position, vector in enumerate(vectors):
            if vector is not None and len(vector) != expected:
                logger.warning(
                    "Embedding for chunk %d of %s has dimension %d, expected %d; dropping it",
                    position, document_id, len(vector), expected,
                )
                vector = None
            checked.append(vector)
        return checked
