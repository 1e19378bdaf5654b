"""Semantic retriever: chunk search with citations back to source documents.

Usage::

    from kg_weaver.retrieval import SemanticRetriever

    retriever = SemanticRetriever(chunk_store, reference_store)
    for r in retriever.search("How is the cache invalidated?", k=5):
        print(r.citation.short_ref(), r.content[:80])
"""

from __future__ import annotations

import logging

from kg_weaver.retrieval.models import Citation, RetrievalResult
from kg_weaver.storage.chunk_store import ChunkStore
from kg_weaver.storage.models import ScoredChunk
from kg_weaver.storage.reference_store import ReferenceDocumentStore

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """High-level retriever over a :class:`ChunkStore`.

    Parameters
    ----------
    chunk_store:
        Store to query.
    reference_store:
        Used to resolve a citation's ``source`` when the chunk metadata
        lacks one.  Optional.
    default_k:
        Default number of results returned by :meth:`search`.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        reference_store: ReferenceDocumentStore | None = None,
        *,
        default_k: int = 5,
    ) -> None:
        self._chunks = chunk_store
        self._references = reference_store
        self.default_k = default_k

    def search(
        self,
        query: str,
        *,
        k: int | None = None,
        chunk_ids: list[str] | None = None,
    ) -> list[RetrievalResult]:
        """Run a similarity search and return results with citations.

        An embedding failure is logged by the chunk store and yields ``[]``.
        """
        result = self._chunks.query(query, self.default_k if k is None else k, chunk_ids)
        if not result.ok:
            logger.warning("Search for %r returned nothing: %s", query[:60], result.error)
            return []
        return [self._to_result(match) for match in result.matches]

    # -- internals ------------------------------------------------------------

    def _source_for(self, match: ScoredChunk) -> str:
        source = match.metadata.get("source")
        if source:
            return str(source)
        if self._references is not None:
            for ref_id in match.reference_ids:
                document = self._references.get(ref_id)
                if document is not None and document.metadata.get("source"):
                    return str(document.metadata["source"])
        return "unknown"

    def _to_result(self, match: ScoredChunk) -> RetrievalResult:
        citation = Citation(
            chunk_id=match.id,
            reference_ids=list(match.reference_ids),
            source=self._source_for(match),
            chunk_index=match.metadata.get("chunk_index"),
            score=match.score,
            metadata=match.metadata,
        )
        return RetrievalResult(content=match.content, citation=citation)
