"""
Storage: reference documents, embedded chunks, and their backends.

Public surface
--------------
- :class:`ReferenceDocumentStore`: content-hash deduplicated documents.
- :class:`ChunkStore`: chunk CRUD plus cosine-similarity query.
- :class:`StorageBackend`: abstract backend (subclass for other databases).
- :class:`MemoryBackend`: in-process backend.
- :class:`SqlBackend` - SQLAlchemy backend.
- :func:`build_backend`: pick a backend from a storage URL.
"""

from kg_weaver.storage.base import SimilarityQuery, StorageBackend
from kg_weaver.storage.memory import MemoryBackend
from kg_weaver.storage.models import (
    ChunkDocument,
    DocumentType,
    QueryResult,
    ReferenceDocument,
    ScoredChunk,
    content_hash,
)

__all__ = [
    "ChunkDocument",
    "ChunkStore",
    "DocumentType",
    "MemoryBackend",
    "QueryResult",
    "ReferenceDocument",
    "ReferenceDocumentStore",
    "ScoredChunk",
    "SimilarityQuery",
    "SqlBackend",
    "StorageBackend",
    "build_backend",
    "content_hash",
]

MEMORY_URL = "memory://"


def build_backend(url: str) -> StorageBackend:
    """Return :class:`MemoryBackend` for ``memory://``, else a :class:`SqlBackend` on *url*."""
    if url == MEMORY_URL:
        return MemoryBackend()
    from kg_weaver.storage.sql import SqlBackend

    return SqlBackend(url)


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import modules that pull in SQLAlchemy or the ingestion package."""
    if name == "SqlBackend":
        from kg_weaver.storage.sql import SqlBackend

        return SqlBackend
    if name == "ChunkStore":
        from kg_weaver.storage.chunk_store import ChunkStore

        return ChunkStore
    if name == "ReferenceDocumentStore":
        from kg_weaver.storage.reference_store import ReferenceDocumentStore

        return ReferenceDocumentStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
