"""Record types persisted by the reference-document and chunk stores."""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DocumentType(str, Enum):
    """Source formats accepted for reference documents."""

    PDF = "pdf"
    TXT = "txt"
    MARKDOWN = "markdown"


def content_hash(content: str, plain_text: str) -> str:
    """Return the dedup fingerprint of a document: SHA-256 of ``content + plain_text``."""
    return hashlib.sha256((content + plain_text).encode("utf-8")).hexdigest()


class ReferenceDocument(BaseModel):
    """A whole source document, stored once per distinct content hash.

    Attributes
    ----------
    id:
        Storage identifier, assigned on first insert.
    type:
        Source format.
    content:
        Raw file content.
    plain_text:
        Text extracted from ``content``; this is what gets chunked.
    hash:
        Content fingerprint, see :func:`content_hash`.  Computed on insert
        when left empty.
    metadata:
        Free-form provenance (source path, ingest timestamp, ...).
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    type: DocumentType = DocumentType.TXT
    content: str
    plain_text: str
    hash: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    def with_hash(self) -> ReferenceDocument:
        """Return this document with ``hash`` filled in."""
        if self.hash:
            return self
        return self.model_copy(update={"hash": content_hash(self.content, self.plain_text)})


class ChunkDocument(BaseModel):
    """An embedded slice of one or more reference documents."""

    id: str | None = None
    reference_ids: list[str] = Field(min_length=1)
    embedding: list[float] = Field(min_length=1)
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("reference_ids")
    @classmethod
    def _no_blank_reference(cls, value: list[str]) -> list[str]:
        if any(not ref for ref in value):
            raise ValueError("reference_ids must not contain empty ids")
        return value

    @property
    def dimension(self) -> int:
        return len(self.embedding)


class ScoredChunk(ChunkDocument):
    """A chunk returned by a similarity query, with its cosine score."""

    score: float


class QueryResult(BaseModel):
    """Outcome of :meth:`ChunkStore.query`.

    ``error`` is set when the query could not be embedded; ``matches`` is
    then empty.
    """

    matches: list[ScoredChunk] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def ids(self) -> list[str]:
        return [m.id for m in self.matches if m.id is not None]
