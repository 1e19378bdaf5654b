"""Domain models for retrieval results and citation tracking."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class Citation(BaseModel):
    """Provenance record linking a retrieved chunk back to its reference document.

    Attributes
    ----------
    citation_id:
        Unique identifier for this citation instance.
    chunk_id:
        Id of the chunk in the chunk store.
    reference_ids:
        Reference documents the chunk belongs to.
    source:
        Human-readable source locator, usually the ingested file path.
    chunk_index:
        Position of the chunk within its document.
    score:
        Cosine similarity to the query.
    metadata:
        The chunk's stored metadata.
    retrieved_at:
        UTC timestamp of the retrieval.
    """

    citation_id: str = Field(default_factory=lambda: uuid4().hex[:12])
    chunk_id: str | None = None
    reference_ids: list[str] = Field(default_factory=list)
    source: str = "unknown"
    chunk_index: int | None = None
    score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    retrieved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def short_ref(self) -> str:
        """Return a compact ``[source§chunk]`` reference string."""
        chunk = self.chunk_index if self.chunk_index is not None else "?"
        return f"[{self.source}§{chunk}]"


class RetrievalResult(BaseModel):
    """A single retrieved passage together with its citation."""

    content: str
    citation: Citation

    def __str__(self) -> str:  # noqa: D105
        return f"{self.citation.short_ref()} {self.content[:120]}…"
