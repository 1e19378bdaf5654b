"""Deduplicated persistence of whole source documents."""

from __future__ import annotations

import logging

from kg_weaver.errors import DuplicateRecordError
from kg_weaver.storage.base import StorageBackend
from kg_weaver.storage.models import ReferenceDocument

logger = logging.getLogger(__name__)


class ReferenceDocumentStore:
    """Stores :class:`ReferenceDocument` records keyed by content hash.

    The ``hash`` field is declared unique on the backend, so two concurrent
    :meth:`add` calls for identical content cannot both insert: the loser
    gets :class:`~kg_weaver.errors.DuplicateRecordError` from the backend
    and resolves to the winner's record.

    Parameters
    ----------
    backend:
        Storage backend shared with the rest of the application.
    table:
        Name of the table holding reference documents.
    """

    def __init__(self, backend: StorageBackend, table: str = "reference_documents") -> None:
        self._backend = backend
        self.table = table
        self._backend.ensure_unique(table, "hash")

    def add(self, document: ReferenceDocument) -> ReferenceDocument:
        """Persist *document* unless its content is already stored.

        Returns the stored record: the existing one, unchanged, when a
        document with the same hash exists; otherwise the new record.
        """
        document = document.with_hash()

        existing = self._find_by_hash(document.hash)
        if existing is not None:
            logger.info("Document with hash %s already stored as %s", document.hash[:12], existing.id)
            return existing

        payload = document.model_dump(mode="json", exclude={"id"})
        try:
            record = self._backend.create(self.table, payload, record_id=document.id)
        except DuplicateRecordError:
            # Lost a race against an identical insert.
            existing = self._find_by_hash(document.hash)
            if existing is None:
                raise
            return existing

        created = ReferenceDocument.model_validate(record)
        logger.info("Stored reference document %s (%s)", created.id, created.type.value)
        return created

    def get(self, document_id: str) -> ReferenceDocument | None:
        record = self._backend.select(self.table, document_id)
        return ReferenceDocument.model_validate(record) if record is not None else None

    def get_plain_text(self, document_id: str) -> str | None:
        document = self.get(document_id)
        return document.plain_text if document is not None else None

    def remove(self, document_id: str) -> None:
        """Delete a document; missing ids are ignored."""
        if self._backend.delete(self.table, document_id) is not None:
            logger.info("Removed reference document %s", document_id)

    def list(self) -> list[ReferenceDocument]:
        return [ReferenceDocument.model_validate(r) for r in self._backend.select_all(self.table)]

    def _find_by_hash(self, digest: str) -> ReferenceDocument | None:
        matches = self._backend.find(self.table, "hash", digest)
        return ReferenceDocument.model_validate(matches[0]) if matches else None
