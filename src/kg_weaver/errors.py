"""Exception hierarchy shared by the ingestion, storage and retrieval layers."""

from __future__ import annotations


class WeaverError(Exception):
    """Base class for every error raised by ``kg_weaver``."""


class ConfigurationError(WeaverError):
    """A required credential or endpoint is missing; raised at construction."""


class DocumentReadError(WeaverError):
    """The source file could not be read or decoded."""


class TransportError(WeaverError):
    """A single call to an external collaborator failed."""


class EmbeddingError(TransportError):
    """The embedding service was unreachable or returned an unusable payload."""


class StorageError(TransportError):
    """A storage backend call failed."""


class DuplicateRecordError(StorageError):
    """A write violated a uniqueness constraint (record id or unique field)."""

    def __init__(self, table: str, field: str, value: str) -> None:
        super().__init__(f"{table}: duplicate value for {field!r}: {value!r}")
        self.table = table
        self.field = field
        self.value = value


class DimensionMismatchError(StorageError):
    """An embedding does not match the dimension of its collection."""
