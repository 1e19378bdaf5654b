"""Unit tests for the deduplicating reference document store."""

from __future__ import annotations

from typing import Any

import pytest

from kg_weaver.errors import DuplicateRecordError
from kg_weaver.storage.memory import MemoryBackend
from kg_weaver.storage.models import DocumentType, ReferenceDocument, content_hash
from kg_weaver.storage.reference_store import ReferenceDocumentStore


def _doc(text: str = "# Title\nBody text.", **kwargs: Any) -> ReferenceDocument:
    return ReferenceDocument(type=DocumentType.MARKDOWN, content=text, plain_text=text, **kwargs)


class TestContentHash:
    def test_hash_is_sha256_hex(self) -> None:
        digest = content_hash("abc", "abc")
        assert len(digest) == 64
        assert digest == content_hash("abc", "abc")

    def test_hash_depends_on_both_fields(self) -> None:
        assert content_hash("a", "b") != content_hash("a", "c")

    def test_with_hash_keeps_explicit_value(self) -> None:
        assert _doc(hash="given").with_hash().hash == "given"


class TestReferenceDocumentStore:
    def test_add_assigns_id_and_hash(self, reference_store: ReferenceDocumentStore) -> None:
        stored = reference_store.add(_doc())
        assert stored.id
        assert stored.hash == content_hash(stored.content, stored.plain_text)

    def test_identical_content_resolves_to_same_record(
        self, reference_store: ReferenceDocumentStore
    ) -> None:
        first = reference_store.add(_doc(metadata={"source": "a.md"}))
        second = reference_store.add(_doc(metadata={"source": "copy-of-a.md"}))
        assert second.id == first.id
        assert second.metadata == {"source": "a.md"}
        assert len(reference_store.list()) == 1

    def test_different_content_creates_new_record(
        self, reference_store: ReferenceDocumentStore
    ) -> None:
        a = reference_store.add(_doc("alpha"))
        b = reference_store.add(_doc("beta"))
        assert a.id != b.id
        assert [d.id for d in reference_store.list()] == [a.id, b.id]

    def test_get_and_plain_text(self, reference_store: ReferenceDocumentStore) -> None:
        stored = reference_store.add(_doc("some words"))
        assert reference_store.get(stored.id) == stored
        assert reference_store.get_plain_text(stored.id) == "some words"

    def test_missing_ids_return_none(self, reference_store: ReferenceDocumentStore) -> None:
        assert reference_store.get("nope") is None
        assert reference_store.get_plain_text("nope") is None

    def test_remove(self, reference_store: ReferenceDocumentStore) -> None:
        stored = reference_store.add(_doc())
        reference_store.remove(stored.id)
        assert reference_store.get(stored.id) is None
        assert reference_store.list() == []

    def test_remove_missing_is_noop(self, reference_store: ReferenceDocumentStore) -> None:
        reference_store.remove("nope")

    def test_readding_after_remove_creates_fresh_record(
        self, reference_store: ReferenceDocumentStore
    ) -> None:
        first = reference_store.add(_doc())
        reference_store.remove(first.id)
        again = reference_store.add(_doc())
        assert again.id != first.id


class _RacingBackend(MemoryBackend):
    """Hides existing rows from the first hash lookup to simulate a lost race."""

    def __init__(self) -> None:
        super().__init__()
        self.blind_lookups = 0

    def find(self, table: str, field: str, value: Any) -> list[dict[str, Any]]:
        if self.blind_lookups:
            self.blind_lookups -= 1
            return []
        return super().find(table, field, value)


def test_unique_constraint_resolves_race_to_existing_record() -> None:
    backend = _RacingBackend()
    store = ReferenceDocumentStore(backend)
    winner = store.add(_doc())

    backend.blind_lookups = 1
    loser = store.add(_doc())

    assert loser.id == winner.id
    assert len(store.list()) == 1


def test_backend_rejects_duplicate_hash_directly(backend) -> None:  # noqa: ANN001
    ReferenceDocumentStore(backend)
    payload = _doc().with_hash().model_dump(mode="json", exclude={"id"})
    backend.create("reference_documents", payload)
    with pytest.raises(DuplicateRecordError):
        backend.create("reference_documents", payload)
