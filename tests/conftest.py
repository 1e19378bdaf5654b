"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import threading
from collections.abc import Iterator

import pytest

from kg_weaver.errors import EmbeddingError
from kg_weaver.storage.base import StorageBackend
from kg_weaver.storage.chunk_store import ChunkStore
from kg_weaver.storage.memory import MemoryBackend
from kg_weaver.storage.reference_store import ReferenceDocumentStore
from kg_weaver.storage.sql import SqlBackend


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fake embedding service ──────────────────────────────────────────────


class FakeEmbedder:
    """Deterministic text → vector function with optional failures.

    Each text maps to a 4-dim bag-of-letters vector unless an explicit
    vector is registered.  Texts listed in ``fail_on`` raise
    :class:`EmbeddingError`.  Calls are counted thread-safely.
    """

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        fail_on: set[str] | None = None,
    ) -> None:
        self.vectors = dict(vectors or {})
        self.fail_on = set(fail_on or ())
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, text: str) -> list[float]:
        with self._lock:
            self.calls.append(text)
        if text in self.fail_on:
            raise EmbeddingError(f"boom: {text}")
        if text in self.vectors:
            return list(self.vectors[text])
        counts = [float(text.count(ch)) for ch in "aeio"]
        return counts if any(counts) else [1.0, 0.0, 0.0, 0.0]


@pytest.fixture()
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


# ── Backends and stores ─────────────────────────────────────────────────


@pytest.fixture(params=["memory", "sql"])
def backend(request: pytest.FixtureRequest) -> Iterator[StorageBackend]:
    """Every storage test runs against both backends."""
    store: StorageBackend = MemoryBackend() if request.param == "memory" else SqlBackend("sqlite://")
    yield store
    store.close()


@pytest.fixture()
def reference_store(backend: StorageBackend) -> ReferenceDocumentStore:
    return ReferenceDocumentStore(backend)


@pytest.fixture()
def chunk_store(backend: StorageBackend, fake_embedder: FakeEmbedder) -> ChunkStore:
    return ChunkStore(backend, fake_embedder)
