"""Unit tests for the command-line entry point."""

from __future__ import annotations

from pathlib import Path

import pytest

from kg_weaver import cli
from kg_weaver.errors import StorageError
from kg_weaver.ingestion import weaver as weaver_module
from kg_weaver.storage.chunk_store import ChunkStore

from tests.conftest import FakeEmbedder


class _FakeGateway(FakeEmbedder):
    def __init__(self, settings) -> None:  # noqa: ANN001
        super().__init__()


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("EMBEDDING__API_KEY", "sk-test")
    monkeypatch.setenv("EMBEDDING__BASE_URL", "http://localhost:9/v1")


def test_ingest_and_list(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    monkeypatch.setattr(weaver_module, "EmbeddingGateway", _FakeGateway)
    doc = tmp_path / "doc.md"
    doc.write_text("alpha beta gamma delta epsilon", encoding="utf-8")
    url = f"sqlite:///{tmp_path / 'kg.db'}"

    assert cli.main(["--storage-url", url, "ingest", str(doc)]) == 0
    assert "stored=1/1" in capsys.readouterr().out

    assert cli.main(["--storage-url", url, "list"]) == 0
    out = capsys.readouterr().out
    assert "markdown" in out
    assert str(doc) in out


def test_unreadable_file_sets_exit_status(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(weaver_module, "EmbeddingGateway", _FakeGateway)
    assert cli.main(["--storage-url", "memory://", "ingest", str(tmp_path / "missing.md")]) == 1


def test_missing_embedding_config_exits_2(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("EMBEDDING__API_KEY")
    assert cli.main(["--storage-url", "memory://", "list"]) == 2


def test_storage_failure_continues_with_remaining_paths(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(weaver_module, "EmbeddingGateway", _FakeGateway)
    attempted: list[str] = []

    def failing_upsert(self, chunks):  # noqa: ANN001, ANN202
        attempted.append(next(iter(chunks)))
        raise StorageError("db down")

    monkeypatch.setattr(ChunkStore, "upsert", failing_upsert)
    first = tmp_path / "a.md"
    second = tmp_path / "b.md"
    first.write_text("alpha beta", encoding="utf-8")
    second.write_text("gamma delta", encoding="utf-8")

    assert cli.main(["--storage-url", "memory://", "ingest", str(first), str(second)]) == 1
    assert len(attempted) == 2
