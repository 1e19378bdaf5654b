"""Unit tests for settings loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from kg_weaver.config import load_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:  # noqa: ANN001
    monkeypatch.chdir(tmp_path)
    for name in ("EMBEDDING__API_KEY", "EMBEDDING__BASE_URL", "CONCURRENCY_LIMIT", "SIMILARITY_THRESHOLD"):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = load_settings()
    assert settings.similarity_threshold == 0.2
    assert settings.concurrency_limit == 5
    assert settings.embedding.api_key == ""
    assert settings.embedding.max_retries == 3


def test_nested_environment_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EMBEDDING__API_KEY", "sk-env")
    monkeypatch.setenv("EMBEDDING__BASE_URL", "https://embed.example.com/v1")
    monkeypatch.setenv("CONCURRENCY_LIMIT", "12")
    settings = load_settings()
    assert settings.embedding.api_key == "sk-env"
    assert settings.embedding.base_url == "https://embed.example.com/v1"
    assert settings.concurrency_limit == 12


def test_dotenv_file(tmp_path) -> None:  # noqa: ANN001
    (tmp_path / ".env").write_text("SIMILARITY_THRESHOLD=0.35\nCHUNK_SIZE=256\n", encoding="utf-8")
    settings = load_settings()
    assert settings.similarity_threshold == 0.35
    assert settings.chunk_size == 256


def test_overrides_win() -> None:
    assert load_settings(storage_url="memory://").storage_url == "memory://"


@pytest.mark.parametrize("field", ["concurrency_limit", "chunk_size"])
def test_invalid_values_rejected(field: str) -> None:
    with pytest.raises(ValidationError):
        load_settings(**{field: 0})
