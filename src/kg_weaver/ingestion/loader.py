"""Document loading: reads source files into reference documents."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from langchain_community.document_loaders import TextLoader

from kg_weaver.errors import DocumentReadError
from kg_weaver.storage.models import DocumentType, ReferenceDocument

_SUFFIX_TYPES = {
    ".md": DocumentType.MARKDOWN,
    ".markdown": DocumentType.MARKDOWN,
    ".txt": DocumentType.TXT,
    ".text": DocumentType.TXT,
}


def detect_type(path: str | Path) -> DocumentType:
    """Infer the document type from the file suffix (plain text by default)."""
    return _SUFFIX_TYPES.get(Path(path).suffix.lower(), DocumentType.TXT)


def load_text_file(path: str | Path) -> str:
    """Read a whole UTF-8 text or Markdown file.

    Raises
    ------
    DocumentReadError
        If the file is missing, unreadable, or not valid UTF-8.
    """
    path = Path(path)
    if path.suffix.lower() == ".pdf":
        raise DocumentReadError(f"{path}: PDF extraction is not supported, convert to text first")
    if not path.is_file():
        raise DocumentReadError(f"{path}: no such file")
    try:
        documents = TextLoader(str(path), encoding="utf-8").load()
    except RuntimeError as exc:
        raise DocumentReadError(f"{path}: {exc.__cause__ or exc}") from exc
    return "".join(doc.page_content for doc in documents)


def load_reference_document(path: str | Path) -> ReferenceDocument:
    """Build an unsaved :class:`ReferenceDocument` from *path*.

    Plain text equals the raw content for the supported text formats.
    """
    path = Path(path)
    content = load_text_file(path)
    document = ReferenceDocument(
        type=detect_type(path),
        content=content,
        plain_text=content,
        metadata={
            "source": str(path),
            "ingested_at": datetime.now(timezone.utc).isoformat(),
        },
    )
    return document.with_hash()
